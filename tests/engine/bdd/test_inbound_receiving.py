"""BDD tests for receiving inbound shipments into the ledger."""

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/inbound_receiving.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the shipment travels to the warehouse")
def _(engine, inbound_id):
    engine.mark_in_transit(inbound_id, carrier="DHL", tracking_number="TRK-1").unwrap()
    engine.mark_arrived(inbound_id).unwrap()
    engine.begin_inspection(inbound_id, actor_id="qc-1").unwrap()


@when(
    parsers.cfparse("inspection accepts {accepted:d} and rejects {rejected:d} units"),
    target_fixture="result",
)
def _(engine, inbound_id, accepted, rejected):
    shipment = engine.get_inbound_shipment(inbound_id).unwrap()
    return engine.record_inspection(
        inbound_id,
        str(shipment.line_items[0].id),
        accepted,
        rejected,
        actor_id="qc-1",
    )


@when("inspection is completed", target_fixture="result")
def _(engine, inbound_id):
    return engine.complete_inspection(inbound_id, actor_id="qc-1")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the inbound shipment status is "{status}"'))
def _(engine, inbound_id, status):
    assert engine.get_inbound_shipment(inbound_id).unwrap().status == status
