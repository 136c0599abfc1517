"""Shared BDD fixtures and step definitions for the production engine."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from production.engine import InboundLine, OutboundLine, ProductionEngine
from production.ledger.queries import find_record
from production.ledger.record import InventoryRecord
from production.shared.locking import KeyedLocks


@pytest.fixture()
def engine():
    return ProductionEngine(locks=KeyedLocks(), retries=0)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a manufacturing job for order "{order_id}" without samples'), target_fixture="job_id")
def _(engine, order_id):
    return str(engine.open_job(order_id, sample_required=False, actor_id="ops-1").unwrap().id)


@given(parsers.cfparse('a manufacturing job for order "{order_id}" that requires samples'), target_fixture="job_id")
def _(engine, order_id):
    return str(engine.open_job(order_id, sample_required=True, actor_id="ops-1").unwrap().id)


@given(parsers.cfparse('an empty inventory record for "{variant_id}" at "{warehouse_id}"'))
def _(variant_id, warehouse_id):
    current_domain.repository_for(InventoryRecord).add(InventoryRecord.open(variant_id, warehouse_id))


@given(parsers.cfparse('{quantity:d} units of "{variant_id}" in stock at "{warehouse_id}"'))
def _(quantity, variant_id, warehouse_id):
    item = InventoryRecord.open(variant_id, warehouse_id)
    item.stock(quantity)
    current_domain.repository_for(InventoryRecord).add(item)


@given(
    parsers.cfparse('an inbound shipment to "{warehouse_id}" declaring {quantity:d} units of "{variant_id}"'),
    target_fixture="inbound_id",
)
def _(engine, job_id, warehouse_id, quantity, variant_id):
    shipment = engine.register_inbound_shipment(
        job_id,
        warehouse_id,
        [InboundLine(variant_id, quantity)],
        carrier="DHL",
        actor_id="ops-1",
    ).unwrap()
    return str(shipment.id)


@given(
    parsers.cfparse(
        'an outbound shipment for order "{order_id}" reserving {quantity:d} units of "{variant_id}" from "{warehouse_id}"'
    ),
    target_fixture="outbound_id",
)
def _(engine, order_id, quantity, variant_id, warehouse_id):
    shipment = engine.create_outbound_shipment(
        order_id, warehouse_id, [OutboundLine(variant_id, quantity)], actor_id="ops-1"
    ).unwrap()
    return str(shipment.id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request fails with "{kind}"'))
def _(result, kind):
    assert not result.ok, f"Expected {kind}, operation succeeded"
    assert result.error.kind.value == kind


@then(
    parsers.cfparse(
        'the inventory record for "{variant_id}" at "{warehouse_id}" '
        "holds {on_hand:d} on hand and {reserved:d} reserved"
    )
)
def _(engine, variant_id, warehouse_id, on_hand, reserved):
    item = engine.get_inventory(variant_id, warehouse_id).unwrap()
    assert (item.quantity_on_hand, item.quantity_reserved) == (on_hand, reserved)
    assert item.quantity_available == on_hand - reserved


@then(parsers.cfparse('there is no inventory record for "{variant_id}" at "{warehouse_id}"'))
def _(variant_id, warehouse_id):
    assert find_record(variant_id, warehouse_id) is None
