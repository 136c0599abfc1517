"""Application tests for outbound shipment commands and their ledger effects."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from production.fulfillment.creation import CreateOutboundShipment
from production.fulfillment.picking import PackShipment, PickShipment
from production.fulfillment.shipment import OutboundShipment, OutboundStatus
from production.fulfillment.shipping import CancelShipment, DeliverShipment, ShipShipment
from production.ledger.queries import get_record
from production.ledger.record import InventoryRecord
from production.shared.errors import InsufficientStock, InvalidTransition
from production.trail.entry import EntityType
from production.trail.recorder import timeline


def _stock(variant_id="var-001", quantity=95, warehouse_id="wh-001"):
    item = InventoryRecord.open(variant_id, warehouse_id)
    item.stock(quantity)
    current_domain.repository_for(InventoryRecord).add(item)


def _create(lines, order_id="ord-001"):
    return current_domain.process(
        CreateOutboundShipment(
            order_id=order_id,
            warehouse_id="wh-001",
            line_items=json.dumps(lines),
            actor_id="ops-1",
        ),
        asynchronous=False,
    )


def _levels(variant_id="var-001"):
    item = get_record(variant_id, "wh-001")
    return item.quantity_on_hand, item.quantity_reserved


def _shipment(shipment_id):
    return current_domain.repository_for(OutboundShipment).get(shipment_id)


def _to_packed(shipment_id):
    current_domain.process(PickShipment(shipment_id=shipment_id), asynchronous=False)
    current_domain.process(PackShipment(shipment_id=shipment_id), asynchronous=False)


class TestCreateOutboundShipmentCommand:
    def test_reserves_stock(self):
        _stock(quantity=95)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 95}])
        assert _shipment(shipment_id).status == OutboundStatus.PENDING.value
        assert _levels() == (95, 95)

    def test_one_more_unit_than_available_fails_unchanged(self):
        _stock(quantity=95)
        _create([{"variant_id": "var-001", "requested_quantity": 95}])

        with pytest.raises(InsufficientStock) as exc_info:
            _create([{"variant_id": "var-001", "requested_quantity": 1}], order_id="ord-002")
        assert "var-001" in exc_info.value.messages
        assert _levels() == (95, 95)

    def test_all_or_nothing_across_lines(self):
        _stock("var-001", 10)
        _stock("var-002", 1)
        with pytest.raises(InsufficientStock) as exc_info:
            _create(
                [
                    {"variant_id": "var-001", "requested_quantity": 5},
                    {"variant_id": "var-002", "requested_quantity": 2},
                ]
            )
        assert list(exc_info.value.messages) == ["var-002"]
        assert _levels("var-001") == (10, 0)
        assert _levels("var-002") == (1, 0)
        assert timeline(EntityType.INVENTORY_RECORD, "var-001@wh-001") == []

    def test_missing_record_counts_as_zero(self):
        with pytest.raises(InsufficientStock) as exc_info:
            _create([{"variant_id": "var-404", "requested_quantity": 1}])
        assert "var-404" in exc_info.value.messages

    def test_duplicate_variants_summed_before_check(self):
        _stock(quantity=5)
        with pytest.raises(InsufficientStock):
            _create(
                [
                    {"variant_id": "var-001", "requested_quantity": 3},
                    {"variant_id": "var-001", "requested_quantity": 3},
                ]
            )
        shipment_id = _create(
            [
                {"variant_id": "var-001", "requested_quantity": 2},
                {"variant_id": "var-001", "requested_quantity": 3},
            ]
        )
        assert _shipment(shipment_id).reserved_quantities == {"var-001": 5}
        assert _levels() == (5, 5)

    def test_malformed_lines_rejected(self):
        with pytest.raises(ValidationError):
            _create([{"variant_id": "var-001", "requested_quantity": 0}])

    def test_trail_records_reservation_and_creation(self):
        _stock(quantity=10)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 4}])

        ledger_entry = timeline(EntityType.INVENTORY_RECORD, "var-001@wh-001")[-1]
        assert (ledger_entry.previous_value, ledger_entry.new_value) == (
            "on_hand=10 reserved=0",
            "on_hand=10 reserved=4",
        )
        shipment_entry = timeline(EntityType.OUTBOUND_SHIPMENT, shipment_id)[-1]
        assert (shipment_entry.previous_value, shipment_entry.new_value) == (None, "pending")


class TestShippingCommands:
    def test_ship_commits_reservation(self):
        _stock(quantity=95)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 95}])
        _to_packed(shipment_id)
        current_domain.process(
            ShipShipment(shipment_id=shipment_id, tracking_number="1Z999", carrier="UPS"),
            asynchronous=False,
        )

        assert _shipment(shipment_id).status == OutboundStatus.SHIPPED.value
        assert _levels() == (0, 0)

    def test_pick_and_pack_leave_ledger_alone(self):
        _stock(quantity=20)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 5}])
        _to_packed(shipment_id)
        assert _levels() == (20, 5)
        statuses = [e.new_value for e in timeline(EntityType.OUTBOUND_SHIPMENT, shipment_id)]
        assert statuses == ["pending", "picking", "packed"]

    def test_cancel_releases_reservation(self):
        _stock(quantity=20)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 5}])
        current_domain.process(PickShipment(shipment_id=shipment_id), asynchronous=False)
        current_domain.process(CancelShipment(shipment_id=shipment_id, reason="fraud check"), asynchronous=False)

        shipment = _shipment(shipment_id)
        assert shipment.status == OutboundStatus.CANCELLED.value
        assert shipment.cancellation_reason == "fraud check"
        assert _levels() == (20, 0)

    def test_cannot_cancel_packed_shipment(self):
        _stock(quantity=20)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 5}])
        _to_packed(shipment_id)
        with pytest.raises(InvalidTransition):
            current_domain.process(CancelShipment(shipment_id=shipment_id), asynchronous=False)
        assert _levels() == (20, 5)

    def test_deliver_after_ship(self):
        _stock(quantity=20)
        shipment_id = _create([{"variant_id": "var-001", "requested_quantity": 5}])
        _to_packed(shipment_id)
        current_domain.process(
            ShipShipment(shipment_id=shipment_id, tracking_number="1Z999", carrier="UPS"),
            asynchronous=False,
        )
        current_domain.process(DeliverShipment(shipment_id=shipment_id), asynchronous=False)
        assert _shipment(shipment_id).status == OutboundStatus.DELIVERED.value
        assert _levels() == (15, 0)
