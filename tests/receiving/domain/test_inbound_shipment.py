"""Tests for the InboundShipment aggregate and its QC inspections."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError

from production.receiving.events import (
    InboundShipmentFlagged,
    InboundShipmentRegistered,
    InboundShipmentStocked,
    InspectionRecorded,
    InspectionStarted,
)
from production.receiving.shipment import InboundShipment, InboundStatus
from production.shared.errors import InvalidTransition


def _register(lines=None, **overrides):
    defaults = {
        "manufacturing_job_id": "job-001",
        "warehouse_id": "wh-001",
        "line_items_data": lines or [{"variant_id": "var-001", "declared_quantity": 100}],
        "carrier": "DHL",
    }
    defaults.update(overrides)
    return InboundShipment.register(**defaults)


def _inspecting(lines=None):
    shipment = _register(lines)
    shipment.mark_in_transit(tracking_number="TRK-1")
    shipment.mark_arrived()
    shipment.begin_inspection()
    shipment._events.clear()
    return shipment


def _line_id(shipment, index=0):
    return str(shipment.line_items[index].id)


class TestRegister:
    def test_register_in_expected(self):
        shipment = _register()
        assert shipment.status == InboundStatus.EXPECTED.value
        assert len(shipment.line_items) == 1
        assert shipment.line_items[0].declared_quantity == 100
        assert isinstance(shipment._events[-1], InboundShipmentRegistered)

    def test_requires_line_items(self):
        with pytest.raises(ValidationError) as exc_info:
            InboundShipment.register(manufacturing_job_id="job-001", warehouse_id="wh-001", line_items_data=[])
        assert "line_items" in exc_info.value.messages

    def test_variants_must_be_distinct(self):
        with pytest.raises(ValidationError):
            _register(
                [
                    {"variant_id": "var-001", "declared_quantity": 10},
                    {"variant_id": "var-001", "declared_quantity": 5},
                ]
            )

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_declared_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValidationError):
            _register([{"variant_id": "var-001", "declared_quantity": quantity}])

    @pytest.mark.parametrize(
        "item",
        [
            {"declared_quantity": 5},
            {"variant_id": None, "declared_quantity": 5},
            {"variant_id": "  ", "declared_quantity": 5},
            {"variant_id": "var-001", "declared_quantity": "lots"},
            {"variant_id": "var-001", "declared_quantity": None},
        ],
    )
    def test_malformed_line_items_rejected(self, item):
        with pytest.raises(ValidationError):
            _register([item])


class TestTransport:
    def test_forward_edges_are_timestamped(self):
        shipment = _register()
        shipment.mark_in_transit(carrier="UPS", tracking_number="1Z999")
        assert shipment.status == InboundStatus.IN_TRANSIT.value
        assert shipment.carrier == "UPS"
        assert shipment.shipped_at is not None

        shipment.mark_arrived()
        assert shipment.status == InboundStatus.ARRIVED.value
        assert shipment.arrived_at is not None

    def test_cannot_arrive_before_transit(self):
        shipment = _register()
        with pytest.raises(InvalidTransition):
            shipment.mark_arrived()

    def test_cannot_inspect_before_arrival(self):
        shipment = _register()
        with pytest.raises(InvalidTransition):
            shipment.begin_inspection()


class TestBeginInspection:
    def test_creates_one_blank_inspection_per_line(self):
        shipment = _register(
            [
                {"variant_id": "var-001", "declared_quantity": 10},
                {"variant_id": "var-002", "declared_quantity": 20},
            ]
        )
        shipment.mark_in_transit()
        shipment.mark_arrived()
        shipment.begin_inspection()

        assert shipment.status == InboundStatus.INSPECTING.value
        assert len(shipment.inspections) == 2
        assert all(not i.recorded for i in shipment.inspections)
        assert isinstance(shipment._events[-1], InspectionStarted)


class TestRecordInspection:
    def test_record_counts(self):
        shipment = _inspecting()
        changed = shipment.record_inspection(_line_id(shipment), 95, 5, notes="5 with stains")
        assert changed is True
        inspection = shipment.inspection_for(_line_id(shipment))
        assert (inspection.accepted_quantity, inspection.rejected_quantity) == (95, 5)
        assert inspection.recorded
        assert isinstance(shipment._events[-1], InspectionRecorded)

    def test_accepted_plus_rejected_cannot_exceed_declared(self):
        shipment = _inspecting()
        with pytest.raises(ValidationError) as exc_info:
            shipment.record_inspection(_line_id(shipment), 96, 5)
        assert "quantity" in exc_info.value.messages
        assert not shipment.inspection_for(_line_id(shipment)).recorded

    def test_negative_quantities_rejected(self):
        shipment = _inspecting()
        with pytest.raises(ValidationError):
            shipment.record_inspection(_line_id(shipment), -1, 0)

    def test_last_write_wins(self):
        shipment = _inspecting()
        shipment.record_inspection(_line_id(shipment), 90, 10)
        shipment.record_inspection(_line_id(shipment), 97, 3)
        inspection = shipment.inspection_for(_line_id(shipment))
        assert (inspection.accepted_quantity, inspection.rejected_quantity) == (97, 3)

    def test_identical_write_is_a_no_op(self):
        shipment = _inspecting()
        shipment.record_inspection(_line_id(shipment), 95, 5)
        shipment._events.clear()

        changed = shipment.record_inspection(_line_id(shipment), 95, 5)
        assert changed is False
        assert shipment._events == []

    def test_unknown_line_item_is_not_found(self):
        shipment = _inspecting()
        with pytest.raises(ObjectNotFoundError) as exc_info:
            shipment.record_inspection("line-404", 1, 0)
        assert "line_item_id" in exc_info.value.messages

    def test_only_while_inspecting(self):
        shipment = _register()
        with pytest.raises(InvalidTransition):
            shipment.record_inspection(_line_id(shipment), 1, 0)


class TestCompleteInspection:
    def test_requires_every_line_recorded(self):
        shipment = _inspecting(
            [
                {"variant_id": "var-001", "declared_quantity": 10},
                {"variant_id": "var-002", "declared_quantity": 20},
            ]
        )
        shipment.record_inspection(_line_id(shipment, 0), 10, 0)
        with pytest.raises(ValidationError) as exc_info:
            shipment.complete_inspection()
        assert "inspections" in exc_info.value.messages
        assert shipment.status == InboundStatus.INSPECTING.value

    def test_stocked_returns_accepted_per_variant(self):
        shipment = _inspecting(
            [
                {"variant_id": "var-001", "declared_quantity": 100},
                {"variant_id": "var-002", "declared_quantity": 20},
            ]
        )
        shipment.record_inspection(_line_id(shipment, 0), 95, 5)
        shipment.record_inspection(_line_id(shipment, 1), 0, 20)

        to_stock = shipment.complete_inspection()

        assert shipment.status == InboundStatus.STOCKED.value
        assert shipment.resolved_at is not None
        assert to_stock == {"var-001": 95}
        event = shipment._events[-1]
        assert isinstance(event, InboundShipmentStocked)
        assert event.total_accepted == 95
        assert event.total_rejected == 25

    def test_nothing_accepted_resolves_to_issue(self):
        shipment = _inspecting()
        shipment.record_inspection(_line_id(shipment), 0, 100)

        to_stock = shipment.complete_inspection()

        assert shipment.status == InboundStatus.ISSUE.value
        assert to_stock == {}
        assert isinstance(shipment._events[-1], InboundShipmentFlagged)

    def test_cannot_complete_twice(self):
        shipment = _inspecting()
        shipment.record_inspection(_line_id(shipment), 100, 0)
        shipment.complete_inspection()
        with pytest.raises(InvalidTransition):
            shipment.complete_inspection()
