"""Tests for the InventoryRecord aggregate: stocking, holds and corrections."""

import pytest
from protean.exceptions import ValidationError

from production.ledger.events import (
    BinLocationAssigned,
    ReservationReleased,
    StockAdjusted,
    StockCommitted,
    StockReceived,
    StockReserved,
)
from production.ledger.record import InventoryRecord, record_id_for
from production.shared.errors import InsufficientStock


def _make_record(on_hand=0, reserved=0):
    item = InventoryRecord.open("var-001", "wh-001")
    if on_hand:
        item.stock(on_hand)
    if reserved:
        item.reserve(reserved)
    item._events.clear()
    return item


class TestOpen:
    def test_identity_is_variant_at_warehouse(self):
        item = InventoryRecord.open("var-001", "wh-001")
        assert item.id == record_id_for("var-001", "wh-001") == "var-001@wh-001"

    def test_starts_empty(self):
        item = InventoryRecord.open("var-001", "wh-001")
        assert item.quantity_on_hand == 0
        assert item.quantity_reserved == 0
        assert item.quantity_available == 0

    def test_snapshot_format(self):
        item = _make_record(on_hand=10, reserved=4)
        assert item.snapshot() == "on_hand=10 reserved=4"


class TestStock:
    def test_stock_increases_on_hand(self):
        item = _make_record()
        item.stock(95, reference="inbound:shp-1")
        assert item.quantity_on_hand == 95
        assert item.quantity_available == 95
        assert item.last_received_at is not None

    def test_stock_raises_event(self):
        item = _make_record(on_hand=5)
        item.stock(10)
        event = item._events[-1]
        assert isinstance(event, StockReceived)
        assert event.previous_on_hand == 5
        assert event.new_on_hand == 15

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_stock_rejects_non_positive(self, quantity):
        item = _make_record()
        with pytest.raises(ValidationError) as exc_info:
            item.stock(quantity)
        assert "quantity" in exc_info.value.messages


class TestReserve:
    def test_reserve_exactly_available_succeeds(self):
        item = _make_record(on_hand=95)
        item.reserve(95)
        assert item.quantity_reserved == 95
        assert item.quantity_available == 0
        assert isinstance(item._events[-1], StockReserved)

    def test_reserve_one_more_than_available_fails_without_effect(self):
        item = _make_record(on_hand=95, reserved=10)
        with pytest.raises(InsufficientStock):
            item.reserve(86)
        assert item.quantity_on_hand == 95
        assert item.quantity_reserved == 10
        assert item._events == []

    def test_insufficient_stock_is_a_validation_error(self):
        item = _make_record(on_hand=1)
        with pytest.raises(ValidationError):
            item.reserve(2)


class TestRelease:
    def test_release_returns_hold(self):
        item = _make_record(on_hand=20, reserved=8)
        item.release(8)
        assert item.quantity_reserved == 0
        assert item.quantity_on_hand == 20
        assert isinstance(item._events[-1], ReservationReleased)

    def test_release_more_than_reserved_fails(self):
        item = _make_record(on_hand=20, reserved=3)
        with pytest.raises(ValidationError):
            item.release(4)
        assert item.quantity_reserved == 3


class TestCommit:
    def test_commit_depletes_on_hand_and_reserved(self):
        item = _make_record(on_hand=95, reserved=95)
        item.commit(95)
        assert item.quantity_on_hand == 0
        assert item.quantity_reserved == 0
        event = item._events[-1]
        assert isinstance(event, StockCommitted)
        assert event.new_on_hand == 0

    def test_commit_more_than_reserved_fails(self):
        item = _make_record(on_hand=10, reserved=2)
        with pytest.raises(ValidationError):
            item.commit(3)


class TestAdjust:
    def test_adjust_up_for_found_stock(self):
        item = _make_record(on_hand=10)
        item.adjust(5, "found", adjusted_by="clerk-1")
        assert item.quantity_on_hand == 15
        event = item._events[-1]
        assert isinstance(event, StockAdjusted)
        assert event.reason_code == "found"
        assert event.adjusted_by == "clerk-1"

    def test_adjust_down_for_damage(self):
        item = _make_record(on_hand=10)
        item.adjust(-4, "damage")
        assert item.quantity_on_hand == 6

    def test_adjust_cannot_go_below_reserved(self):
        item = _make_record(on_hand=10, reserved=8)
        with pytest.raises(InsufficientStock):
            item.adjust(-3, "shrinkage")
        assert item.quantity_on_hand == 10

    def test_adjust_zero_rejected(self):
        item = _make_record(on_hand=10)
        with pytest.raises(ValidationError) as exc_info:
            item.adjust(0, "correction")
        assert "delta" in exc_info.value.messages

    def test_adjust_unknown_reason_rejected(self):
        item = _make_record(on_hand=10)
        with pytest.raises(ValidationError) as exc_info:
            item.adjust(1, "gremlins")
        assert "reason_code" in exc_info.value.messages


class TestInvariant:
    def test_reserved_cannot_exceed_on_hand(self):
        with pytest.raises(ValidationError):
            InventoryRecord(
                id="var-001@wh-001",
                variant_id="var-001",
                warehouse_id="wh-001",
                quantity_on_hand=5,
                quantity_reserved=6,
            )

    def test_reserved_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            InventoryRecord(
                id="var-001@wh-001",
                variant_id="var-001",
                warehouse_id="wh-001",
                quantity_on_hand=5,
                quantity_reserved=-1,
            )


class TestAssignBin:
    def test_assign_bin(self):
        item = _make_record()
        item.assign_bin(" A-01-03 ")
        assert item.bin_location == "A-01-03"
        assert isinstance(item._events[-1], BinLocationAssigned)

    def test_blank_bin_rejected(self):
        item = _make_record()
        with pytest.raises(ValidationError):
            item.assign_bin("  ")
