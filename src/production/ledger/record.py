"""InventoryRecord aggregate (CQRS): stock for one variant at one warehouse.

Stock Level Model:
    on_hand:   Physical count in the warehouse
    reserved:  Held for outbound shipments (not yet shipped)
    available: on_hand - reserved, computed on read and never stored

The record identity is the composite ``"{variant_id}@{warehouse_id}"`` so a
(variant, warehouse) pair can be loaded directly and can never be stocked
into two separate records. Records are created on first stocking and never
deleted; an emptied record simply reads zero.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from production.domain import production
from production.ledger.events import (
    BinLocationAssigned,
    ReservationReleased,
    StockAdjusted,
    StockCommitted,
    StockReceived,
    StockReserved,
)
from production.shared.errors import InsufficientStock


class AdjustmentReason(Enum):
    CYCLE_COUNT = "cycle_count"
    DAMAGE = "damage"
    SHRINKAGE = "shrinkage"
    CORRECTION = "correction"
    FOUND = "found"


def record_id_for(variant_id: str, warehouse_id: str) -> str:
    return f"{variant_id}@{warehouse_id}"


@production.aggregate
class InventoryRecord:
    """Ledger line for one product variant at one warehouse."""

    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity_on_hand = Integer(default=0)
    quantity_reserved = Integer(default=0)
    bin_location = String(max_length=50)
    last_received_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def reserved_within_on_hand(self):
        on_hand = self.quantity_on_hand or 0
        reserved = self.quantity_reserved or 0
        if reserved < 0:
            raise ValidationError({"quantity_reserved": ["Reserved quantity cannot be negative"]})
        if reserved > on_hand:
            raise ValidationError({"quantity_reserved": ["Reserved quantity cannot exceed quantity on hand"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, variant_id: str, warehouse_id: str):
        """Create an empty record for a (variant, warehouse) pair."""
        now = datetime.now(UTC)
        return cls(
            id=record_id_for(variant_id, warehouse_id),
            variant_id=str(variant_id),
            warehouse_id=str(warehouse_id),
            quantity_on_hand=0,
            quantity_reserved=0,
            created_at=now,
            updated_at=now,
        )

    @property
    def quantity_available(self) -> int:
        return (self.quantity_on_hand or 0) - (self.quantity_reserved or 0)

    def snapshot(self) -> str:
        """Compact rendering of the quantities, used as trail values."""
        return f"on_hand={self.quantity_on_hand} reserved={self.quantity_reserved}"

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def stock(self, quantity: int, reference: str | None = None) -> None:
        """Credit accepted inbound quantity to on-hand stock."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        now = datetime.now(UTC)
        previous = self.quantity_on_hand
        self.quantity_on_hand = previous + quantity
        self.last_received_at = now
        self.updated_at = now
        self.raise_(
            StockReceived(
                inventory_record_id=str(self.id),
                variant_id=str(self.variant_id),
                warehouse_id=str(self.warehouse_id),
                quantity=quantity,
                previous_on_hand=previous,
                new_on_hand=self.quantity_on_hand,
                reference=reference,
                received_at=now,
            )
        )

    def reserve(self, quantity: int, reference: str | None = None) -> None:
        """Hold stock for a shipment. Fails without effect if not enough is available."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.quantity_available:
            raise InsufficientStock(
                {
                    "quantity": [
                        f"Insufficient stock for {self.variant_id} at {self.warehouse_id}. "
                        f"Available: {self.quantity_available}, requested: {quantity}"
                    ]
                }
            )

        now = datetime.now(UTC)
        self.quantity_reserved = self.quantity_reserved + quantity
        self.updated_at = now
        self.raise_(
            StockReserved(
                inventory_record_id=str(self.id),
                variant_id=str(self.variant_id),
                warehouse_id=str(self.warehouse_id),
                quantity=quantity,
                new_reserved=self.quantity_reserved,
                new_available=self.quantity_available,
                reference=reference,
                reserved_at=now,
            )
        )

    def release(self, quantity: int, reference: str | None = None) -> None:
        """Give back a hold. On-hand is unchanged."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.quantity_reserved:
            raise ValidationError(
                {"quantity": [f"Cannot release {quantity}; only {self.quantity_reserved} reserved"]}
            )

        now = datetime.now(UTC)
        self.quantity_reserved = self.quantity_reserved - quantity
        self.updated_at = now
        self.raise_(
            ReservationReleased(
                inventory_record_id=str(self.id),
                variant_id=str(self.variant_id),
                warehouse_id=str(self.warehouse_id),
                quantity=quantity,
                new_reserved=self.quantity_reserved,
                new_available=self.quantity_available,
                reference=reference,
                released_at=now,
            )
        )

    def commit(self, quantity: int, reference: str | None = None) -> None:
        """Consume a hold as stock physically leaves: on-hand and reserved both drop."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.quantity_reserved:
            raise ValidationError(
                {"quantity": [f"Cannot commit {quantity}; only {self.quantity_reserved} reserved"]}
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.quantity_on_hand = self.quantity_on_hand - quantity
            self.quantity_reserved = self.quantity_reserved - quantity
            self.updated_at = now

        self.raise_(
            StockCommitted(
                inventory_record_id=str(self.id),
                variant_id=str(self.variant_id),
                warehouse_id=str(self.warehouse_id),
                quantity=quantity,
                new_on_hand=self.quantity_on_hand,
                new_reserved=self.quantity_reserved,
                reference=reference,
                committed_at=now,
            )
        )

    def adjust(self, delta: int, reason_code: str, adjusted_by: str | None = None) -> None:
        """Correct on-hand after a physical count. Reserved stock cannot be adjusted away."""
        if delta == 0:
            raise ValidationError({"delta": ["Adjustment cannot be zero"]})
        try:
            AdjustmentReason(reason_code)
        except ValueError:
            raise ValidationError({"reason_code": [f"Unknown adjustment reason: {reason_code}"]}) from None

        new_on_hand = self.quantity_on_hand + delta
        if new_on_hand < self.quantity_reserved:
            raise InsufficientStock(
                {
                    "delta": [
                        f"Adjustment would leave {new_on_hand} on hand "
                        f"with {self.quantity_reserved} reserved"
                    ]
                }
            )

        now = datetime.now(UTC)
        previous = self.quantity_on_hand
        self.quantity_on_hand = new_on_hand
        self.updated_at = now
        self.raise_(
            StockAdjusted(
                inventory_record_id=str(self.id),
                variant_id=str(self.variant_id),
                warehouse_id=str(self.warehouse_id),
                delta=delta,
                reason_code=reason_code,
                previous_on_hand=previous,
                new_on_hand=new_on_hand,
                adjusted_by=adjusted_by,
                adjusted_at=now,
            )
        )

    def assign_bin(self, bin_location: str) -> None:
        if not bin_location or not bin_location.strip():
            raise ValidationError({"bin_location": ["Bin location cannot be blank"]})

        now = datetime.now(UTC)
        previous = self.bin_location
        self.bin_location = bin_location.strip()
        self.updated_at = now
        self.raise_(
            BinLocationAssigned(
                inventory_record_id=str(self.id),
                previous_bin_location=previous,
                bin_location=self.bin_location,
                assigned_at=now,
            )
        )
