"""OutboundShipment aggregate (CQRS): reserved stock leaving a warehouse for a customer.

State Machine:
    PENDING → PICKING → PACKED → SHIPPED → DELIVERED
    {PENDING, PICKING} → CANCELLED

A shipment only exists once its stock is reserved. Shipping consumes the
reservations and cancelling releases them; the handlers apply those ledger
effects in the same Unit of Work as the status change.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from production.domain import production
from production.fulfillment.events import (
    OutboundPickingStarted,
    OutboundShipmentCancelled,
    OutboundShipmentCreated,
    OutboundShipmentDelivered,
    OutboundShipmentPacked,
    OutboundShipmentShipped,
)
from production.shared.errors import InvalidTransition
from production.shared.line_items import quantity_of, variant_of


class OutboundStatus(Enum):
    PENDING = "pending"
    PICKING = "picking"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    OutboundStatus.PENDING: {OutboundStatus.PICKING, OutboundStatus.CANCELLED},
    OutboundStatus.PICKING: {OutboundStatus.PACKED, OutboundStatus.CANCELLED},
    OutboundStatus.PACKED: {OutboundStatus.SHIPPED},
    OutboundStatus.SHIPPED: {OutboundStatus.DELIVERED},
    OutboundStatus.DELIVERED: set(),  # terminal
    OutboundStatus.CANCELLED: set(),  # terminal
}


def requested_totals(line_items_data: list[dict]) -> dict[str, int]:
    """Sum requested quantities per variant, keeping first-seen order."""
    if not line_items_data:
        raise ValidationError({"line_items": ["A shipment needs at least one line item"]})

    totals: dict[str, int] = {}
    for item in line_items_data:
        variant_id = variant_of(item)
        quantity = quantity_of(item, "requested_quantity")
        totals[variant_id] = totals.get(variant_id, 0) + quantity
    return totals


@production.entity(part_of="OutboundShipment")
class OutboundLineItem:
    variant_id = Identifier(required=True)
    requested_quantity = Integer(required=True, min_value=1)


@production.aggregate
class OutboundShipment:
    order_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    status = String(
        max_length=50,
        choices=OutboundStatus,
        default=OutboundStatus.PENDING.value,
    )
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    line_items = HasMany(OutboundLineItem)
    cancellation_reason = String(max_length=500)
    picking_started_at = DateTime()
    packed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, order_id: str, warehouse_id: str, totals: dict[str, int]):
        """Open a shipment for already-reserved quantities, one line per variant."""
        now = datetime.now(UTC)
        shipment = cls(
            order_id=order_id,
            warehouse_id=warehouse_id,
            status=OutboundStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for variant_id, quantity in totals.items():
            shipment.add_line_items(OutboundLineItem(variant_id=variant_id, requested_quantity=quantity))

        shipment.raise_(
            OutboundShipmentCreated(
                shipment_id=str(shipment.id),
                order_id=str(order_id),
                warehouse_id=str(warehouse_id),
                line_items=json.dumps(
                    [{"variant_id": v, "requested_quantity": q} for v, q in totals.items()]
                ),
                total_quantity=sum(totals.values()),
                created_at=now,
            )
        )
        return shipment

    @property
    def reserved_quantities(self) -> dict[str, int]:
        return {str(item.variant_id): item.requested_quantity for item in self.line_items or []}

    def _assert_can_transition(self, target_status: OutboundStatus) -> None:
        current = OutboundStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"status": [f"Cannot transition outbound shipment from {current.value} to {target_status.value}"]}
            )

    # -------------------------------------------------------------------
    # Warehouse work
    # -------------------------------------------------------------------
    def start_picking(self) -> None:
        self._assert_can_transition(OutboundStatus.PICKING)
        now = datetime.now(UTC)
        self.status = OutboundStatus.PICKING.value
        self.picking_started_at = now
        self.updated_at = now
        self.raise_(OutboundPickingStarted(shipment_id=str(self.id), started_at=now))

    def pack(self) -> None:
        self._assert_can_transition(OutboundStatus.PACKED)
        now = datetime.now(UTC)
        self.status = OutboundStatus.PACKED.value
        self.packed_at = now
        self.updated_at = now
        self.raise_(OutboundShipmentPacked(shipment_id=str(self.id), packed_at=now))

    # -------------------------------------------------------------------
    # Carrier handoff
    # -------------------------------------------------------------------
    def ship(self, tracking_number: str, carrier: str) -> None:
        """Hand the packed shipment to a carrier."""
        if not tracking_number or not carrier:
            raise ValidationError({"tracking_number": ["Tracking number and carrier are required to ship"]})
        self._assert_can_transition(OutboundStatus.SHIPPED)

        now = datetime.now(UTC)
        self.status = OutboundStatus.SHIPPED.value
        self.tracking_number = tracking_number
        self.carrier = carrier
        self.shipped_at = now
        self.updated_at = now
        self.raise_(
            OutboundShipmentShipped(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                carrier=carrier,
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self) -> None:
        self._assert_can_transition(OutboundStatus.DELIVERED)
        now = datetime.now(UTC)
        self.status = OutboundStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(
            OutboundShipmentDelivered(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                delivered_at=now,
            )
        )

    def cancel(self, reason: str | None = None) -> None:
        previous = self.status
        self._assert_can_transition(OutboundStatus.CANCELLED)

        now = datetime.now(UTC)
        self.status = OutboundStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now
        self.raise_(
            OutboundShipmentCancelled(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                previous_status=previous,
                reason=reason,
                cancelled_at=now,
            )
        )
