"""InboundShipment aggregate (CQRS): goods moving from a manufacturer into a warehouse.

State Machine:
    EXPECTED → IN_TRANSIT → ARRIVED → INSPECTING → {STOCKED, ISSUE}

Inspection records one QcInspection per declared line item. Completing the
inspection resolves to ISSUE when nothing at all was accepted, and to
STOCKED otherwise; the handler credits accepted quantities to the ledger in
the same Unit of Work.
"""

import json
from datetime import UTC, date, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Date, DateTime, HasMany, Identifier, Integer, String, Text

from production.domain import production
from production.receiving.events import (
    InboundShipmentArrived,
    InboundShipmentFlagged,
    InboundShipmentInTransit,
    InboundShipmentRegistered,
    InboundShipmentStocked,
    InspectionRecorded,
    InspectionStarted,
)
from production.shared.errors import InvalidTransition
from production.shared.line_items import quantity_of, variant_of


class InboundStatus(Enum):
    EXPECTED = "expected"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    INSPECTING = "inspecting"
    STOCKED = "stocked"
    ISSUE = "issue"


_VALID_TRANSITIONS = {
    InboundStatus.EXPECTED: {InboundStatus.IN_TRANSIT},
    InboundStatus.IN_TRANSIT: {InboundStatus.ARRIVED},
    InboundStatus.ARRIVED: {InboundStatus.INSPECTING},
    InboundStatus.INSPECTING: {InboundStatus.STOCKED, InboundStatus.ISSUE},
    InboundStatus.STOCKED: set(),  # terminal
    InboundStatus.ISSUE: set(),  # terminal
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@production.entity(part_of="InboundShipment")
class InboundLineItem:
    variant_id = Identifier(required=True)
    declared_quantity = Integer(required=True, min_value=1)


@production.entity(part_of="InboundShipment")
class QcInspection:
    """Inspection counts for one line item. Unrecorded until the first write."""

    line_item_id = Identifier(required=True)
    accepted_quantity = Integer(default=0, min_value=0)
    rejected_quantity = Integer(default=0, min_value=0)
    notes = Text()
    recorded = Boolean(default=False)
    recorded_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@production.aggregate
class InboundShipment:
    manufacturing_job_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    status = String(
        max_length=50,
        choices=InboundStatus,
        default=InboundStatus.EXPECTED.value,
    )
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    expected_arrival_date = Date()
    line_items = HasMany(InboundLineItem)
    inspections = HasMany(QcInspection)
    shipped_at = DateTime()
    arrived_at = DateTime()
    inspection_started_at = DateTime()
    resolved_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def inspected_quantities_within_declared(self):
        declared = {str(item.id): item.declared_quantity for item in self.line_items or []}
        for inspection in self.inspections or []:
            limit = declared.get(str(inspection.line_item_id))
            if limit is None:
                continue
            if (inspection.accepted_quantity or 0) + (inspection.rejected_quantity or 0) > limit:
                raise ValidationError(
                    {"inspections": [f"Inspected quantity for line {inspection.line_item_id} exceeds {limit} declared"]}
                )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        manufacturing_job_id: str,
        warehouse_id: str,
        line_items_data: list[dict],
        carrier: str | None = None,
        tracking_number: str | None = None,
        expected_arrival_date: date | None = None,
    ):
        if not line_items_data:
            raise ValidationError({"line_items": ["A shipment needs at least one line item"]})
        lines = [(variant_of(item), quantity_of(item, "declared_quantity")) for item in line_items_data]
        variants = [variant_id for variant_id, _ in lines]
        if len(set(variants)) != len(variants):
            raise ValidationError({"line_items": ["Each variant may appear only once per shipment"]})

        now = datetime.now(UTC)
        shipment = cls(
            manufacturing_job_id=manufacturing_job_id,
            warehouse_id=warehouse_id,
            status=InboundStatus.EXPECTED.value,
            carrier=carrier,
            tracking_number=tracking_number,
            expected_arrival_date=expected_arrival_date,
            created_at=now,
            updated_at=now,
        )
        for variant_id, declared_quantity in lines:
            shipment.add_line_items(InboundLineItem(variant_id=variant_id, declared_quantity=declared_quantity))
        shipment.raise_(
            InboundShipmentRegistered(
                shipment_id=str(shipment.id),
                manufacturing_job_id=str(manufacturing_job_id),
                warehouse_id=str(warehouse_id),
                line_items=json.dumps(
                    [
                        {"variant_id": str(i.variant_id), "declared_quantity": i.declared_quantity}
                        for i in shipment.line_items
                    ]
                ),
                expected_arrival_date=expected_arrival_date,
                registered_at=now,
            )
        )
        return shipment

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: InboundStatus) -> None:
        current = InboundStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"status": [f"Cannot transition inbound shipment from {current.value} to {target_status.value}"]}
            )

    def line_item(self, line_item_id: str) -> InboundLineItem:
        item = next((i for i in (self.line_items or []) if str(i.id) == str(line_item_id)), None)
        if item is None:
            raise ObjectNotFoundError({"line_item_id": [f"Line item {line_item_id} not found in this shipment"]})
        return item

    def inspection_for(self, line_item_id: str) -> QcInspection | None:
        return next(
            (i for i in (self.inspections or []) if str(i.line_item_id) == str(line_item_id)),
            None,
        )

    def accepted_by_variant(self) -> dict[str, int]:
        """Accepted quantity per variant, from the recorded inspections."""
        accepted = {}
        for item in self.line_items or []:
            inspection = self.inspection_for(item.id)
            accepted[str(item.variant_id)] = inspection.accepted_quantity if inspection else 0
        return accepted

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def mark_in_transit(self, carrier: str | None = None, tracking_number: str | None = None) -> None:
        self._assert_can_transition(InboundStatus.IN_TRANSIT)
        now = datetime.now(UTC)
        self.status = InboundStatus.IN_TRANSIT.value
        if carrier:
            self.carrier = carrier
        if tracking_number:
            self.tracking_number = tracking_number
        self.shipped_at = now
        self.updated_at = now
        self.raise_(
            InboundShipmentInTransit(
                shipment_id=str(self.id),
                carrier=self.carrier,
                tracking_number=self.tracking_number,
                shipped_at=now,
            )
        )

    def mark_arrived(self) -> None:
        self._assert_can_transition(InboundStatus.ARRIVED)
        now = datetime.now(UTC)
        self.status = InboundStatus.ARRIVED.value
        self.arrived_at = now
        self.updated_at = now
        self.raise_(
            InboundShipmentArrived(
                shipment_id=str(self.id),
                warehouse_id=str(self.warehouse_id),
                arrived_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------
    def begin_inspection(self) -> None:
        """Open inspection with one blank QcInspection per line item."""
        self._assert_can_transition(InboundStatus.INSPECTING)
        now = datetime.now(UTC)
        for item in self.line_items or []:
            self.add_inspections(QcInspection(line_item_id=str(item.id)))
        self.status = InboundStatus.INSPECTING.value
        self.inspection_started_at = now
        self.updated_at = now
        self.raise_(
            InspectionStarted(
                shipment_id=str(self.id),
                line_item_count=len(self.line_items or []),
                started_at=now,
            )
        )

    def record_inspection(
        self,
        line_item_id: str,
        accepted_quantity: int,
        rejected_quantity: int,
        notes: str | None = None,
    ) -> bool:
        """Write counts for one line item. The last write wins.

        Returns ``False`` when the write repeats the current values exactly,
        in which case nothing changes.
        """
        if InboundStatus(self.status) != InboundStatus.INSPECTING:
            raise InvalidTransition({"status": ["Inspections can only be recorded while the shipment is inspecting"]})
        if accepted_quantity < 0 or rejected_quantity < 0:
            raise ValidationError({"quantity": ["Inspected quantities cannot be negative"]})

        item = self.line_item(line_item_id)
        if accepted_quantity + rejected_quantity > item.declared_quantity:
            raise ValidationError(
                {
                    "quantity": [
                        f"Accepted ({accepted_quantity}) plus rejected ({rejected_quantity}) "
                        f"exceeds declared quantity ({item.declared_quantity})"
                    ]
                }
            )

        inspection = self.inspection_for(item.id)
        if (
            inspection.recorded
            and inspection.accepted_quantity == accepted_quantity
            and inspection.rejected_quantity == rejected_quantity
            and (inspection.notes or None) == (notes or None)
        ):
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            inspection.accepted_quantity = accepted_quantity
            inspection.rejected_quantity = rejected_quantity
            inspection.notes = notes
            inspection.recorded = True
            inspection.recorded_at = now
            self.updated_at = now

        self.raise_(
            InspectionRecorded(
                shipment_id=str(self.id),
                line_item_id=str(item.id),
                accepted_quantity=accepted_quantity,
                rejected_quantity=rejected_quantity,
                notes=notes,
                recorded_at=now,
            )
        )
        return True

    def complete_inspection(self) -> dict[str, int]:
        """Resolve the inspection. Returns the accepted quantity per variant to stock.

        Rejected units are discarded: they never reach the ledger.
        """
        if InboundStatus(self.status) != InboundStatus.INSPECTING:
            raise InvalidTransition({"status": ["Inspection can only be completed while the shipment is inspecting"]})

        unrecorded = [i for i in (self.inspections or []) if not i.recorded]
        if unrecorded or len(self.inspections or []) < len(self.line_items or []):
            raise ValidationError({"inspections": [f"{len(unrecorded)} line item(s) have not been inspected yet"]})

        accepted = self.accepted_by_variant()
        total_accepted = sum(accepted.values())
        total_rejected = sum(i.rejected_quantity for i in self.inspections)
        target = InboundStatus.STOCKED if total_accepted > 0 else InboundStatus.ISSUE
        self._assert_can_transition(target)

        now = datetime.now(UTC)
        self.status = target.value
        self.resolved_at = now
        self.updated_at = now

        if target == InboundStatus.STOCKED:
            self.raise_(
                InboundShipmentStocked(
                    shipment_id=str(self.id),
                    warehouse_id=str(self.warehouse_id),
                    accepted_quantities=json.dumps(accepted),
                    total_accepted=total_accepted,
                    total_rejected=total_rejected,
                    resolved_at=now,
                )
            )
            return {variant: qty for variant, qty in accepted.items() if qty > 0}

        self.raise_(
            InboundShipmentFlagged(
                shipment_id=str(self.id),
                manufacturing_job_id=str(self.manufacturing_job_id),
                total_rejected=total_rejected,
                resolved_at=now,
            )
        )
        return {}
