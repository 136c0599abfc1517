"""ManufacturingJob aggregate (CQRS): the manufacturing funnel for one order.

State Machine:
    ACCEPTED → SAMPLE_PRODUCTION → FIRST_PIECE_REVIEW → BULK_PRODUCTION
        → QC_PENDING → READY_TO_SHIP → SHIPPED
    FIRST_PIECE_REVIEW → SAMPLE_PRODUCTION (sample sent back for rework)
    {every non-terminal state} → CANCELLED

Entering BULK_PRODUCTION from FIRST_PIECE_REVIEW is gated: the job must
not require a sample, or its first piece must be approved.

``public_status`` is the coarse status shown to customers and operations.
It is always derived from ``manufacturer_status`` through a fixed table and
is never written on its own.
"""

from datetime import UTC, date, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, DateTime, Identifier, String

from production.domain import production
from production.manufacturing.events import (
    FirstPieceStatusMirrored,
    JobNoteAdded,
    JobPriorityChanged,
    JobRescheduled,
    JobStatusChanged,
    ManufacturerAssigned,
    ManufacturingJobOpened,
    SpecsLocked,
)
from production.quality.first_piece import FirstPieceStatus
from production.shared.errors import GateNotSatisfied, InvalidTransition


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class FunnelStatus(Enum):
    ACCEPTED = "accepted"
    SAMPLE_PRODUCTION = "sample_production"
    FIRST_PIECE_REVIEW = "first_piece_review"
    BULK_PRODUCTION = "bulk_production"
    QC_PENDING = "qc_pending"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"


class PublicStatus(Enum):
    AWAITING_PRODUCTION = "awaiting_production"
    SAMPLING = "sampling"
    IN_PRODUCTION = "in_production"
    FINAL_QC = "final_qc"
    READY = "ready"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"


class Priority(Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


_TERMINAL_STATUSES = {FunnelStatus.SHIPPED, FunnelStatus.CANCELLED}

_VALID_TRANSITIONS = {
    FunnelStatus.ACCEPTED: {FunnelStatus.SAMPLE_PRODUCTION, FunnelStatus.CANCELLED},
    FunnelStatus.SAMPLE_PRODUCTION: {FunnelStatus.FIRST_PIECE_REVIEW, FunnelStatus.CANCELLED},
    FunnelStatus.FIRST_PIECE_REVIEW: {
        FunnelStatus.BULK_PRODUCTION,
        FunnelStatus.SAMPLE_PRODUCTION,
        FunnelStatus.CANCELLED,
    },
    FunnelStatus.BULK_PRODUCTION: {FunnelStatus.QC_PENDING, FunnelStatus.CANCELLED},
    FunnelStatus.QC_PENDING: {FunnelStatus.READY_TO_SHIP, FunnelStatus.CANCELLED},
    FunnelStatus.READY_TO_SHIP: {FunnelStatus.SHIPPED, FunnelStatus.CANCELLED},
    FunnelStatus.SHIPPED: set(),  # terminal
    FunnelStatus.CANCELLED: set(),  # terminal
}

_PUBLIC_STATUS = {
    FunnelStatus.ACCEPTED: PublicStatus.AWAITING_PRODUCTION,
    FunnelStatus.SAMPLE_PRODUCTION: PublicStatus.SAMPLING,
    FunnelStatus.FIRST_PIECE_REVIEW: PublicStatus.SAMPLING,
    FunnelStatus.BULK_PRODUCTION: PublicStatus.IN_PRODUCTION,
    FunnelStatus.QC_PENDING: PublicStatus.FINAL_QC,
    FunnelStatus.READY_TO_SHIP: PublicStatus.READY,
    FunnelStatus.SHIPPED: PublicStatus.SHIPPED,
    FunnelStatus.CANCELLED: PublicStatus.CANCELLED,
}


def public_status_for(status: FunnelStatus) -> PublicStatus:
    return _PUBLIC_STATUS[status]


def allowed_transitions(status: FunnelStatus) -> set[FunnelStatus]:
    return set(_VALID_TRANSITIONS[status])


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@production.aggregate
class ManufacturingJob:
    order_id = Identifier(required=True)
    manufacturer_id = Identifier()
    manufacturer_status = String(
        max_length=50,
        choices=FunnelStatus,
        default=FunnelStatus.ACCEPTED.value,
    )
    public_status = String(
        max_length=50,
        choices=PublicStatus,
        default=PublicStatus.AWAITING_PRODUCTION.value,
    )
    first_piece_status = String(
        max_length=50,
        choices=FirstPieceStatus,
        default=FirstPieceStatus.PENDING.value,
    )
    required_delivery_date = Date()
    promised_ship_date = Date()
    priority = String(max_length=20, choices=Priority, default=Priority.NORMAL.value)
    specs_locked = Boolean(default=False)
    sample_required = Boolean(default=True)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def public_status_follows_funnel(self):
        expected = public_status_for(FunnelStatus(self.manufacturer_status))
        if self.public_status != expected.value:
            raise ValidationError({"public_status": ["Public status is out of step with the funnel"]})

    @invariant.post
    def bulk_production_requires_open_gate(self):
        if (
            self.manufacturer_status == FunnelStatus.BULK_PRODUCTION.value
            and self.sample_required
            and self.first_piece_status != FirstPieceStatus.APPROVED.value
        ):
            raise ValidationError(
                {"manufacturer_status": ["Bulk production requires an approved first piece"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(
        cls,
        order_id: str,
        sample_required: bool = True,
        priority: str = Priority.NORMAL.value,
        required_delivery_date: date | None = None,
        promised_ship_date: date | None = None,
        manufacturer_id: str | None = None,
    ):
        """Accept a new job into the funnel."""
        now = datetime.now(UTC)
        job = cls(
            order_id=order_id,
            manufacturer_id=manufacturer_id,
            manufacturer_status=FunnelStatus.ACCEPTED.value,
            public_status=public_status_for(FunnelStatus.ACCEPTED).value,
            first_piece_status=FirstPieceStatus.PENDING.value,
            required_delivery_date=required_delivery_date,
            promised_ship_date=promised_ship_date,
            priority=priority,
            specs_locked=False,
            sample_required=sample_required,
            created_at=now,
            updated_at=now,
        )
        job.raise_(
            ManufacturingJobOpened(
                job_id=str(job.id),
                order_id=str(order_id),
                manufacturer_id=manufacturer_id,
                sample_required=sample_required,
                priority=job.priority,
                required_delivery_date=required_delivery_date,
                promised_ship_date=promised_ship_date,
                opened_at=now,
            )
        )
        return job

    @property
    def is_terminal(self) -> bool:
        return FunnelStatus(self.manufacturer_status) in _TERMINAL_STATUSES

    def _assert_not_terminal(self, action: str) -> None:
        if self.is_terminal:
            raise InvalidTransition(
                {"manufacturer_status": [f"Cannot {action} a job that is {self.manufacturer_status}"]}
            )

    # -------------------------------------------------------------------
    # Funnel transitions
    # -------------------------------------------------------------------
    def transition_to(
        self,
        target_status: FunnelStatus,
        changed_by: str | None = None,
        note: str | None = None,
        first_piece_status: str | None = None,
    ) -> None:
        """Move the job along one edge of the funnel.

        ``first_piece_status`` is the live status of the job's quality gate
        record (``None`` when no samples were ever submitted).
        """
        current = FunnelStatus(self.manufacturer_status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"manufacturer_status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

        gate_status = first_piece_status or FirstPieceStatus.PENDING.value
        if (
            current == FunnelStatus.FIRST_PIECE_REVIEW
            and target_status == FunnelStatus.BULK_PRODUCTION
            and self.sample_required
            and gate_status != FirstPieceStatus.APPROVED.value
        ):
            raise GateNotSatisfied(
                {"first_piece_status": [f"First piece must be approved before bulk production (is {gate_status})"]}
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.first_piece_status = gate_status
            self.manufacturer_status = target_status.value
            self.public_status = public_status_for(target_status).value
            if target_status == FunnelStatus.CANCELLED:
                self.cancellation_reason = note
            self.updated_at = now

        self.raise_(
            JobStatusChanged(
                job_id=str(self.id),
                order_id=str(self.order_id),
                previous_status=current.value,
                new_status=target_status.value,
                public_status=self.public_status,
                changed_by=changed_by,
                note=note,
                changed_at=now,
            )
        )

    def mirror_first_piece(self, status: FirstPieceStatus) -> None:
        """Copy the quality gate status onto the job."""
        previous = self.first_piece_status
        if previous == status.value:
            return
        if (
            self.manufacturer_status == FunnelStatus.BULK_PRODUCTION.value
            and self.sample_required
            and status != FirstPieceStatus.APPROVED
        ):
            raise InvalidTransition(
                {"first_piece_status": ["Cannot re-open the first piece while the job is in bulk production"]}
            )

        now = datetime.now(UTC)
        self.first_piece_status = status.value
        self.updated_at = now
        self.raise_(
            FirstPieceStatusMirrored(
                job_id=str(self.id),
                previous_status=previous,
                first_piece_status=status.value,
                mirrored_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Job details
    # -------------------------------------------------------------------
    def assign_manufacturer(self, manufacturer_id: str) -> None:
        self._assert_not_terminal("assign a manufacturer to")
        if not manufacturer_id:
            raise ValidationError({"manufacturer_id": ["Manufacturer is required"]})

        now = datetime.now(UTC)
        previous = self.manufacturer_id
        self.manufacturer_id = manufacturer_id
        self.updated_at = now
        self.raise_(
            ManufacturerAssigned(
                job_id=str(self.id),
                previous_manufacturer_id=previous,
                manufacturer_id=manufacturer_id,
                assigned_at=now,
            )
        )

    def lock_specs(self, locked_by: str | None = None) -> None:
        """Freeze the job's specifications. Locking twice is an error."""
        self._assert_not_terminal("lock specs on")
        if self.specs_locked:
            raise ValidationError({"specs_locked": ["Specs are already locked"]})

        now = datetime.now(UTC)
        self.specs_locked = True
        self.updated_at = now
        self.raise_(SpecsLocked(job_id=str(self.id), locked_by=locked_by, locked_at=now))

    def reschedule(
        self,
        required_delivery_date: date | None = None,
        promised_ship_date: date | None = None,
        clear_delivery_date: bool = False,
        clear_ship_date: bool = False,
    ) -> None:
        """Move either date. A date left as ``None`` is kept unless its clear flag is set."""
        self._assert_not_terminal("reschedule")
        if (clear_delivery_date and required_delivery_date) or (clear_ship_date and promised_ship_date):
            raise ValidationError({"dates": ["A date cannot be set and cleared at once"]})
        if not (required_delivery_date or promised_ship_date or clear_delivery_date or clear_ship_date):
            raise ValidationError({"dates": ["Provide a delivery date or a ship date"]})

        new_delivery = None if clear_delivery_date else required_delivery_date or self.required_delivery_date
        new_ship = None if clear_ship_date else promised_ship_date or self.promised_ship_date
        if new_delivery and new_ship and new_ship > new_delivery:
            raise ValidationError({"promised_ship_date": ["Promised ship date cannot be after the required delivery date"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.required_delivery_date = new_delivery
            self.promised_ship_date = new_ship
            self.updated_at = now

        self.raise_(
            JobRescheduled(
                job_id=str(self.id),
                required_delivery_date=new_delivery,
                promised_ship_date=new_ship,
                rescheduled_at=now,
            )
        )

    def schedule_summary(self) -> str:
        return f"delivery={self.required_delivery_date} ship={self.promised_ship_date}"

    def change_priority(self, priority: Priority) -> None:
        self._assert_not_terminal("change the priority of")
        previous = self.priority
        if previous == priority.value:
            raise ValidationError({"priority": [f"Job is already {priority.value} priority"]})

        now = datetime.now(UTC)
        self.priority = priority.value
        self.updated_at = now
        self.raise_(
            JobPriorityChanged(
                job_id=str(self.id),
                previous_priority=previous,
                priority=priority.value,
                changed_at=now,
            )
        )

    def add_note(self, note: str, added_by: str | None = None) -> None:
        self._assert_not_terminal("add a note to")
        if not note or not note.strip():
            raise ValidationError({"note": ["Note cannot be blank"]})

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            JobNoteAdded(
                job_id=str(self.id),
                note=note.strip(),
                added_by=added_by,
                added_at=now,
            )
        )
