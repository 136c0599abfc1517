"""Job board: one row per manufacturing job for operations dashboards.

``last_activity_at`` moves on every job event, so dashboards can spot jobs
that have sat untouched for too long without the funnel itself knowing
about time.
"""

from datetime import UTC, datetime, timedelta

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

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
from production.manufacturing.job import FunnelStatus, ManufacturingJob, PublicStatus, public_status_for

_CLOSED = {FunnelStatus.SHIPPED.value, FunnelStatus.CANCELLED.value}


@production.projection
class JobBoard:
    job_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    manufacturer_id = Identifier()
    manufacturer_status = String(required=True)
    public_status = String(required=True)
    first_piece_status = String()
    priority = String()
    sample_required = Boolean(default=True)
    specs_locked = Boolean(default=False)
    opened_at = DateTime()
    last_activity_at = DateTime()


@production.projector(projector_for=JobBoard, aggregates=[ManufacturingJob])
class JobBoardProjector:
    def _touch(self, job_id, at, **changes):
        repo = current_domain.repository_for(JobBoard)
        row = repo.get(job_id)
        for field, value in changes.items():
            setattr(row, field, value)
        row.last_activity_at = at
        repo.add(row)

    @on(ManufacturingJobOpened)
    def on_job_opened(self, event):
        current_domain.repository_for(JobBoard).add(
            JobBoard(
                job_id=event.job_id,
                order_id=event.order_id,
                manufacturer_id=event.manufacturer_id,
                manufacturer_status=FunnelStatus.ACCEPTED.value,
                public_status=public_status_for(FunnelStatus.ACCEPTED).value,
                first_piece_status="pending",
                priority=event.priority,
                sample_required=event.sample_required,
                opened_at=event.opened_at,
                last_activity_at=event.opened_at,
            )
        )

    @on(JobStatusChanged)
    def on_status_changed(self, event):
        self._touch(
            event.job_id,
            event.changed_at,
            manufacturer_status=event.new_status,
            public_status=event.public_status,
        )

    @on(FirstPieceStatusMirrored)
    def on_first_piece_mirrored(self, event):
        self._touch(event.job_id, event.mirrored_at, first_piece_status=event.first_piece_status)

    @on(ManufacturerAssigned)
    def on_manufacturer_assigned(self, event):
        self._touch(event.job_id, event.assigned_at, manufacturer_id=event.manufacturer_id)

    @on(SpecsLocked)
    def on_specs_locked(self, event):
        self._touch(event.job_id, event.locked_at, specs_locked=True)

    @on(JobPriorityChanged)
    def on_priority_changed(self, event):
        self._touch(event.job_id, event.changed_at, priority=event.priority)

    @on(JobRescheduled)
    def on_rescheduled(self, event):
        self._touch(event.job_id, event.rescheduled_at)

    @on(JobNoteAdded)
    def on_note_added(self, event):
        self._touch(event.job_id, event.added_at)


def stale_jobs(idle_for: timedelta, now: datetime | None = None) -> list[JobBoard]:
    """Open jobs with no activity for at least ``idle_for``, oldest first."""
    cutoff = (now or datetime.now(UTC)) - idle_for
    rows = current_domain.repository_for(JobBoard)._dao.query.limit(1000).all().items
    stale = [
        row
        for row in rows
        if row.manufacturer_status not in _CLOSED and row.last_activity_at and row.last_activity_at <= cutoff
    ]
    return sorted(stale, key=lambda row: row.last_activity_at)


def jobs_by_public_status(status: PublicStatus) -> list[JobBoard]:
    return current_domain.repository_for(JobBoard)._dao.query.filter(public_status=status.value).all().items
