"""Funnel transitions: command and handler.

A single command drives every edge of the funnel, including cancellation.
The quality gate record is read inside the same Unit of Work so the gate
check and the status write see the same state.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.manufacturing.job import FunnelStatus, ManufacturingJob
from production.quality.first_piece import find_first_piece
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="ManufacturingJob")
class TransitionJob:
    """Move a job to another funnel state."""

    job_id = Identifier(required=True)
    target_status = String(required=True, max_length=50, choices=FunnelStatus)
    actor_id = String(max_length=100)
    note = Text()


@production.command_handler(part_of=ManufacturingJob)
class FunnelTransitionHandler:
    @handle(TransitionJob)
    def transition_job(self, command):
        repo = current_domain.repository_for(ManufacturingJob)
        job = repo.get(command.job_id)
        previous = job.manufacturer_status

        first_piece = find_first_piece(job.id)
        first_piece_status = first_piece.status if first_piece else None

        job.transition_to(
            FunnelStatus(command.target_status),
            changed_by=command.actor_id,
            note=command.note,
            first_piece_status=first_piece_status,
        )

        repo.add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.STATUS_CHANGE,
            previous,
            job.manufacturer_status,
            command.actor_id,
            note=command.note,
        )
        return str(job.id)
