"""First-piece review: commands and handler.

Each command updates the FirstPieceRecord, mirrors its status onto the
ManufacturingJob, and writes one trail entry. All three happen in the same
Unit of Work.
"""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.manufacturing.job import ManufacturingJob
from production.quality.first_piece import FirstPieceRecord, FirstPieceStatus, find_first_piece
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="FirstPieceRecord")
class SubmitSamples:
    """Upload first-piece images for review."""

    job_id = Identifier(required=True)
    image_references = Text(required=True)  # JSON list of storage references
    actor_id = String(max_length=100)


@production.command(part_of="FirstPieceRecord")
class ApproveFirstPiece:
    job_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command(part_of="FirstPieceRecord")
class RejectFirstPiece:
    job_id = Identifier(required=True)
    actor_id = String(max_length=100)
    notes = Text()


@production.command(part_of="FirstPieceRecord")
class ResetFirstPiece:
    """Re-open a decided sample after corrective rework."""

    job_id = Identifier(required=True)
    actor_id = String(max_length=100)
    note = Text()


@production.command_handler(part_of=FirstPieceRecord)
class FirstPieceReviewHandler:
    def _load(self, job_id):
        job = current_domain.repository_for(ManufacturingJob).get(job_id)
        first_piece = find_first_piece(job_id) or FirstPieceRecord.create(job.id)
        return job, first_piece

    def _commit(self, job, first_piece, previous, actor_id, note=None):
        job.mirror_first_piece(FirstPieceStatus(first_piece.status))

        current_domain.repository_for(FirstPieceRecord).add(first_piece)
        current_domain.repository_for(ManufacturingJob).add(job)
        record(
            EntityType.FIRST_PIECE,
            first_piece.job_id,
            TrailEventType.STATUS_CHANGE,
            previous,
            first_piece.status,
            actor_id,
            note=note,
        )
        return str(first_piece.id)

    @handle(SubmitSamples)
    def submit_samples(self, command):
        references = (
            json.loads(command.image_references)
            if isinstance(command.image_references, str)
            else command.image_references
        )
        job, first_piece = self._load(command.job_id)
        previous = first_piece.status
        first_piece.submit_samples(references, uploaded_by=command.actor_id)
        return self._commit(job, first_piece, previous, command.actor_id)

    @handle(ApproveFirstPiece)
    def approve(self, command):
        job, first_piece = self._load(command.job_id)
        previous = first_piece.status
        first_piece.approve(approved_by=command.actor_id)
        return self._commit(job, first_piece, previous, command.actor_id)

    @handle(RejectFirstPiece)
    def reject(self, command):
        job, first_piece = self._load(command.job_id)
        previous = first_piece.status
        first_piece.reject(rejected_by=command.actor_id, notes=command.notes)
        return self._commit(job, first_piece, previous, command.actor_id, note=command.notes)

    @handle(ResetFirstPiece)
    def reset(self, command):
        job, first_piece = self._load(command.job_id)
        previous = first_piece.status
        first_piece.reset(reset_by=command.actor_id)
        return self._commit(job, first_piece, previous, command.actor_id, note=command.note)
