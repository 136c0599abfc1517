"""FirstPieceRecord aggregate (CQRS): the quality gate for one manufacturing job.

The record has its own identity and a unique reference to the job it gates.
It is created lazily on the first sample submission.

State Machine:
    PENDING → AWAITING_APPROVAL → {APPROVED, REJECTED}
    REJECTED → AWAITING_APPROVAL (re-submission)
    {APPROVED, REJECTED} → PENDING (reset)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.quality.events import (
    FirstPieceApproved,
    FirstPieceRejected,
    FirstPieceReset,
    SamplesSubmitted,
)
from production.shared.errors import InvalidTransition


class FirstPieceStatus(Enum):
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


_VALID_TRANSITIONS = {
    FirstPieceStatus.PENDING: {FirstPieceStatus.AWAITING_APPROVAL},
    FirstPieceStatus.AWAITING_APPROVAL: {FirstPieceStatus.APPROVED, FirstPieceStatus.REJECTED},
    FirstPieceStatus.APPROVED: {FirstPieceStatus.PENDING},
    FirstPieceStatus.REJECTED: {FirstPieceStatus.AWAITING_APPROVAL, FirstPieceStatus.PENDING},
}


@production.entity(part_of="FirstPieceRecord")
class SampleImage:
    """An opaque storage reference to one sample photo."""

    reference = String(required=True, max_length=500)
    position = Integer(required=True, min_value=0)


@production.aggregate
class FirstPieceRecord:
    job_id = Identifier(required=True, unique=True)
    status = String(
        max_length=50,
        choices=FirstPieceStatus,
        default=FirstPieceStatus.PENDING.value,
    )
    images = HasMany(SampleImage)
    uploaded_at = DateTime()
    uploaded_by = String(max_length=100)
    approved_at = DateTime()
    approved_by = String(max_length=100)
    rejection_notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def rejection_requires_notes(self):
        if self.status == FirstPieceStatus.REJECTED.value and not (self.rejection_notes or "").strip():
            raise ValidationError({"rejection_notes": ["Rejection notes are required when a sample is rejected"]})

    @classmethod
    def create(cls, job_id: str):
        """Blank record gating one job."""
        now = datetime.now(UTC)
        return cls(
            job_id=str(job_id),
            status=FirstPieceStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def image_references(self) -> list[str]:
        return [image.reference for image in sorted(self.images or [], key=lambda i: i.position)]

    def _assert_can_transition(self, target_status: FirstPieceStatus) -> None:
        current = FirstPieceStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"status": [f"Cannot transition first piece from {current.value} to {target_status.value}"]}
            )

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def submit_samples(self, image_references: list[str], uploaded_by: str | None) -> None:
        """Attach sample images and put the record up for review.

        References are appended after any kept from an earlier rejected
        submission.
        """
        references = [ref.strip() for ref in image_references or [] if ref and ref.strip()]
        if not references:
            raise ValidationError({"image_references": ["At least one sample image is required"]})
        self._assert_can_transition(FirstPieceStatus.AWAITING_APPROVAL)

        now = datetime.now(UTC)
        start = len(self.images or [])
        for offset, reference in enumerate(references):
            self.add_images(SampleImage(reference=reference, position=start + offset))

        self.status = FirstPieceStatus.AWAITING_APPROVAL.value
        self.uploaded_at = now
        self.uploaded_by = uploaded_by
        self.updated_at = now
        self.raise_(
            SamplesSubmitted(
                job_id=str(self.job_id),
                image_references=json.dumps(references),
                image_count=len(references),
                uploaded_by=uploaded_by,
                uploaded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------
    def approve(self, approved_by: str | None) -> None:
        self._assert_can_transition(FirstPieceStatus.APPROVED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = FirstPieceStatus.APPROVED.value
            self.approved_at = now
            self.approved_by = approved_by
            self.rejection_notes = None
            self.updated_at = now

        self.raise_(
            FirstPieceApproved(
                job_id=str(self.job_id),
                approved_by=approved_by,
                approved_at=now,
            )
        )

    def reject(self, rejected_by: str | None, notes: str | None) -> None:
        """Reject the sample. Notes are checked before the current state."""
        if not notes or not notes.strip():
            raise ValidationError({"rejection_notes": ["Rejection notes are required"]})
        self._assert_can_transition(FirstPieceStatus.REJECTED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = FirstPieceStatus.REJECTED.value
            self.rejection_notes = notes.strip()
            self.approved_at = None
            self.approved_by = None
            self.updated_at = now

        self.raise_(
            FirstPieceRejected(
                job_id=str(self.job_id),
                rejected_by=rejected_by,
                rejection_notes=self.rejection_notes,
                rejected_at=now,
            )
        )

    def reset(self, reset_by: str | None) -> None:
        """Re-open a decided sample. Images and decision metadata are cleared."""
        self._assert_can_transition(FirstPieceStatus.PENDING)

        previous = self.status
        now = datetime.now(UTC)
        for image in list(self.images or []):
            self.remove_images(image)

        with atomic_change(self):
            self.status = FirstPieceStatus.PENDING.value
            self.uploaded_at = None
            self.uploaded_by = None
            self.approved_at = None
            self.approved_by = None
            self.rejection_notes = None
            self.updated_at = now

        self.raise_(
            FirstPieceReset(
                job_id=str(self.job_id),
                previous_status=previous,
                reset_by=reset_by,
                reset_at=now,
            )
        )


def find_first_piece(job_id: str) -> FirstPieceRecord | None:
    """Load the record gating a job, or ``None`` before any submission."""
    records = current_domain.repository_for(FirstPieceRecord)._dao.query.filter(job_id=str(job_id)).all().items
    return records[0] if records else None


def first_piece_for(job_id: str) -> FirstPieceRecord:
    """Load the record gating a job. Raises ``ObjectNotFoundError`` if absent."""
    record = find_first_piece(job_id)
    if record is None:
        raise ObjectNotFoundError({"_entity": f"No first piece record for job {job_id}"})
    return record
