"""Quality gate domain events."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from production.domain import production


@production.event(part_of="FirstPieceRecord")
class SamplesSubmitted:
    """First-piece images were uploaded for review."""

    __version__ = 1

    job_id = Identifier(required=True)
    image_references = Text(required=True)  # JSON list of the references added
    image_count = Integer(required=True)
    uploaded_by = String(max_length=100)
    uploaded_at = DateTime(required=True)


@production.event(part_of="FirstPieceRecord")
class FirstPieceApproved:
    """The sample was approved; bulk production may start."""

    __version__ = 1

    job_id = Identifier(required=True)
    approved_by = String(max_length=100)
    approved_at = DateTime(required=True)


@production.event(part_of="FirstPieceRecord")
class FirstPieceRejected:
    """The sample was rejected with notes for the manufacturer."""

    __version__ = 1

    job_id = Identifier(required=True)
    rejected_by = String(max_length=100)
    rejection_notes = Text(required=True)
    rejected_at = DateTime(required=True)


@production.event(part_of="FirstPieceRecord")
class FirstPieceReset:
    """A decided sample was re-opened for a fresh submission."""

    __version__ = 1

    job_id = Identifier(required=True)
    previous_status = String(required=True, max_length=50)
    reset_by = String(max_length=100)
    reset_at = DateTime(required=True)
