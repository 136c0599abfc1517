"""Manufacturing funnel domain events.

All events are past tense, versioned, and carry enough data for the job
board projection and the notification relay.
"""

from protean.fields import Boolean, Date, DateTime, Identifier, String, Text

from production.domain import production


@production.event(part_of="ManufacturingJob")
class ManufacturingJobOpened:
    """A job was accepted into the funnel for an order."""

    __version__ = 1

    job_id = Identifier(required=True)
    order_id = Identifier(required=True)
    manufacturer_id = Identifier()
    sample_required = Boolean(required=True)
    priority = String(required=True, max_length=20)
    required_delivery_date = Date()
    promised_ship_date = Date()
    opened_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class JobStatusChanged:
    """The job moved along an edge of the funnel."""

    __version__ = 1

    job_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True, max_length=50)
    new_status = String(required=True, max_length=50)
    public_status = String(required=True, max_length=50)
    changed_by = String(max_length=100)
    note = Text()
    changed_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class ManufacturerAssigned:
    __version__ = 1

    job_id = Identifier(required=True)
    previous_manufacturer_id = Identifier()
    manufacturer_id = Identifier(required=True)
    assigned_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class SpecsLocked:
    __version__ = 1

    job_id = Identifier(required=True)
    locked_by = String(max_length=100)
    locked_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class JobRescheduled:
    """Delivery or ship dates were moved."""

    __version__ = 1

    job_id = Identifier(required=True)
    required_delivery_date = Date()
    promised_ship_date = Date()
    rescheduled_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class JobPriorityChanged:
    __version__ = 1

    job_id = Identifier(required=True)
    previous_priority = String(required=True, max_length=20)
    priority = String(required=True, max_length=20)
    changed_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class JobNoteAdded:
    """A free-text note was attached to the job's history."""

    __version__ = 1

    job_id = Identifier(required=True)
    note = Text(required=True)
    added_by = String(max_length=100)
    added_at = DateTime(required=True)


@production.event(part_of="ManufacturingJob")
class FirstPieceStatusMirrored:
    """The job's copy of its quality gate status changed."""

    __version__ = 1

    job_id = Identifier(required=True)
    previous_status = String(max_length=50)
    first_piece_status = String(required=True, max_length=50)
    mirrored_at = DateTime(required=True)
