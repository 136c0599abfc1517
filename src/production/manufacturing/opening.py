"""Job opening: command and handler."""

from protean import handle
from protean.fields import Boolean, Date, Identifier, String
from protean.utils.globals import current_domain

from production.domain import production
from production.manufacturing.job import ManufacturingJob, Priority
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="ManufacturingJob")
class OpenManufacturingJob:
    """Accept an order line grouping into the manufacturing funnel."""

    order_id = Identifier(required=True)
    sample_required = Boolean(default=True)
    priority = String(max_length=20, choices=Priority, default=Priority.NORMAL.value)
    required_delivery_date = Date()
    promised_ship_date = Date()
    manufacturer_id = Identifier()
    actor_id = String(max_length=100)


@production.command_handler(part_of=ManufacturingJob)
class OpenManufacturingJobHandler:
    @handle(OpenManufacturingJob)
    def open_job(self, command):
        job = ManufacturingJob.open(
            order_id=command.order_id,
            sample_required=command.sample_required,
            priority=command.priority,
            required_delivery_date=command.required_delivery_date,
            promised_ship_date=command.promised_ship_date,
            manufacturer_id=command.manufacturer_id,
        )
        current_domain.repository_for(ManufacturingJob).add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.STATUS_CHANGE,
            None,
            job.manufacturer_status,
            command.actor_id,
            note=f"opened for order {command.order_id}",
        )
        return str(job.id)
