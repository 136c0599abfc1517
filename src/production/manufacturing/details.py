"""Job detail changes: manufacturer, specs, schedule, priority and notes.

None of these touch the funnel status. Each writes one trail entry.
"""

from protean import handle
from protean.fields import Boolean, Date, Identifier, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.manufacturing.job import ManufacturingJob, Priority
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="ManufacturingJob")
class AssignManufacturer:
    job_id = Identifier(required=True)
    manufacturer_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command(part_of="ManufacturingJob")
class LockSpecs:
    """Freeze the job's specifications before production starts."""

    job_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command(part_of="ManufacturingJob")
class RescheduleJob:
    job_id = Identifier(required=True)
    required_delivery_date = Date()
    promised_ship_date = Date()
    clear_delivery_date = Boolean(default=False)
    clear_ship_date = Boolean(default=False)
    actor_id = String(max_length=100)
    note = Text()


@production.command(part_of="ManufacturingJob")
class ChangePriority:
    job_id = Identifier(required=True)
    priority = String(required=True, max_length=20, choices=Priority)
    actor_id = String(max_length=100)


@production.command(part_of="ManufacturingJob")
class AddJobNote:
    job_id = Identifier(required=True)
    note = Text(required=True)
    actor_id = String(max_length=100)


@production.command_handler(part_of=ManufacturingJob)
class JobDetailsHandler:
    @handle(AssignManufacturer)
    def assign_manufacturer(self, command):
        repo = current_domain.repository_for(ManufacturingJob)
        job = repo.get(command.job_id)
        previous = job.manufacturer_id
        job.assign_manufacturer(command.manufacturer_id)

        repo.add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.ASSIGNMENT,
            previous,
            job.manufacturer_id,
            command.actor_id,
        )
        return str(job.id)

    @handle(LockSpecs)
    def lock_specs(self, command):
        repo = current_domain.repository_for(ManufacturingJob)
        job = repo.get(command.job_id)
        job.lock_specs(locked_by=command.actor_id)

        repo.add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.SPECS_LOCKED,
            False,
            True,
            command.actor_id,
        )
        return str(job.id)

    @handle(RescheduleJob)
    def reschedule_job(self, command):
        repo = current_domain.repository_for(ManufacturingJob)
        job = repo.get(command.job_id)
        before = job.schedule_summary()
        job.reschedule(
            required_delivery_date=command.required_delivery_date,
            promised_ship_date=command.promised_ship_date,
            clear_delivery_date=bool(command.clear_delivery_date),
            clear_ship_date=bool(command.clear_ship_date),
        )

        repo.add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.SCHEDULE_CHANGE,
            before,
            job.schedule_summary(),
            command.actor_id,
            note=command.note,
        )
        return str(job.id)

    @handle(ChangePriority)
    def change_priority(self, command):
        repo = current_domain.repository_for(ManufacturingJob)
        job = repo.get(command.job_id)
        previous = job.priority
        job.change_priority(Priority(command.priority))

        repo.add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.PRIORITY_CHANGE,
            previous,
            job.priority,
            command.actor_id,
        )
        return str(job.id)

    @handle(AddJobNote)
    def add_note(self, command):
        repo = current_domain.repository_for(ManufacturingJob)
        job = repo.get(command.job_id)
        job.add_note(command.note, added_by=command.actor_id)

        repo.add(job)
        record(
            EntityType.MANUFACTURING_JOB,
            job.id,
            TrailEventType.NOTE_ADDED,
            None,
            None,
            command.actor_id,
            note=command.note.strip(),
        )
        return str(job.id)
