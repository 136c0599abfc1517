"""Manual ledger corrections: stock adjustments and bin assignment."""

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.ledger.record import InventoryRecord, record_id_for
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="InventoryRecord")
class AdjustStock:
    """Correct on-hand stock after a physical count."""

    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    delta = Integer(required=True)  # Can be negative
    reason_code = String(required=True, max_length=50)  # cycle_count, damage, shrinkage, correction, found
    actor_id = String(max_length=100)
    note = Text()


@production.command(part_of="InventoryRecord")
class AssignBinLocation:
    """Record where a variant is shelved in its warehouse."""

    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    bin_location = String(required=True, max_length=50)
    actor_id = String(max_length=100)


@production.command_handler(part_of=InventoryRecord)
class LedgerAdjustmentHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        item = repo.get(record_id_for(command.variant_id, command.warehouse_id))
        before = item.snapshot()
        item.adjust(command.delta, command.reason_code, adjusted_by=command.actor_id)

        repo.add(item)
        record(
            EntityType.INVENTORY_RECORD,
            item.id,
            TrailEventType.STOCK_MOVEMENT,
            before,
            item.snapshot(),
            command.actor_id,
            note=command.note or f"adjustment: {command.reason_code}",
        )
        return str(item.id)

    @handle(AssignBinLocation)
    def assign_bin_location(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        item = repo.get(record_id_for(command.variant_id, command.warehouse_id))
        before = item.bin_location
        item.assign_bin(command.bin_location)

        repo.add(item)
        record(
            EntityType.INVENTORY_RECORD,
            item.id,
            TrailEventType.ASSIGNMENT,
            before,
            item.bin_location,
            command.actor_id,
            note="bin location",
        )
        return str(item.id)
