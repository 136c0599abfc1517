"""Inbound inspection: commands and handler.

Completing an inspection is the only place stock enters the ledger. The
status change, every ledger credit and every trail entry are persisted in
one Unit of Work, after all checks have passed.
"""

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.ledger.queries import find_record
from production.ledger.record import InventoryRecord
from production.receiving.shipment import InboundShipment
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="InboundShipment")
class BeginInspection:
    shipment_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command(part_of="InboundShipment")
class RecordInspection:
    """Record (or overwrite) the counts for one line item."""

    shipment_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    accepted_quantity = Integer(required=True)
    rejected_quantity = Integer(required=True)
    notes = Text()
    actor_id = String(max_length=100)


@production.command(part_of="InboundShipment")
class CompleteInspection:
    shipment_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command_handler(part_of=InboundShipment)
class InboundInspectionHandler:
    @handle(BeginInspection)
    def begin_inspection(self, command):
        repo = current_domain.repository_for(InboundShipment)
        shipment = repo.get(command.shipment_id)
        previous = shipment.status
        shipment.begin_inspection()

        repo.add(shipment)
        record(
            EntityType.INBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            previous,
            shipment.status,
            command.actor_id,
        )
        return str(shipment.id)

    @handle(RecordInspection)
    def record_inspection(self, command):
        repo = current_domain.repository_for(InboundShipment)
        shipment = repo.get(command.shipment_id)
        changed = shipment.record_inspection(
            command.line_item_id,
            command.accepted_quantity,
            command.rejected_quantity,
            notes=command.notes,
        )
        if not changed:
            return str(shipment.id)

        repo.add(shipment)
        record(
            EntityType.INBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.NOTE_ADDED,
            None,
            f"accepted={command.accepted_quantity} rejected={command.rejected_quantity}",
            command.actor_id,
            note=command.notes or f"inspection recorded for line {command.line_item_id}",
        )
        return str(shipment.id)

    @handle(CompleteInspection)
    def complete_inspection(self, command):
        repo = current_domain.repository_for(InboundShipment)
        shipment = repo.get(command.shipment_id)
        previous = shipment.status
        to_stock = shipment.complete_inspection()

        # Stage every ledger credit before persisting anything
        credits = []
        for variant_id, quantity in to_stock.items():
            item = find_record(variant_id, shipment.warehouse_id) or InventoryRecord.open(
                variant_id, shipment.warehouse_id
            )
            before = item.snapshot()
            item.stock(quantity, reference=f"inbound:{shipment.id}")
            credits.append((item, before))

        ledger = current_domain.repository_for(InventoryRecord)
        for item, before in credits:
            ledger.add(item)
            record(
                EntityType.INVENTORY_RECORD,
                item.id,
                TrailEventType.STOCK_MOVEMENT,
                before,
                item.snapshot(),
                command.actor_id,
                note=f"stocked from inbound shipment {shipment.id}",
            )

        repo.add(shipment)
        record(
            EntityType.INBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            previous,
            shipment.status,
            command.actor_id,
        )
        return str(shipment.id)
