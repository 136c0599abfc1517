"""Outbound picking and packing: commands and handler. No ledger effect."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from production.domain import production
from production.fulfillment.shipment import OutboundShipment
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="OutboundShipment")
class PickShipment:
    shipment_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command(part_of="OutboundShipment")
class PackShipment:
    shipment_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command_handler(part_of=OutboundShipment)
class PickingHandler:
    @handle(PickShipment)
    def pick(self, command):
        repo = current_domain.repository_for(OutboundShipment)
        shipment = repo.get(command.shipment_id)
        previous = shipment.status
        shipment.start_picking()

        repo.add(shipment)
        record(
            EntityType.OUTBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            previous,
            shipment.status,
            command.actor_id,
        )
        return str(shipment.id)

    @handle(PackShipment)
    def pack(self, command):
        repo = current_domain.repository_for(OutboundShipment)
        shipment = repo.get(command.shipment_id)
        previous = shipment.status
        shipment.pack()

        repo.add(shipment)
        record(
            EntityType.OUTBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            previous,
            shipment.status,
            command.actor_id,
        )
        return str(shipment.id)
