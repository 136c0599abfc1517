"""Outbound shipping, delivery and cancellation: commands and handler.

Shipping commits each reservation (on-hand and reserved both drop).
Cancelling releases them (reserved drops, on-hand is unchanged). Ledger
updates are staged on loaded records and persisted together with the
shipment only after every one has succeeded.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from production.domain import production
from production.fulfillment.shipment import OutboundShipment
from production.ledger.queries import get_record
from production.ledger.record import InventoryRecord
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="OutboundShipment")
class ShipShipment:
    shipment_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=255)
    carrier = String(required=True, max_length=100)
    actor_id = String(max_length=100)


@production.command(part_of="OutboundShipment")
class DeliverShipment:
    shipment_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command(part_of="OutboundShipment")
class CancelShipment:
    shipment_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_id = String(max_length=100)


@production.command_handler(part_of=OutboundShipment)
class ShippingHandler:
    def _settle(self, shipment, actor_id, apply, note):
        """Apply ``apply(record, quantity)`` to every reserved line, then persist."""
        staged = []
        for variant_id, quantity in shipment.reserved_quantities.items():
            item = get_record(variant_id, shipment.warehouse_id)
            before = item.snapshot()
            apply(item, quantity)
            staged.append((item, before))

        ledger = current_domain.repository_for(InventoryRecord)
        for item, before in staged:
            ledger.add(item)
            record(
                EntityType.INVENTORY_RECORD,
                item.id,
                TrailEventType.STOCK_MOVEMENT,
                before,
                item.snapshot(),
                actor_id,
                note=note,
            )

    def _persist(self, shipment, previous, actor_id, note=None):
        current_domain.repository_for(OutboundShipment).add(shipment)
        record(
            EntityType.OUTBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            previous,
            shipment.status,
            actor_id,
            note=note,
        )
        return str(shipment.id)

    @handle(ShipShipment)
    def ship(self, command):
        shipment = current_domain.repository_for(OutboundShipment).get(command.shipment_id)
        previous = shipment.status
        shipment.ship(command.tracking_number, command.carrier)

        reference = f"outbound:{shipment.id}"
        self._settle(
            shipment,
            command.actor_id,
            lambda item, quantity: item.commit(quantity, reference=reference),
            note=f"shipped with outbound shipment {shipment.id}",
        )
        return self._persist(shipment, previous, command.actor_id, note=f"{command.carrier} {command.tracking_number}")

    @handle(CancelShipment)
    def cancel(self, command):
        shipment = current_domain.repository_for(OutboundShipment).get(command.shipment_id)
        previous = shipment.status
        shipment.cancel(reason=command.reason)

        reference = f"outbound:{shipment.id}"
        self._settle(
            shipment,
            command.actor_id,
            lambda item, quantity: item.release(quantity, reference=reference),
            note=f"released by cancelled outbound shipment {shipment.id}",
        )
        return self._persist(shipment, previous, command.actor_id, note=command.reason)

    @handle(DeliverShipment)
    def deliver(self, command):
        shipment = current_domain.repository_for(OutboundShipment).get(command.shipment_id)
        previous = shipment.status
        shipment.deliver()
        return self._persist(shipment, previous, command.actor_id)
