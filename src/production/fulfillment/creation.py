"""Outbound shipment creation: command and handler.

Reservation is all-or-nothing across line items. Every record is checked
before any is reserved, and nothing is persisted unless all lines fit.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.fulfillment.shipment import OutboundShipment, requested_totals
from production.ledger.queries import find_record
from production.ledger.record import InventoryRecord
from production.shared.errors import InsufficientStock
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record

logger = structlog.get_logger(__name__)


@production.command(part_of="OutboundShipment")
class CreateOutboundShipment:
    """Reserve stock and open a shipment for an order."""

    order_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    line_items = Text(required=True)  # JSON list of {variant_id, requested_quantity}
    actor_id = String(max_length=100)


@production.command_handler(part_of=OutboundShipment)
class CreateOutboundShipmentHandler:
    @handle(CreateOutboundShipment)
    def create_shipment(self, command):
        items_data = json.loads(command.line_items) if isinstance(command.line_items, str) else command.line_items
        totals = requested_totals(items_data)

        records = {variant_id: find_record(variant_id, command.warehouse_id) for variant_id in totals}
        shortages = {
            variant_id: [
                f"Available: {records[variant_id].quantity_available if records[variant_id] else 0}, "
                f"requested: {quantity}"
            ]
            for variant_id, quantity in totals.items()
            if records[variant_id] is None or records[variant_id].quantity_available < quantity
        }
        if shortages:
            logger.info(
                "Reservation refused",
                order_id=command.order_id,
                warehouse_id=command.warehouse_id,
                short_variants=sorted(shortages),
            )
            raise InsufficientStock(shortages)

        shipment = OutboundShipment.create(command.order_id, command.warehouse_id, totals)
        staged = []
        for variant_id, quantity in totals.items():
            item = records[variant_id]
            before = item.snapshot()
            item.reserve(quantity, reference=f"outbound:{shipment.id}")
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
                command.actor_id,
                note=f"reserved for outbound shipment {shipment.id}",
            )

        current_domain.repository_for(OutboundShipment).add(shipment)
        record(
            EntityType.OUTBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            None,
            shipment.status,
            command.actor_id,
            note=f"order {command.order_id}",
        )
        return str(shipment.id)
