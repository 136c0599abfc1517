"""Inbound registration and transport: commands and handler."""

import json

from protean import handle
from protean.fields import Date, Identifier, String, Text
from protean.utils.globals import current_domain

from production.domain import production
from production.manufacturing.job import ManufacturingJob
from production.receiving.shipment import InboundShipment
from production.trail.entry import EntityType, TrailEventType
from production.trail.recorder import record


@production.command(part_of="InboundShipment")
class RegisterInboundShipment:
    """Announce a shipment from a manufacturer to a warehouse."""

    manufacturing_job_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    line_items = Text(required=True)  # JSON list of {variant_id, declared_quantity}
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    expected_arrival_date = Date()
    actor_id = String(max_length=100)


@production.command(part_of="InboundShipment")
class MarkInTransit:
    shipment_id = Identifier(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    actor_id = String(max_length=100)


@production.command(part_of="InboundShipment")
class MarkArrived:
    shipment_id = Identifier(required=True)
    actor_id = String(max_length=100)


@production.command_handler(part_of=InboundShipment)
class InboundTransportHandler:
    @handle(RegisterInboundShipment)
    def register(self, command):
        # The job must exist before anything can ship against it
        current_domain.repository_for(ManufacturingJob).get(command.manufacturing_job_id)

        items_data = json.loads(command.line_items) if isinstance(command.line_items, str) else command.line_items
        shipment = InboundShipment.register(
            manufacturing_job_id=command.manufacturing_job_id,
            warehouse_id=command.warehouse_id,
            line_items_data=items_data,
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            expected_arrival_date=command.expected_arrival_date,
        )

        current_domain.repository_for(InboundShipment).add(shipment)
        record(
            EntityType.INBOUND_SHIPMENT,
            shipment.id,
            TrailEventType.STATUS_CHANGE,
            None,
            shipment.status,
            command.actor_id,
        )
        return str(shipment.id)

    @handle(MarkInTransit)
    def mark_in_transit(self, command):
        repo = current_domain.repository_for(InboundShipment)
        shipment = repo.get(command.shipment_id)
        previous = shipment.status
        shipment.mark_in_transit(carrier=command.carrier, tracking_number=command.tracking_number)

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

    @handle(MarkArrived)
    def mark_arrived(self, command):
        repo = current_domain.repository_for(InboundShipment)
        shipment = repo.get(command.shipment_id)
        previous = shipment.status
        shipment.mark_arrived()

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
