"""Inbound receiving domain events."""

from protean.fields import Date, DateTime, Identifier, Integer, String, Text

from production.domain import production


@production.event(part_of="InboundShipment")
class InboundShipmentRegistered:
    """A manufacturer shipment to a warehouse was announced."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    manufacturing_job_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    line_items = Text(required=True)  # JSON list of {variant_id, declared_quantity}
    expected_arrival_date = Date()
    registered_at = DateTime(required=True)


@production.event(part_of="InboundShipment")
class InboundShipmentInTransit:
    __version__ = 1

    shipment_id = Identifier(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    shipped_at = DateTime(required=True)


@production.event(part_of="InboundShipment")
class InboundShipmentArrived:
    __version__ = 1

    shipment_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    arrived_at = DateTime(required=True)


@production.event(part_of="InboundShipment")
class InspectionStarted:
    __version__ = 1

    shipment_id = Identifier(required=True)
    line_item_count = Integer(required=True)
    started_at = DateTime(required=True)


@production.event(part_of="InboundShipment")
class InspectionRecorded:
    """Counts for one line item were recorded (or overwritten)."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    accepted_quantity = Integer(required=True)
    rejected_quantity = Integer(required=True)
    notes = Text()
    recorded_at = DateTime(required=True)


@production.event(part_of="InboundShipment")
class InboundShipmentStocked:
    """Inspection finished with at least one accepted unit."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    accepted_quantities = Text(required=True)  # JSON map of variant_id -> accepted
    total_accepted = Integer(required=True)
    total_rejected = Integer(required=True)
    resolved_at = DateTime(required=True)


@production.event(part_of="InboundShipment")
class InboundShipmentFlagged:
    """Inspection rejected every unit; the shipment needs follow-up."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    manufacturing_job_id = Identifier(required=True)
    total_rejected = Integer(required=True)
    resolved_at = DateTime(required=True)
