"""Outbound fulfillment domain events."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from production.domain import production


@production.event(part_of="OutboundShipment")
class OutboundShipmentCreated:
    """Stock was reserved and a shipment opened for an order."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    line_items = Text(required=True)  # JSON list of {variant_id, requested_quantity}
    total_quantity = Integer(required=True)
    created_at = DateTime(required=True)


@production.event(part_of="OutboundShipment")
class OutboundPickingStarted:
    __version__ = 1

    shipment_id = Identifier(required=True)
    started_at = DateTime(required=True)


@production.event(part_of="OutboundShipment")
class OutboundShipmentPacked:
    __version__ = 1

    shipment_id = Identifier(required=True)
    packed_at = DateTime(required=True)


@production.event(part_of="OutboundShipment")
class OutboundShipmentShipped:
    """The shipment left the warehouse; its reservations were consumed."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    shipped_at = DateTime(required=True)


@production.event(part_of="OutboundShipment")
class OutboundShipmentDelivered:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@production.event(part_of="OutboundShipment")
class OutboundShipmentCancelled:
    """The shipment was cancelled; its reservations were released."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True, max_length=50)
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)
