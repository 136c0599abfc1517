"""Notification relay: forwards committed transitions to the notification port.

Event handlers run after the Unit of Work that raised the event has
committed, so no entity lock is held and no state change can be undone by a
failing notification. Failures are logged and dropped.
"""

import structlog
from protean.utils.mixins import handle

from production.collaborators.notifier import get_notifier
from production.domain import production
from production.fulfillment.events import (
    OutboundShipmentCancelled,
    OutboundShipmentCreated,
    OutboundShipmentDelivered,
    OutboundShipmentShipped,
)
from production.fulfillment.shipment import OutboundShipment
from production.manufacturing.events import JobStatusChanged
from production.manufacturing.job import ManufacturingJob
from production.quality.events import (
    FirstPieceApproved,
    FirstPieceRejected,
    FirstPieceReset,
    SamplesSubmitted,
)
from production.quality.first_piece import FirstPieceRecord
from production.receiving.events import (
    InboundShipmentArrived,
    InboundShipmentFlagged,
    InboundShipmentStocked,
)
from production.receiving.shipment import InboundShipment
from production.trail.entry import EntityType

logger = structlog.get_logger(__name__)


def relay(event, entity_type: EntityType, entity_id: str, **extra) -> None:
    """Send one notification. Never raises."""
    event_type = event.__class__.__name__
    entity_ref = {"entity_type": entity_type.value, "entity_id": str(entity_id), **extra}
    try:
        result = get_notifier().notify(event_type, entity_ref)
    except Exception as e:
        logger.error(
            "Notification relay failed",
            event_type=event_type,
            entity_id=str(entity_id),
            error=str(e),
        )
        return

    if result.get("status") != "sent":
        logger.warning(
            "Notification was not accepted",
            event_type=event_type,
            entity_id=str(entity_id),
            error=result.get("error"),
        )
        return

    logger.info(
        "Notification relayed",
        event_type=event_type,
        entity_id=str(entity_id),
        notification_id=result.get("notification_id"),
    )


@production.event_handler(part_of=ManufacturingJob)
class ManufacturingJobRelay:
    @handle(JobStatusChanged)
    def on_status_changed(self, event: JobStatusChanged) -> None:
        relay(
            event,
            EntityType.MANUFACTURING_JOB,
            event.job_id,
            order_id=str(event.order_id),
            previous_status=event.previous_status,
            new_status=event.new_status,
            public_status=event.public_status,
        )


@production.event_handler(part_of=FirstPieceRecord)
class FirstPieceRelay:
    @handle(SamplesSubmitted)
    def on_samples_submitted(self, event: SamplesSubmitted) -> None:
        relay(event, EntityType.FIRST_PIECE, event.job_id, image_count=event.image_count)

    @handle(FirstPieceApproved)
    def on_approved(self, event: FirstPieceApproved) -> None:
        relay(event, EntityType.FIRST_PIECE, event.job_id)

    @handle(FirstPieceRejected)
    def on_rejected(self, event: FirstPieceRejected) -> None:
        relay(event, EntityType.FIRST_PIECE, event.job_id, rejection_notes=event.rejection_notes)

    @handle(FirstPieceReset)
    def on_reset(self, event: FirstPieceReset) -> None:
        relay(event, EntityType.FIRST_PIECE, event.job_id)


@production.event_handler(part_of=InboundShipment)
class InboundShipmentRelay:
    @handle(InboundShipmentArrived)
    def on_arrived(self, event: InboundShipmentArrived) -> None:
        relay(event, EntityType.INBOUND_SHIPMENT, event.shipment_id, warehouse_id=str(event.warehouse_id))

    @handle(InboundShipmentStocked)
    def on_stocked(self, event: InboundShipmentStocked) -> None:
        relay(event, EntityType.INBOUND_SHIPMENT, event.shipment_id, total_accepted=event.total_accepted)

    @handle(InboundShipmentFlagged)
    def on_flagged(self, event: InboundShipmentFlagged) -> None:
        relay(
            event,
            EntityType.INBOUND_SHIPMENT,
            event.shipment_id,
            manufacturing_job_id=str(event.manufacturing_job_id),
        )


@production.event_handler(part_of=OutboundShipment)
class OutboundShipmentRelay:
    @handle(OutboundShipmentCreated)
    def on_created(self, event: OutboundShipmentCreated) -> None:
        relay(event, EntityType.OUTBOUND_SHIPMENT, event.shipment_id, order_id=str(event.order_id))

    @handle(OutboundShipmentShipped)
    def on_shipped(self, event: OutboundShipmentShipped) -> None:
        relay(
            event,
            EntityType.OUTBOUND_SHIPMENT,
            event.shipment_id,
            order_id=str(event.order_id),
            tracking_number=event.tracking_number,
        )

    @handle(OutboundShipmentDelivered)
    def on_delivered(self, event: OutboundShipmentDelivered) -> None:
        relay(event, EntityType.OUTBOUND_SHIPMENT, event.shipment_id, order_id=str(event.order_id))

    @handle(OutboundShipmentCancelled)
    def on_cancelled(self, event: OutboundShipmentCancelled) -> None:
        relay(event, EntityType.OUTBOUND_SHIPMENT, event.shipment_id, order_id=str(event.order_id))
