"""Pydantic API schemas for the production engine.

These are the external API contracts, separate from domain commands. The
routes translate between these schemas and ProductionEngine calls.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class ActorRequest(BaseModel):
    actor_id: str | None = None


class OpenJobRequest(ActorRequest):
    order_id: str
    sample_required: bool = True
    priority: str = "normal"
    required_delivery_date: date | None = None
    promised_ship_date: date | None = None
    manufacturer_id: str | None = None


class TransitionJobRequest(ActorRequest):
    target_status: str
    note: str | None = None


class AssignManufacturerRequest(ActorRequest):
    manufacturer_id: str


class RescheduleJobRequest(ActorRequest):
    required_delivery_date: date | None = None
    promised_ship_date: date | None = None
    clear_delivery_date: bool = False
    clear_ship_date: bool = False
    note: str | None = None


class ChangePriorityRequest(ActorRequest):
    priority: str


class AddNoteRequest(ActorRequest):
    note: str


class SubmitSamplesRequest(ActorRequest):
    image_references: list[str]


class RejectFirstPieceRequest(ActorRequest):
    notes: str | None = None


class ResetFirstPieceRequest(ActorRequest):
    note: str | None = None


class InboundLineRequest(BaseModel):
    variant_id: str
    declared_quantity: int


class RegisterInboundRequest(ActorRequest):
    manufacturing_job_id: str
    warehouse_id: str
    line_items: list[InboundLineRequest]
    carrier: str | None = None
    tracking_number: str | None = None
    expected_arrival_date: date | None = None


class MarkInTransitRequest(ActorRequest):
    carrier: str | None = None
    tracking_number: str | None = None


class RecordInspectionRequest(ActorRequest):
    line_item_id: str
    accepted_quantity: int
    rejected_quantity: int
    notes: str | None = None


class OutboundLineRequest(BaseModel):
    variant_id: str
    requested_quantity: int


class CreateOutboundRequest(ActorRequest):
    order_id: str
    warehouse_id: str
    line_items: list[OutboundLineRequest]


class ShipRequest(ActorRequest):
    tracking_number: str
    carrier: str


class CancelOutboundRequest(ActorRequest):
    reason: str | None = None


class AdjustStockRequest(ActorRequest):
    delta: int
    reason_code: str
    note: str | None = None


class AssignBinRequest(ActorRequest):
    bin_location: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class JobResponse(BaseModel):
    job_id: str
    order_id: str
    manufacturer_id: str | None = None
    manufacturer_status: str
    public_status: str
    first_piece_status: str | None = None
    priority: str
    sample_required: bool
    specs_locked: bool
    required_delivery_date: date | None = None
    promised_ship_date: date | None = None
    cancellation_reason: str | None = None

    @classmethod
    def from_entity(cls, job) -> "JobResponse":
        return cls(
            job_id=str(job.id),
            order_id=str(job.order_id),
            manufacturer_id=str(job.manufacturer_id) if job.manufacturer_id else None,
            manufacturer_status=job.manufacturer_status,
            public_status=job.public_status,
            first_piece_status=job.first_piece_status,
            priority=job.priority,
            sample_required=bool(job.sample_required),
            specs_locked=bool(job.specs_locked),
            required_delivery_date=job.required_delivery_date,
            promised_ship_date=job.promised_ship_date,
            cancellation_reason=job.cancellation_reason,
        )


class FirstPieceResponse(BaseModel):
    job_id: str
    status: str
    image_references: list[str] = Field(default_factory=list)
    uploaded_at: datetime | None = None
    uploaded_by: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejection_notes: str | None = None

    @classmethod
    def from_entity(cls, record) -> "FirstPieceResponse":
        return cls(
            job_id=str(record.job_id),
            status=record.status,
            image_references=record.image_references,
            uploaded_at=record.uploaded_at,
            uploaded_by=record.uploaded_by,
            approved_at=record.approved_at,
            approved_by=record.approved_by,
            rejection_notes=record.rejection_notes,
        )


class ImageMetadataResponse(BaseModel):
    reference: str
    exists: bool
    content_type: str | None = None
    size: int | None = None
    url: str | None = None


class InspectionResponse(BaseModel):
    line_item_id: str
    accepted_quantity: int
    rejected_quantity: int
    notes: str | None = None
    recorded: bool


class InboundLineResponse(BaseModel):
    line_item_id: str
    variant_id: str
    declared_quantity: int


class InboundShipmentResponse(BaseModel):
    shipment_id: str
    manufacturing_job_id: str
    warehouse_id: str
    status: str
    carrier: str | None = None
    tracking_number: str | None = None
    expected_arrival_date: date | None = None
    line_items: list[InboundLineResponse]
    inspections: list[InspectionResponse]

    @classmethod
    def from_entity(cls, shipment) -> "InboundShipmentResponse":
        return cls(
            shipment_id=str(shipment.id),
            manufacturing_job_id=str(shipment.manufacturing_job_id),
            warehouse_id=str(shipment.warehouse_id),
            status=shipment.status,
            carrier=shipment.carrier,
            tracking_number=shipment.tracking_number,
            expected_arrival_date=shipment.expected_arrival_date,
            line_items=[
                InboundLineResponse(
                    line_item_id=str(item.id),
                    variant_id=str(item.variant_id),
                    declared_quantity=item.declared_quantity,
                )
                for item in shipment.line_items or []
            ],
            inspections=[
                InspectionResponse(
                    line_item_id=str(inspection.line_item_id),
                    accepted_quantity=inspection.accepted_quantity or 0,
                    rejected_quantity=inspection.rejected_quantity or 0,
                    notes=inspection.notes,
                    recorded=bool(inspection.recorded),
                )
                for inspection in shipment.inspections or []
            ],
        )


class OutboundLineResponse(BaseModel):
    variant_id: str
    requested_quantity: int


class OutboundShipmentResponse(BaseModel):
    shipment_id: str
    order_id: str
    warehouse_id: str
    status: str
    carrier: str | None = None
    tracking_number: str | None = None
    cancellation_reason: str | None = None
    line_items: list[OutboundLineResponse]

    @classmethod
    def from_entity(cls, shipment) -> "OutboundShipmentResponse":
        return cls(
            shipment_id=str(shipment.id),
            order_id=str(shipment.order_id),
            warehouse_id=str(shipment.warehouse_id),
            status=shipment.status,
            carrier=shipment.carrier,
            tracking_number=shipment.tracking_number,
            cancellation_reason=shipment.cancellation_reason,
            line_items=[
                OutboundLineResponse(variant_id=variant_id, requested_quantity=quantity)
                for variant_id, quantity in shipment.reserved_quantities.items()
            ],
        )


class InventoryRecordResponse(BaseModel):
    variant_id: str
    warehouse_id: str
    quantity_on_hand: int
    quantity_reserved: int
    quantity_available: int
    bin_location: str | None = None
    last_received_at: datetime | None = None

    @classmethod
    def from_entity(cls, record) -> "InventoryRecordResponse":
        return cls(
            variant_id=str(record.variant_id),
            warehouse_id=str(record.warehouse_id),
            quantity_on_hand=record.quantity_on_hand,
            quantity_reserved=record.quantity_reserved,
            quantity_available=record.quantity_available,
            bin_location=record.bin_location,
            last_received_at=record.last_received_at,
        )


class TrailEntryResponse(BaseModel):
    sequence: int
    entity_type: str
    entity_id: str
    event_type: str
    previous_value: str | None = None
    new_value: str | None = None
    actor_id: str | None = None
    note: str | None = None
    occurred_at: datetime

    @classmethod
    def from_entity(cls, entry) -> "TrailEntryResponse":
        return cls(
            sequence=entry.sequence,
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id),
            event_type=entry.event_type,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            actor_id=entry.actor_id,
            note=entry.note,
            occurred_at=entry.occurred_at,
        )
