"""FastAPI routes for the production engine.

Routes are plain (sync) functions: the engine blocks on entity locks, so
FastAPI runs each call in its threadpool instead of on the event loop.
"""

from itertools import islice

from fastapi import APIRouter, Depends, HTTPException, Query

from production.api.schemas import (
    ActorRequest,
    AddNoteRequest,
    AdjustStockRequest,
    AssignBinRequest,
    AssignManufacturerRequest,
    CancelOutboundRequest,
    ChangePriorityRequest,
    CreateOutboundRequest,
    FirstPieceResponse,
    ImageMetadataResponse,
    InboundShipmentResponse,
    InventoryRecordResponse,
    JobResponse,
    MarkInTransitRequest,
    OpenJobRequest,
    OutboundShipmentResponse,
    RecordInspectionRequest,
    RegisterInboundRequest,
    RejectFirstPieceRequest,
    RescheduleJobRequest,
    ResetFirstPieceRequest,
    ShipRequest,
    SubmitSamplesRequest,
    TrailEntryResponse,
    TransitionJobRequest,
)
from production.engine import InboundLine, OutboundLine, ProductionEngine
from production.shared.result import ErrorKind, Result
from production.trail.entry import EntityType

_HTTP_STATUS = {
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.GATE_NOT_SATISFIED: 409,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE_ERROR: 503,
}

_engine: ProductionEngine | None = None


def get_engine() -> ProductionEngine:
    """Return the shared engine (singleton)."""
    global _engine
    if _engine is None:
        _engine = ProductionEngine()
    return _engine


def _unwrap(result: Result):
    if result.ok:
        return result.value
    error = result.error
    raise HTTPException(
        status_code=_HTTP_STATUS[error.kind],
        detail={"kind": error.kind.value, "message": error.message, "details": error.details},
    )


# ---------------------------------------------------------------------------
# Manufacturing jobs and first piece
# ---------------------------------------------------------------------------
jobs_router = APIRouter(prefix="/jobs", tags=["manufacturing"])


@jobs_router.post("", status_code=201, response_model=JobResponse)
def open_job(body: OpenJobRequest, engine: ProductionEngine = Depends(get_engine)) -> JobResponse:
    """Accept an order into the manufacturing funnel."""
    job = _unwrap(
        engine.open_job(
            order_id=body.order_id,
            sample_required=body.sample_required,
            priority=body.priority,
            required_delivery_date=body.required_delivery_date,
            promised_ship_date=body.promised_ship_date,
            manufacturer_id=body.manufacturer_id,
            actor_id=body.actor_id,
        )
    )
    return JobResponse.from_entity(job)


@jobs_router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: str, engine: ProductionEngine = Depends(get_engine)) -> JobResponse:
    return JobResponse.from_entity(_unwrap(engine.get_job(job_id)))


@jobs_router.put("/{job_id}/status", response_model=JobResponse)
def transition_job(
    job_id: str, body: TransitionJobRequest, engine: ProductionEngine = Depends(get_engine)
) -> JobResponse:
    """Move a job along the funnel (including cancellation)."""
    job = _unwrap(engine.transition_job(job_id, body.target_status, actor_id=body.actor_id, note=body.note))
    return JobResponse.from_entity(job)


@jobs_router.put("/{job_id}/manufacturer", response_model=JobResponse)
def assign_manufacturer(
    job_id: str, body: AssignManufacturerRequest, engine: ProductionEngine = Depends(get_engine)
) -> JobResponse:
    job = _unwrap(engine.assign_manufacturer(job_id, body.manufacturer_id, actor_id=body.actor_id))
    return JobResponse.from_entity(job)


@jobs_router.put("/{job_id}/specs-lock", response_model=JobResponse)
def lock_specs(job_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)) -> JobResponse:
    return JobResponse.from_entity(_unwrap(engine.lock_specs(job_id, actor_id=body.actor_id)))


@jobs_router.put("/{job_id}/schedule", response_model=JobResponse)
def reschedule_job(
    job_id: str, body: RescheduleJobRequest, engine: ProductionEngine = Depends(get_engine)
) -> JobResponse:
    job = _unwrap(
        engine.reschedule_job(
            job_id,
            required_delivery_date=body.required_delivery_date,
            promised_ship_date=body.promised_ship_date,
            actor_id=body.actor_id,
            note=body.note,
            clear_delivery_date=body.clear_delivery_date,
            clear_ship_date=body.clear_ship_date,
        )
    )
    return JobResponse.from_entity(job)


@jobs_router.put("/{job_id}/priority", response_model=JobResponse)
def change_priority(
    job_id: str, body: ChangePriorityRequest, engine: ProductionEngine = Depends(get_engine)
) -> JobResponse:
    return JobResponse.from_entity(_unwrap(engine.change_priority(job_id, body.priority, actor_id=body.actor_id)))


@jobs_router.post("/{job_id}/notes", response_model=JobResponse)
def add_job_note(job_id: str, body: AddNoteRequest, engine: ProductionEngine = Depends(get_engine)) -> JobResponse:
    return JobResponse.from_entity(_unwrap(engine.add_job_note(job_id, body.note, actor_id=body.actor_id)))


@jobs_router.get("/{job_id}/first-piece", response_model=FirstPieceResponse)
def get_first_piece(job_id: str, engine: ProductionEngine = Depends(get_engine)) -> FirstPieceResponse:
    return FirstPieceResponse.from_entity(_unwrap(engine.get_first_piece(job_id)))


@jobs_router.get("/{job_id}/first-piece/images", response_model=list[ImageMetadataResponse])
def first_piece_images(job_id: str, engine: ProductionEngine = Depends(get_engine)) -> list[ImageMetadataResponse]:
    return [ImageMetadataResponse(**meta) for meta in _unwrap(engine.first_piece_images(job_id))]


@jobs_router.post("/{job_id}/first-piece/samples", response_model=FirstPieceResponse)
def submit_samples(
    job_id: str, body: SubmitSamplesRequest, engine: ProductionEngine = Depends(get_engine)
) -> FirstPieceResponse:
    record = _unwrap(engine.submit_samples(job_id, body.image_references, actor_id=body.actor_id))
    return FirstPieceResponse.from_entity(record)


@jobs_router.put("/{job_id}/first-piece/approve", response_model=FirstPieceResponse)
def approve_first_piece(
    job_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> FirstPieceResponse:
    return FirstPieceResponse.from_entity(_unwrap(engine.approve_first_piece(job_id, actor_id=body.actor_id)))


@jobs_router.put("/{job_id}/first-piece/reject", response_model=FirstPieceResponse)
def reject_first_piece(
    job_id: str, body: RejectFirstPieceRequest, engine: ProductionEngine = Depends(get_engine)
) -> FirstPieceResponse:
    record = _unwrap(engine.reject_first_piece(job_id, actor_id=body.actor_id, notes=body.notes))
    return FirstPieceResponse.from_entity(record)


@jobs_router.put("/{job_id}/first-piece/reset", response_model=FirstPieceResponse)
def reset_first_piece(
    job_id: str, body: ResetFirstPieceRequest, engine: ProductionEngine = Depends(get_engine)
) -> FirstPieceResponse:
    record = _unwrap(engine.reset_first_piece(job_id, actor_id=body.actor_id, note=body.note))
    return FirstPieceResponse.from_entity(record)


# ---------------------------------------------------------------------------
# Inbound shipments
# ---------------------------------------------------------------------------
inbound_router = APIRouter(prefix="/inbound-shipments", tags=["receiving"])


@inbound_router.post("", status_code=201, response_model=InboundShipmentResponse)
def register_inbound_shipment(
    body: RegisterInboundRequest, engine: ProductionEngine = Depends(get_engine)
) -> InboundShipmentResponse:
    shipment = _unwrap(
        engine.register_inbound_shipment(
            manufacturing_job_id=body.manufacturing_job_id,
            warehouse_id=body.warehouse_id,
            line_items=[InboundLine(**item.model_dump()) for item in body.line_items],
            carrier=body.carrier,
            tracking_number=body.tracking_number,
            expected_arrival_date=body.expected_arrival_date,
            actor_id=body.actor_id,
        )
    )
    return InboundShipmentResponse.from_entity(shipment)


@inbound_router.get("/{shipment_id}", response_model=InboundShipmentResponse)
def get_inbound_shipment(shipment_id: str, engine: ProductionEngine = Depends(get_engine)) -> InboundShipmentResponse:
    return InboundShipmentResponse.from_entity(_unwrap(engine.get_inbound_shipment(shipment_id)))


@inbound_router.put("/{shipment_id}/in-transit", response_model=InboundShipmentResponse)
def mark_in_transit(
    shipment_id: str, body: MarkInTransitRequest, engine: ProductionEngine = Depends(get_engine)
) -> InboundShipmentResponse:
    shipment = _unwrap(
        engine.mark_in_transit(
            shipment_id,
            actor_id=body.actor_id,
            carrier=body.carrier,
            tracking_number=body.tracking_number,
        )
    )
    return InboundShipmentResponse.from_entity(shipment)


@inbound_router.put("/{shipment_id}/arrived", response_model=InboundShipmentResponse)
def mark_arrived(
    shipment_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> InboundShipmentResponse:
    return InboundShipmentResponse.from_entity(_unwrap(engine.mark_arrived(shipment_id, actor_id=body.actor_id)))


@inbound_router.put("/{shipment_id}/inspection", response_model=InboundShipmentResponse)
def begin_inspection(
    shipment_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> InboundShipmentResponse:
    return InboundShipmentResponse.from_entity(_unwrap(engine.begin_inspection(shipment_id, actor_id=body.actor_id)))


@inbound_router.put("/{shipment_id}/inspection/lines", response_model=InboundShipmentResponse)
def record_inspection(
    shipment_id: str, body: RecordInspectionRequest, engine: ProductionEngine = Depends(get_engine)
) -> InboundShipmentResponse:
    shipment = _unwrap(
        engine.record_inspection(
            shipment_id,
            body.line_item_id,
            body.accepted_quantity,
            body.rejected_quantity,
            notes=body.notes,
            actor_id=body.actor_id,
        )
    )
    return InboundShipmentResponse.from_entity(shipment)


@inbound_router.put("/{shipment_id}/inspection/complete", response_model=InboundShipmentResponse)
def complete_inspection(
    shipment_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> InboundShipmentResponse:
    shipment = _unwrap(engine.complete_inspection(shipment_id, actor_id=body.actor_id))
    return InboundShipmentResponse.from_entity(shipment)


# ---------------------------------------------------------------------------
# Outbound shipments
# ---------------------------------------------------------------------------
outbound_router = APIRouter(prefix="/outbound-shipments", tags=["fulfillment"])


@outbound_router.post("", status_code=201, response_model=OutboundShipmentResponse)
def create_outbound_shipment(
    body: CreateOutboundRequest, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    """Reserve stock for an order. All line items are reserved or none are."""
    shipment = _unwrap(
        engine.create_outbound_shipment(
            order_id=body.order_id,
            warehouse_id=body.warehouse_id,
            line_items=[OutboundLine(**item.model_dump()) for item in body.line_items],
            actor_id=body.actor_id,
        )
    )
    return OutboundShipmentResponse.from_entity(shipment)


@outbound_router.get("/{shipment_id}", response_model=OutboundShipmentResponse)
def get_outbound_shipment(
    shipment_id: str, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    return OutboundShipmentResponse.from_entity(_unwrap(engine.get_outbound_shipment(shipment_id)))


@outbound_router.put("/{shipment_id}/pick", response_model=OutboundShipmentResponse)
def pick_shipment(
    shipment_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    return OutboundShipmentResponse.from_entity(_unwrap(engine.pick_shipment(shipment_id, actor_id=body.actor_id)))


@outbound_router.put("/{shipment_id}/pack", response_model=OutboundShipmentResponse)
def pack_shipment(
    shipment_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    return OutboundShipmentResponse.from_entity(_unwrap(engine.pack_shipment(shipment_id, actor_id=body.actor_id)))


@outbound_router.put("/{shipment_id}/ship", response_model=OutboundShipmentResponse)
def ship_shipment(
    shipment_id: str, body: ShipRequest, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    shipment = _unwrap(
        engine.ship_shipment(shipment_id, body.tracking_number, body.carrier, actor_id=body.actor_id)
    )
    return OutboundShipmentResponse.from_entity(shipment)


@outbound_router.put("/{shipment_id}/deliver", response_model=OutboundShipmentResponse)
def deliver_shipment(
    shipment_id: str, body: ActorRequest, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    return OutboundShipmentResponse.from_entity(_unwrap(engine.deliver_shipment(shipment_id, actor_id=body.actor_id)))


@outbound_router.put("/{shipment_id}/cancel", response_model=OutboundShipmentResponse)
def cancel_shipment(
    shipment_id: str, body: CancelOutboundRequest, engine: ProductionEngine = Depends(get_engine)
) -> OutboundShipmentResponse:
    shipment = _unwrap(engine.cancel_shipment(shipment_id, reason=body.reason, actor_id=body.actor_id))
    return OutboundShipmentResponse.from_entity(shipment)


# ---------------------------------------------------------------------------
# Inventory ledger
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["ledger"])


@inventory_router.get("/{warehouse_id}", response_model=list[InventoryRecordResponse])
def warehouse_inventory(
    warehouse_id: str, engine: ProductionEngine = Depends(get_engine)
) -> list[InventoryRecordResponse]:
    return [InventoryRecordResponse.from_entity(r) for r in _unwrap(engine.warehouse_inventory(warehouse_id))]


@inventory_router.get("/{warehouse_id}/{variant_id}", response_model=InventoryRecordResponse)
def get_inventory(
    warehouse_id: str, variant_id: str, engine: ProductionEngine = Depends(get_engine)
) -> InventoryRecordResponse:
    return InventoryRecordResponse.from_entity(_unwrap(engine.get_inventory(variant_id, warehouse_id)))


@inventory_router.post("/{warehouse_id}/{variant_id}/adjustments", response_model=InventoryRecordResponse)
def adjust_stock(
    warehouse_id: str,
    variant_id: str,
    body: AdjustStockRequest,
    engine: ProductionEngine = Depends(get_engine),
) -> InventoryRecordResponse:
    record = _unwrap(
        engine.adjust_stock(
            variant_id,
            warehouse_id,
            body.delta,
            body.reason_code,
            actor_id=body.actor_id,
            note=body.note,
        )
    )
    return InventoryRecordResponse.from_entity(record)


@inventory_router.put("/{warehouse_id}/{variant_id}/bin", response_model=InventoryRecordResponse)
def assign_bin_location(
    warehouse_id: str,
    variant_id: str,
    body: AssignBinRequest,
    engine: ProductionEngine = Depends(get_engine),
) -> InventoryRecordResponse:
    record = _unwrap(engine.assign_bin_location(variant_id, warehouse_id, body.bin_location, actor_id=body.actor_id))
    return InventoryRecordResponse.from_entity(record)


# ---------------------------------------------------------------------------
# Event trail
# ---------------------------------------------------------------------------
trail_router = APIRouter(prefix="/trail", tags=["trail"])


@trail_router.get("/{entity_type}/{entity_id}", response_model=list[TrailEntryResponse])
def entity_timeline(
    entity_type: EntityType,
    entity_id: str,
    after_sequence: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    engine: ProductionEngine = Depends(get_engine),
) -> list[TrailEntryResponse]:
    """One page of an entity's history, oldest first. Pass the last ``sequence`` to continue."""
    stream = engine.stream_timeline(entity_type, entity_id, after_sequence=after_sequence)
    try:
        return [TrailEntryResponse.from_entity(entry) for entry in islice(stream, limit)]
    finally:
        stream.close()
