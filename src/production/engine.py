"""ProductionEngine: the typed entry point to every state machine.

Each public method takes the locks its operation needs, dispatches one
command synchronously, reloads the affected entity and returns
``Ok(entity)``. Any failure comes back as ``Err(EngineError)`` instead of
an exception, with the same kind whether it came from a domain rule, a
missing entity or the storage layer.

Locks are always taken here, before the command handler runs, so the
handler's check-then-act sequence works on state no other request can
change underneath it.
"""

import json
import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from production.collaborators.storage import get_file_storage
from production.domain import production
from production.fulfillment.creation import CreateOutboundShipment
from production.fulfillment.picking import PackShipment, PickShipment
from production.fulfillment.shipment import OutboundShipment, requested_totals
from production.fulfillment.shipping import CancelShipment, DeliverShipment, ShipShipment
from production.ledger.adjustment import AdjustStock, AssignBinLocation
from production.ledger.queries import get_record, records_for_warehouse
from production.ledger.record import InventoryRecord
from production.manufacturing.details import (
    AddJobNote,
    AssignManufacturer,
    ChangePriority,
    LockSpecs,
    RescheduleJob,
)
from production.manufacturing.job import FunnelStatus, ManufacturingJob, Priority
from production.manufacturing.opening import OpenManufacturingJob
from production.manufacturing.transition import TransitionJob
from production.quality.first_piece import FirstPieceRecord, first_piece_for
from production.quality.review import (
    ApproveFirstPiece,
    RejectFirstPiece,
    ResetFirstPiece,
    SubmitSamples,
)
from production.receiving.inspection import BeginInspection, CompleteInspection, RecordInspection
from production.receiving.registration import MarkArrived, MarkInTransit, RegisterInboundShipment
from production.receiving.shipment import InboundShipment
from production.shared.errors import (
    STORAGE_FAILURES,
    GateNotSatisfied,
    InsufficientStock,
    InvalidTransition,
    StorageError,
)
from production.shared.locking import KeyedLocks, get_locks, inbound_key, job_key, ledger_key, outbound_key
from production.shared.result import EngineError, Err, ErrorKind, Ok, Result
from production.trail.entry import EntityType, TrailEntry
from production.trail.recorder import stream_timeline, timeline

logger = structlog.get_logger(__name__)

DEFAULT_STORAGE_RETRIES = 2


@dataclass(frozen=True)
class InboundLine:
    variant_id: str
    declared_quantity: int


@dataclass(frozen=True)
class OutboundLine:
    variant_id: str
    requested_quantity: int


def storage_retries() -> int:
    """Extra attempts allowed for idempotent operations after a StorageError."""
    return max(0, int(os.getenv("ENGINE_STORAGE_RETRIES", DEFAULT_STORAGE_RETRIES)))


def _first_message(messages) -> str:
    if isinstance(messages, dict):
        for field, errors in messages.items():
            if isinstance(errors, list | tuple) and errors:
                return f"{field}: {errors[0]}"
            return f"{field}: {errors}"
    return str(messages)


def to_engine_error(exc: Exception) -> EngineError:
    """Classify an exception raised by a command handler or a repository."""
    if isinstance(exc, InvalidTransition):
        kind = ErrorKind.INVALID_TRANSITION
    elif isinstance(exc, GateNotSatisfied):
        kind = ErrorKind.GATE_NOT_SATISFIED
    elif isinstance(exc, InsufficientStock):
        kind = ErrorKind.INSUFFICIENT_STOCK
    elif isinstance(exc, ValidationError):
        kind = ErrorKind.VALIDATION_ERROR
    elif isinstance(exc, ObjectNotFoundError):
        kind = ErrorKind.NOT_FOUND
    elif isinstance(exc, StorageError):
        return EngineError(ErrorKind.STORAGE_ERROR, str(exc), {"operation": exc.operation})
    else:
        raise TypeError(f"Unclassified engine failure: {exc!r}") from exc

    messages = getattr(exc, "messages", None) or str(exc)
    details = messages if isinstance(messages, dict) else {"error": [str(messages)]}
    return EngineError(kind, _first_message(messages), details)


class ProductionEngine:
    """Facade over the production domain. Safe to share across threads."""

    def __init__(self, domain: Domain = production, locks: KeyedLocks | None = None, retries: int | None = None):
        self._domain = domain
        self._locks = locks or get_locks()
        self._retries = storage_retries() if retries is None else retries

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def _run(
        self,
        operation: str,
        keys: Sequence[str],
        action: Callable[[], object],
        idempotent: bool = False,
    ) -> Result:
        attempts = 1 + (self._retries if idempotent else 0)
        for attempt in range(1, attempts + 1):
            try:
                with self._domain.domain_context():
                    with self._locks.hold(*keys):
                        try:
                            value = action()
                        except STORAGE_FAILURES as exc:
                            raise StorageError(operation, str(exc)) from exc
            except StorageError as exc:
                if attempt < attempts:
                    logger.warning("Storage unavailable, retrying", operation=operation, attempt=attempt)
                    continue
                logger.error("Storage unavailable", operation=operation, attempts=attempt, error=str(exc))
                return Err(to_engine_error(exc))
            except (ValidationError, ObjectNotFoundError) as exc:
                error = to_engine_error(exc)
                logger.info(
                    "Operation refused",
                    operation=operation,
                    kind=error.kind.value,
                    reason=error.message,
                )
                return Err(error)

            logger.debug("Operation completed", operation=operation)
            return Ok(value)

    def _command(self, operation, keys, command_factory, load, idempotent=False) -> Result:
        """Build and process one command, then reload the entity it touched."""

        def action():
            entity_id = current_domain.process(command_factory(), asynchronous=False)
            return load(entity_id)

        return self._run(operation, keys, action, idempotent=idempotent)

    @staticmethod
    def _load(aggregate_cls):
        return lambda entity_id: current_domain.repository_for(aggregate_cls).get(entity_id)

    # -------------------------------------------------------------------
    # Quality gate
    # -------------------------------------------------------------------
    def submit_samples(self, job_id: str, image_references: Sequence[str], actor_id: str | None = None) -> Result:
        return self._command(
            "submit_samples",
            [job_key(job_id)],
            lambda: SubmitSamples(
                job_id=job_id,
                image_references=json.dumps(list(image_references or [])),
                actor_id=actor_id,
            ),
            self._load(FirstPieceRecord),
        )

    def approve_first_piece(self, job_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "approve_first_piece",
            [job_key(job_id)],
            lambda: ApproveFirstPiece(job_id=job_id, actor_id=actor_id),
            self._load(FirstPieceRecord),
        )

    def reject_first_piece(self, job_id: str, actor_id: str | None, notes: str | None) -> Result:
        return self._command(
            "reject_first_piece",
            [job_key(job_id)],
            lambda: RejectFirstPiece(job_id=job_id, actor_id=actor_id, notes=notes),
            self._load(FirstPieceRecord),
        )

    def reset_first_piece(self, job_id: str, actor_id: str | None = None, note: str | None = None) -> Result:
        return self._command(
            "reset_first_piece",
            [job_key(job_id)],
            lambda: ResetFirstPiece(job_id=job_id, actor_id=actor_id, note=note),
            self._load(FirstPieceRecord),
        )

    def get_first_piece(self, job_id: str) -> Result:
        return self._run(
            "get_first_piece",
            [],
            lambda: first_piece_for(job_id),
            idempotent=True,
        )

    def first_piece_images(self, job_id: str) -> Result:
        """Resolve the sample image references of a job through file storage."""

        def action():
            record = first_piece_for(job_id)
            storage = get_file_storage()
            return [storage.get_file_metadata(ref) for ref in record.image_references]

        return self._run("first_piece_images", [], action, idempotent=True)

    # -------------------------------------------------------------------
    # Manufacturing funnel
    # -------------------------------------------------------------------
    def open_job(
        self,
        order_id: str,
        sample_required: bool = True,
        priority: Priority | str = Priority.NORMAL,
        required_delivery_date: date | None = None,
        promised_ship_date: date | None = None,
        manufacturer_id: str | None = None,
        actor_id: str | None = None,
    ) -> Result:
        return self._command(
            "open_job",
            [],
            lambda: OpenManufacturingJob(
                order_id=order_id,
                sample_required=sample_required,
                priority=priority.value if isinstance(priority, Priority) else priority,
                required_delivery_date=required_delivery_date,
                promised_ship_date=promised_ship_date,
                manufacturer_id=manufacturer_id,
                actor_id=actor_id,
            ),
            self._load(ManufacturingJob),
        )

    def transition_job(
        self,
        job_id: str,
        target_status: FunnelStatus | str,
        actor_id: str | None = None,
        note: str | None = None,
    ) -> Result:
        target = target_status.value if isinstance(target_status, FunnelStatus) else target_status
        return self._command(
            "transition_job",
            [job_key(job_id)],
            lambda: TransitionJob(job_id=job_id, target_status=target, actor_id=actor_id, note=note),
            self._load(ManufacturingJob),
        )

    def cancel_job(self, job_id: str, actor_id: str | None = None, reason: str | None = None) -> Result:
        return self.transition_job(job_id, FunnelStatus.CANCELLED, actor_id=actor_id, note=reason)

    def assign_manufacturer(self, job_id: str, manufacturer_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "assign_manufacturer",
            [job_key(job_id)],
            lambda: AssignManufacturer(job_id=job_id, manufacturer_id=manufacturer_id, actor_id=actor_id),
            self._load(ManufacturingJob),
        )

    def lock_specs(self, job_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "lock_specs",
            [job_key(job_id)],
            lambda: LockSpecs(job_id=job_id, actor_id=actor_id),
            self._load(ManufacturingJob),
        )

    def reschedule_job(
        self,
        job_id: str,
        required_delivery_date: date | None = None,
        promised_ship_date: date | None = None,
        actor_id: str | None = None,
        note: str | None = None,
        clear_delivery_date: bool = False,
        clear_ship_date: bool = False,
    ) -> Result:
        return self._command(
            "reschedule_job",
            [job_key(job_id)],
            lambda: RescheduleJob(
                job_id=job_id,
                required_delivery_date=required_delivery_date,
                promised_ship_date=promised_ship_date,
                clear_delivery_date=clear_delivery_date,
                clear_ship_date=clear_ship_date,
                actor_id=actor_id,
                note=note,
            ),
            self._load(ManufacturingJob),
        )

    def change_priority(self, job_id: str, priority: Priority | str, actor_id: str | None = None) -> Result:
        value = priority.value if isinstance(priority, Priority) else priority
        return self._command(
            "change_priority",
            [job_key(job_id)],
            lambda: ChangePriority(job_id=job_id, priority=value, actor_id=actor_id),
            self._load(ManufacturingJob),
        )

    def add_job_note(self, job_id: str, note: str, actor_id: str | None = None) -> Result:
        return self._command(
            "add_job_note",
            [job_key(job_id)],
            lambda: AddJobNote(job_id=job_id, note=note, actor_id=actor_id),
            self._load(ManufacturingJob),
        )

    def get_job(self, job_id: str) -> Result:
        return self._run("get_job", [], lambda: self._load(ManufacturingJob)(job_id), idempotent=True)

    # -------------------------------------------------------------------
    # Inbound receiving
    # -------------------------------------------------------------------
    def register_inbound_shipment(
        self,
        manufacturing_job_id: str,
        warehouse_id: str,
        line_items: Sequence[InboundLine],
        carrier: str | None = None,
        tracking_number: str | None = None,
        expected_arrival_date: date | None = None,
        actor_id: str | None = None,
    ) -> Result:
        return self._command(
            "register_inbound_shipment",
            [job_key(manufacturing_job_id)],
            lambda: RegisterInboundShipment(
                manufacturing_job_id=manufacturing_job_id,
                warehouse_id=warehouse_id,
                line_items=json.dumps([_line_dict(line) for line in line_items or []], default=str),
                carrier=carrier,
                tracking_number=tracking_number,
                expected_arrival_date=expected_arrival_date,
                actor_id=actor_id,
            ),
            self._load(InboundShipment),
        )

    def mark_in_transit(
        self,
        shipment_id: str,
        actor_id: str | None = None,
        carrier: str | None = None,
        tracking_number: str | None = None,
    ) -> Result:
        return self._command(
            "mark_in_transit",
            [inbound_key(shipment_id)],
            lambda: MarkInTransit(
                shipment_id=shipment_id,
                carrier=carrier,
                tracking_number=tracking_number,
                actor_id=actor_id,
            ),
            self._load(InboundShipment),
        )

    def mark_arrived(self, shipment_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "mark_arrived",
            [inbound_key(shipment_id)],
            lambda: MarkArrived(shipment_id=shipment_id, actor_id=actor_id),
            self._load(InboundShipment),
        )

    def begin_inspection(self, shipment_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "begin_inspection",
            [inbound_key(shipment_id)],
            lambda: BeginInspection(shipment_id=shipment_id, actor_id=actor_id),
            self._load(InboundShipment),
        )

    def record_inspection(
        self,
        shipment_id: str,
        line_item_id: str,
        accepted_quantity: int,
        rejected_quantity: int,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Result:
        return self._command(
            "record_inspection",
            [inbound_key(shipment_id)],
            lambda: RecordInspection(
                shipment_id=shipment_id,
                line_item_id=line_item_id,
                accepted_quantity=accepted_quantity,
                rejected_quantity=rejected_quantity,
                notes=notes,
                actor_id=actor_id,
            ),
            self._load(InboundShipment),
            idempotent=True,
        )

    def complete_inspection(self, shipment_id: str, actor_id: str | None = None) -> Result:
        looked_up = self.get_inbound_shipment(shipment_id)
        if not looked_up.ok:
            return looked_up
        shipment = looked_up.value
        keys = [inbound_key(shipment_id)] + [
            ledger_key(str(item.variant_id), str(shipment.warehouse_id)) for item in shipment.line_items
        ]
        return self._command(
            "complete_inspection",
            keys,
            lambda: CompleteInspection(shipment_id=shipment_id, actor_id=actor_id),
            self._load(InboundShipment),
        )

    def get_inbound_shipment(self, shipment_id: str) -> Result:
        return self._run(
            "get_inbound_shipment",
            [],
            lambda: self._load(InboundShipment)(shipment_id),
            idempotent=True,
        )

    # -------------------------------------------------------------------
    # Outbound fulfillment
    # -------------------------------------------------------------------
    def create_outbound_shipment(
        self,
        order_id: str,
        warehouse_id: str,
        line_items: Sequence[OutboundLine],
        actor_id: str | None = None,
    ) -> Result:
        try:
            items_data = [_line_dict(line) for line in line_items or []]
            totals = requested_totals(items_data)
        except ValidationError as exc:
            return Err(to_engine_error(exc))

        return self._command(
            "create_outbound_shipment",
            [ledger_key(variant_id, warehouse_id) for variant_id in totals],
            lambda: CreateOutboundShipment(
                order_id=order_id,
                warehouse_id=warehouse_id,
                line_items=json.dumps(items_data, default=str),
                actor_id=actor_id,
            ),
            self._load(OutboundShipment),
        )

    def pick_shipment(self, shipment_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "pick_shipment",
            [outbound_key(shipment_id)],
            lambda: PickShipment(shipment_id=shipment_id, actor_id=actor_id),
            self._load(OutboundShipment),
        )

    def pack_shipment(self, shipment_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "pack_shipment",
            [outbound_key(shipment_id)],
            lambda: PackShipment(shipment_id=shipment_id, actor_id=actor_id),
            self._load(OutboundShipment),
        )

    def ship_shipment(
        self,
        shipment_id: str,
        tracking_number: str,
        carrier: str,
        actor_id: str | None = None,
    ) -> Result:
        return self._with_ledger_locks(
            "ship_shipment",
            shipment_id,
            lambda: ShipShipment(
                shipment_id=shipment_id,
                tracking_number=tracking_number,
                carrier=carrier,
                actor_id=actor_id,
            ),
        )

    def cancel_shipment(self, shipment_id: str, reason: str | None = None, actor_id: str | None = None) -> Result:
        return self._with_ledger_locks(
            "cancel_shipment",
            shipment_id,
            lambda: CancelShipment(shipment_id=shipment_id, reason=reason, actor_id=actor_id),
        )

    def deliver_shipment(self, shipment_id: str, actor_id: str | None = None) -> Result:
        return self._command(
            "deliver_shipment",
            [outbound_key(shipment_id)],
            lambda: DeliverShipment(shipment_id=shipment_id, actor_id=actor_id),
            self._load(OutboundShipment),
        )

    def get_outbound_shipment(self, shipment_id: str) -> Result:
        return self._run(
            "get_outbound_shipment",
            [],
            lambda: self._load(OutboundShipment)(shipment_id),
            idempotent=True,
        )

    def _with_ledger_locks(self, operation, shipment_id, command_factory) -> Result:
        # Line items never change after creation, so reading them unlocked is safe
        looked_up = self.get_outbound_shipment(shipment_id)
        if not looked_up.ok:
            return looked_up
        shipment = looked_up.value
        keys = [outbound_key(shipment_id)] + [
            ledger_key(variant_id, str(shipment.warehouse_id)) for variant_id in shipment.reserved_quantities
        ]
        return self._command(operation, keys, command_factory, self._load(OutboundShipment))

    # -------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------
    def adjust_stock(
        self,
        variant_id: str,
        warehouse_id: str,
        delta: int,
        reason_code: str,
        actor_id: str | None = None,
        note: str | None = None,
    ) -> Result:
        return self._command(
            "adjust_stock",
            [ledger_key(variant_id, warehouse_id)],
            lambda: AdjustStock(
                variant_id=variant_id,
                warehouse_id=warehouse_id,
                delta=delta,
                reason_code=reason_code,
                actor_id=actor_id,
                note=note,
            ),
            self._load(InventoryRecord),
        )

    def assign_bin_location(
        self,
        variant_id: str,
        warehouse_id: str,
        bin_location: str,
        actor_id: str | None = None,
    ) -> Result:
        return self._command(
            "assign_bin_location",
            [ledger_key(variant_id, warehouse_id)],
            lambda: AssignBinLocation(
                variant_id=variant_id,
                warehouse_id=warehouse_id,
                bin_location=bin_location,
                actor_id=actor_id,
            ),
            self._load(InventoryRecord),
        )

    def get_inventory(self, variant_id: str, warehouse_id: str) -> Result:
        return self._run(
            "get_inventory",
            [],
            lambda: get_record(variant_id, warehouse_id),
            idempotent=True,
        )

    def warehouse_inventory(self, warehouse_id: str) -> Result:
        return self._run(
            "warehouse_inventory",
            [],
            lambda: records_for_warehouse(warehouse_id),
            idempotent=True,
        )

    # -------------------------------------------------------------------
    # Event trail
    # -------------------------------------------------------------------
    def timeline(self, entity_type: EntityType, entity_id: str) -> Result:
        return self._run(
            "timeline",
            [],
            lambda: timeline(entity_type, entity_id),
            idempotent=True,
        )

    def stream_timeline(
        self,
        entity_type: EntityType,
        entity_id: str,
        after_sequence: int = 0,
    ) -> Iterator[TrailEntry]:
        """Lazily yield trail entries; resume by passing the last ``sequence`` seen.

        No domain context stays pushed while the caller holds the generator.
        """
        return stream_timeline(
            entity_type,
            entity_id,
            after_sequence=after_sequence,
            within=self._domain.domain_context,
        )


def _line_dict(line) -> dict:
    if isinstance(line, dict):
        return dict(line)
    if is_dataclass(line):
        return asdict(line)
    raise ValidationError({"line_items": ["Each line item must be an object"]})
