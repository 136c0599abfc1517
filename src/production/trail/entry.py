"""TrailEntry aggregate: the append-only audit log of the engine.

Every committed transition in the funnel, the quality gate, both shipment
pipelines and the ledger appends exactly one entry, inside the same Unit of
Work as the state change itself. Entries are never updated or deleted.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text

from production.domain import production

class EntityType(Enum):
    MANUFACTURING_JOB = "manufacturing_job"
    FIRST_PIECE = "first_piece"
    INBOUND_SHIPMENT = "inbound_shipment"
    OUTBOUND_SHIPMENT = "outbound_shipment"
    INVENTORY_RECORD = "inventory_record"


class TrailEventType(Enum):
    STATUS_CHANGE = "status_change"
    NOTE_ADDED = "note_added"
    STOCK_MOVEMENT = "stock_movement"
    ASSIGNMENT = "assignment"
    SCHEDULE_CHANGE = "schedule_change"
    PRIORITY_CHANGE = "priority_change"
    SPECS_LOCKED = "specs_locked"


@production.aggregate
class TrailEntry:
    entity_type = String(required=True, max_length=50, choices=EntityType)
    entity_id = Identifier(required=True)
    event_type = String(required=True, max_length=50, choices=TrailEventType)
    previous_value = String(max_length=255)
    new_value = String(max_length=255)
    actor_id = String(max_length=100)
    note = Text()
    occurred_at = DateTime(required=True)
    sequence = Integer(required=True)

    @classmethod
    def append(
        cls,
        entity_type: EntityType,
        entity_id: str,
        event_type: TrailEventType,
        previous_value: str | None,
        new_value: str | None,
        actor_id: str | None,
        sequence: int,
        note: str | None = None,
    ) -> "TrailEntry":
        """Build an entry. ``sequence`` orders entries within one entity."""
        return cls(
            entity_type=entity_type.value,
            entity_id=str(entity_id),
            event_type=event_type.value,
            previous_value=previous_value,
            new_value=new_value,
            actor_id=actor_id,
            note=note,
            occurred_at=datetime.now(UTC),
            sequence=sequence,
        )
