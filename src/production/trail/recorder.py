"""Writing to and reading from the event trail.

``record`` is meant to be called from command handlers: the entry joins the
handler's Unit of Work and commits (or vanishes) together with the state
change it describes.

Each entity has its own ``sequence``, one past the highest value already
stored for it, so numbering carries on after a restart. Callers hold the
entity's lock while recording, which keeps the sequence in commit order.
"""

import threading
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, nullcontext

import structlog
from protean.utils.globals import current_domain

from production.shared.errors import STORAGE_FAILURES, StorageError
from production.trail.entry import EntityType, TrailEntry, TrailEventType

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 50

# Highest sequence handed out per entity in this process. Covers entries
# staged in a Unit of Work that has not committed yet.
_issued: dict[tuple[str, str], int] = {}
_issued_lock = threading.Lock()


def _stored_max(entity_type: EntityType, entity_id: str) -> int:
    latest = (
        current_domain.repository_for(TrailEntry)
        ._dao.query.filter(entity_type=entity_type.value, entity_id=str(entity_id))
        .order_by("-sequence")
        .limit(1)
        .all()
        .items
    )
    return latest[0].sequence if latest else 0


def next_sequence(entity_type: EntityType, entity_id: str) -> int:
    key = (entity_type.value, str(entity_id))
    stored = _stored_max(entity_type, entity_id)
    with _issued_lock:
        sequence = max(stored, _issued.get(key, 0)) + 1
        _issued[key] = sequence
    return sequence


def record(
    entity_type: EntityType,
    entity_id: str,
    event_type: TrailEventType,
    previous,
    new,
    actor_id: str | None,
    note: str | None = None,
) -> TrailEntry:
    """Append one entry to the trail. Fails only when storage is unavailable."""
    try:
        entry = TrailEntry.append(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            previous_value=_as_text(previous),
            new_value=_as_text(new),
            actor_id=actor_id,
            sequence=next_sequence(entity_type, entity_id),
            note=note,
        )
        current_domain.repository_for(TrailEntry).add(entry)
    except STORAGE_FAILURES as exc:
        raise StorageError("trail.record", str(exc)) from exc

    logger.debug(
        "Trail entry recorded",
        entity_type=entity_type.value,
        entity_id=str(entity_id),
        event_type=event_type.value,
        previous=entry.previous_value,
        new=entry.new_value,
    )
    return entry


def _as_text(value) -> str | None:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def _page(entity_type: EntityType, entity_id: str, after_sequence: int, limit: int) -> list[TrailEntry]:
    try:
        return (
            current_domain.repository_for(TrailEntry)
            ._dao.query.filter(
                entity_type=entity_type.value,
                entity_id=str(entity_id),
                sequence__gt=after_sequence,
            )
            .order_by("sequence")
            .limit(limit)
            .all()
            .items
        )
    except STORAGE_FAILURES as exc:
        raise StorageError("trail.read", str(exc)) from exc


def stream_timeline(
    entity_type: EntityType,
    entity_id: str,
    after_sequence: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
    within: Callable[[], AbstractContextManager] = nullcontext,
) -> Iterator[TrailEntry]:
    """Lazily yield an entity's entries in ascending order.

    Pages are fetched on demand. Pass the ``sequence`` of the last entry
    seen as ``after_sequence`` to resume an interrupted stream. Each page is
    read inside a fresh ``within()`` context that is closed again before
    any entry is yielded.
    """
    cursor = after_sequence
    while True:
        with within():
            page = _page(entity_type, entity_id, cursor, page_size)
        if not page:
            return
        yield from page
        cursor = page[-1].sequence
        if len(page) < page_size:
            return


def timeline(entity_type: EntityType, entity_id: str) -> list[TrailEntry]:
    """All entries for one entity, oldest first."""
    return list(stream_timeline(entity_type, entity_id))
