"""Per-entity locks that serialize check-then-act sequences.

Every operation on a job, a shipment or an inventory record runs while
holding the lock for each key it touches. Keys are acquired in sorted
order so two operations sharing records can never deadlock.
"""

import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager

import structlog

logger = structlog.get_logger(__name__)


def job_key(job_id: str) -> str:
    return f"job:{job_id}"


def inbound_key(shipment_id: str) -> str:
    return f"inbound:{shipment_id}"


def outbound_key(shipment_id: str) -> str:
    return f"outbound:{shipment_id}"


def ledger_key(variant_id: str, warehouse_id: str) -> str:
    return f"ledger:{variant_id}@{warehouse_id}"


class KeyedLocks:
    """Registry of one ``threading.Lock`` per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: str) -> Iterator[tuple[str, ...]]:
        ordered = tuple(sorted(set(keys)))
        with ExitStack() as stack:
            for key in ordered:
                stack.enter_context(self._lock_for(key))
            logger.debug("Acquired entity locks", keys=ordered)
            yield ordered

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_registry = KeyedLocks()


def get_locks() -> KeyedLocks:
    """Return the process-wide lock registry."""
    return _registry
