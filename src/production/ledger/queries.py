"""Read access to the ledger."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from production.ledger.record import InventoryRecord, record_id_for


def find_record(variant_id: str, warehouse_id: str) -> InventoryRecord | None:
    """Load the record for a pair, or ``None`` if it was never stocked."""
    try:
        return current_domain.repository_for(InventoryRecord).get(record_id_for(variant_id, warehouse_id))
    except ObjectNotFoundError:
        return None


def get_record(variant_id: str, warehouse_id: str) -> InventoryRecord:
    """Load the record for a pair. Raises ``ObjectNotFoundError`` if absent."""
    return current_domain.repository_for(InventoryRecord).get(record_id_for(variant_id, warehouse_id))


def records_for_warehouse(warehouse_id: str) -> list[InventoryRecord]:
    records = (
        current_domain.repository_for(InventoryRecord)
        ._dao.query.filter(warehouse_id=str(warehouse_id))
        .limit(1000)
        .all()
        .items
    )
    return sorted(records, key=lambda r: str(r.variant_id))
