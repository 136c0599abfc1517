"""Ledger domain events: immutable facts about stock movements.

Each event carries the before/after quantities so downstream projections
never have to reload the record.
"""

from protean.fields import DateTime, Identifier, Integer, String

from production.domain import production


@production.event(part_of="InventoryRecord")
class StockReceived:
    """Inspected quantity was credited to on-hand stock."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_on_hand = Integer(required=True)
    new_on_hand = Integer(required=True)
    reference = String(max_length=255)
    received_at = DateTime(required=True)


@production.event(part_of="InventoryRecord")
class StockReserved:
    """Stock was held for an outbound shipment."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    reference = String(max_length=255)
    reserved_at = DateTime(required=True)


@production.event(part_of="InventoryRecord")
class ReservationReleased:
    """A hold was released without stock leaving the warehouse."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_reserved = Integer(required=True)
    new_available = Integer(required=True)
    reference = String(max_length=255)
    released_at = DateTime(required=True)


@production.event(part_of="InventoryRecord")
class StockCommitted:
    """Reserved stock left the building with a shipment."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_on_hand = Integer(required=True)
    new_reserved = Integer(required=True)
    reference = String(max_length=255)
    committed_at = DateTime(required=True)


@production.event(part_of="InventoryRecord")
class StockAdjusted:
    """On-hand stock was corrected by a manual count."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    delta = Integer(required=True)
    reason_code = String(required=True, max_length=50)
    previous_on_hand = Integer(required=True)
    new_on_hand = Integer(required=True)
    adjusted_by = String(max_length=100)
    adjusted_at = DateTime(required=True)


@production.event(part_of="InventoryRecord")
class BinLocationAssigned:
    """The record was given a physical bin in its warehouse."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    previous_bin_location = String(max_length=50)
    bin_location = String(required=True, max_length=50)
    assigned_at = DateTime(required=True)
