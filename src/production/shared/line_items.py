"""Validation of raw line item payloads shared by both shipment pipelines."""

from protean.exceptions import ValidationError


def _as_mapping(item) -> dict:
    if not isinstance(item, dict):
        raise ValidationError({"line_items": ["Each line item must be an object"]})
    return item


def variant_of(item) -> str:
    """The line's variant id. Raises ``ValidationError`` if it is missing or blank."""
    variant_id = _as_mapping(item).get("variant_id")
    if variant_id is None or not str(variant_id).strip():
        raise ValidationError({"variant_id": ["Variant is required for every line item"]})
    return str(variant_id).strip()


def quantity_of(item, field: str) -> int:
    """A positive whole-number quantity read from ``item[field]``."""
    value = _as_mapping(item).get(field)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({field: [f"{field.replace('_', ' ').capitalize()} must be a whole number"]})
    if value <= 0:
        raise ValidationError({field: [f"{field.replace('_', ' ').capitalize()} must be positive"]})
    return value
