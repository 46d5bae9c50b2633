"""Attribute-path mapping of cell values into item records.

An attribute path places a value inside an item:
- ``name`` in the simple-field set: stored directly (``item["name"] = v``)
- ``group[sub]``: one-level mapping (``item["group"]["sub"] = v``)
- ``group[sub][subsub]``: two-level mapping
- any other bare ``name``: wrapped scalar (``item["name"] = AttributeValue(v)``)

Updates are functional: each call returns a new item and leaves the input
untouched.
"""

import logging
import re
from collections.abc import Collection
from typing import TYPE_CHECKING, Any

from .conventions import get_conventions
from .types import AttributeValue, ColumnSpec, DuplicateAttributeError, InvalidAttributePathError
from .utils import cell_address, coerce_cell

if TYPE_CHECKING:
    from openpyxl.cell.cell import Cell

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_BRACKETS = re.compile(r"[\[\]]")

# Root plus at most two bracket segments
MAX_PATH_SEGMENTS = 2


def parse_attribute_path(attribute: str) -> tuple[str, ...]:
    """Split a bracketed attribute into (root, segment[, segment]).

    Examples:
        "limits[building]" -> ("limits", "building")
        "cope[roof][age]" -> ("cope", "roof", "age")

    Raises:
        InvalidAttributePathError: With no segment ("name[", "name[]") or more
            than two segments
    """
    parts = tuple(part for part in _BRACKETS.split(attribute) if part)
    if len(parts) < 2 or len(parts) > MAX_PATH_SEGMENTS + 1:
        raise InvalidAttributePathError(f"Invalid attribute: {attribute}")
    return parts


def _existing_mapping(item: dict, root: str, attribute: str) -> dict:
    existing = item.get(root)
    if existing is None:
        return {}
    if not isinstance(existing, dict):
        raise InvalidAttributePathError(
            f"Attribute {attribute} conflicts with non-mapping value at {root}"
        )
    return existing


def set_attr(
    item: dict[str, Any],
    attribute: str,
    value: Any,
    simple_fields: Collection[str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``item`` with ``value`` placed at ``attribute``.

    Args:
        item: Current item record (not modified)
        attribute: Attribute path from a column spec
        value: Coerced cell value
        simple_fields: Names stored directly; defaults to the configured set

    Raises:
        InvalidAttributePathError: For malformed paths or shape conflicts
        DuplicateAttributeError: If a mapping key is written twice
    """
    if simple_fields is None:
        simple_fields = get_conventions().simple_fields

    updated = dict(item)

    # Simple fields: later specs overwrite earlier ones
    if attribute in simple_fields:
        updated[attribute] = value
        return updated

    if "[" in attribute:
        root, *segments = parse_attribute_path(attribute)
        mapping = dict(_existing_mapping(item, root, attribute))

        if len(segments) == 1:
            (key,) = segments
            if key in mapping:
                raise DuplicateAttributeError(f"Duplicate attribute: {attribute}")
            mapping[key] = value
        else:
            outer_key, inner_key = segments
            inner = mapping.get(outer_key)
            if inner is not None and not isinstance(inner, dict):
                raise InvalidAttributePathError(
                    f"Attribute {attribute} conflicts with non-mapping value at {root}[{outer_key}]"
                )
            inner = dict(inner or {})
            if inner_key in inner:
                raise DuplicateAttributeError(f"Duplicate attribute: {attribute}")
            inner[inner_key] = value
            mapping[outer_key] = inner

        updated[root] = mapping
        return updated

    existing = item.get(attribute)
    if existing is not None and not isinstance(existing, AttributeValue):
        raise InvalidAttributePathError(
            f"Attribute {attribute} conflicts with existing mapping value"
        )
    updated[attribute] = AttributeValue(value=value)
    return updated


def apply_column_spec(item: dict[str, Any], spec: ColumnSpec, cell: "Cell") -> dict[str, Any]:
    """Coerce ``cell`` and route it into ``item`` by the column spec's attribute path.

    Any failure is logged with the attribute and cell address, then re-raised.
    """
    try:
        return set_attr(item, spec.attribute, coerce_cell(cell))
    except Exception:
        logger.warning(
            "Error reading attribute %s from cell %s", spec.attribute, cell_address(cell)
        )
        raise
