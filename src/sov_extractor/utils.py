"""Utility functions for Excel cell operations."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Union

from .types import CellError, UnsupportedCellTypeError

if TYPE_CHECKING:
    from openpyxl.cell.cell import Cell

# Native value of a single cell after coercion
CellValue = Union[None, bool, int, float, Decimal, str, CellError, datetime, date, time, timedelta]

# openpyxl data_type tags
_BOOLEAN = "b"
_NUMERIC = "n"
_ERROR = "e"
_DATE = "d"
_TEXT_TYPES = ("s", "str", "inlineStr")


def cell_address(cell: "Cell") -> str:
    """Sheet-qualified address of a cell, e.g. "'Locations'!C7"."""
    return f"'{cell.parent.title}'!{cell.coordinate}"


def coerce_cell(cell: "Cell") -> CellValue:
    """Convert a cell's stored value into a native Python value by its type tag.

    Durations (timedelta) and times share openpyxl's date tag and are returned
    as-is alongside datetimes.

    Raises:
        UnsupportedCellTypeError: For any tag outside the known set, such as an
            un-evaluated formula.
    """
    value = cell.value
    if value is None:
        return None

    data_type = cell.data_type
    if data_type == _BOOLEAN:
        return bool(value)
    if data_type == _NUMERIC and isinstance(value, int | float | Decimal):
        return value
    if data_type in _TEXT_TYPES:
        return str(value)
    if data_type == _ERROR:
        return CellError(str(value))
    if data_type == _DATE and isinstance(value, datetime | date | time | timedelta):
        return value

    raise UnsupportedCellTypeError(data_type, cell_address(cell))


def is_empty(value: Any) -> bool:
    """Check if a cell holds nothing at all.

    Whitespace-only text is content: an items-table cell holding "  " is
    still written to its item.
    """
    return value is None or value == ""


def is_blank(value: Any) -> bool:
    """Check if a coerced field value counts as "not populated"."""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def reference_text(value: Any) -> str:
    """Render a cell value the way it reads in a metadata table."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    return str(value)


def parse_number(value: Any) -> int | float | None:
    """Parse a numeric field value.

    Accepts numbers and numeric strings such as "1,000,000", "$250,000" or
    "25%" (returned as 0.25).

    Returns:
        The number, or None for a blank value

    Raises:
        ValueError: If the value is populated but not numeric
    """
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a number: {value!r}")
    if isinstance(value, int | float):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Not a number: {value!r}")

    cleaned = value.strip().replace(",", "").replace("$", "")
    if cleaned.endswith("%"):
        return float(cleaned[:-1]) / 100
    number = float(cleaned)
    if number.is_integer() and "." not in cleaned and "e" not in cleaned.lower():
        return int(number)
    return number


def parse_text(value: Any) -> str | None:
    """Parse a text field value, returning None when blank."""
    if is_blank(value):
        return None
    return reference_text(value).strip()


_TRUE_TEXT = ("true", "yes", "y", "1")
_FALSE_TEXT = ("false", "no", "n", "0")


def parse_flag(value: Any) -> bool | None:
    """Parse a yes/no field value.

    Raises:
        ValueError: If the value is populated but not a recognizable flag
    """
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    text = reference_text(value).strip().lower()
    if text in _TRUE_TEXT:
        return True
    if text in _FALSE_TEXT:
        return False
    raise ValueError(f"Not a yes/no value: {value!r}")
