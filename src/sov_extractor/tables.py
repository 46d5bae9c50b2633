"""Reference tables and item tables.

A reference table is a named range whose header labels sit in the row
directly above it. Column specifications for an item table live in the
reference table ``r_<table>_column_specification``.
"""

import logging
from dataclasses import replace
from typing import Any

from openpyxl.utils import column_index_from_string

from .attributes import apply_column_spec
from .types import ColumnSpec, ExtractionError, SheetRange
from .utils import is_empty, reference_text
from .workbook import WorkbookReader

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

COLUMN_SPEC_RANGE = "r_{table}_column_specification"


def read_reference_table(reader: WorkbookReader, defined_name: str) -> list[dict[str, str]]:
    """Read a named range as a list of header-labelled rows of text.

    Headers come from the row above the range; each range row is aligned to
    them by position. Row order is preserved.

    Raises:
        RangeNotFoundError: If the name doesn't resolve
        ExtractionError: If the range starts on the first row (no header row)
    """
    cell_range = reader.require_named_range(defined_name)
    if cell_range.min_row <= 1:
        raise ExtractionError(f"Range {defined_name} has no header row above {cell_range.coord}")

    headers = [
        reference_text(reader.cell(cell_range.sheet, cell_range.min_row - 1, col).value)
        for col in range(cell_range.min_col, cell_range.max_col + 1)
    ]

    table = []
    for cells in reader.iter_rows(cell_range):
        table.append({header: reference_text(cell.value) for header, cell in zip(headers, cells)})
    return table


def read_column_specs(reader: WorkbookReader, table_name: str) -> list[ColumnSpec]:
    """Read the column specification for ``table_name``, in table order.

    Rows without an attribute are ignored.

    Raises:
        RangeNotFoundError: If the specification range is missing
        ExtractionError: If a spec names an invalid column
    """
    rows = read_reference_table(reader, COLUMN_SPEC_RANGE.format(table=table_name))

    specs = []
    for row in rows:
        spec = ColumnSpec.from_row(row)
        if not spec.attribute:
            continue
        try:
            column_index_from_string(spec.column)
        except ValueError as e:
            raise ExtractionError(
                f"Invalid column {spec.column!r} for attribute {spec.attribute} in {table_name}"
            ) from e
        specs.append(spec)
    return specs


def used_rows(reader: WorkbookReader, cell_range: SheetRange) -> SheetRange:
    """Trim trailing rows with no populated cell from a table range.

    Blank rows inside the table are kept; only the empty tail is dropped.
    """
    last_row = cell_range.min_row - 1
    for cells in reader.iter_rows(cell_range):
        if any(not is_empty(cell.value) for cell in cells):
            last_row = cells[0].row
    return replace(cell_range, max_row=max(last_row, cell_range.min_row))


def read_items_table(reader: WorkbookReader, table_name: str) -> list[dict[str, Any]]:
    """Build one item record per data row of a table.

    Empty cells write nothing, so a key's presence means the source cell was
    populated. ``parsing_sheet_name`` and ``parsing_sheet_row_number`` are
    added unless a column spec already set them.

    Raises:
        RangeNotFoundError: If the table or its column specification is missing
    """
    specs = read_column_specs(reader, table_name)
    cell_range = used_rows(reader, reader.resolve_table(table_name))
    columns = [(spec, column_index_from_string(spec.column)) for spec in specs]

    items = []
    # First row of the table holds headers
    for row in range(cell_range.min_row + 1, cell_range.max_row + 1):
        item: dict[str, Any] = {}
        for spec, col in columns:
            cell = reader.cell(cell_range.sheet, row, col)
            if is_empty(cell.value):
                continue
            item = apply_column_spec(item, spec, cell)

        item.setdefault("parsing_sheet_name", table_name)
        item.setdefault("parsing_sheet_row_number", row)
        items.append(item)

    logger.info("Read %d items from %s", len(items), table_name)
    return items
