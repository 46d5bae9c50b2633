"""Read-only workbook access by defined name, table and cell reference.

Everything the extraction core needs from a workbook goes through
``WorkbookReader``: named-range resolution, table lookup, defined-name
enumeration, cell lookup and custom document properties. The core never
touches the file system itself.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING
from zipfile import BadZipFile

from openpyxl.cell.cell import Cell
from openpyxl.utils import range_boundaries
from openpyxl.utils.cell import range_to_tuple

from .types import RangeNotFoundError, SheetRange
from .utils import CellValue, coerce_cell

if TYPE_CHECKING:
    from openpyxl.workbook.workbook import Workbook

SUPPORTED_EXTENSIONS = (".xlsx", ".xlsm", ".xltx", ".xltm")


def load_workbook(filepath: str | Path) -> "Workbook":
    """Load a workbook with cached formula values, with proper error handling.

    Args:
        filepath: Path to Excel file

    Returns:
        openpyxl Workbook

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file format is unsupported or the file is corrupt
    """
    import openpyxl
    from openpyxl.utils.exceptions import InvalidFileException

    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file format: {path.suffix}. Expected .xlsx, .xlsm, .xltx, or .xltm"
        )

    try:
        return openpyxl.load_workbook(path, data_only=True)
    except (InvalidFileException, BadZipFile) as e:
        raise ValueError(f"Invalid or corrupted Excel file: {filepath}") from e


class WorkbookReader:
    """Lookup-only view of an openpyxl workbook.

    One reader wraps one open workbook for one extraction pass. Readers are
    not shared between threads; concurrent passes each open their own file.
    """

    def __init__(self, workbook: "Workbook", path: Path | None = None):
        self.workbook = workbook
        self.path = path

    @classmethod
    def from_path(cls, filepath: str | Path) -> "WorkbookReader":
        """Open ``filepath`` and wrap it."""
        return cls(load_workbook(filepath), Path(filepath))

    # -------------------------------------------------------------------------
    # Defined names
    # -------------------------------------------------------------------------

    def defined_names(self) -> list[tuple[str, str]]:
        """Enumerate (name, target) for workbook-level then sheet-level names.

        Order is the workbook's own enumeration order and is not sorted.
        """
        names = [(name, dn.attr_text) for name, dn in self.workbook.defined_names.items()]
        for ws in self.workbook.worksheets:
            names.extend((name, dn.attr_text) for name, dn in ws.defined_names.items())
        return names

    def _find_defined_name(self, name: str):
        if name in self.workbook.defined_names:
            return self.workbook.defined_names[name]
        for ws in self.workbook.worksheets:
            if name in ws.defined_names:
                return ws.defined_names[name]
        return None

    def named_range(self, name: str) -> SheetRange | None:
        """Resolve a defined name to its first destination, or None.

        Names pointing at #REF! or at a missing sheet resolve to None.
        """
        defined_name = self._find_defined_name(name)
        if defined_name is None:
            return None
        for sheet, coord in defined_name.destinations:
            return self._make_range(sheet, coord)
        return None

    def has_named_range(self, name: str) -> bool:
        """Check whether ``name`` resolves to a range."""
        return self.named_range(name) is not None

    def require_named_range(self, name: str) -> SheetRange:
        """Resolve a defined name or raise RangeNotFoundError."""
        found = self.named_range(name)
        if found is None:
            raise RangeNotFoundError(name)
        return found

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def table_range(self, name: str) -> SheetRange | None:
        """Resolve a worksheet table (ListObject) by name, or None."""
        for ws in self.workbook.worksheets:
            if name in ws.tables:
                return self._make_range(ws.title, ws.tables[name].ref)
        return None

    def table_names(self) -> list[str]:
        """List every table name in the workbook."""
        return [name for ws in self.workbook.worksheets for name in ws.tables.keys()]

    def resolve_table(self, name: str) -> SheetRange:
        """Resolve a table by name, falling back to a defined name.

        Raises:
            RangeNotFoundError: If neither a table nor a defined name matches
        """
        found = self.table_range(name) or self.named_range(name)
        if found is None:
            raise RangeNotFoundError(name)
        return found

    # -------------------------------------------------------------------------
    # Cells
    # -------------------------------------------------------------------------

    def cell(self, sheet: str, row: int, col: int) -> "Cell":
        """Get a single cell by position without growing the sheet.

        ``ws.cell()`` registers every address it is asked for. Addresses past
        the sheet's dimensions get a detached empty cell instead.
        """
        ws = self.workbook[sheet]
        if row > ws.max_row or col > ws.max_column:
            return Cell(ws, row=row, column=col)
        return ws.cell(row=row, column=col)

    def iter_rows(self, cell_range: SheetRange) -> Iterator[tuple["Cell", ...]]:
        """Yield each row of ``cell_range`` as a tuple of cells, top to bottom."""
        for row in range(cell_range.min_row, cell_range.max_row + 1):
            yield tuple(
                self.cell(cell_range.sheet, row, col)
                for col in range(cell_range.min_col, cell_range.max_col + 1)
            )

    def resolve_reference(self, ref: str) -> SheetRange | None:
        """Resolve a defined name or a sheet-qualified address like "Sheet1!$B$2"."""
        found = self.named_range(ref)
        if found is not None:
            return found
        if "!" not in ref:
            return None
        try:
            sheet, (min_col, min_row, max_col, max_row) = range_to_tuple(ref)
        except ValueError:
            return None
        if sheet not in self.workbook.sheetnames or min_col is None or min_row is None:
            return None
        return SheetRange(sheet, min_col, min_row, max_col or min_col, max_row or min_row)

    def cell_value(self, ref: str) -> CellValue:
        """Coerced value of the top-left cell of a reference.

        Raises:
            RangeNotFoundError: If the reference doesn't resolve
            UnsupportedCellTypeError: If the cell's type has no native value
        """
        found = self.resolve_reference(ref)
        if found is None:
            raise RangeNotFoundError(ref)
        return coerce_cell(self.cell(found.sheet, found.min_row, found.min_col))

    # -------------------------------------------------------------------------
    # Document properties
    # -------------------------------------------------------------------------

    def custom_property(self, name: str, default: str | None = None) -> str | None:
        """Read a custom document property as text, or ``default`` if unset."""
        for prop in self.workbook.custom_doc_props.props:
            if prop.name == name and prop.value is not None:
                return str(prop.value)
        return default

    def _make_range(self, sheet: str, coord: str) -> SheetRange | None:
        if sheet not in self.workbook.sheetnames:
            return None
        min_col, min_row, max_col, max_row = range_boundaries(coord)
        ws = self.workbook[sheet]
        # Whole-row / whole-column references leave bounds open
        min_col = min_col or 1
        min_row = min_row or 1
        max_col = max_col or ws.max_column
        max_row = max_row or ws.max_row
        return SheetRange(sheet, min_col, min_row, max_col, max_row)
