"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest
from openpyxl import Workbook
from openpyxl.packaging.custom import StringProperty
from openpyxl.utils.cell import absolute_coordinate, quote_sheetname
from openpyxl.workbook.defined_name import DefinedName
from openpyxl.worksheet.table import Table

from sov_extractor.workbook import WorkbookReader


@pytest.fixture(autouse=True)
def reset_conventions_cache():
    """Reset the conventions cache before each test.

    This ensures tests are isolated and don't depend on
    convention loading state from other tests.
    """
    from sov_extractor.conventions import get_conventions

    get_conventions.cache_clear()

    yield

    get_conventions.cache_clear()


def define_name(wb, name, ws, coord):
    """Bind a workbook-level defined name to ``coord`` on ``ws``."""
    if ":" in coord:
        start, end = coord.split(":")
        ref = f"{absolute_coordinate(start)}:{absolute_coordinate(end)}"
    else:
        ref = absolute_coordinate(coord)
    wb.defined_names[name] = DefinedName(name, attr_text=f"{quote_sheetname(ws.title)}!{ref}")


def set_property(wb, name, value):
    """Add a custom document property."""
    wb.custom_doc_props.append(StringProperty(name=name, value=value))


class NamedCells:
    """Writes values into consecutive cells of a sheet and names each one."""

    def __init__(self, wb, ws):
        self.wb = wb
        self.ws = ws
        self.next_row = 1

    def __call__(self, name, value=None):
        coord = f"B{self.next_row}"
        self.ws[f"A{self.next_row}"] = name
        self.ws[coord] = value
        define_name(self.wb, name, self.ws, coord)
        self.next_row += 1
        return coord


@pytest.fixture
def name_range():
    """Helper that binds a defined name: name_range(wb, name, ws, coord)."""
    return define_name


@pytest.fixture
def locations_table():
    """Helper that adds an items table with its column specification."""
    return add_locations


@pytest.fixture
def workbook():
    """Create a test workbook."""
    wb = Workbook()
    ws = wb.active
    return wb, ws


@pytest.fixture
def terms_workbook():
    """Workbook with a Terms sheet and a helper that adds named cells to it."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Terms"
    return wb, NamedCells(wb, ws)


def add_locations(wb, specs, header, rows, table_name="Locations"):
    """Add a Locations table and its column specification sheet.

    Args:
        specs: (col, attribute, props) rows for the column specification
        header: Header labels for the table's first row
        rows: Data rows
    """
    ws = wb.create_sheet(table_name)
    ws.append(header)
    for row in rows:
        ws.append(row)
    last_col = chr(ord("A") + len(header) - 1)
    ws.add_table(Table(displayName=table_name, ref=f"A1:{last_col}{len(rows) + 1}"))

    spec_ws = wb.create_sheet(f"{table_name} Specs")
    spec_ws.append(["Col", "Attribute", "Props"])
    for spec in specs:
        spec_ws.append(list(spec))
    define_name(
        wb, f"r_{table_name}_column_specification", spec_ws, f"A2:C{len(specs) + 1}"
    )
    return ws


LOCATION_SPECS = [
    ("Locations!A", "location_name", ""),
    ("Locations!B", "tiv[building]", "currency"),
    ("Locations!C", "tiv[contents]", "currency"),
    ("Locations!D", "cope[roof][age]", ""),
    ("Locations!E", "item_key", ""),
]

LOCATION_HEADER = ["Location Name", "Building TIV", "Contents TIV", "Roof Age", "Key"]

LOCATION_ROWS = [
    ["HQ", 1000000, 0, 12, "LOC-1"],
    ["Warehouse", 500000, None, None, "LOC-2"],
]


@pytest.fixture
def sov_workbook():
    """A complete SOV workbook: locations, extra data and versioned policy terms."""
    wb = Workbook()
    terms_ws = wb.active
    terms_ws.title = "Terms"
    cells = NamedCells(wb, terms_ws)

    add_locations(wb, LOCATION_SPECS, LOCATION_HEADER, LOCATION_ROWS)

    set_property(wb, "Ping Policy Terms Version", "v4.0")
    set_property(wb, "Ping Client Name", "Acme Holdings")
    set_property(wb, "Ping Identifier", "SOV-001")

    cells("p_InsuredName", "Acme Holdings LLC")
    cells("p_Notes", "Renewal of expiring program")
    cells("p_TotalTIVLimit", 1500000)

    cells("p_L1Name", "Primary")
    cells("p_L1LL", 1000000)
    cells("p_L1AP", 0)
    cells("p_L1PP", 0.5)
    cells("p_L1PL")
    cells("p_L1PR", 25000)

    cells("p_EQ_Caption", "Earthquake")
    cells("p_EQ_Group", "EQ")
    cells("p_EQSublimit", 250000)

    cells("p_EQ_Zone1_Caption", "Zone 1")
    cells("p_EQ_Zone1_Sublimit", 100000)

    extra_ws = wb.create_sheet("Info")
    extra_ws.append(["Label", "Excel Defined Name"])
    extra_ws.append(["Named Insured", "p_InsuredName"])
    extra_ws.append(["Broker", "Terms!$C$1"])
    define_name(wb, "p_extra_data_fields", extra_ws, "A2:B3")

    return wb


@pytest.fixture
def sov_file(sov_workbook):
    """The SOV workbook saved to a temporary .xlsx file."""
    with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as f:
        sov_workbook.save(f.name)
        temp_path = f.name

    yield temp_path

    Path(temp_path).unlink()


@pytest.fixture
def sov_reader(sov_workbook):
    """Reader over the in-memory SOV workbook."""
    return WorkbookReader(sov_workbook)
