"""Tests for sov_extractor.tables module."""

import pytest

from sov_extractor.tables import read_column_specs, read_items_table, read_reference_table
from sov_extractor.types import (
    AttributeValue,
    ColumnSpec,
    DuplicateAttributeError,
    ExtractionError,
    InvalidAttributePathError,
    RangeNotFoundError,
)
from sov_extractor.workbook import WorkbookReader


class TestReadReferenceTable:
    """Tests for read_reference_table function."""

    def test_headers_from_row_above(self, workbook, name_range):
        """Test header labels come from the row above the range, not inside it."""
        wb, ws = workbook
        ws.append(["Label", "Excel Defined Name"])
        ws.append(["Named Insured", "p_InsuredName"])
        ws.append(["Broker", "p_Broker"])
        name_range(wb, "p_extra_data_fields", ws, "A2:B3")

        rows = read_reference_table(WorkbookReader(wb), "p_extra_data_fields")
        assert rows == [
            {"Label": "Named Insured", "Excel Defined Name": "p_InsuredName"},
            {"Label": "Broker", "Excel Defined Name": "p_Broker"},
        ]

    def test_values_rendered_as_text(self, workbook, name_range):
        wb, ws = workbook
        ws.append(["Name", "Count", "Flag", "Empty"])
        ws.append(["a", 3.0, True, None])
        name_range(wb, "ref", ws, "A2:D2")

        rows = read_reference_table(WorkbookReader(wb), "ref")
        assert rows == [{"Name": "a", "Count": "3", "Flag": "TRUE", "Empty": ""}]

    def test_range_offset_from_sheet_origin(self, workbook, name_range):
        """Test column alignment is relative to the range's first column."""
        wb, ws = workbook
        ws["C4"] = "Col"
        ws["D4"] = "Attribute"
        ws["C5"] = "Locations!A"
        ws["D5"] = "location_name"
        name_range(wb, "ref", ws, "C5:D5")

        rows = read_reference_table(WorkbookReader(wb), "ref")
        assert rows == [{"Col": "Locations!A", "Attribute": "location_name"}]

    def test_missing_range(self, workbook):
        wb, ws = workbook
        with pytest.raises(RangeNotFoundError, match="r_Locations_column_specification"):
            read_reference_table(WorkbookReader(wb), "r_Locations_column_specification")

    def test_range_on_first_row(self, workbook, name_range):
        wb, ws = workbook
        name_range(wb, "ref", ws, "A1:B2")
        with pytest.raises(ExtractionError, match="no header row"):
            read_reference_table(WorkbookReader(wb), "ref")


class TestReadColumnSpecs:
    """Tests for read_column_specs function."""

    def test_specs_in_table_order(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(
            wb,
            [
                ("Locations!B", "tiv[building]", "currency, required"),
                ("Locations!A", "location_name", ""),
            ],
            ["Name", "TIV"],
            [["HQ", 1]],
        )

        specs = read_column_specs(WorkbookReader(wb), "Locations")
        assert specs == [
            ColumnSpec(column="B", attribute="tiv[building]", props=frozenset({"currency", "required"})),
            ColumnSpec(column="A", attribute="location_name"),
        ]

    def test_blank_attribute_rows_ignored(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(
            wb,
            [("Locations!A", "location_name", ""), ("Locations!B", "", "")],
            ["Name", "Notes"],
            [["HQ", "x"]],
        )

        specs = read_column_specs(WorkbookReader(wb), "Locations")
        assert [s.attribute for s in specs] == ["location_name"]

    def test_invalid_column(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(wb, [("Locations!?", "location_name", "")], ["Name"], [["HQ"]])

        with pytest.raises(ExtractionError, match="Invalid column"):
            read_column_specs(WorkbookReader(wb), "Locations")


class TestReadItemsTable:
    """Tests for read_items_table function."""

    def test_builds_one_item_per_row(self, sov_reader):
        items = read_items_table(sov_reader, "Locations")

        assert items == [
            {
                "location_name": AttributeValue(value="HQ"),
                "tiv": {"building": 1000000, "contents": 0},
                "cope": {"roof": {"age": 12}},
                "item_key": "LOC-1",
                "parsing_sheet_name": "Locations",
                "parsing_sheet_row_number": 2,
            },
            {
                "location_name": AttributeValue(value="Warehouse"),
                "tiv": {"building": 500000},
                "item_key": "LOC-2",
                "parsing_sheet_name": "Locations",
                "parsing_sheet_row_number": 3,
            },
        ]

    def test_blank_cells_create_no_keys(self, sov_reader):
        """Test a blank cell writes nothing while zero is kept."""
        first, second = read_items_table(sov_reader, "Locations")
        assert first["tiv"]["contents"] == 0
        assert "contents" not in second["tiv"]
        assert "cope" not in second

    def test_row_defaults_not_overridden(self, workbook, locations_table):
        """Test column specs that set parsing fields keep their values."""
        wb, ws = workbook
        locations_table(
            wb,
            [("Locations!A", "parsing_sheet_name", ""), ("Locations!B", "location_name", "")],
            ["Sheet", "Name"],
            [["SOV Tab", "HQ"]],
        )

        (item,) = read_items_table(WorkbookReader(wb), "Locations")
        assert item["parsing_sheet_name"] == "SOV Tab"
        assert item["parsing_sheet_row_number"] == 2

    def test_blank_row_inside_table_yields_item(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(
            wb, [("Locations!A", "location_name", "")], ["Name"], [["HQ"], [None], ["Depot"]]
        )

        items = read_items_table(WorkbookReader(wb), "Locations")
        assert len(items) == 3
        assert items[1] == {"parsing_sheet_name": "Locations", "parsing_sheet_row_number": 3}

    def test_trailing_blank_rows_trimmed(self, workbook, locations_table):
        """Test only the used part of the table becomes items."""
        wb, ws = workbook
        locations_table(
            wb,
            [("Locations!A", "location_name", ""), ("Locations!B", "tiv[building]", "")],
            ["Name", "TIV"],
            [["HQ", 100], ["Warehouse", 50], [None, None], [None, None]],
        )

        items = read_items_table(WorkbookReader(wb), "Locations")
        assert [item["parsing_sheet_row_number"] for item in items] == [2, 3]

    def test_table_with_no_data_rows(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(wb, [("Locations!A", "location_name", "")], ["Name"], [[None], [None]])

        assert read_items_table(WorkbookReader(wb), "Locations") == []

    def test_whitespace_cell_is_written(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(
            wb,
            [("Locations!A", "location_name", ""), ("Locations!B", "item_key", "")],
            ["Name", "Key"],
            [["HQ", "   "]],
        )

        (item,) = read_items_table(WorkbookReader(wb), "Locations")
        assert item["item_key"] == "   "

    def test_duplicate_mapping_aborts(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(
            wb,
            [("Locations!A", "tiv[building]", ""), ("Locations!B", "tiv[building]", "")],
            ["A", "B"],
            [[1, 2]],
        )

        with pytest.raises(DuplicateAttributeError):
            read_items_table(WorkbookReader(wb), "Locations")

    def test_invalid_attribute_aborts(self, workbook, locations_table):
        wb, ws = workbook
        locations_table(wb, [("Locations!A", "a[b][c][d]", "")], ["A"], [[1]])

        with pytest.raises(InvalidAttributePathError):
            read_items_table(WorkbookReader(wb), "Locations")

    def test_invalid_attribute_on_blank_cell_not_reached(self, workbook, locations_table):
        """Test blank cells are skipped before the attribute path is inspected."""
        wb, ws = workbook
        locations_table(
            wb,
            [("Locations!A", "a[b][c][d]", ""), ("Locations!B", "item_key", "")],
            ["A", "Key"],
            [[None, "LOC-1"]],
        )

        items = read_items_table(WorkbookReader(wb), "Locations")
        assert items[0]["item_key"] == "LOC-1"

    def test_missing_column_specification(self, workbook):
        wb, ws = workbook
        with pytest.raises(RangeNotFoundError):
            read_items_table(WorkbookReader(wb), "Locations")

    def test_idempotent(self, sov_reader):
        assert read_items_table(sov_reader, "Locations") == read_items_table(
            sov_reader, "Locations"
        )
