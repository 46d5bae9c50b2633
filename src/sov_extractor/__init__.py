"""SOV Extractor - Extract locations and policy terms from SOV Excel workbooks.

Workbooks describe their own schema with named ranges, tables and metadata
rows: a column specification maps each column of the Locations table to an
attribute path, and ``p_*`` defined names carry layer, peril and zone terms.

Example:
    >>> from sov_extractor import extract_sov
    >>> record = extract_sov("sov.xlsx")
    >>> for building in record["buildings"]:
    ...     print(building["parsing_sheet_row_number"])

Preflight check:
    >>> from sov_extractor import preflight
    >>> result = preflight("sov.xlsx")
    >>> if result.can_extract:
    ...     record = extract_sov("sov.xlsx")
"""

from .extractor import extract_sov, extract_workbook, to_json
from .policy_terms import PolicyTermsReconstructor, extract_policy_terms
from .preflight import PreflightResult, preflight
from .tables import read_items_table, read_reference_table
from .types import (
    AttributeValue,
    CellError,
    ColumnSpec,
    DuplicateAttributeError,
    ExtractionError,
    InvalidAttributePathError,
    LayerTerms,
    Participation,
    PerilTerms,
    PolicyTerms,
    PolicyTermsSchemaError,
    RangeNotFoundError,
    UnsupportedCellTypeError,
    VersionIncompatibilityError,
    ZoneTerms,
)
from .workbook import WorkbookReader, load_workbook

__version__ = "0.1.0"

__all__ = [
    # Extraction
    "extract_sov",
    "extract_workbook",
    "extract_policy_terms",
    "read_items_table",
    "read_reference_table",
    "to_json",
    "PolicyTermsReconstructor",
    "WorkbookReader",
    "load_workbook",
    # Preflight
    "preflight",
    "PreflightResult",
    # Types
    "AttributeValue",
    "CellError",
    "ColumnSpec",
    "LayerTerms",
    "Participation",
    "PerilTerms",
    "PolicyTerms",
    "ZoneTerms",
    # Errors
    "ExtractionError",
    "RangeNotFoundError",
    "InvalidAttributePathError",
    "DuplicateAttributeError",
    "UnsupportedCellTypeError",
    "VersionIncompatibilityError",
    "PolicyTermsSchemaError",
]
