"""Whole-workbook extraction.

Combines the pieces of a convention-driven SOV workbook into one record:
metadata from document properties, extra data fields, the buildings list
from the items table, and policy terms.
"""

import json
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

from .conventions import get_conventions
from .policy_terms import PolicyTermsReconstructor
from .tables import read_items_table, read_reference_table
from .types import (
    AttributeValue,
    CellError,
    PolicyTerms,
    PolicyTermsSchemaError,
    RangeNotFoundError,
    VersionIncompatibilityError,
)
from .utils import is_blank
from .workbook import WorkbookReader

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DOCUMENT_TYPE = "SOV"
NOT_AVAILABLE = "n/a"

# Extra data reference table headers
EXTRA_DATA_LABEL = "Label"
EXTRA_DATA_REFERENCE = "Excel Defined Name"


# =============================================================================
# Record Sections
# =============================================================================


def read_metadata(reader: WorkbookReader, timestamp: datetime | None = None) -> dict[str, Any]:
    """Describe the source workbook from its custom document properties."""
    conventions = get_conventions()
    path = reader.path
    return {
        "client_name": reader.custom_property(conventions.client_name_property, NOT_AVAILABLE),
        "sov_id": reader.custom_property(conventions.identifier_property, NOT_AVAILABLE),
        "timestamp": (timestamp or datetime.now()).isoformat(timespec="seconds"),
        "name": path.name if path else None,
        "full_name": str(path.resolve()) if path else None,
        "document_type": DOCUMENT_TYPE,
        "policy_terms_version": reader.custom_property(conventions.version_property),
    }


def read_extra_data(reader: WorkbookReader) -> dict[str, Any]:
    """Read labelled single-cell values listed in the extra data table.

    A workbook without the table yields an empty dict. Rows whose reference
    doesn't resolve are logged and skipped; blank values are left out.
    """
    range_name = get_conventions().extra_data_range
    try:
        rows = read_reference_table(reader, range_name)
    except RangeNotFoundError:
        logger.info("No %s table; extra data is empty", range_name)
        return {}

    extra_data = {}
    for row in rows:
        label = row.get(EXTRA_DATA_LABEL, "")
        reference = row.get(EXTRA_DATA_REFERENCE, "")
        if not label or not reference:
            continue
        try:
            value = reader.cell_value(reference)
        except RangeNotFoundError:
            logger.warning("Error reading extra data field %s from %s", label, reference)
            continue
        if is_blank(value):
            continue
        extra_data[label] = value
    return extra_data


def read_policy_terms(reader: WorkbookReader, strict: bool = False) -> PolicyTerms | None:
    """Reconstruct policy terms.

    Args:
        reader: Open workbook
        strict: Propagate version and schema failures instead of logging them
            and returning None

    Raises:
        VersionIncompatibilityError: In strict mode, for an unsupported version
        PolicyTermsSchemaError: In strict mode, when the layer-1 range is missing
    """
    try:
        return PolicyTermsReconstructor(reader).reconstruct()
    except (VersionIncompatibilityError, PolicyTermsSchemaError) as e:
        if strict:
            raise
        logger.error("Skipping policy terms: %s", e)
        return None


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


def policy_terms_to_dict(terms: PolicyTerms | None) -> dict | None:
    """Convert policy terms to a dict, leaving out unset fields.

    Header fields (policy number, insured name, ...) sit at the top level,
    ahead of the layer, peril and zone terms.
    """
    if terms is None:
        return None
    data = terms.to_dict()
    header = data.pop("header")
    return _drop_none({**header, **data})


# =============================================================================
# Serialization
# =============================================================================


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime | date | time):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, CellError):
        return obj.code
    if isinstance(obj, AttributeValue):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def to_json(record: dict[str, Any], indent: int | None = 2) -> str:
    """Serialize an extraction record to JSON text."""
    return json.dumps(record, default=_json_default, indent=indent)


def to_plain(record: Any) -> Any:
    """Convert a record to plain JSON-compatible Python values."""
    return json.loads(to_json(record, indent=None))


# =============================================================================
# Public API
# =============================================================================


def extract_workbook(
    reader: WorkbookReader,
    strict: bool = False,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Extract the full record from an open workbook.

    Args:
        reader: Open workbook
        strict: Propagate policy terms version/schema failures (default False:
            they are logged and policy_terms is None)
        timestamp: Extraction time recorded in metadata (defaults to now)

    Returns:
        Dict with id, source_filename, num_buildings, metadata, extra_data,
        buildings and policy_terms
    """
    metadata = read_metadata(reader, timestamp)
    buildings = read_items_table(reader, get_conventions().items_table)
    policy_terms = read_policy_terms(reader, strict=strict)

    logger.info("Extracted %d buildings", len(buildings))

    return {
        "id": metadata["sov_id"],
        "source_filename": metadata["name"],
        "num_buildings": len(buildings),
        "metadata": metadata,
        "extra_data": read_extra_data(reader),
        "buildings": buildings,
        "policy_terms": policy_terms_to_dict(policy_terms),
    }


def extract_sov(filepath: str | Path, strict: bool = False) -> dict[str, Any]:
    """Extract buildings, extra data and policy terms from an SOV workbook.

    This is the main entry point for the library.

    Args:
        filepath: Path to the Excel file (.xlsx)
        strict: Propagate policy terms version/schema failures (default False:
            they are logged and policy_terms is None)

    Returns:
        Extraction record (see ``extract_workbook``)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file format is invalid
        ExtractionError: For missing tables or malformed column specifications,
            or for policy terms failures in strict mode

    Example:
        >>> from sov_extractor import extract_sov
        >>> record = extract_sov("sov.xlsx")
        >>> print(record["num_buildings"])
    """
    reader = WorkbookReader.from_path(filepath)
    return extract_workbook(reader, strict=strict)
