"""Preflight check for SOV workbooks - assess extraction readiness before processing.

Example:
    >>> from sov_extractor import preflight
    >>> result = preflight("sov.xlsx")
    >>> if result.can_extract:
    ...     print(f"Ready to extract with {result.confidence:.0%} confidence")
    ... else:
    ...     print(f"Issues: {result.issues}")
"""

from dataclasses import dataclass
from pathlib import Path

from .conventions import get_conventions
from .policy_terms import LAYER_PARTICIPATION_AMOUNT, PolicyTermsReconstructor
from .scanner import PERIL_CAPTION_PATTERN, ZONE_CAPTION_PATTERN, scan_names
from .tables import read_column_specs
from .types import ExtractionError, RangeNotFoundError
from .workbook import WorkbookReader


@dataclass
class PreflightResult:
    """Results of preflight analysis.

    Attributes:
        file_name: Name of the analyzed file
        can_extract: Whether buildings extraction is likely to succeed
        confidence: Confidence score from 0.0 to 1.0
        has_items_table: Whether the items table (or range) exists
        column_specs_found: Number of usable column specifications
        policy_terms_version: Version marker property, if any
        supports_policy_terms: Whether policy terms pass the version and schema gates
        layers_found: Number of layer ranges present before the first gap
        perils_found: Number of peril caption names
        zones_found: Number of zone caption names
        issues: List of detected issues that may affect extraction
        suggestions: List of suggestions for improving extraction results
    """
    file_name: str
    can_extract: bool
    confidence: float
    has_items_table: bool
    column_specs_found: int
    policy_terms_version: str | None
    supports_policy_terms: bool
    layers_found: int
    perils_found: int
    zones_found: int
    issues: list[str]
    suggestions: list[str]


def _count_layers(reader: WorkbookReader, max_layers: int) -> int:
    count = 0
    while count < max_layers and reader.has_named_range(
        LAYER_PARTICIPATION_AMOUNT.format(n=count + 1)
    ):
        count += 1
    return count


def preflight(filepath: str) -> PreflightResult:
    """Run preflight analysis on an SOV workbook.

    Checks, without building any records:
    - Whether the items table and its column specification exist
    - Whether policy terms pass the version and schema gates
    - How many layers, perils and zones the naming conventions reveal

    Args:
        filepath: Path to the Excel file to analyze

    Returns:
        PreflightResult containing analysis results and recommendations.
    """
    reader = WorkbookReader.from_path(filepath)
    conventions = get_conventions()
    table = conventions.items_table

    issues = []
    suggestions = []

    has_items_table = reader.table_range(table) is not None or reader.has_named_range(table)
    if not has_items_table:
        issues.append(f"No {table} table found")
        suggestions.append(f"Define an Excel table (or named range) called {table}")

    column_specs_found = 0
    try:
        column_specs_found = len(read_column_specs(reader, table))
    except RangeNotFoundError:
        issues.append(f"No column specification range r_{table}_column_specification")
        suggestions.append("Add the column specification sheet from the SOV template")
    except ExtractionError as e:
        issues.append(f"Column specification is unreadable: {e}")

    if has_items_table and column_specs_found == 0 and not issues:
        issues.append("Column specification has no attribute rows")

    reconstructor = PolicyTermsReconstructor(reader, conventions)
    version = reconstructor.policy_terms_version()
    supports_policy_terms = False
    if version is None:
        suggestions.append(
            f"Set the '{conventions.version_property}' document property to extract policy terms"
        )
    else:
        try:
            supports_policy_terms = reconstructor.check_version()
            reconstructor.check_schema()
        except ExtractionError as e:
            supports_policy_terms = False
            issues.append(str(e))

    names = [name for name, _ in reader.defined_names()]
    layers_found = _count_layers(reader, conventions.max_layers)
    perils_found = len(scan_names(names, PERIL_CAPTION_PATTERN, conventions.max_peril_names))
    zones_found = len(scan_names(names, ZONE_CAPTION_PATTERN, conventions.max_zone_names))

    # Calculate confidence score
    confidence = 0.0
    weights = {
        'items_table': 0.4,
        'column_specs': 0.4,
        'policy_terms': 0.2,
    }

    if has_items_table:
        confidence += weights['items_table']
    if column_specs_found:
        confidence += weights['column_specs']
    if supports_policy_terms or version is None:
        confidence += weights['policy_terms']

    can_extract = has_items_table and column_specs_found > 0

    return PreflightResult(
        file_name=Path(filepath).name,
        can_extract=can_extract,
        confidence=confidence,
        has_items_table=has_items_table,
        column_specs_found=column_specs_found,
        policy_terms_version=version,
        supports_policy_terms=supports_policy_terms,
        layers_found=layers_found,
        perils_found=perils_found,
        zones_found=zones_found,
        issues=issues,
        suggestions=suggestions,
    )
