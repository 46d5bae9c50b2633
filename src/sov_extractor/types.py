"""Type definitions for SOV workbook extraction."""

from dataclasses import asdict, dataclass, field
from typing import Any

# =============================================================================
# Errors
# =============================================================================


class ExtractionError(Exception):
    """Base class for all extraction failures."""

    pass


class RangeNotFoundError(ExtractionError):
    """Raised when a required named range, table or cell reference does not resolve."""

    def __init__(self, name: str):
        super().__init__(f"Range {name} not found")
        self.name = name


class InvalidAttributePathError(ExtractionError):
    """Raised for malformed bracket syntax in a column specification attribute."""

    pass


class DuplicateAttributeError(InvalidAttributePathError):
    """Raised when two column specs write the same mapping key of one item."""

    pass


class UnsupportedCellTypeError(ExtractionError):
    """Raised when a cell carries a data type with no native equivalent."""

    def __init__(self, data_type: str, coordinate: str):
        super().__init__(f"Unsupported cell type {data_type!r} at {coordinate}")
        self.data_type = data_type
        self.coordinate = coordinate


class VersionIncompatibilityError(ExtractionError):
    """Raised when the policy terms version property is malformed or too old."""

    pass


class PolicyTermsSchemaError(ExtractionError):
    """Raised when a versioned workbook lacks the first layer's named range."""

    pass


# =============================================================================
# Cell Values
# =============================================================================


@dataclass(frozen=True)
class CellError:
    """An error marker stored in a cell (e.g. "#DIV/0!")."""

    code: str

    def __str__(self) -> str:
        return self.code


@dataclass
class AttributeValue:
    """Wrapper for an "exploded" item attribute.

    Only ``value`` is populated today; provenance fields (confidence, original,
    source, units, comment) will sit alongside it.
    """

    value: Any = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class SheetRange:
    """A rectangular block of cells on one worksheet (1-based, inclusive)."""

    sheet: str
    min_col: int
    min_row: int
    max_col: int
    max_row: int

    @property
    def coord(self) -> str:
        """Sheet-qualified A1 reference, e.g. "'Locations'!A1:D9"."""
        from openpyxl.utils import get_column_letter

        start = f"{get_column_letter(self.min_col)}{self.min_row}"
        end = f"{get_column_letter(self.max_col)}{self.max_row}"
        ref = start if start == end else f"{start}:{end}"
        return f"'{self.sheet}'!{ref}"


# =============================================================================
# Metadata Tables
# =============================================================================


@dataclass(frozen=True)
class ColumnSpec:
    """Maps one worksheet column to an attribute path of an item record.

    Sourced from the ``r_<table>_column_specification`` reference table.
    """

    column: str  # Column letter, e.g. "C" (sheet prefix stripped)
    attribute: str  # Attribute path, e.g. "name", "group[sub]", "group[sub][subsub]"
    props: frozenset[str] = frozenset()

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "ColumnSpec":
        """Create from a reference-table row with Col/Attribute/Props headers."""
        column = row.get("Col", "").split("!")[-1].replace("$", "").strip()
        props = frozenset(p.strip() for p in row.get("Props", "").split(",") if p.strip())
        return cls(column=column, attribute=row.get("Attribute", "").strip(), props=props)


@dataclass(frozen=True)
class NameMatch:
    """A defined name that matched a discovery pattern, with its captured groups."""

    name: str
    groups: tuple[str, ...]


# =============================================================================
# Policy Terms
# =============================================================================


@dataclass
class Participation:
    """Layer participation: exactly one of percent or amount is populated."""

    percent: float | None = None
    amount: float | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class LayerTerms:
    """One tranche of coverage, ordered by its discovery index."""

    name: str
    limit: float | None
    attachment: float
    participation: Participation
    premium: float | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class PerilTerms:
    """Terms shared by every peril mapped to one group label."""

    subperil_types: list[str] = field(default_factory=list)
    sublimit: float | None = None
    min_deductible: float | None = None
    max_deductible: float | None = None
    location_deductible: float | None = None
    location_deductible_type: str | None = None
    bi_days_deductible: float | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ZoneTerms:
    """Terms for one zone of a peril-class group."""

    sublimit: float | None = None
    min_deductible: float | None = None
    max_deductible: float | None = None
    location_deductible: float | None = None
    location_deductible_type: str | None = None
    is_excluded: bool = False

    @property
    def is_applicable(self) -> bool:
        """Whether the zone carries anything beyond defaults."""
        return (
            self.sublimit is not None
            or bool(self.location_deductible)
            or bool(self.min_deductible)
            or bool(self.max_deductible)
            or self.is_excluded
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class PolicyTerms:
    """Aggregate of all policy-level terms reconstructed from a workbook."""

    layer_terms: list[LayerTerms] = field(default_factory=list)
    peril_terms: dict[str, PerilTerms] = field(default_factory=dict)
    zone_terms: dict[str, dict[str, ZoneTerms]] = field(default_factory=dict)
    excluded_subperil_types: list[str] = field(default_factory=list)
    notes: str | None = None
    header: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
