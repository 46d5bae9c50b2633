"""Policy terms reconstruction from named-range conventions.

Layers, perils and zones have no explicit count in a workbook. Each family
is rebuilt from the presence of defined names:

- Layers: ``p_L{n}PL`` for n = 1, 2, ... until the first gap
- Perils: every ``p_<token>_Caption``, merged by ``p_<token>_Group`` label
- Zones: every ``p_<group>_<zone>_Caption``, kept when applicable

Field reads are forgiving: a missing range or an unparseable number is
treated as absent. Only range presence stops a discovery loop.
"""

import logging
from typing import Any

from .conventions import ConventionConfig, get_conventions
from .scanner import PERIL_CAPTION_PATTERN, ZONE_CAPTION_PATTERN, scan_names
from .types import (
    LayerTerms,
    Participation,
    PerilTerms,
    PolicyTerms,
    PolicyTermsSchemaError,
    VersionIncompatibilityError,
    ZoneTerms,
)
from .utils import CellValue, coerce_cell, is_blank, parse_flag, parse_number, parse_text
from .workbook import WorkbookReader

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# =============================================================================
# Range Name Families
# =============================================================================

LAYER_PARTICIPATION_AMOUNT = "p_L{n}PL"
LAYER_ATTACHMENT = "p_L{n}AP"
LAYER_LIMIT = "p_L{n}LL"
LAYER_PARTICIPATION_PERCENT = "p_L{n}PP"
LAYER_NAME = "p_L{n}Name"
LAYER_PREMIUM = "p_L{n}PR"

PERIL_GROUP = "p_{token}_Group"
PERIL_SUBLIMIT = ("p_{token}Sublimit", "p_{token}SubLimit")
PERIL_MIN_DEDUCTIBLE = "p_{token}Ded"
PERIL_MAX_DEDUCTIBLE = "p_{token}MaxDed"
PERIL_LOCATION_DEDUCTIBLE = "p_{token}PerLocDed"
PERIL_LOCATION_DEDUCTIBLE_TYPE = "p_{token}PerLocDedType"
PERIL_BI_DAYS_DEDUCTIBLE = "p_{token}BIDed"

ZONE_PREFIX = "p_{group}_{zone}_"
ZONE_CAPTION = "Caption"
ZONE_SUBLIMIT = "Sublimit"
ZONE_MIN_DEDUCTIBLE = "Ded"
ZONE_MAX_DEDUCTIBLE = "MaxDed"
ZONE_LOCATION_DEDUCTIBLE = "PerLocDed"
ZONE_LOCATION_DEDUCTIBLE_TYPE = "PerLocDedType"
ZONE_INCLUDE = "Include"

DEFAULT_ATTACHMENT = 0
DEFAULT_PARTICIPATION_PERCENT = 1.0

# Header fields holding a yes/no value
FLAG_HEADER_FIELDS = frozenset({"include_surge_as_sublimit"})


def parse_major_version(version: str, prefix: str) -> int:
    """Parse the major number of a version marker like "v4.1".

    Raises:
        VersionIncompatibilityError: If the prefix is missing or the major
            part isn't an integer
    """
    if not version.startswith(prefix):
        raise VersionIncompatibilityError(
            f"Policy terms version {version!r} does not start with {prefix!r}"
        )
    major = version[len(prefix):].split(".")[0].strip()
    try:
        return int(major)
    except ValueError as e:
        raise VersionIncompatibilityError(
            f"Policy terms version {version!r} has no major version number"
        ) from e


class PolicyTermsReconstructor:
    """Rebuilds layer, peril and zone terms for one workbook."""

    def __init__(self, reader: WorkbookReader, conventions: ConventionConfig | None = None):
        self.reader = reader
        self.conventions = conventions or get_conventions()

    # -------------------------------------------------------------------------
    # Field reads
    # -------------------------------------------------------------------------

    def _value(self, name: str) -> CellValue:
        cell_range = self.reader.named_range(name)
        if cell_range is None:
            return None
        return coerce_cell(self.reader.cell(cell_range.sheet, cell_range.min_row, cell_range.min_col))

    def _number(self, *names: str) -> int | float | None:
        """First present range among ``names``, parsed as a number."""
        for name in names:
            if not self.reader.has_named_range(name):
                continue
            value = self._value(name)
            try:
                return parse_number(value)
            except ValueError:
                logger.debug("Treating %s as absent: not a number (%r)", name, value)
                return None
        return None

    def _text(self, name: str) -> str | None:
        return parse_text(self._value(name))

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def policy_terms_version(self) -> str | None:
        """The version marker property, or None if unset."""
        return self.reader.custom_property(self.conventions.version_property)

    def check_version(self) -> bool:
        """Check the version gate.

        Returns:
            False if the workbook carries no version marker, True if the
            marker is supported

        Raises:
            VersionIncompatibilityError: If the marker is malformed or too old
        """
        version = self.policy_terms_version()
        if version is None:
            return False

        major = parse_major_version(version.strip(), self.conventions.version_prefix)
        if major < self.conventions.min_major_version:
            raise VersionIncompatibilityError(
                f"Policy terms version {version!r} is older than "
                f"{self.conventions.version_prefix}{self.conventions.min_major_version}"
            )
        return True

    def check_schema(self) -> None:
        """Require the first layer's range.

        Raises:
            PolicyTermsSchemaError: If ``p_L1PL`` is missing
        """
        anchor = LAYER_PARTICIPATION_AMOUNT.format(n=1)
        if not self.reader.has_named_range(anchor):
            raise PolicyTermsSchemaError(f"Range {anchor} not found; workbook has no policy terms")

    # -------------------------------------------------------------------------
    # Layers
    # -------------------------------------------------------------------------

    def read_layers(self) -> list[LayerTerms]:
        """Read layers 1, 2, ... until the first missing ``p_L{n}PL`` range.

        A layer whose participation amount works out to nothing is skipped,
        but the scan carries on to the next index.
        """
        total_tiv_limit = self._number(self.conventions.total_tiv_limit_range)

        layers = []
        for counter in range(1, self.conventions.max_layers + 1):
            if not self.reader.has_named_range(LAYER_PARTICIPATION_AMOUNT.format(n=counter)):
                break

            name = self._text(LAYER_NAME.format(n=counter)) or str(counter)
            limit = self._number(LAYER_LIMIT.format(n=counter))
            if limit is None:
                limit = total_tiv_limit
            attachment = self._number(LAYER_ATTACHMENT.format(n=counter))
            if attachment is None:
                attachment = DEFAULT_ATTACHMENT
            percent = self._number(LAYER_PARTICIPATION_PERCENT.format(n=counter))
            if percent is None:
                percent = DEFAULT_PARTICIPATION_PERCENT
            amount = self._number(LAYER_PARTICIPATION_AMOUNT.format(n=counter))

            if amount is not None:
                calculated_amount = amount
            elif limit is not None:
                calculated_amount = (limit - max(0, attachment)) * percent
            else:
                calculated_amount = None

            if not calculated_amount:
                logger.debug("Skipping layer %d: no participation amount", counter)
                continue

            if amount is not None:
                participation = Participation(amount=amount)
            else:
                participation = Participation(percent=percent)

            layers.append(
                LayerTerms(
                    name=name,
                    limit=limit,
                    attachment=attachment,
                    participation=participation,
                    premium=self._number(LAYER_PREMIUM.format(n=counter)),
                )
            )
        return layers

    # -------------------------------------------------------------------------
    # Perils
    # -------------------------------------------------------------------------

    def read_perils(self, names: list[str]) -> tuple[dict[str, PerilTerms], list[str]]:
        """Group discovered perils by their group label.

        Args:
            names: Defined names to scan

        Returns:
            Tuple of (peril terms by group label, excluded peril identifiers)
        """
        peril_terms: dict[str, PerilTerms] = {}
        excluded: list[str] = []

        for match in scan_names(names, PERIL_CAPTION_PATTERN, self.conventions.max_peril_names):
            (token,) = match.groups
            peril = self.conventions.canonical_peril(token)

            group_range = PERIL_GROUP.format(token=token)
            if not self.reader.has_named_range(group_range):
                logger.debug("Skipping peril %s: %s not found", token, group_range)
                continue

            group = self._text(group_range)
            if group is None or group == self.conventions.peril_exclusion_marker:
                if peril not in excluded:
                    excluded.append(peril)
                continue

            terms = peril_terms.setdefault(group, PerilTerms())
            if peril not in terms.subperil_types:
                terms.subperil_types.append(peril)

            # Fields only ever gain values; a blank cell never clears one
            updates = {
                "sublimit": self._number(*(n.format(token=token) for n in PERIL_SUBLIMIT)),
                "min_deductible": self._number(PERIL_MIN_DEDUCTIBLE.format(token=token)),
                "max_deductible": self._number(PERIL_MAX_DEDUCTIBLE.format(token=token)),
                "location_deductible": self._number(PERIL_LOCATION_DEDUCTIBLE.format(token=token)),
                "location_deductible_type": self._text(
                    PERIL_LOCATION_DEDUCTIBLE_TYPE.format(token=token)
                ),
                "bi_days_deductible": self._number(PERIL_BI_DAYS_DEDUCTIBLE.format(token=token)),
            }
            for field_name, value in updates.items():
                if value is not None:
                    setattr(terms, field_name, value)

        return peril_terms, excluded

    # -------------------------------------------------------------------------
    # Zones
    # -------------------------------------------------------------------------

    def read_zone(self, group: str, zone: str) -> ZoneTerms:
        """Read one zone's terms from its ``p_<group>_<zone>_*`` ranges."""
        prefix = ZONE_PREFIX.format(group=group, zone=zone)
        return ZoneTerms(
            sublimit=self._number(prefix + ZONE_SUBLIMIT),
            min_deductible=self._number(prefix + ZONE_MIN_DEDUCTIBLE),
            max_deductible=self._number(prefix + ZONE_MAX_DEDUCTIBLE),
            location_deductible=self._number(prefix + ZONE_LOCATION_DEDUCTIBLE),
            location_deductible_type=self._text(prefix + ZONE_LOCATION_DEDUCTIBLE_TYPE),
            is_excluded=self._text(prefix + ZONE_INCLUDE) == self.conventions.zone_exclusion_marker,
        )

    def read_zones(self, names: list[str]) -> dict[str, dict[str, ZoneTerms]]:
        """Read applicable zone terms, keyed by group then zone.

        Custom zones take their key from the zone's caption cell.
        """
        zone_terms: dict[str, dict[str, ZoneTerms]] = {}

        for match in scan_names(names, ZONE_CAPTION_PATTERN, self.conventions.max_zone_names):
            group, zone = match.groups
            zones = zone_terms.setdefault(group, {})

            terms = self.read_zone(group, zone)
            if not terms.is_applicable:
                logger.debug("Dropping zone %s/%s: nothing applicable", group, zone)
                continue

            key = zone
            if zone.startswith(self.conventions.custom_zone_prefix):
                prefix = ZONE_PREFIX.format(group=group, zone=zone)
                key = self._text(prefix + ZONE_CAPTION) or zone
            zones[key] = terms

        return zone_terms

    # -------------------------------------------------------------------------
    # Header
    # -------------------------------------------------------------------------

    def read_header(self) -> dict[str, Any]:
        """Read policy header fields that are present and populated.

        Yes/no fields are parsed to booleans; an unrecognized value is left out.
        """
        header = {}
        for key, name in self.conventions.policy_header_fields.items():
            value = self._value(name)
            if is_blank(value):
                continue
            if key in FLAG_HEADER_FIELDS:
                try:
                    value = parse_flag(value)
                except ValueError:
                    logger.debug("Treating %s as absent: not a yes/no value (%r)", name, value)
                    continue
            header[key] = value
        return header

    def reconstruct(self) -> PolicyTerms | None:
        """Rebuild all policy terms.

        Returns:
            PolicyTerms, or None if the workbook has no version marker

        Raises:
            VersionIncompatibilityError: If the version marker is unsupported
            PolicyTermsSchemaError: If the first layer's range is missing
        """
        if not self.check_version():
            logger.info("No policy terms version marker; skipping policy terms")
            return None
        self.check_schema()

        names = [name for name, _ in self.reader.defined_names()]

        layers = self.read_layers()
        perils, excluded = self.read_perils(names)
        zones = self.read_zones(names)

        logger.info(
            "Reconstructed %d layers, %d peril groups, %d zone groups",
            len(layers),
            len(perils),
            len(zones),
        )

        return PolicyTerms(
            layer_terms=layers,
            peril_terms=perils,
            zone_terms=zones,
            excluded_subperil_types=excluded,
            notes=self._text(self.conventions.notes_range),
            header=self.read_header(),
        )


def extract_policy_terms(reader: WorkbookReader) -> PolicyTerms | None:
    """Reconstruct policy terms for an open workbook (None when unversioned)."""
    return PolicyTermsReconstructor(reader).reconstruct()
