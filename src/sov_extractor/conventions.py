"""Workbook convention configuration.

This module handles the tables and markers that drive extraction:
- Loading conventions from YAML (cached)
- Legacy peril abbreviation resolution
- Simple-field membership for attribute mapping
"""

from collections.abc import Mapping
from dataclasses import dataclass
from functools import cache
from pathlib import Path

import yaml

_CONVENTIONS_FILE = Path(__file__).parent / "conventions.yml"


@dataclass(frozen=True)
class ConventionConfig:
    """Complete convention configuration.

    Loaded from conventions.yml. Frozen so a single cached instance can be
    shared by every extraction pass.
    """

    items_table: str
    extra_data_range: str
    client_name_property: str
    identifier_property: str
    version_property: str
    version_prefix: str
    min_major_version: int
    simple_fields: frozenset[str]
    total_tiv_limit_range: str
    max_layers: int
    peril_exclusion_marker: str
    legacy_peril_abbreviations: Mapping[str, str]
    max_peril_names: int
    zone_exclusion_marker: str
    custom_zone_prefix: str
    max_zone_names: int
    notes_range: str
    policy_header_fields: Mapping[str, str]

    @classmethod
    def from_dict(cls, data: dict) -> "ConventionConfig":
        """Create from the parsed YAML document."""
        metadata = data.get("metadata_properties", {})
        version = data.get("version_gate", {})
        layers = data.get("layers", {})
        perils = data.get("perils", {})
        zones = data.get("zones", {})

        return cls(
            items_table=data.get("items_table", "Locations"),
            extra_data_range=data.get("extra_data_range", "p_extra_data_fields"),
            client_name_property=metadata.get("client_name", "Ping Client Name"),
            identifier_property=metadata.get("identifier", "Ping Identifier"),
            version_property=version.get("property", "Ping Policy Terms Version"),
            version_prefix=version.get("prefix", "v"),
            min_major_version=int(version.get("min_major_version", 4)),
            simple_fields=frozenset(data.get("simple_fields", [])),
            total_tiv_limit_range=layers.get("total_tiv_limit_range", "p_TotalTIVLimit"),
            max_layers=int(layers.get("max_layers", 999)),
            peril_exclusion_marker=perils.get("exclusion_marker", "Excluded"),
            legacy_peril_abbreviations=dict(perils.get("legacy_abbreviations", {})),
            max_peril_names=int(perils.get("max_discovered_names", 999)),
            zone_exclusion_marker=zones.get("exclusion_marker", "Exclude"),
            custom_zone_prefix=zones.get("custom_prefix", "Custom"),
            max_zone_names=int(zones.get("max_discovered_names", 999)),
            notes_range=data.get("notes_range", "p_Notes"),
            policy_header_fields=dict(data.get("policy_header_fields", {})),
        )

    def canonical_peril(self, token: str) -> str:
        """Resolve a peril token through the legacy abbreviation table.

        Tokens not in the table pass through unchanged.
        """
        return self.legacy_peril_abbreviations.get(token, token)


@cache
def get_conventions() -> ConventionConfig:
    """Load convention config from YAML file (cached).

    Returns:
        ConventionConfig built from conventions.yml, or built-in defaults
        if the file is missing.
    """
    if not _CONVENTIONS_FILE.exists():
        return ConventionConfig.from_dict({})

    with open(_CONVENTIONS_FILE, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return ConventionConfig.from_dict(data)
