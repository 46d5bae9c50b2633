"""Discovery of variable-cardinality structures from defined names.

Perils, zones and other repeating blocks are not listed anywhere in a
workbook; they are found by matching defined names against naming
conventions such as ``p_<token>_Caption``. Matching is case-sensitive and
follows the order names are given in.
"""

import logging
import re
from collections.abc import Iterable

from .types import NameMatch

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# p_<token>_Caption, e.g. p_EQ_Caption
PERIL_CAPTION_PATTERN = re.compile(r"p_([^_]+)_Caption")

# p_<group>_<zone>_Caption, e.g. p_EQ_Zone1_Caption
ZONE_CAPTION_PATTERN = re.compile(r"p_([^_]+)_([^_]+)_Caption")


def scan_names(
    names: Iterable[str],
    pattern: re.Pattern | str,
    limit: int | None = None,
) -> list[NameMatch]:
    """Return the names that fully match ``pattern`` with their captured groups.

    Args:
        names: Defined names in workbook enumeration order
        pattern: Compiled or string regex, matched against the whole name
        limit: Stop after this many matches

    Returns:
        Matches in input order, one per distinct name
    """
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    matches = []
    seen = set()
    for name in names:
        if name in seen:
            continue
        match = regex.fullmatch(name)
        if match is None:
            continue
        seen.add(name)
        matches.append(NameMatch(name=name, groups=match.groups()))
        if limit is not None and len(matches) >= limit:
            logger.warning("Stopped scanning for %s after %d matches", regex.pattern, limit)
            break
    return matches
