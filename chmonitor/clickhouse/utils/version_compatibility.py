"""
ClickHouse Version Compatibility Module

This module provides version-aware functionality to pick the correct SQL
text for the version of the connected ClickHouse cluster. It relies on the
version string fetched by the ClickHouseConnector (SELECT version()).

Versioned queries are declared chronologically (oldest to newest) and the
variant with the highest `since` release that is <= the cluster release is
used. Only major.minor take part in that choice; patch and build numbers are
kept for display.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .query_definition import PlainSql, to_sql_source

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r'^\s*(\d+)')


@dataclass(frozen=True)
class ParsedVersion:
    """A ClickHouse version such as 24.8.4.13."""

    major: int
    minor: int = 0
    patch: int = 0
    build: int = 0
    raw: str = ''

    @property
    def release(self) -> Tuple[int, int]:
        """The (major, minor) pair used to order SQL variants."""
        return (self.major, self.minor)

    def __str__(self):
        return self.raw or f"{self.major}.{self.minor}.{self.patch}.{self.build}"


def _segment_value(segment: str) -> int:
    match = _LEADING_DIGITS.match(segment)
    return int(match.group(1)) if match else 0


def parse_version(value) -> Optional[ParsedVersion]:
    """
    Parses a dotted version string into a ParsedVersion.

    Parsing is best effort: each of the first four segments contributes its
    leading digits, or 0 when it has none ("24.3.1.1-stable" -> 24.3.1.1).

    Args:
        value (str): Version string as reported by version().

    Returns:
        ParsedVersion, or None for empty input or input with no numeric major.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None

    segments = raw.split('.')
    if not _LEADING_DIGITS.match(segments[0]):
        logger.debug(f"Unparsable ClickHouse version string: {raw!r}")
        return None

    numbers = [_segment_value(segment) for segment in segments[:4]]
    numbers += [0] * (4 - len(numbers))
    return ParsedVersion(
        major=numbers[0],
        minor=numbers[1],
        patch=numbers[2],
        build=numbers[3],
        raw=raw,
    )


def compare_versions(a: ParsedVersion, b: ParsedVersion) -> int:
    """
    Compares two versions on major, minor and patch.

    Returns:
        int: -1 if a < b, 0 if equal, 1 if a > b
    """
    left = (a.major, a.minor, a.patch)
    right = (b.major, b.minor, b.patch)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def meets_min_version(version: Optional[ParsedVersion], min_major: int, min_minor: int = 0,
                      min_patch: int = 0) -> bool:
    """Checks whether a version is at least min_major.min_minor.min_patch."""
    if version is None:
        return False
    return compare_versions(version, ParsedVersion(min_major, min_minor, min_patch)) >= 0


def version_matches_range(version: ParsedVersion, min_version: Optional[str] = None,
                          max_version: Optional[str] = None) -> bool:
    """
    Checks a version against a [min_version, max_version) range.

    Bounds that fail to parse are ignored.
    """
    lower = parse_version(min_version)
    if lower is not None and compare_versions(version, lower) < 0:
        return False
    upper = parse_version(max_version)
    if upper is not None and compare_versions(version, upper) >= 0:
        return False
    return True


def _since_release(since: str) -> Tuple[int, int]:
    parsed = parse_version(since)
    if parsed is None:
        logger.warning(f"SQL variant has unparsable 'since' version {since!r}; treating it as 0.0")
        return (0, 0)
    return parsed.release


def select_versioned_sql(sql, version: Optional[ParsedVersion]) -> str:
    """
    Selects the SQL text to run on a ClickHouse cluster of the given version.

    Args:
        sql: A plain SQL string or a list of variants (see to_sql_source).
        version (ParsedVersion | None): Cluster version; None means unknown.

    Returns:
        str: The SQL of the newest variant whose `since` is <= the cluster
        release. Falls back to the oldest variant when the version is unknown
        or older than every variant. Variants sharing a `since` resolve to the
        one declared last.

    Raises:
        ValueError: If `sql` is an empty variant list.
    """
    source = to_sql_source(sql)
    if isinstance(source, PlainSql):
        return source.text

    candidates = [
        (_since_release(variant.since), index, variant)
        for index, variant in enumerate(source.variants)
    ]
    oldest = min(candidates, key=lambda item: (item[0], item[1]))[2]
    if version is None:
        return oldest.sql

    selected = None
    selected_release = None
    for release, _, variant in candidates:
        if release > version.release:
            continue
        if selected is None or release >= selected_release:
            selected = variant
            selected_release = release

    if selected is None:
        logger.debug(f"ClickHouse {version} predates every SQL variant; using oldest ({oldest.since})")
        return oldest.sql
    return selected.sql


def get_sql_for_display(sql) -> str:
    """Returns the newest SQL variant, for showing a query independent of any cluster."""
    source = to_sql_source(sql)
    if isinstance(source, PlainSql):
        return source.text

    newest = None
    newest_release = None
    for variant in source.variants:
        release = _since_release(variant.since)
        if newest is None or release >= newest_release:
            newest = variant
            newest_release = release
    return newest.sql
