"""
OS version string helpers.

OS versions look like semver with an optional variant suffix
(``2.88.4+rev1.prod``, ``2021.10.1.dev``). The suffix is not valid semver, so
it is always split off before any parsing or range matching.
"""

import re
from typing import List, Optional, Sequence, Tuple

import semantic_version

from osfetch.constants import (
    DEFAULT_VARIANT_SUFFIX,
    ESR_VERSION_PATTERN,
    VARIANT_PROD,
    VARIANT_SUFFIXES,
    VERSION_DEFAULT,
    VERSION_LATEST,
    VERSION_RECOMMENDED,
)
from osfetch.log_utils import logger

from .interfaces import OsVersion

_ESR_RX = re.compile(ESR_VERSION_PATTERN)


def strip_v_prefix(version: str) -> str:
    """Remove a single leading 'v' (only one; 'vv1' becomes 'v1')."""
    if version.startswith("v"):
        return version[1:]
    return version


def has_variant_suffix(version: str) -> bool:
    return version.endswith(VARIANT_SUFFIXES)


def apply_variant_suffix(version: str) -> str:
    """
    Append '.prod' unless the version already ends with '.dev' or '.prod'.

    Applied to every string it is given, including keywords such as 'latest',
    which become 'latest.prod'.
    """
    if has_variant_suffix(version):
        return version
    return f"{version}{DEFAULT_VARIANT_SUFFIX}"


def split_variant(version: str) -> Tuple[str, Optional[str]]:
    """
    Split ``'2.60.1+rev1.dev'`` into ``('2.60.1+rev1', 'dev')``.

    Returns:
        Tuple[str, Optional[str]]: The base version and the variant name, or None when there is no suffix.
    """
    for suffix in VARIANT_SUFFIXES:
        if version.endswith(suffix):
            return version[: -len(suffix)], suffix[1:]
    return version, None


def with_requested_variant(raw_version: str, requested: str) -> str:
    """
    Give a catalog version the variant of the request when it carries none.

    ``with_requested_variant('2.88.4', '^2.80.0.dev')`` is ``'2.88.4.dev'``;
    a request without a suffix selects prod.
    """
    if has_variant_suffix(raw_version):
        return raw_version
    variant = split_variant(requested.strip())[1] or VARIANT_PROD
    return f"{raw_version}.{variant}"


def is_esr_version(version: Optional[str]) -> bool:
    """
    Return True for ESR versions, which use a year-based scheme (``2021.10.1``).

    A leading 'v' and a variant suffix are ignored.
    """
    if not version:
        return False
    base, _ = split_variant(strip_v_prefix(version.strip()))
    return bool(_ESR_RX.match(base))


def parse_version(version: str) -> Optional[semantic_version.Version]:
    """Parse an OS version (prefix and variant tolerated) into a semantic_version.Version, or None."""
    base, _ = split_variant(strip_v_prefix(version))
    try:
        return semantic_version.Version(base)
    except ValueError:
        return None


def sort_newest_first(versions: Sequence[OsVersion]) -> List[OsVersion]:
    """
    Order versions newest first; versions that are not valid semver sort last.

    The sort is stable, so entries that compare equal keep their catalog order.
    """
    parsed = [(parse_version(v.raw_version), v) for v in versions]
    valid = [item for item in parsed if item[0] is not None]
    invalid = [item[1] for item in parsed if item[0] is None]
    valid.sort(key=lambda item: item[0], reverse=True)
    return [item[1] for item in valid] + invalid


def _is_prerelease(version: OsVersion) -> bool:
    if version.is_prerelease:
        return True
    parsed = parse_version(version.raw_version)
    return bool(parsed is not None and parsed.prerelease)


def _match_range(
    spec_str: str, candidates: Sequence[OsVersion]
) -> Optional[OsVersion]:
    try:
        spec = semantic_version.NpmSpec(spec_str)
    except ValueError:
        logger.debug(f"'{spec_str}' is neither a known version nor a semver range")
        return None

    best: Optional[Tuple[semantic_version.Version, OsVersion]] = None
    for candidate in candidates:
        if _is_prerelease(candidate):
            continue
        parsed = parse_version(candidate.raw_version)
        if parsed is None or not spec.match(parsed):
            continue
        if best is None or parsed > best[0]:
            best = (parsed, candidate)
    return best[1] if best else None


def max_satisfying_version(
    version_or_range: str, versions: Sequence[OsVersion]
) -> Optional[OsVersion]:
    """
    Pick the catalog entry that best satisfies a version token.

    The token may carry a variant suffix (default variant: prod) and may be an
    exact version, an npm-style semver range, or one of the keywords:
    'latest' (newest, pre-releases included), 'default' (recommended, else
    newest stable, else newest) or 'recommended' (recommended, else newest
    stable, never a pre-release).

    Parameters:
        version_or_range (str): The token to resolve.
        versions (Sequence[OsVersion]): Catalog entries, any order.

    Returns:
        Optional[OsVersion]: The chosen entry, or None when nothing matches.
    """
    base, variant = split_variant(version_or_range.strip())
    base = strip_v_prefix(base)
    variant = variant or VARIANT_PROD

    # Unified releases carry no variant and serve both flavours
    candidates = sort_newest_first(
        [v for v in versions if split_variant(v.raw_version)[1] in (variant, None)]
    )
    if not candidates:
        return None

    stable = [v for v in candidates if not _is_prerelease(v)]
    recommended = next((v for v in candidates if v.is_recommended), None)

    if base == VERSION_LATEST:
        return candidates[0]
    if base == VERSION_DEFAULT:
        return recommended or (stable[0] if stable else candidates[0])
    if base == VERSION_RECOMMENDED:
        return recommended or (stable[0] if stable else None)

    for candidate in candidates:
        if candidate.raw_version == version_or_range:
            return candidate
    for candidate in candidates:
        if strip_v_prefix(split_variant(candidate.raw_version)[0]) == base:
            return candidate

    return _match_range(base, candidates)
