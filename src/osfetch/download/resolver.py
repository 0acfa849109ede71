"""
Turn a user supplied --version token into the version string sent to the image store.
"""

from typing import Any

from osfetch.constants import MENU_VERSION_TOKENS, VERSION_MENU_ESR
from osfetch.log_utils import logger

from .version import apply_variant_suffix, strip_v_prefix


def normalize_version_token(version: str) -> str:
    """
    Strip one leading 'v' and make sure the version ends in '.dev' or '.prod'.

    No semver parsing happens here: '2.88.4.prod' is not valid semver and range
    matching is left to the image store. Keywords get the suffix too
    ('latest' -> 'latest.prod').
    """
    return apply_variant_suffix(strip_v_prefix(version))


class VersionResolver:
    """
    Decide between the interactive menu and plain suffix normalization.

    Parameters:
        picker: Object with an async `pick(device_type, esr)` returning a raw version.
    """

    def __init__(self, picker: Any) -> None:
        self.picker = picker

    async def resolve(self, device_type: str, version: str) -> str:
        if version in MENU_VERSION_TOKENS:
            return await self.picker.pick(device_type, esr=version == VERSION_MENU_ESR)

        resolved = normalize_version_token(version)
        if resolved != version:
            logger.debug(f"Normalized OS version '{version}' to '{resolved}'")
        return resolved


async def resolve_os_version(device_type: str, version: str, picker: Any) -> str:
    return await VersionResolver(picker).resolve(device_type, version)
