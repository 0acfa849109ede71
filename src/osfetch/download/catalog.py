"""
OS version catalog for a device type.

Wraps the remote catalog service: filters the versions of one device type to
the default or ESR track and rewrites their labels into the 'vX.Y.Z <notes>'
form used by `os versions` and the interactive menu.
"""

from dataclasses import replace
from typing import Any, List

from osfetch.constants import MSG_NO_VERSIONS_FOUND
from osfetch.exceptions import NoVersionsFoundError
from osfetch.log_utils import logger

from .interfaces import OsType, OsVersion


def format_os_version_label(raw_version: str, upstream_label: str) -> str:
    """
    Build the display label for a catalog entry.

    The label is 'v' + raw_version, followed by everything from the first space
    of the upstream label (annotations such as ' (recommended)').

    Examples:
        >>> format_os_version_label("2.88.4.prod", "2.88.4.prod")
        'v2.88.4.prod'
        >>> format_os_version_label("2.88.4.prod", "2.88.4 (recommended)")
        'v2.88.4.prod (recommended)'
    """
    index = upstream_label.find(" ")
    if index < 0:
        return f"v{raw_version}"
    return f"v{raw_version}{upstream_label[index:]}"


class VersionCatalog:
    """Per-invocation view of the remote OS catalog."""

    def __init__(self, client: Any) -> None:
        """
        Parameters:
            client: Object providing an async `get_available_os_versions(device_types)`
                (normally an AsyncCloudClient).
        """
        self.client = client

    async def fetch(self, device_type: str, esr: bool = False) -> List[OsVersion]:
        """
        Return the catalog entries of `device_type` for the requested track, in catalog order.

        Parameters:
            device_type (str): Device type slug.
            esr (bool): Select the ESR track instead of the default one.

        Returns:
            List[OsVersion]: Copies of the matching entries with reformatted labels.

        Raises:
            NoVersionsFoundError: If the track is empty for this device type.
        """
        os_type = OsType.for_esr(esr)
        available = await self.client.get_available_os_versions([device_type])
        versions = [
            replace(
                version,
                formatted_version=format_os_version_label(
                    version.raw_version, version.formatted_version
                ),
            )
            for version in available.get(device_type) or []
            if version.os_type == os_type
        ]

        if not versions:
            raise NoVersionsFoundError(
                MSG_NO_VERSIONS_FOUND.format(device_type=device_type),
                device_type=device_type,
                esr=esr,
            )

        logger.debug(
            f"Found {len(versions)} {os_type.value} OS versions for {device_type}"
        )
        return versions


async def get_formatted_os_versions(
    client: Any, device_type: str, esr: bool = False
) -> List[OsVersion]:
    """Convenience wrapper around VersionCatalog(client).fetch()."""
    return await VersionCatalog(client).fetch(device_type, esr)
