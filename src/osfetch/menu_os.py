# src/osfetch/menu_os.py

from typing import Callable, List, Optional, Sequence

from pick import Option, pick

from osfetch.constants import MENU_QUIT_KEYS, OS_VERSION_MENU_TITLE
from osfetch.download.catalog import VersionCatalog
from osfetch.download.interfaces import OsVersion
from osfetch.exceptions import PromptCancelledError
from osfetch.log_utils import logger


def build_version_options(versions: Sequence[OsVersion]) -> List[Option]:
    """Menu options in catalog order: label is the formatted version, value the raw version."""
    return [Option(v.formatted_version, v.raw_version) for v in versions]


def default_version_index(versions: Sequence[OsVersion]) -> int:
    """
    Index of the entry pre-selected in the menu.

    The first recommended entry wins; without one the first entry is used.
    """
    for index, version in enumerate(versions):
        if version.is_recommended:
            return index
    return 0


def select_os_version(
    versions: Sequence[OsVersion], prompt: Optional[Callable] = None
) -> str:
    """
    Show a single-choice menu of OS versions and return the chosen raw version.

    Blocks until the user confirms a choice.

    Parameters:
        versions (Sequence[OsVersion]): Non-empty catalog entries.
        prompt (Optional[Callable]): pick-compatible function; defaults to `pick`.

    Returns:
        str: The raw version of the selected entry.

    Raises:
        PromptCancelledError: If the user quits the menu or presses Ctrl-C.
    """
    prompt = prompt or pick
    options = build_version_options(versions)
    try:
        selected, index = prompt(
            options,
            OS_VERSION_MENU_TITLE,
            indicator="*",
            default_index=default_version_index(versions),
            quit_keys=MENU_QUIT_KEYS,
        )
    except KeyboardInterrupt as e:
        raise PromptCancelledError() from e

    if selected is None or index < 0:
        raise PromptCancelledError()

    value = selected.value if isinstance(selected, Option) else selected
    logger.debug(f"Selected OS version {value}")
    return value


class InteractiveVersionPicker:
    """Let the user choose an OS version from the catalog of a device type."""

    def __init__(self, catalog: VersionCatalog, prompt: Optional[Callable] = None) -> None:
        self.catalog = catalog
        self.prompt = prompt

    async def pick(self, device_type: str, esr: bool = False) -> str:
        versions = await self.catalog.fetch(device_type, esr)
        return select_os_version(versions, prompt=self.prompt)
