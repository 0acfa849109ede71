"""
Core data types for the OS download subsystem.

Version descriptors come from the remote catalog; stream events are what an
`ImageStream` yields while an image is transferred.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from osfetch.constants import (
    FLUSH_MODE_NO_FLUSH,
    FLUSH_MODE_SYNC_FLUSH,
    OS_TYPE_DEFAULT,
    OS_TYPE_ESR,
)

Pathish = Union[str, Path]


class OsType(str, Enum):
    """Partition of the OS catalog."""

    DEFAULT = OS_TYPE_DEFAULT
    ESR = OS_TYPE_ESR

    @classmethod
    def for_esr(cls, esr: bool) -> "OsType":
        return cls.ESR if esr else cls.DEFAULT


class FlushMode(str, Enum):
    """
    How a truncated compressed payload is treated.

    NO_FLUSH fails the transfer when the compressed stream ends early;
    SYNC_FLUSH accepts whatever was decoded so far.
    """

    NO_FLUSH = FLUSH_MODE_NO_FLUSH
    SYNC_FLUSH = FLUSH_MODE_SYNC_FLUSH


@dataclass
class OsVersion:
    """An OS version available for one device type."""

    raw_version: str
    """Version identifier understood by the image store (e.g. '2.88.4.prod')"""

    formatted_version: str
    """Human readable label, e.g. 'v2.88.4 (recommended)'"""

    os_type: OsType = OsType.DEFAULT
    """Catalog partition this version belongs to"""

    is_recommended: bool = False
    """Whether the catalog flags this version as the recommended one"""

    is_prerelease: bool = False
    """Pre-release builds are skipped by 'default' and range matching"""


@dataclass(frozen=True)
class ProgressState:
    """Measurable progress of a transfer."""

    received: int
    total: int
    percentage: float
    eta: Optional[float] = None
    """Estimated seconds remaining, when a transfer rate is known"""


@dataclass(frozen=True)
class ResolvedVersionEvent:
    """First event of every image stream: the version actually served."""

    version: str


@dataclass(frozen=True)
class ChunkEvent:
    """A block of (already content-decoded) payload bytes."""

    data: bytes


@dataclass(frozen=True)
class ProgressEvent:
    """Transfer progress; `state` is None when the total size is unknown."""

    state: Optional[ProgressState]


StreamEvent = Union[ResolvedVersionEvent, ChunkEvent, ProgressEvent]
