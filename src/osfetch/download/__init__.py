"""
osfetch Download Subsystem

Core Components:
- interfaces: version descriptors, stream events and flush modes
- version: variant suffix helpers and version matching
- async_client: remote catalog service and image store (aiohttp)
- catalog: per-device-type OS version catalog
- resolver: --version token normalization
- files: output sinks (single file, zip extraction)
- progress: terminal progress rendering
- pipeline: download coordination
"""

from .async_client import AsyncCloudClient, ImageStream
from .catalog import VersionCatalog, get_formatted_os_versions
from .files import FileSink, ZipExtractSink, create_output_sink
from .interfaces import (
    ChunkEvent,
    FlushMode,
    OsType,
    OsVersion,
    ProgressEvent,
    ProgressState,
    ResolvedVersionEvent,
    StreamEvent,
)
from .pipeline import ImageFetchPipeline, download_os_image
from .progress import DownloadProgress
from .resolver import VersionResolver, normalize_version_token, resolve_os_version

__all__ = [
    # Interfaces
    "OsType",
    "OsVersion",
    "FlushMode",
    "ProgressState",
    "ResolvedVersionEvent",
    "ChunkEvent",
    "ProgressEvent",
    "StreamEvent",
    # Remote services
    "AsyncCloudClient",
    "ImageStream",
    # Resolution
    "VersionCatalog",
    "get_formatted_os_versions",
    "VersionResolver",
    "normalize_version_token",
    "resolve_os_version",
    # Output
    "FileSink",
    "ZipExtractSink",
    "create_output_sink",
    "DownloadProgress",
    # Orchestration
    "ImageFetchPipeline",
    "download_os_image",
]
