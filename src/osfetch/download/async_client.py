"""
Async HTTP Client for osfetch

This module provides asynchronous access to the cloud API using aiohttp:

- AsyncCloudClient.get_available_os_versions: the remote OS catalog service
- AsyncCloudClient.open_image_stream: the remote image store, returning an
  ImageStream that yields tagged events (resolved version, payload chunks,
  progress) in order.
"""

import asyncio
import time
import zlib
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiohttp
from aiohttp import ClientResponse, ClientSession, ClientTimeout

from osfetch.constants import (
    API_VERSION,
    COMPRESSED_CONTENT_ENCODINGS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    DOWNLOAD_ENDPOINT,
    HTTP_STATUS_ERROR_THRESHOLD,
    HTTP_STATUS_RETRY_THRESHOLD,
    INVALIDATED_ANNOTATION,
    OCTET_STREAM_MIME_TYPE,
    OS_TYPE_ESR,
    RECOMMENDED_ANNOTATION,
    RELEASE_POLICY_TAG,
)
from osfetch.exceptions import (
    ApiError,
    DecompressionError,
    NotLoggedInError,
    StreamOpenError,
    TransferError,
)
from osfetch.log_utils import logger

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
from .version import (
    has_variant_suffix,
    max_satisfying_version,
    parse_version,
    sort_newest_first,
    with_requested_variant,
)


def parse_mime_type(content_type: Optional[str]) -> str:
    """Return the bare, lower-cased MIME type of a Content-Type header value."""
    if not content_type:
        return OCTET_STREAM_MIME_TYPE
    return content_type.split(";", 1)[0].strip().lower() or OCTET_STREAM_MIME_TYPE


def _parse_content_length(raw_value: Optional[str]) -> Optional[int]:
    try:
        value = int(raw_value) if raw_value else 0
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _host_app_filter(device_types: Sequence[str]) -> str:
    slugs = ",".join("'{}'".format(slug.replace("'", "''")) for slug in device_types)
    return f"is_host eq true and is_for__device_type/any(dt:dt/slug in ({slugs}))"


HOST_APP_EXPAND = (
    "is_for__device_type($select=slug),"
    "application_tag($select=tag_key,value),"
    "owns__release($select=raw_version,variant,phase,is_invalidated,known_issue_list;"
    "$filter=is_final eq true and status eq 'success')"
)


def _release_policy(app: Dict[str, Any]) -> OsType:
    for tag in app.get("application_tag") or []:
        if isinstance(tag, dict) and tag.get("tag_key") == RELEASE_POLICY_TAG:
            if str(tag.get("value", "")).lower() == OS_TYPE_ESR:
                return OsType.ESR
    return OsType.DEFAULT


def _release_to_os_version(release: Dict[str, Any], os_type: OsType) -> Optional[OsVersion]:
    raw_version = release.get("raw_version")
    if not isinstance(raw_version, str) or not raw_version.strip():
        return None
    raw_version = raw_version.strip()
    variant = release.get("variant")
    if isinstance(variant, str) and variant and not has_variant_suffix(raw_version):
        raw_version = f"{raw_version}.{variant}"

    parsed = parse_version(raw_version)
    is_prerelease = release.get("phase") == "next" or bool(parsed and parsed.prerelease)
    label = raw_version
    if release.get("is_invalidated"):
        label += INVALIDATED_ANNOTATION
    return OsVersion(
        raw_version=raw_version,
        formatted_version=label,
        os_type=os_type,
        is_prerelease=is_prerelease,
    )


def _is_recommendable(version: OsVersion, release: Dict[str, Any]) -> bool:
    return (
        version.os_type == OsType.DEFAULT
        and not version.is_prerelease
        and not release.get("is_invalidated")
        and not release.get("known_issue_list")
        and release.get("phase") != "end-of-life"
    )


def normalize_host_apps(
    apps: Iterable[Any], device_types: Sequence[str]
) -> Dict[str, List[OsVersion]]:
    """
    Convert host application records into OsVersion lists keyed by device type slug.

    Releases are ordered newest first, duplicate raw versions are dropped and
    the newest recommendable default release is flagged as recommended (its
    upstream label gains ' (recommended)').

    Parameters:
        apps (Iterable[Any]): Records from the application resource; malformed entries are skipped.
        device_types (Sequence[str]): Requested slugs; each appears in the result, possibly empty.

    Returns:
        Dict[str, List[OsVersion]]: Catalog per device type.
    """
    collected: Dict[str, List[tuple]] = {slug: [] for slug in device_types}

    for app in apps:
        if not isinstance(app, dict):
            logger.debug(f"Skipping malformed host app entry: {type(app).__name__}")
            continue
        os_type = _release_policy(app)
        slugs = [
            dt.get("slug")
            for dt in app.get("is_for__device_type") or []
            if isinstance(dt, dict)
        ]
        releases = app.get("owns__release") or []
        for slug in slugs:
            if slug not in collected:
                continue
            for release in releases:
                if not isinstance(release, dict):
                    continue
                version = _release_to_os_version(release, os_type)
                if version is not None:
                    collected[slug].append((version, release))

    catalog: Dict[str, List[OsVersion]] = {}
    for slug, entries in collected.items():
        release_by_id = {id(version): release for version, release in entries}
        seen = set()
        ordered: List[OsVersion] = []
        for version in sort_newest_first([version for version, _ in entries]):
            if version.raw_version in seen:
                continue
            seen.add(version.raw_version)
            ordered.append(version)

        for version in ordered:
            if _is_recommendable(version, release_by_id[id(version)]):
                version.is_recommended = True
                version.formatted_version += RECOMMENDED_ANNOTATION
                break
        catalog[slug] = ordered
    return catalog


class ImageStream:
    """
    Event stream over one OS image download.

    Iterating yields a ResolvedVersionEvent first, then ChunkEvent/ProgressEvent
    pairs until the payload is exhausted. Failures are raised from iteration:
    TransferError for network problems or a short body, DecompressionError when
    the Content-Encoding cannot be decoded.

    Attributes:
        mime (str): MIME type declared by the server, known before any payload is read.
        resolved_version (str): The version the image store actually serves.
    """

    def __init__(
        self,
        response: ClientResponse,
        resolved_version: str,
        url: str,
        flush_mode: FlushMode = FlushMode.NO_FLUSH,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._response = response
        self.resolved_version = resolved_version
        self.url = url
        self.flush_mode = FlushMode(flush_mode)
        self.chunk_size = chunk_size
        self.mime = parse_mime_type(response.headers.get("Content-Type"))
        self.content_encoding = (
            (response.headers.get("Content-Encoding") or "").strip().lower() or None
        )
        self.total_size = _parse_content_length(response.headers.get("Content-Length"))
        self._events = self._generate_events()
        self._closed = False

    def __aiter__(self) -> "ImageStream":
        return self

    async def __anext__(self) -> StreamEvent:
        return await self._events.__anext__()

    async def __aenter__(self) -> "ImageStream":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop the event generator and release the HTTP connection."""
        if self._closed:
            return
        self._closed = True
        await self._events.aclose()
        self._response.release()

    def _make_decoder(self) -> Optional[Any]:
        if self.content_encoding is None:
            return None
        if self.content_encoding not in COMPRESSED_CONTENT_ENCODINGS:
            raise DecompressionError(
                f"Unsupported content encoding '{self.content_encoding}'", url=self.url
            )
        # 32 + MAX_WBITS accepts both gzip and zlib headers
        return zlib.decompressobj(32 + zlib.MAX_WBITS)

    def _progress_state(self, received: int, started: float) -> Optional[ProgressState]:
        if self.total_size is None:
            return None
        elapsed = time.monotonic() - started
        eta = None
        if received and elapsed > 0:
            rate = received / elapsed
            eta = max(self.total_size - received, 0) / rate
        return ProgressState(
            received=received,
            total=self.total_size,
            percentage=min(received / self.total_size * 100, 100.0),
            eta=eta,
        )

    def _finish_decoding(self, decoder: Any) -> bytes:
        tail = decoder.flush()
        if not decoder.eof:
            if self.flush_mode == FlushMode.NO_FLUSH:
                raise DecompressionError(
                    "Unexpected end of compressed data", url=self.url
                )
            logger.warning(
                f"Compressed stream from {self.url} ended early; keeping partial output"
            )
        return tail

    async def _generate_events(self):
        yield ResolvedVersionEvent(self.resolved_version)

        decoder = self._make_decoder()
        received = 0
        started = time.monotonic()
        try:
            async for chunk in self._response.content.iter_chunked(self.chunk_size):
                received += len(chunk)
                data = decoder.decompress(chunk) if decoder is not None else chunk
                if data:
                    yield ChunkEvent(data)
                yield ProgressEvent(self._progress_state(received, started))
            if decoder is not None:
                tail = self._finish_decoding(decoder)
                if tail:
                    yield ChunkEvent(tail)
        except zlib.error as e:
            raise DecompressionError(
                f"Failed to decompress image data: {e}", url=self.url
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransferError(
                f"Download interrupted after {received} bytes: {e}",
                url=self.url,
                is_retryable=True,
            ) from e

        if self.total_size is not None and received < self.total_size:
            raise TransferError(
                f"Connection closed after {received} of {self.total_size} bytes",
                url=self.url,
                is_retryable=True,
            )
        logger.debug(f"Received {received} bytes from {self.url}")


class AsyncCloudClient:
    """
    Asynchronous cloud API client using aiohttp.

    Example:
        async with AsyncCloudClient("https://api.example.com") as client:
            catalog = await client.get_available_os_versions(["raspberrypi4-64"])
    """

    def __init__(
        self,
        api_url: str,
        api_token: Optional[str] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Initialize the client.

        Parameters:
            api_url (str): Base URL of the cloud API.
            api_token (Optional[str]): Bearer token; anonymous requests are made when None.
            request_timeout (float): Total timeout for catalog requests; image
                streams only bound the connection phase.
            chunk_size (int): Bytes read per image chunk.
        """
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.request_timeout = request_timeout
        self.chunk_size = chunk_size
        self._session: Optional[ClientSession] = None
        # Catalog per device type slug, kept for the lifetime of the client
        self._catalog_cache: Dict[str, List[OsVersion]] = {}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AsyncCloudClient":
        from osfetch.utils import get_api_token

        return cls(
            api_url=config["API_URL"],
            api_token=get_api_token(config),
            request_timeout=float(config.get("REQUEST_TIMEOUT") or DEFAULT_REQUEST_TIMEOUT),
        )

    async def __aenter__(self) -> "AsyncCloudClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            # Content-Encoding is decoded by ImageStream so truncation is detectable
            self._session = ClientSession(
                headers=self._get_default_headers(),
                auto_decompress=False,
                timeout=ClientTimeout(total=None, sock_connect=self.request_timeout),
            )
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        from osfetch.utils import get_user_agent

        headers = {"Accept": "application/json", "User-Agent": get_user_agent()}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def close(self) -> None:
        """Close the client session and release resources."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get_available_os_versions(
        self, device_types: Sequence[str]
    ) -> Dict[str, List[OsVersion]]:
        """
        Query the OS catalog for the given device types.

        Each device type is fetched at most once per client; later calls
        (e.g. resolving the version picked from the menu) reuse the result.

        Returns:
            Dict[str, List[OsVersion]]: Versions per device type slug, newest first,
            both default and ESR partitions included.

        Raises:
            NotLoggedInError: When the API rejects the token (HTTP 401).
            ApiError: On other HTTP errors, network failures, or an unexpected payload.
        """
        if all(slug in self._catalog_cache for slug in device_types):
            logger.debug(f"Using cached OS versions for {', '.join(device_types)}")
            return {slug: self._catalog_cache[slug] for slug in device_types}

        session = await self._ensure_session()
        url = f"{self.api_url}/{API_VERSION}/application"
        params = {
            "$select": "app_name",
            "$filter": _host_app_filter(device_types),
            "$expand": HOST_APP_EXPAND,
        }

        try:
            response = await session.get(
                url, params=params, timeout=ClientTimeout(total=self.request_timeout)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ApiError(
                "Failed to fetch OS versions", endpoint=url, details=str(e)
            ) from e

        try:
            if response.status == 401:
                raise NotLoggedInError(
                    "You have to log in to continue", endpoint=url, status_code=401
                )
            if response.status >= HTTP_STATUS_ERROR_THRESHOLD:
                raise ApiError(
                    f"HTTP error {response.status} fetching OS versions",
                    endpoint=url,
                    status_code=response.status,
                )
            payload = await response.json()
        except (aiohttp.ClientError, ValueError) as e:
            raise ApiError(
                "Invalid OS versions response", endpoint=url, details=str(e)
            ) from e
        finally:
            response.release()

        if not isinstance(payload, dict) or not isinstance(payload.get("d"), list):
            raise ApiError(
                "Unexpected OS versions payload",
                endpoint=url,
                details=f"expected object with 'd' list, got {type(payload).__name__}",
            )

        catalog = normalize_host_apps(payload["d"], device_types)
        for slug, versions in catalog.items():
            logger.debug(f"Fetched {len(versions)} OS versions for {slug}")
        self._catalog_cache.update(catalog)
        return catalog

    async def open_image_stream(
        self,
        device_type: str,
        version: str,
        flush_mode: FlushMode = FlushMode.NO_FLUSH,
    ) -> ImageStream:
        """
        Resolve `version` against the catalog and open the image download.

        Parameters:
            device_type (str): Device type slug.
            version (str): Exact version, semver range or keyword, optionally
                suffixed with '.dev'/'.prod'.
            flush_mode (FlushMode): How a truncated compressed payload is treated.

        Returns:
            ImageStream: Open stream; the caller must iterate or close it.

        Raises:
            StreamOpenError: If the version cannot be resolved or the download cannot be started.
        """
        try:
            catalog = await self.get_available_os_versions([device_type])
        except ApiError as e:
            raise StreamOpenError(
                f"Could not resolve OS version '{version}' for {device_type}: {e.message}",
                details=e.details,
            ) from e

        match = max_satisfying_version(version, catalog.get(device_type, []))
        if match is None:
            raise StreamOpenError(
                f"No OS version matching '{version}' found for device type '{device_type}'"
            )
        resolved_version = with_requested_variant(match.raw_version, version)
        logger.debug(f"Resolved '{version}' to {resolved_version} for {device_type}")

        session = await self._ensure_session()
        url = f"{self.api_url}{DOWNLOAD_ENDPOINT}"
        params = {"deviceType": device_type, "version": resolved_version}
        try:
            response = await session.get(url, params=params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StreamOpenError(
                f"Failed to open OS image download: {e}", url=url, is_retryable=True
            ) from e

        if response.status >= HTTP_STATUS_ERROR_THRESHOLD:
            response.release()
            raise StreamOpenError(
                f"HTTP error {response.status} opening OS image download",
                url=url,
                is_retryable=response.status >= HTTP_STATUS_RETRY_THRESHOLD,
            )

        return ImageStream(
            response,
            resolved_version=resolved_version,
            url=url,
            flush_mode=flush_mode,
            chunk_size=self.chunk_size,
        )
