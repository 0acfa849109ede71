"""
OS image download pipeline.

This module coordinates one download run: it resolves the requested version,
opens the image stream, waits for the resolved version, then routes payload
chunks into an output sink and progress states into a renderer.
"""

from pathlib import Path
from typing import Any, Callable, Optional

from osfetch.constants import (
    MSG_DOWNLOAD_COMPLETE,
    MSG_GETTING_OS,
    MSG_VERSION_NOT_SPECIFIED,
    VERSION_DEFAULT,
)
from osfetch.exceptions import StreamOpenError, TransferError
from osfetch.log_utils import logger

from .files import FileSink, create_output_sink
from .interfaces import ChunkEvent, FlushMode, Pathish, ProgressEvent, ResolvedVersionEvent
from .progress import DownloadProgress
from .resolver import VersionResolver


class ImageFetchPipeline:
    """
    Download an OS image for a device type to a file or directory.

    The pipeline is single-use per invocation of `download` and holds no state
    between runs. Nothing is retried; the first failure aborts the run and
    removes whatever this run wrote.
    """

    def __init__(
        self,
        client: Any,
        resolver: VersionResolver,
        reporter_factory: Optional[Callable[[str], Any]] = None,
        flush_mode: FlushMode = FlushMode.NO_FLUSH,
    ) -> None:
        """
        Create a pipeline.

        Parameters:
            client: Object with an async `open_image_stream(device_type, version, flush_mode)`
                (normally an AsyncCloudClient).
            resolver (VersionResolver): Turns the --version token into the store version.
            reporter_factory (Optional[Callable[[str], Any]]): Called with the resolved
                version to build a progress renderer exposing `update(state)` and `stop()`.
                Defaults to DownloadProgress.
            flush_mode (FlushMode): Passed to the image stream for Content-Encoding decoding.
        """
        self.client = client
        self.resolver = resolver
        self.reporter_factory = reporter_factory or DownloadProgress
        self.flush_mode = FlushMode(flush_mode)

    async def _resolve_request(self, device_type: str, version: Optional[str]) -> str:
        if not version:
            logger.warning(MSG_VERSION_NOT_SPECIFIED)
            return VERSION_DEFAULT
        return await self.resolver.resolve(device_type, version)

    @staticmethod
    async def _read_resolved_version(stream: Any) -> str:
        try:
            event = await stream.__anext__()
        except StopAsyncIteration as e:
            raise StreamOpenError(
                "Image stream ended before reporting the resolved version"
            ) from e
        if not isinstance(event, ResolvedVersionEvent):
            raise StreamOpenError(
                f"Image stream sent {type(event).__name__} before the resolved version"
            )
        return event.version

    async def download(
        self, device_type: str, output_path: Pathish, version: Optional[str] = None
    ) -> Path:
        """
        Download the OS image of `device_type` to `output_path`.

        A zip payload is extracted into `output_path` as a directory; any other
        payload is written to `output_path` as a single file, replacing it.

        Parameters:
            device_type (str): Device type slug.
            output_path (Pathish): Destination file or directory.
            version (Optional[str]): The --version token; 'default' is used when omitted.

        Returns:
            Path: `output_path`.

        Raises:
            NoVersionsFoundError, PromptCancelledError: From menu based resolution.
            StreamOpenError: If the stream fails before reporting the resolved version.
            TransferError: On network or local write failures during the transfer.
            DecompressionError: If the payload cannot be decoded or extracted.
        """
        output_path = Path(output_path)
        logger.info(MSG_GETTING_OS.format(device_type=device_type))

        requested = await self._resolve_request(device_type, version)
        stream = await self.client.open_image_stream(
            device_type, requested, flush_mode=self.flush_mode
        )

        reporter = None
        sink: Optional[FileSink] = None
        completed = False
        try:
            resolved_version = await self._read_resolved_version(stream)
            reporter = self.reporter_factory(resolved_version)

            sink = create_output_sink(stream.mime, output_path)
            logger.debug(
                f"Writing {stream.mime} payload to {output_path} with {type(sink).__name__}"
            )
            await sink.open()
            async for event in stream:
                if isinstance(event, ChunkEvent):
                    await sink.write(event.data)
                elif isinstance(event, ProgressEvent):
                    reporter.update(event.state)
            await sink.commit()
            completed = True
        except OSError as e:
            raise TransferError(f"Failed to save OS image to {output_path}: {e}") from e
        finally:
            if sink is not None and not completed:
                await sink.abort()
            if reporter is not None:
                reporter.stop()
            await stream.aclose()

        logger.info(MSG_DOWNLOAD_COMPLETE.format(version=resolved_version))
        return output_path


async def download_os_image(
    client: Any,
    device_type: str,
    output_path: Pathish,
    version: Optional[str] = None,
    *,
    picker: Any = None,
    reporter_factory: Optional[Callable[[str], Any]] = None,
    flush_mode: FlushMode = FlushMode.NO_FLUSH,
) -> Path:
    """
    Resolve and download an OS image in one call.

    When no picker is given, menu tokens use the interactive pick menu over the
    client's catalog.
    """
    if picker is None:
        from osfetch.menu_os import InteractiveVersionPicker

        from .catalog import VersionCatalog

        picker = InteractiveVersionPicker(VersionCatalog(client))

    pipeline = ImageFetchPipeline(
        client,
        VersionResolver(picker),
        reporter_factory=reporter_factory,
        flush_mode=flush_mode,
    )
    return await pipeline.download(device_type, output_path, version)
