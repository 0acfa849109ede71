"""
Output sinks for OS image downloads.

A sink receives the decoded payload chunk by chunk and only touches the final
output path once the whole transfer succeeded:

- FileSink writes to a temporary file next to the target and atomically
  replaces the target on commit.
- ZipExtractSink spools the archive to a temporary file and extracts it into
  the target directory on commit.

Both sinks remove their temporary files when aborted.
"""

import asyncio
import os
import shutil
import tempfile
import time
import zipfile
import zlib
from pathlib import Path
from typing import List, Optional

import aiofiles  # type: ignore[import-untyped]

from osfetch.constants import BYTES_PER_MEGABYTE, TEMP_FILE_SUFFIX, ZIP_MIME_TYPE
from osfetch.exceptions import DecompressionError, TransferError
from osfetch.log_utils import logger

from .interfaces import Pathish


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


def is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the name has no absolute path, parent-directory reference or null byte.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    normalized = os.path.normpath(member_name)
    if os.path.isabs(normalized) or normalized == "..":
        return False
    if normalized.startswith(f"..{os.sep}"):
        return False
    if os.altsep and normalized.startswith(f"..{os.altsep}"):
        return False
    return True


def safe_extract_path(extract_dir: str, file_path: str) -> str:
    """
    Resolve a safe absolute extraction path and prevent directory traversal.

    Raises:
        ValueError: If the resolved path is outside extract_dir.
    """
    real_extract_dir = os.path.realpath(extract_dir)
    normalized_path = os.path.realpath(os.path.join(real_extract_dir, file_path))

    if not _is_within_base(real_extract_dir, normalized_path):
        raise ValueError(
            f"Unsafe extraction path '{file_path}' is outside base '{extract_dir}'"
        )
    return normalized_path


def extract_zip_archive(zip_path: str, extract_dir: str) -> List[Path]:
    """
    Extract every safe member of `zip_path` into `extract_dir`.

    Unsafe members (absolute paths, traversal) are skipped with a warning.

    Returns:
        List[Path]: Extracted file paths.

    Raises:
        DecompressionError: If the archive is corrupt or a member cannot be decompressed.
        TransferError: If writing an extracted file fails.
    """
    extracted: List[Path] = []
    try:
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            for info in zip_ref.infolist():
                if not is_safe_archive_member(info.filename):
                    logger.warning(
                        "Skipping unsafe archive member %s (possible traversal)",
                        info.filename,
                    )
                    continue
                try:
                    target = safe_extract_path(extract_dir, info.filename)
                except ValueError as e:
                    logger.warning(f"Skipping unsafe extraction path: {e}")
                    continue

                if info.is_dir():
                    os.makedirs(target, exist_ok=True)
                    continue

                os.makedirs(os.path.dirname(target), exist_ok=True)
                with zip_ref.open(info) as source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                extracted.append(Path(target))
                logger.debug(f"Extracted {info.filename} to {target}")
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError) as e:
        raise DecompressionError(f"Failed to extract OS image archive: {e}") from e
    except OSError as e:
        raise TransferError(f"Failed to write extracted files: {e}") from e
    return extracted


class FileSink:
    """Write the payload as a single file at `output_path`."""

    def __init__(self, output_path: Pathish) -> None:
        self.output_path = Path(output_path)
        self.bytes_written = 0
        self._temp_path: Optional[Path] = None
        self._file = None

    def _make_temp_path(self) -> Path:
        return self.output_path.with_name(
            f"{self.output_path.name}{TEMP_FILE_SUFFIX}.{os.getpid()}.{int(time.time() * 1000)}"
        )

    def _check_output_path(self) -> None:
        if self.output_path.is_dir():
            raise TransferError(f"Output path {self.output_path} is a directory")

    async def open(self) -> None:
        self._check_output_path()
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._temp_path = self._make_temp_path()
            self._file = await aiofiles.open(self._temp_path, "wb")
        except OSError as e:
            raise TransferError(f"Cannot write to {self.output_path}: {e}") from e

    async def write(self, data: bytes) -> None:
        try:
            await self._file.write(data)
        except OSError as e:
            raise TransferError(f"Failed writing {self.output_path}: {e}") from e
        self.bytes_written += len(data)

    async def _close_file(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None

    async def commit(self) -> Path:
        try:
            await self._close_file()
            self._temp_path.replace(self.output_path)
        except OSError as e:
            raise TransferError(f"Failed to finalize {self.output_path}: {e}") from e
        self._temp_path = None
        logger.debug(
            f"Wrote {self.bytes_written / BYTES_PER_MEGABYTE:.1f} MB to {self.output_path}"
        )
        return self.output_path

    async def abort(self) -> None:
        try:
            await self._close_file()
        except OSError as e:
            logger.debug(f"Error closing {self._temp_path}: {e}")
        if self._temp_path is not None and self._temp_path.exists():
            try:
                self._temp_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove partial download {self._temp_path}: {e}")
        self._temp_path = None


class ZipExtractSink(FileSink):
    """
    Extract a zip payload into the directory `output_path`.

    The archive is spooled next to the target and extracted into a staging
    directory; on success the staging directory becomes `output_path` (or is
    merged into it when the directory already exists).
    """

    def _make_temp_path(self) -> Path:
        return self.output_path.with_name(
            f"{self.output_path.name}{TEMP_FILE_SUFFIX}.{os.getpid()}.zip"
        )

    def _check_output_path(self) -> None:
        if self.output_path.exists() and not self.output_path.is_dir():
            raise TransferError(
                f"Output path {self.output_path} exists and is not a directory"
            )

    def _extract_and_install(self, archive_path: Path) -> List[Path]:
        staging_dir = tempfile.mkdtemp(
            prefix=f".{self.output_path.name}{TEMP_FILE_SUFFIX}-",
            dir=self.output_path.parent,
        )
        try:
            extract_zip_archive(str(archive_path), staging_dir)
            if self.output_path.is_dir():
                shutil.copytree(staging_dir, self.output_path, dirs_exist_ok=True)
            else:
                os.replace(staging_dir, self.output_path)
        finally:
            if os.path.isdir(staging_dir):
                shutil.rmtree(staging_dir, ignore_errors=True)
        return sorted(p for p in self.output_path.rglob("*") if p.is_file())

    async def commit(self) -> Path:
        try:
            await self._close_file()
        except OSError as e:
            raise TransferError(f"Failed to finalize {self._temp_path}: {e}") from e

        archive_path = self._temp_path
        try:
            files = await asyncio.to_thread(self._extract_and_install, archive_path)
        except OSError as e:
            raise TransferError(f"Failed to install {self.output_path}: {e}") from e
        finally:
            await self.abort()
        logger.debug(f"Extracted {len(files)} files into {self.output_path}")
        return self.output_path


def create_output_sink(mime: str, output_path: Pathish) -> FileSink:
    """
    Choose the sink for a stream from its declared MIME type.

    Only the declared type is consulted; the payload is never sniffed.
    """
    if mime == ZIP_MIME_TYPE:
        return ZipExtractSink(output_path)
    return FileSink(output_path)
