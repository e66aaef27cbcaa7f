"""Asset ingestion for uploaded image files.

This module provides:
- A pure validation step run before any byte is written
- Streaming persistence with a hard size ceiling
- Collision-free storage names
- Best-effort removal of files no longer referenced
"""

import itertools
import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional
from urllib.parse import urlparse

import aiofiles

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
URL_PREFIX = '/uploads'

# Process-wide, so two uploads in the same millisecond never share a name
_sequence = itertools.count()


class AssetError(Exception):
    """Base exception for asset operations."""
    pass


class UnsupportedTypeError(AssetError):
    """Raised when an upload's extension or MIME type is not allowed."""
    pass


class PayloadTooLargeError(AssetError):
    """Raised when an upload exceeds the configured byte ceiling."""
    pass


@dataclass(frozen=True)
class UploadCheck:
    """Result of validating an upload's declared name and type."""
    ok: bool
    extension: str = ''
    reason: Optional[str] = None


@dataclass(frozen=True)
class AssetRef:
    """A stored asset: its file name, location on disk and public URL."""
    name: str
    path: Path
    url: str


def validate_upload(
    filename: Optional[str],
    content_type: Optional[str],
    allowed_extensions: Iterable[str],
    allowed_mime_types: Iterable[str]
) -> UploadCheck:
    """Check an upload against the allow-lists. Both must match."""
    extension = PurePosixPath(filename or '').suffix.lower()
    mime_type = (content_type or '').split(';')[0].strip().lower()

    if not extension or extension not in allowed_extensions:
        return UploadCheck(False, extension, f"File extension {extension or '(none)'} is not allowed")
    if mime_type not in allowed_mime_types:
        return UploadCheck(False, extension, f"Content type {mime_type or '(none)'} is not allowed")
    return UploadCheck(True, extension)


def generate_name(extension: str) -> str:
    """Build a storage name: epoch milliseconds, sequence number, random suffix."""
    return f"{int(time.time() * 1000)}-{next(_sequence)}-{secrets.token_hex(4)}{extension}"


class AssetStore:
    """Stores uploaded files in a directory served under /uploads."""

    def __init__(
        self,
        upload_dir: str,
        max_bytes: int,
        allowed_extensions: Iterable[str],
        allowed_mime_types: Iterable[str],
        public_base_url: str = ''
    ):
        self.upload_dir = Path(upload_dir).resolve()
        self.max_bytes = max_bytes
        self.allowed_extensions = set(allowed_extensions)
        self.allowed_mime_types = set(allowed_mime_types)
        self.public_base_url = public_base_url.rstrip('/')
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings) -> 'AssetStore':
        return cls(
            upload_dir=settings['upload_dir'],
            max_bytes=settings['max_upload_bytes'],
            allowed_extensions=settings['allowed_extensions'],
            allowed_mime_types=settings['allowed_mime_types'],
            public_base_url=settings['public_base_url']
        )

    def url_for(self, name: str, base_url: str = '') -> str:
        base = self.public_base_url or base_url.rstrip('/')
        return f"{base}{URL_PREFIX}/{name}"

    async def ingest(
        self,
        stream,
        filename: Optional[str],
        content_type: Optional[str],
        base_url: str = '',
        declared_size: Optional[int] = None
    ) -> AssetRef:
        """Validate and persist an upload.

        Args:
            stream: Object with an async ``read(size)`` method, e.g. UploadFile
            filename: Client supplied file name, only its extension is used
            content_type: Client supplied MIME type
            base_url: Request base URL, used when public_base_url is not set
            declared_size: Size announced by the client, if known

        Returns:
            AssetRef for the stored file

        Raises:
            UnsupportedTypeError: If the extension or MIME type is not allowed
            PayloadTooLargeError: If the upload is larger than max_bytes
        """
        check = validate_upload(filename, content_type, self.allowed_extensions, self.allowed_mime_types)
        if not check.ok:
            logger.warning(f"Rejected upload {filename!r}: {check.reason}")
            raise UnsupportedTypeError(check.reason)

        if declared_size is not None and declared_size > self.max_bytes:
            raise PayloadTooLargeError(f"File exceeds the {self.max_bytes} byte limit")

        name = generate_name(check.extension)
        path = self.upload_dir / name
        partial_path = path.with_name(name + '.part')
        written = 0

        # A .part file that already exists belongs to another writer; leave it alone
        f = await aiofiles.open(partial_path, 'xb')
        try:
            async with f:
                while True:
                    chunk = await stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise PayloadTooLargeError(f"File exceeds the {self.max_bytes} byte limit")
                    await f.write(chunk)
            os.replace(partial_path, path)
        except BaseException:
            self._discard(partial_path)
            raise

        logger.info(f"Stored asset {name} ({written} bytes)")
        return AssetRef(name=name, path=path, url=self.url_for(name, base_url))

    def name_from_ref(self, ref: Optional[str]) -> Optional[str]:
        """Resolve an asset URL or bare name to a file name inside upload_dir."""
        if not ref:
            return None
        name = PurePosixPath(urlparse(ref).path).name
        if not name or name in ('.', '..') or name.endswith('.part'):
            return None
        return name

    def path_for(self, ref: Optional[str]) -> Optional[Path]:
        name = self.name_from_ref(ref)
        if name is None:
            return None
        path = (self.upload_dir / name).resolve()
        if path.parent != self.upload_dir:
            return None
        return path

    def exists(self, ref: Optional[str]) -> bool:
        path = self.path_for(ref)
        return path is not None and path.is_file()

    def remove(self, ref: Optional[str]) -> bool:
        """Delete the file behind ref.

        Returns:
            True if a file was removed, False if there was nothing to remove
            or removal failed. Never raises.
        """
        path = self.path_for(ref)
        if path is None:
            return False
        try:
            path.unlink()
            logger.info(f"Removed asset {path.name}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to remove asset {path.name}: {e}")
            return False

    def _discard(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to discard partial upload {path.name}: {e}")


__all__ = [
    'AssetStore', 'AssetRef', 'UploadCheck', 'validate_upload', 'generate_name', 'URL_PREFIX',
    'AssetError', 'UnsupportedTypeError', 'PayloadTooLargeError'
]
