"""Media import and storage: downloads, local copies, and traversal-safe path resolution"""

import logging
import mimetypes
import shutil
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlsplit
from uuid import uuid4

import httpx
from PIL import Image
from pydantic import BaseModel

from garden.core.models import AudioContent, BlockContent, ImageContent, VideoContent
from garden.errors import (
    InvalidMediaPath,
    InvalidMediaUrl,
    MediaDownloadError,
    MediaReadError,
    MediaTooLarge,
    MediaWriteError,
    UnsupportedMediaType,
)


logger = logging.getLogger(__name__)

MAX_DOWNLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_MIME = "application/octet-stream"
CHUNK_SIZE = 64 * 1024

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/webm": "webm",
    "audio/flac": "flac",
}


class MediaType(str, Enum):
    """Media category, decided by MIME prefix"""
    image = "image"
    video = "video"
    audio = "audio"

    @classmethod
    def from_mime(cls, mime: str) -> Optional["MediaType"]:
        for media_type in cls:
            if mime.startswith(f"{media_type.value}/"):
                return media_type
        return None

    @property
    def subdir(self) -> str:
        return {"image": "images", "video": "videos", "audio": "audio"}[self.value]


class MediaInfo(BaseModel):
    """Where an imported file landed, plus what could be read from it"""
    file_path: str
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    original_url: Optional[str] = None

    def into_block_content(self) -> BlockContent:
        """Build block content for this file; unknown MIME types become images."""
        common = dict(file_path=self.file_path, mime_type=self.mime_type, original_url=self.original_url)
        match MediaType.from_mime(self.mime_type):
            case MediaType.video:
                return VideoContent(width=self.width, height=self.height, duration=self.duration, **common)
            case MediaType.audio:
                return AudioContent(duration=self.duration, **common)
            case _:
                return ImageContent(width=self.width, height=self.height, **common)


def extension_for_mime(mime: str) -> Optional[str]:
    return MIME_EXTENSIONS.get(mime)


def image_dimensions(path: Path) -> tuple[Optional[int], Optional[int]]:
    """Return (width, height), or (None, None) if Pillow cannot read the file."""
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning("could not read image dimensions for %s: %s", path, e)
        return None, None


class MediaService:
    """Stores media files under media_root as <subdir>/<uuid>.<ext>."""

    def __init__(self, media_root, max_download_bytes: int = MAX_DOWNLOAD_BYTES, client: httpx.Client = None):
        self.media_root = Path(media_root)
        self.max_download_bytes = max_download_bytes
        self._owns_client = client is None
        self.client = client or httpx.Client(follow_redirects=True, timeout=30.0)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    # --- paths ---

    def _validate_path(self, relative_path: str) -> Path:
        if ".." in relative_path or relative_path.startswith(("/", "\\")):
            raise InvalidMediaPath("Path traversal not allowed")
        full_path = self.media_root / relative_path
        if not full_path.resolve().is_relative_to(self.media_root.resolve()):
            raise InvalidMediaPath("Path outside media directory")
        return full_path

    def _new_location(self, media_type: MediaType, extension: str) -> tuple[str, Path]:
        relative_path = f"{media_type.subdir}/{uuid4()}.{extension}"
        full_path = self.media_root / relative_path
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MediaWriteError(f"cannot create {full_path.parent}: {e}") from e
        return relative_path, full_path

    def resolve_full_path(self, relative_path: str) -> Path:
        return self._validate_path(relative_path)

    def exists(self, relative_path: str) -> bool:
        return self._validate_path(relative_path).exists()

    def delete(self, relative_path: str) -> None:
        """Remove a stored file; an already-missing file is not an error."""
        full_path = self._validate_path(relative_path)
        try:
            full_path.unlink(missing_ok=True)
        except OSError as e:
            raise MediaWriteError(f"cannot delete {relative_path}: {e}") from e
        logger.info("media file deleted: %s", relative_path)

    # --- imports ---

    def _media_type(self, mime: str) -> MediaType:
        media_type = MediaType.from_mime(mime)
        if media_type is None:
            raise UnsupportedMediaType(mime)
        return media_type

    def _describe(self, relative_path: str, full_path: Path, mime: str, media_type: MediaType,
                  original_url: str = None) -> MediaInfo:
        width = height = None
        if media_type is MediaType.image:
            width, height = image_dimensions(full_path)
        return MediaInfo(file_path=relative_path, mime_type=mime, width=width, height=height,
                         original_url=original_url)

    def import_from_url(self, url: str) -> MediaInfo:
        """Download url into the media root and describe the stored file."""
        try:
            scheme = urlsplit(url).scheme
        except ValueError as e:
            raise InvalidMediaUrl(f"Invalid URL: {e}") from e
        if scheme not in ("http", "https"):
            raise InvalidMediaUrl(f"Only HTTP/HTTPS URLs allowed, got: {scheme or url!r}")

        logger.info("downloading media from %s", url)
        try:
            with self.client.stream("GET", url) as response:
                if not response.is_success:
                    raise MediaDownloadError(f"HTTP {response.status_code} from {url}")
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_download_bytes:
                    raise MediaTooLarge(int(declared), self.max_download_bytes)

                header = response.headers.get("content-type")
                if header:
                    mime = header.split(";")[0].strip()
                else:
                    mime = mimetypes.guess_type(urlsplit(url).path)[0] or DEFAULT_MIME
                media_type = self._media_type(mime)

                extension = extension_for_mime(mime) or PurePosixPath(urlsplit(url).path).suffix.lstrip(".") or "bin"
                relative_path, full_path = self._new_location(media_type, extension)
                self._write_stream(response, full_path)
        except httpx.HTTPError as e:
            raise MediaDownloadError(f"request to {url} failed: {e}") from e

        logger.info("media file saved: %s", relative_path)
        return self._describe(relative_path, full_path, mime, media_type, original_url=url)

    def _write_stream(self, response: httpx.Response, full_path: Path) -> None:
        """Write the body to full_path; a failed or oversized download leaves no file."""
        received = 0
        try:
            with full_path.open("wb") as fh:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    received += len(chunk)
                    if received > self.max_download_bytes:
                        raise MediaTooLarge(received, self.max_download_bytes)
                    fh.write(chunk)
        except OSError as e:
            full_path.unlink(missing_ok=True)
            raise MediaWriteError(f"cannot write {full_path}: {e}") from e
        except BaseException:
            full_path.unlink(missing_ok=True)
            raise

    def import_from_file(self, source_path) -> MediaInfo:
        """Copy a local file into the media root and describe the stored copy."""
        source = Path(source_path)
        if not source.is_file():
            raise MediaReadError(f"no such file: {source}")
        size = source.stat().st_size
        if size > self.max_download_bytes:
            raise MediaTooLarge(size, self.max_download_bytes)

        mime = mimetypes.guess_type(source.name)[0] or DEFAULT_MIME
        media_type = self._media_type(mime)
        extension = source.suffix.lstrip(".") or extension_for_mime(mime) or "bin"
        relative_path, full_path = self._new_location(media_type, extension)
        try:
            shutil.copyfile(source, full_path)
        except OSError as e:
            raise MediaWriteError(f"cannot copy {source} to {full_path}: {e}") from e

        logger.info("media file imported: %s", relative_path)
        return self._describe(relative_path, full_path, mime, media_type)
