"""Input validation for channels and block content; raises InvalidInput"""

from typing import Optional
from urllib.parse import urlsplit

from garden.core.models import (
    AudioContent,
    BlockContent,
    ImageContent,
    LinkContent,
    TextContent,
    VideoContent,
)
from garden.errors import InvalidInput


ALLOWED_URL_SCHEMES = ("http", "https")


def validate_channel_title(title: str) -> None:
    if not title.strip():
        raise InvalidInput("channel title cannot be empty")


def validate_block_content(content: BlockContent) -> None:
    """Check content against the rules for its type."""
    match content:
        case TextContent(body=body):
            if not body.strip():
                raise InvalidInput("text block cannot be empty")
        case LinkContent():
            validate_url(content.url)
            _optional_text("title", content.title)
            _optional_text("description", content.description)
            _optional_text("alt_text", content.alt_text)
        case ImageContent() | VideoContent():
            category = "image" if isinstance(content, ImageContent) else "video"
            _media_fields(content.file_path, content.mime_type, category, content.original_url)
            _optional_text("alt_text", content.alt_text)
        case AudioContent():
            _media_fields(content.file_path, content.mime_type, "audio", content.original_url)
            _optional_text("title", content.title)
            _optional_text("artist", content.artist)
        case _:
            raise InvalidInput(f"unknown block content type: {type(content).__name__}")


def validate_url(url: str) -> None:
    """Accept only absolute http(s) URLs with a host."""
    if not url.strip():
        raise InvalidInput("link URL cannot be empty")
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError as e:
        raise InvalidInput(f"invalid URL '{url}': {e}") from e
    if not parts.scheme:
        raise InvalidInput(f"invalid URL '{url}': relative URL without a base")
    if parts.scheme not in ALLOWED_URL_SCHEMES:
        raise InvalidInput(f"URL scheme '{parts.scheme}' is not allowed, use http or https")
    if not hostname:
        raise InvalidInput("URL must have a valid host")
    if any(ch.isspace() for ch in parts.netloc):
        raise InvalidInput(f"invalid URL '{url}': invalid domain character")


def validate_file_path(path: str) -> None:
    """Media paths are relative to the media root and may not climb out of it."""
    if not path.strip():
        raise InvalidInput("file path cannot be empty")
    if ".." in path:
        raise InvalidInput("file path cannot contain '..'")
    if path.startswith(("/", "\\")):
        raise InvalidInput("file path must be relative")


def validate_mime_type(mime_type: str, category: str) -> None:
    if not mime_type.strip():
        raise InvalidInput("MIME type cannot be empty")
    if not mime_type.startswith(f"{category}/"):
        raise InvalidInput(f"expected {category} MIME type, got '{mime_type}'")


def _media_fields(file_path: str, mime_type: str, category: str, original_url: Optional[str]) -> None:
    validate_file_path(file_path)
    validate_mime_type(mime_type, category)
    if original_url is not None:
        validate_url(original_url)


def _optional_text(field: str, value: Optional[str]) -> None:
    # empty is allowed, whitespace-only is not
    if value and not value.strip():
        raise InvalidInput(f"{field} cannot be only whitespace")
