"""Domain models: channels, blocks, connections, update payloads, and pagination"""

from datetime import datetime
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from garden.core.utils.timestamps import utc_now


T = TypeVar("T")

ChannelId = str
BlockId = str

DISPLAY_TITLE_MAX = 50

POSITION_MIN = -2**31
POSITION_MAX = 2**31 - 1

Position = Annotated[int, Field(ge=POSITION_MIN, le=POSITION_MAX)]


def new_id() -> str:
    """Return a fresh random identifier (UUID4 as text)."""
    return str(uuid4())


class FieldUpdate(BaseModel, Generic[T]):
    """Three-state update for an optional field: keep it, clear it, or set it.

    Serializes as {"action": "keep" | "clear" | "set", "value": ...} so that
    "not supplied" and "explicitly null" survive a JSON round trip.
    """
    action: Literal["keep", "clear", "set"] = "keep"
    value: Optional[T] = None

    @model_validator(mode="after")
    def _value_matches_action(self):
        if self.action == "set" and self.value is None:
            raise ValueError("'set' requires a value")
        if self.action != "set" and self.value is not None:
            raise ValueError(f"'{self.action}' does not take a value")
        return self

    @classmethod
    def keep(cls) -> "FieldUpdate":
        return cls(action="keep")

    @classmethod
    def clear(cls) -> "FieldUpdate":
        return cls(action="clear")

    @classmethod
    def set(cls, value) -> "FieldUpdate":
        return cls(action="set", value=value)

    def apply(self, current: Optional[T]) -> Optional[T]:
        """Return the field's new value given its current one."""
        if self.action == "keep":
            return current
        if self.action == "clear":
            return None
        return self.value

    def is_update(self) -> bool:
        return self.action != "keep"


def _keep() -> FieldUpdate[str]:
    return FieldUpdate[str].keep()


class Page(BaseModel, Generic[T]):
    """One page of an ordered listing plus the total across all pages."""
    items: list[T]
    total: int
    offset: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.offset + len(self.items) < self.total

    @property
    def has_prev(self) -> bool:
        return self.offset > 0

    @property
    def page_number(self) -> int:
        """Zero-based index of this page."""
        return 0 if self.limit == 0 else self.offset // self.limit

    @property
    def total_pages(self) -> int:
        if self.limit == 0:
            return 1
        return -(-self.total // self.limit)


# --- block content (closed tagged union keyed on `type`) ---

class TextContent(BaseModel):
    type: Literal["text"] = "text"
    body: str


class LinkContent(BaseModel):
    type: Literal["link"] = "link"
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    alt_text: Optional[str] = None


class ImageContent(BaseModel):
    type: Literal["image"] = "image"
    file_path: str = Field(..., description="Relative path under the media root, e.g. images/<uuid>.jpg")
    mime_type: str
    original_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    alt_text: Optional[str] = None


class VideoContent(BaseModel):
    type: Literal["video"] = "video"
    file_path: str = Field(..., description="Relative path under the media root, e.g. videos/<uuid>.mp4")
    mime_type: str
    original_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = Field(default=None, description="Seconds")
    alt_text: Optional[str] = None


class AudioContent(BaseModel):
    type: Literal["audio"] = "audio"
    file_path: str = Field(..., description="Relative path under the media root, e.g. audio/<uuid>.mp3")
    mime_type: str
    original_url: Optional[str] = None
    duration: Optional[float] = Field(default=None, description="Seconds")
    title: Optional[str] = None
    artist: Optional[str] = None


BlockContent = Annotated[
    Union[TextContent, LinkContent, ImageContent, VideoContent, AudioContent],
    Field(discriminator="type"),
]

content_adapter: TypeAdapter = TypeAdapter(BlockContent)


def display_title(content: BlockContent) -> str:
    """Short human-readable label for a block's content."""
    match content:
        case TextContent(body=body):
            first_line = (body.splitlines() or [""])[0]
            return first_line[:DISPLAY_TITLE_MAX]
        case LinkContent(url=url, title=title):
            return title if title is not None else url
        case ImageContent(file_path=path, alt_text=alt) | VideoContent(file_path=path, alt_text=alt):
            return alt if alt is not None else path
        case AudioContent(file_path=path, title=title, artist=artist):
            if title is not None:
                return title
            return artist if artist is not None else path
    raise TypeError(f"unknown block content: {content!r}")


def media_file_path(content: BlockContent) -> Optional[str]:
    match content:
        case ImageContent(file_path=path) | VideoContent(file_path=path) | AudioContent(file_path=path):
            return path
        case TextContent() | LinkContent():
            return None
    raise TypeError(f"unknown block content: {content!r}")


def media_mime_type(content: BlockContent) -> Optional[str]:
    match content:
        case ImageContent(mime_type=mime) | VideoContent(mime_type=mime) | AudioContent(mime_type=mime):
            return mime
        case TextContent() | LinkContent():
            return None
    raise TypeError(f"unknown block content: {content!r}")


# --- entities ---

class Channel(BaseModel):
    """A named collection that blocks are connected to."""
    id: ChannelId = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def new(cls, title: str, description: Optional[str] = None) -> "Channel":
        now = utc_now()
        return cls(title=title, description=description, created_at=now, updated_at=now)


class Block(BaseModel):
    """A unit of curated content plus its archival metadata."""
    id: BlockId = Field(default_factory=new_id)
    content: BlockContent
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    source_url: Optional[str] = Field(default=None, description="Where the content was curated from")
    source_title: Optional[str] = Field(default=None, description="Display text for the source link")
    creator: Optional[str] = Field(default=None, description="Author or artist of the original")
    original_date: Optional[str] = Field(default=None, description="Original publication date, free-form")
    notes: Optional[str] = None

    @classmethod
    def new(cls, content: BlockContent, **metadata: Any) -> "Block":
        now = utc_now()
        return cls(content=content, created_at=now, updated_at=now, **metadata)

    @property
    def display_title(self) -> str:
        return display_title(self.content)

    @property
    def is_media(self) -> bool:
        return media_file_path(self.content) is not None


class Connection(BaseModel):
    """Links one block to one channel at an ordering position."""
    block_id: BlockId
    channel_id: ChannelId
    position: int
    connected_at: datetime = Field(default_factory=utc_now)


# --- request payloads ---

BLOCK_METADATA_FIELDS = ("source_url", "source_title", "creator", "original_date", "notes")


class NewChannel(BaseModel):
    title: str
    description: Optional[str] = None


class ChannelUpdate(BaseModel):
    title: Optional[str] = Field(default=None, description="None keeps the current title")
    description: FieldUpdate[str] = Field(default_factory=_keep)

    @field_validator("description", mode="before")
    @classmethod
    def _null_is_keep(cls, v):
        return _keep() if v is None else v


class NewBlock(BaseModel):
    content: BlockContent
    source_url: Optional[str] = None
    source_title: Optional[str] = None
    creator: Optional[str] = None
    original_date: Optional[str] = None
    notes: Optional[str] = None

    def metadata(self) -> dict[str, Optional[str]]:
        return self.model_dump(include=set(BLOCK_METADATA_FIELDS))


class BlockUpdate(BaseModel):
    """Partial block update. Omitted or null metadata fields are kept as-is."""
    content: Optional[BlockContent] = None
    source_url: FieldUpdate[str] = Field(default_factory=_keep)
    source_title: FieldUpdate[str] = Field(default_factory=_keep)
    creator: FieldUpdate[str] = Field(default_factory=_keep)
    original_date: FieldUpdate[str] = Field(default_factory=_keep)
    notes: FieldUpdate[str] = Field(default_factory=_keep)

    @field_validator(*BLOCK_METADATA_FIELDS, mode="before")
    @classmethod
    def _null_is_keep(cls, v):
        return _keep() if v is None else v
