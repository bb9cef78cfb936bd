"""Error taxonomy: domain, repository, media, and initialization failures"""

from functools import wraps


class GardenError(Exception):
    """Base class for every error raised by the garden package."""


# --- repository (storage adapter) errors ---

class RepoError(GardenError):
    """A storage-layer failure surfaced through a repository port."""


class NotFoundError(RepoError):
    def __init__(self, message: str = "not found"):
        super().__init__(message)


class DuplicateError(RepoError):
    def __init__(self, message: str = "duplicate record"):
        super().__init__(message)


class DatabaseError(RepoError):
    """Opaque backend failure (connectivity, constraint, driver error)."""

    def __init__(self, message: str):
        super().__init__(f"database error: {message}")
        self.message = message


class InvalidDatetimeError(DatabaseError):
    """A stored timestamp could not be parsed; never coerced."""

    def __init__(self, field: str, value: str):
        super().__init__(f"invalid datetime format in field '{field}': {value}")
        self.field = field
        self.value = value


class SchemaError(DatabaseError):
    pass


class SerializationError(RepoError):
    """Block content could not be encoded to or decoded from its stored form."""

    def __init__(self, message: str):
        super().__init__(f"serialization error: {message}")
        self.message = message


# --- domain errors ---

class DomainError(GardenError):
    """Failure of a GardenService operation."""


class ChannelNotFound(DomainError):
    def __init__(self, channel_id: str):
        super().__init__(f"channel not found: {channel_id}")
        self.channel_id = channel_id


class BlockNotFound(DomainError):
    def __init__(self, block_id: str):
        super().__init__(f"block not found: {block_id}")
        self.block_id = block_id


class ConnectionNotFound(DomainError):
    def __init__(self, block_id: str, channel_id: str):
        super().__init__(f"connection not found: block {block_id} in channel {channel_id}")
        self.block_id = block_id
        self.channel_id = channel_id


class InvalidInput(DomainError):
    def __init__(self, message: str):
        super().__init__(f"invalid input: {message}")
        self.message = message


class RepositoryError(DomainError):
    """Wraps a RepoError raised underneath a service call."""

    def __init__(self, error: RepoError):
        super().__init__(f"repository error: {error}")
        self.error = error


def translate_repo_errors(func):
    """Re-raise any RepoError escaping func as a RepositoryError, chained."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except RepoError as e:
            raise RepositoryError(e) from e
    return wrapper


# --- media errors ---

class MediaError(GardenError):
    """Failure importing, storing, or locating a media file."""


class MediaDownloadError(MediaError):
    pass


class MediaReadError(MediaError):
    pass


class MediaWriteError(MediaError):
    pass


class UnsupportedMediaType(MediaError):
    def __init__(self, mime_type: str):
        super().__init__(f"Unsupported media type: {mime_type}")
        self.mime_type = mime_type


class InvalidMediaUrl(MediaError):
    pass


class MediaTooLarge(MediaError):
    def __init__(self, size: int, max_size: int):
        super().__init__(f"File too large: {size} bytes (max {max_size} bytes)")
        self.size = size
        self.max_size = max_size


class InvalidMediaPath(MediaError):
    pass


# --- application wiring ---

class InitializationError(GardenError):
    """The database or media directories could not be set up."""
