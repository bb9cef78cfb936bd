"""Machine-readable error envelope for transport commands"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ValidationError

from garden.errors import (
    BlockNotFound,
    ChannelNotFound,
    ConnectionNotFound,
    DuplicateError,
    GardenError,
    InitializationError,
    InvalidInput,
    MediaError,
    RepoError,
    RepositoryError,
    SerializationError,
)


class ErrorCode(str, Enum):
    CHANNEL_NOT_FOUND = "CHANNEL_NOT_FOUND"
    BLOCK_NOT_FOUND = "BLOCK_NOT_FOUND"
    CONNECTION_NOT_FOUND = "CONNECTION_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    INITIALIZATION_ERROR = "INITIALIZATION_ERROR"
    MEDIA_ERROR = "MEDIA_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class UnknownCommand(GardenError):
    def __init__(self, name: str):
        super().__init__(f"unknown command: {name}")
        self.name = name


class CommandError(BaseModel):
    code: ErrorCode
    message: str
    entity_id: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def _repo_code(err: RepoError) -> ErrorCode:
    if isinstance(err, DuplicateError):
        return ErrorCode.DUPLICATE_ERROR
    if isinstance(err, SerializationError):
        return ErrorCode.INTERNAL_ERROR
    return ErrorCode.DATABASE_ERROR


def to_command_error(err: Exception) -> CommandError:
    """Map any exception raised under a command to its error code."""
    match err:
        case ChannelNotFound():
            return CommandError(code=ErrorCode.CHANNEL_NOT_FOUND, message=str(err), entity_id=err.channel_id)
        case BlockNotFound():
            return CommandError(code=ErrorCode.BLOCK_NOT_FOUND, message=str(err), entity_id=err.block_id)
        case ConnectionNotFound():
            return CommandError(code=ErrorCode.CONNECTION_NOT_FOUND, message=str(err))
        case InvalidInput():
            return CommandError(code=ErrorCode.VALIDATION_ERROR, message=err.message)
        case ValidationError():
            return CommandError(code=ErrorCode.VALIDATION_ERROR, message=str(err))
        case RepositoryError():
            return CommandError(code=_repo_code(err.error), message=str(err.error))
        case RepoError():
            return CommandError(code=_repo_code(err), message=str(err))
        case InitializationError():
            return CommandError(code=ErrorCode.INITIALIZATION_ERROR, message=str(err))
        case MediaError():
            return CommandError(code=ErrorCode.MEDIA_ERROR, message=str(err))
    return CommandError(code=ErrorCode.INTERNAL_ERROR, message=str(err))
