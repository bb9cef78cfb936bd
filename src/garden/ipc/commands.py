"""Named transport commands: JSON payload in, JSON envelope out"""

import logging
from typing import Any, Callable, Optional

from pydantic import ConfigDict, TypeAdapter, ValidationError, validate_call

from garden.bootstrap import AppState
from garden.core.models import BlockId, BlockUpdate, ChannelId, ChannelUpdate, NewBlock, NewChannel, Position
from garden.errors import GardenError
from garden.ipc.errors import UnknownCommand, to_command_error


logger = logging.getLogger(__name__)

COMMANDS: dict[str, Callable[..., Any]] = {}

_to_json = TypeAdapter(Any)


def command(name: str):
    """Register a handler; its keyword arguments are validated from the payload."""
    def register(fn):
        COMMANDS[name] = validate_call(fn, config=ConfigDict(arbitrary_types_allowed=True))
        return fn
    return register


def invoke(state: AppState, name: str, payload: Optional[dict] = None) -> dict:
    """Run a command by name and wrap the outcome as {"ok": ..., "data"|"error": ...}."""
    try:
        handler = COMMANDS.get(name)
        if handler is None:
            raise UnknownCommand(name)
        data = handler(state, **(payload or {}))
    except (GardenError, ValidationError) as e:
        logger.debug("command %s failed: %s", name, e)
        return {"ok": False, "error": to_command_error(e).to_dict()}
    except Exception as e:
        logger.exception("command %s raised an unexpected error", name)
        return {"ok": False, "error": to_command_error(e).to_dict()}
    return {"ok": True, "data": _to_json.dump_python(data, mode="json")}


def _page(page) -> dict:
    return page.model_dump(mode="json") | {
        "has_next": page.has_next,
        "has_prev": page.has_prev,
        "page_number": page.page_number,
        "total_pages": page.total_pages,
    }


# --- channels ---

@command("channel_create")
def channel_create(state: AppState, new_channel: NewChannel):
    return state.service.create_channel(new_channel)


@command("channel_get")
def channel_get(state: AppState, id: ChannelId):
    return state.service.get_channel(id)


@command("channel_list")
def channel_list(state: AppState, limit: Optional[int] = None, offset: Optional[int] = None):
    limit = state.settings.page_limit if limit is None else limit
    return _page(state.service.list_channels(limit, offset or 0))


@command("channel_update")
def channel_update(state: AppState, id: ChannelId, update: ChannelUpdate):
    return state.service.update_channel(id, update)


@command("channel_delete")
def channel_delete(state: AppState, id: ChannelId):
    state.service.delete_channel(id)


@command("channel_count")
def channel_count(state: AppState):
    return state.service.count_channels()


# --- blocks ---

@command("block_create")
def block_create(state: AppState, new_block: NewBlock):
    return state.service.create_block(new_block)


@command("block_create_batch")
def block_create_batch(state: AppState, new_blocks: list[NewBlock]):
    return state.service.create_blocks(new_blocks)


@command("block_get")
def block_get(state: AppState, id: BlockId):
    return state.service.get_block(id)


@command("block_update")
def block_update(state: AppState, id: BlockId, update: BlockUpdate):
    return state.service.update_block(id, update)


@command("block_delete")
def block_delete(state: AppState, id: BlockId):
    state.service.delete_block(id)


# --- connections ---

@command("connection_connect")
def connection_connect(state: AppState, block_id: BlockId, channel_id: ChannelId, position: Optional[Position] = None):
    return state.service.connect_block(block_id, channel_id, position)


@command("connection_connect_batch")
def connection_connect_batch(
    state: AppState,
    block_ids: list[BlockId],
    channel_id: ChannelId,
    starting_position: Optional[Position] = None,
    ):
    return state.service.connect_blocks(block_ids, channel_id, starting_position)


@command("connection_disconnect")
def connection_disconnect(state: AppState, block_id: BlockId, channel_id: ChannelId):
    state.service.disconnect_block(block_id, channel_id)


@command("connection_get")
def connection_get(state: AppState, block_id: BlockId, channel_id: ChannelId):
    return state.service.get_connection(block_id, channel_id)


@command("connection_get_blocks_in_channel")
def connection_get_blocks_in_channel(state: AppState, channel_id: ChannelId):
    return state.service.get_blocks_in_channel(channel_id)


@command("connection_get_blocks_with_positions")
def connection_get_blocks_with_positions(state: AppState, channel_id: ChannelId):
    return state.service.get_blocks_in_channel_with_positions(channel_id)


@command("connection_get_channels_for_block")
def connection_get_channels_for_block(state: AppState, block_id: BlockId):
    return state.service.get_channels_for_block(block_id)


@command("connection_reorder")
def connection_reorder(state: AppState, channel_id: ChannelId, block_id: BlockId, new_position: Position):
    state.service.reorder_block(channel_id, block_id, new_position)


# --- media ---

@command("media_import_from_url")
def media_import_from_url(state: AppState, url: str):
    return state.media.import_from_url(url)


@command("media_import_from_file")
def media_import_from_file(state: AppState, path: str):
    return state.media.import_from_file(path)


@command("media_delete")
def media_delete(state: AppState, file_path: str):
    state.media.delete(file_path)


@command("media_exists")
def media_exists(state: AppState, file_path: str):
    return state.media.exists(file_path)


@command("media_get_full_path")
def media_get_full_path(state: AppState, file_path: str):
    return str(state.media.resolve_full_path(file_path))
