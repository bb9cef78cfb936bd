"""GardenService: channel, block, and connection operations over the repository ports"""

import logging
from typing import Optional

from garden.core.models import (
    Block,
    BlockId,
    BlockUpdate,
    BLOCK_METADATA_FIELDS,
    Channel,
    ChannelId,
    ChannelUpdate,
    Connection,
    NewBlock,
    NewChannel,
    Page,
    POSITION_MAX,
    POSITION_MIN,
)
from garden.core.utils.timestamps import utc_now
from garden.core.validation import validate_block_content, validate_channel_title
from garden.crud.repo import BlockRepository, ChannelRepository, ConnectionRepository
from garden.errors import (
    BlockNotFound,
    ChannelNotFound,
    ConnectionNotFound,
    InvalidInput,
    translate_repo_errors,
)


logger = logging.getLogger(__name__)


def _check_position(position: int) -> int:
    if not POSITION_MIN <= position <= POSITION_MAX:
        raise InvalidInput(f"position {position} is outside [{POSITION_MIN}, {POSITION_MAX}]")
    return position


class GardenService:
    """The only place cross-aggregate rules live: existence checks, validation, ordering."""

    def __init__(self, channels: ChannelRepository, blocks: BlockRepository, connections: ConnectionRepository):
        self.channels = channels
        self.blocks = blocks
        self.connections = connections

    # --- channels ---

    @translate_repo_errors
    def create_channel(self, new_channel: NewChannel) -> Channel:
        validate_channel_title(new_channel.title)
        channel = self.channels.create(Channel.new(new_channel.title, new_channel.description))
        logger.info("channel created: %s", channel.id)
        return channel

    @translate_repo_errors
    def get_channel(self, channel_id: ChannelId) -> Channel:
        channel = self.channels.get(channel_id)
        if channel is None:
            raise ChannelNotFound(channel_id)
        return channel

    @translate_repo_errors
    def list_channels(self, limit: int, offset: int = 0) -> Page[Channel]:
        if limit < 0 or offset < 0:
            raise InvalidInput("limit and offset must not be negative")
        return self.channels.list(limit, offset)

    @translate_repo_errors
    def count_channels(self) -> int:
        return self.channels.count()

    @translate_repo_errors
    def update_channel(self, channel_id: ChannelId, update: ChannelUpdate) -> Channel:
        channel = self.get_channel(channel_id)
        if update.title is not None:
            validate_channel_title(update.title)
            channel.title = update.title
        channel.description = update.description.apply(channel.description)
        channel.updated_at = utc_now()
        channel = self.channels.update(channel)
        logger.info("channel updated: %s", channel_id)
        return channel

    @translate_repo_errors
    def delete_channel(self, channel_id: ChannelId) -> None:
        self.get_channel(channel_id)
        self.channels.delete(channel_id)
        logger.info("channel deleted: %s", channel_id)

    # --- blocks ---

    @translate_repo_errors
    def create_block(self, new_block: NewBlock) -> Block:
        validate_block_content(new_block.content)
        block = self.blocks.create(Block.new(new_block.content, **new_block.metadata()))
        logger.info("block created: %s (%s)", block.id, block.content.type)
        return block

    @translate_repo_errors
    def create_blocks(self, new_blocks: list[NewBlock]) -> list[Block]:
        """Validate every block first, then insert them all in one batch."""
        for new_block in new_blocks:
            validate_block_content(new_block.content)
        blocks = [Block.new(nb.content, **nb.metadata()) for nb in new_blocks]
        if not blocks:
            return []
        blocks = self.blocks.create_batch(blocks)
        logger.info("blocks created: %d", len(blocks))
        return blocks

    @translate_repo_errors
    def get_block(self, block_id: BlockId) -> Block:
        block = self.blocks.get(block_id)
        if block is None:
            raise BlockNotFound(block_id)
        return block

    @translate_repo_errors
    def update_block(self, block_id: BlockId, update: BlockUpdate) -> Block:
        block = self.get_block(block_id)
        if update.content is not None:
            validate_block_content(update.content)
            block.content = update.content
        for name in BLOCK_METADATA_FIELDS:
            field_update = getattr(update, name)
            setattr(block, name, field_update.apply(getattr(block, name)))
        block.updated_at = utc_now()
        block = self.blocks.update(block)
        logger.info("block updated: %s", block_id)
        return block

    @translate_repo_errors
    def delete_block(self, block_id: BlockId) -> None:
        self.get_block(block_id)
        self.blocks.delete(block_id)
        logger.info("block deleted: %s", block_id)

    # --- connections ---

    @translate_repo_errors
    def connect_block(self, block_id: BlockId, channel_id: ChannelId, position: Optional[int] = None) -> Connection:
        """Connect a block to a channel, appending when no position is given."""
        if position is not None:
            _check_position(position)
        self.get_block(block_id)
        self.get_channel(channel_id)
        if self.connections.get_connection(block_id, channel_id) is not None:
            raise InvalidInput("block is already connected to this channel")

        if position is None:
            position = _check_position(self.connections.next_position(channel_id))
        self.connections.connect(block_id, channel_id, position)
        logger.info("block %s connected to channel %s at position %d", block_id, channel_id, position)
        return self.get_connection(block_id, channel_id)

    @translate_repo_errors
    def connect_blocks(
        self,
        block_ids: list[BlockId],
        channel_id: ChannelId,
        starting_position: Optional[int] = None,
        ) -> list[Connection]:
        """Connect blocks in input order at consecutive positions, all or nothing."""
        self.get_channel(channel_id)
        for block_id in block_ids:
            self.get_block(block_id)
            if self.connections.get_connection(block_id, channel_id) is not None:
                raise InvalidInput(f"block {block_id} is already connected to this channel")
        if not block_ids:
            return []

        start = self.connections.next_position(channel_id) if starting_position is None else starting_position
        _check_position(start)
        _check_position(start + len(block_ids) - 1)
        self.connections.connect_batch([
            (block_id, channel_id, start + i) for i, block_id in enumerate(block_ids)
        ])
        logger.info("%d blocks connected to channel %s from position %d", len(block_ids), channel_id, start)

        created = [self.connections.get_connection(block_id, channel_id) for block_id in block_ids]
        return [c for c in created if c is not None]

    @translate_repo_errors
    def disconnect_block(self, block_id: BlockId, channel_id: ChannelId) -> None:
        self.get_connection(block_id, channel_id)
        self.connections.disconnect(block_id, channel_id)
        logger.info("block %s disconnected from channel %s", block_id, channel_id)

    @translate_repo_errors
    def reorder_block(self, channel_id: ChannelId, block_id: BlockId, new_position: int) -> None:
        """Move a block to new_position; other positions are left as they are."""
        _check_position(new_position)
        self.get_connection(block_id, channel_id)
        self.connections.reorder(channel_id, block_id, new_position)
        logger.info("block %s reordered in channel %s to position %d", block_id, channel_id, new_position)

    @translate_repo_errors
    def get_connection(self, block_id: BlockId, channel_id: ChannelId) -> Connection:
        connection = self.connections.get_connection(block_id, channel_id)
        if connection is None:
            raise ConnectionNotFound(block_id, channel_id)
        return connection

    @translate_repo_errors
    def get_blocks_in_channel(self, channel_id: ChannelId) -> list[Block]:
        return [block for block, _ in self.connections.get_blocks_in_channel(channel_id)]

    @translate_repo_errors
    def get_blocks_in_channel_with_positions(self, channel_id: ChannelId) -> list[tuple[Block, int]]:
        return self.connections.get_blocks_in_channel(channel_id)

    @translate_repo_errors
    def get_channels_for_block(self, block_id: BlockId) -> list[Channel]:
        return self.connections.get_channels_for_block(block_id)
