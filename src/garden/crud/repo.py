"""Repository ports: the storage contracts GardenService depends on"""

from abc import ABC, abstractmethod
from typing import Optional

from garden.core.models import Block, BlockId, Channel, ChannelId, Connection, Page


class ChannelRepository(ABC):
    @abstractmethod
    def create(self, channel: Channel) -> Channel:
        """Persist a new channel. Raises DuplicateError if the id exists."""
        raise NotImplementedError

    @abstractmethod
    def get(self, channel_id: ChannelId) -> Optional[Channel]:
        raise NotImplementedError

    @abstractmethod
    def list(self, limit: int, offset: int) -> Page[Channel]:
        """Return a page of channels, newest first."""
        raise NotImplementedError

    @abstractmethod
    def update(self, channel: Channel) -> Channel:
        """Overwrite a stored channel. Raises NotFoundError if absent."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, channel_id: ChannelId) -> None:
        """Remove a channel and its connections. Raises NotFoundError if absent."""
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError


class BlockRepository(ABC):
    @abstractmethod
    def create(self, block: Block) -> Block:
        raise NotImplementedError

    @abstractmethod
    def create_batch(self, blocks: list[Block]) -> list[Block]:
        """Persist every block or none of them."""
        raise NotImplementedError

    @abstractmethod
    def get(self, block_id: BlockId) -> Optional[Block]:
        raise NotImplementedError

    @abstractmethod
    def update(self, block: Block) -> Block:
        raise NotImplementedError

    @abstractmethod
    def delete(self, block_id: BlockId) -> None:
        """Remove a block and its connections. Raises NotFoundError if absent."""
        raise NotImplementedError


class ConnectionRepository(ABC):
    @abstractmethod
    def connect(self, block_id: BlockId, channel_id: ChannelId, position: int) -> None:
        """Raises DuplicateError if the pair is already connected."""
        raise NotImplementedError

    @abstractmethod
    def connect_batch(self, connections: list[tuple[BlockId, ChannelId, int]]) -> None:
        """Insert all connections atomically with one shared connected_at.

        Raises DuplicateError, before inserting anything, if any pair is
        already connected or appears twice in the batch.
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self, block_id: BlockId, channel_id: ChannelId) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_blocks_in_channel(self, channel_id: ChannelId) -> list[tuple[Block, int]]:
        """Return (block, position) pairs by ascending position."""
        raise NotImplementedError

    @abstractmethod
    def get_channels_for_block(self, block_id: BlockId) -> list[Channel]:
        """Return channels the block is in, most recently connected first."""
        raise NotImplementedError

    @abstractmethod
    def get_connection(self, block_id: BlockId, channel_id: ChannelId) -> Optional[Connection]:
        raise NotImplementedError

    @abstractmethod
    def reorder(self, channel_id: ChannelId, block_id: BlockId, new_position: int) -> None:
        """Overwrite the stored position. Raises NotFoundError if not connected."""
        raise NotImplementedError

    @abstractmethod
    def next_position(self, channel_id: ChannelId) -> int:
        """Return max(position) + 1, or 0 for an empty channel."""
        raise NotImplementedError
