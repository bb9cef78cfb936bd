"""In-memory repositories backed by one shared store, for tests and prototyping"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from garden.core.models import Block, BlockId, Channel, ChannelId, Connection, Page
from garden.core.utils.timestamps import utc_now
from garden.crud.repo import BlockRepository, ChannelRepository, ConnectionRepository
from garden.errors import DatabaseError, DuplicateError, NotFoundError


logger = logging.getLogger(__name__)

INTEGER_MIN = -2**63
INTEGER_MAX = 2**63 - 1


def _check_integer(position: int) -> None:
    # mirrors the 64-bit INTEGER column of the SQL schema
    if not INTEGER_MIN <= position <= INTEGER_MAX:
        raise DatabaseError(f"position {position} does not fit a 64-bit integer")


@dataclass
class MemoryStore:
    """Process-local tables; connections keep insertion order for tie-breaks."""
    channels: dict[ChannelId, Channel] = field(default_factory=dict)
    blocks: dict[BlockId, Block] = field(default_factory=dict)
    connections: dict[tuple[BlockId, ChannelId], Connection] = field(default_factory=dict)

    def drop_connections(self, *, block_id: BlockId = None, channel_id: ChannelId = None) -> int:
        doomed = [
            key for key, conn in self.connections.items()
            if conn.block_id == block_id or conn.channel_id == channel_id
        ]
        for key in doomed:
            del self.connections[key]
        return len(doomed)


@dataclass
class MemoryChannelRepo(ChannelRepository):
    store: MemoryStore = field(default_factory=MemoryStore)

    def create(self, channel: Channel) -> Channel:
        if channel.id in self.store.channels:
            raise DuplicateError(f"channel {channel.id} already exists")
        self.store.channels[channel.id] = channel.model_copy(deep=True)
        return channel

    def get(self, channel_id: ChannelId) -> Optional[Channel]:
        found = self.store.channels.get(channel_id)
        return found.model_copy(deep=True) if found else None

    def list(self, limit: int, offset: int) -> Page[Channel]:
        ordered = sorted(self.store.channels.values(), key=lambda c: c.created_at, reverse=True)
        items = [c.model_copy(deep=True) for c in ordered[offset:offset + limit]]
        return Page[Channel](items=items, total=len(ordered), offset=offset, limit=limit)

    def update(self, channel: Channel) -> Channel:
        if channel.id not in self.store.channels:
            raise NotFoundError(f"channel {channel.id} not found")
        self.store.channels[channel.id] = channel.model_copy(deep=True)
        return channel

    def delete(self, channel_id: ChannelId) -> None:
        if self.store.channels.pop(channel_id, None) is None:
            raise NotFoundError(f"channel {channel_id} not found")
        dropped = self.store.drop_connections(channel_id=channel_id)
        logger.debug("deleted channel %s (%d connections)", channel_id, dropped)

    def count(self) -> int:
        return len(self.store.channels)


@dataclass
class MemoryBlockRepo(BlockRepository):
    store: MemoryStore = field(default_factory=MemoryStore)

    def create(self, block: Block) -> Block:
        if block.id in self.store.blocks:
            raise DuplicateError(f"block {block.id} already exists")
        self.store.blocks[block.id] = block.model_copy(deep=True)
        return block

    def create_batch(self, blocks: list[Block]) -> list[Block]:
        ids = [b.id for b in blocks]
        if len(set(ids)) != len(ids) or any(i in self.store.blocks for i in ids):
            raise DuplicateError("block batch contains an existing or repeated id")
        for block in blocks:
            self.store.blocks[block.id] = block.model_copy(deep=True)
        return blocks

    def get(self, block_id: BlockId) -> Optional[Block]:
        found = self.store.blocks.get(block_id)
        return found.model_copy(deep=True) if found else None

    def update(self, block: Block) -> Block:
        if block.id not in self.store.blocks:
            raise NotFoundError(f"block {block.id} not found")
        self.store.blocks[block.id] = block.model_copy(deep=True)
        return block

    def delete(self, block_id: BlockId) -> None:
        if self.store.blocks.pop(block_id, None) is None:
            raise NotFoundError(f"block {block_id} not found")
        dropped = self.store.drop_connections(block_id=block_id)
        logger.debug("deleted block %s (%d connections)", block_id, dropped)


@dataclass
class MemoryConnectionRepo(ConnectionRepository):
    store: MemoryStore = field(default_factory=MemoryStore)

    def _check_refs(self, block_id: BlockId, channel_id: ChannelId) -> None:
        # mirrors the foreign keys of the SQL schema
        if block_id not in self.store.blocks or channel_id not in self.store.channels:
            raise DatabaseError("FOREIGN KEY constraint failed")

    def connect(self, block_id: BlockId, channel_id: ChannelId, position: int) -> None:
        self._check_refs(block_id, channel_id)
        _check_integer(position)
        if (block_id, channel_id) in self.store.connections:
            raise DuplicateError(f"block {block_id} already connected to channel {channel_id}")
        self.store.connections[(block_id, channel_id)] = Connection(
            block_id=block_id, channel_id=channel_id, position=position, connected_at=utc_now())

    def connect_batch(self, connections: list[tuple[BlockId, ChannelId, int]]) -> None:
        seen: set[tuple[BlockId, ChannelId]] = set()
        for block_id, channel_id, position in connections:
            self._check_refs(block_id, channel_id)
            _check_integer(position)
            key = (block_id, channel_id)
            if key in seen or key in self.store.connections:
                raise DuplicateError(f"block {block_id} already connected to channel {channel_id}")
            seen.add(key)

        connected_at = utc_now()
        for block_id, channel_id, position in connections:
            self.store.connections[(block_id, channel_id)] = Connection(
                block_id=block_id, channel_id=channel_id, position=position, connected_at=connected_at)

    def disconnect(self, block_id: BlockId, channel_id: ChannelId) -> None:
        if self.store.connections.pop((block_id, channel_id), None) is None:
            raise NotFoundError(f"block {block_id} not connected to channel {channel_id}")

    def get_blocks_in_channel(self, channel_id: ChannelId) -> list[tuple[Block, int]]:
        conns = [c for c in self.store.connections.values() if c.channel_id == channel_id]
        conns.sort(key=lambda c: (c.position, c.connected_at))
        return [(self.store.blocks[c.block_id].model_copy(deep=True), c.position) for c in conns]

    def get_channels_for_block(self, block_id: BlockId) -> list[Channel]:
        conns = [c for c in self.store.connections.values() if c.block_id == block_id]
        conns.sort(key=lambda c: c.connected_at, reverse=True)
        return [self.store.channels[c.channel_id].model_copy(deep=True) for c in conns]

    def get_connection(self, block_id: BlockId, channel_id: ChannelId) -> Optional[Connection]:
        found = self.store.connections.get((block_id, channel_id))
        return found.model_copy() if found else None

    def reorder(self, channel_id: ChannelId, block_id: BlockId, new_position: int) -> None:
        conn = self.store.connections.get((block_id, channel_id))
        if conn is None:
            raise NotFoundError(f"block {block_id} not connected to channel {channel_id}")
        _check_integer(new_position)
        conn.position = new_position

    def next_position(self, channel_id: ChannelId) -> int:
        positions = [c.position for c in self.store.connections.values() if c.channel_id == channel_id]
        return max(positions) + 1 if positions else 0


def memory_repos(store: MemoryStore = None) -> tuple[MemoryChannelRepo, MemoryBlockRepo, MemoryConnectionRepo]:
    """Build the three repositories over one store so deletes cascade."""
    store = store or MemoryStore()
    return MemoryChannelRepo(store), MemoryBlockRepo(store), MemoryConnectionRepo(store)
