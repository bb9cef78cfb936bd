"""SQLModel-backed repositories: row mapping, error translation, and ordered queries"""

import logging
import time
from contextlib import contextmanager
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from garden.core.models import Block, BlockId, Channel, ChannelId, Connection, Page, content_adapter
from garden.core.utils.timestamps import format_datetime, parse_datetime, utc_now
from garden.crud.repo import BlockRepository, ChannelRepository, ConnectionRepository
from garden.crud.tables import BlockRow, ChannelRow, ConnectionRow
from garden.errors import DatabaseError, DuplicateError, NotFoundError, SerializationError


logger = logging.getLogger(__name__)

SLOW_QUERY_SECONDS = 0.05


# --- row mapping ---

def _row_to_channel(r: ChannelRow) -> Channel:
    return Channel(
        id=r.id,
        title=r.title,
        description=r.description,
        created_at=parse_datetime(r.created_at, "created_at"),
        updated_at=parse_datetime(r.updated_at, "updated_at"),
    )


def _channel_to_row(channel: Channel, row: ChannelRow = None) -> ChannelRow:
    row = row or ChannelRow(id=channel.id, created_at=format_datetime(channel.created_at))
    row.title = channel.title
    row.description = channel.description
    row.updated_at = format_datetime(channel.updated_at)
    return row


def _row_to_block(r: BlockRow) -> Block:
    try:
        content = content_adapter.validate_json(r.content_json)
    except ValidationError as e:
        raise SerializationError(f"block {r.id} content: {e}") from e
    return Block(
        id=r.id,
        content=content,
        created_at=parse_datetime(r.created_at, "created_at"),
        updated_at=parse_datetime(r.updated_at, "updated_at"),
        source_url=r.source_url,
        source_title=r.source_title,
        creator=r.creator,
        original_date=r.original_date,
        notes=r.notes,
    )


def _block_to_row(block: Block, row: BlockRow = None) -> BlockRow:
    row = row or BlockRow(id=block.id, created_at=format_datetime(block.created_at))
    try:
        row.content_json = content_adapter.dump_json(block.content).decode()
    except (TypeError, ValueError) as e:
        raise SerializationError(f"block {block.id} content: {e}") from e
    row.content_type = block.content.type
    row.updated_at = format_datetime(block.updated_at)
    row.source_url = block.source_url
    row.source_title = block.source_title
    row.creator = block.creator
    row.original_date = block.original_date
    row.notes = block.notes
    return row


def _row_to_connection(r: ConnectionRow) -> Connection:
    return Connection(
        block_id=r.block_id,
        channel_id=r.channel_id,
        position=r.position,
        connected_at=parse_datetime(r.connected_at, "connected_at"),
    )


# --- shared session handling ---

class _SQLRepo:
    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def _session(self):
        """Open a session for one unit of work and translate driver errors."""
        with Session(self.engine) as session:
            try:
                yield session
            except IntegrityError as e:
                session.rollback()
                detail = str(e.orig)
                if "UNIQUE" in detail.upper():
                    raise DuplicateError(detail) from e
                raise DatabaseError(detail) from e
            except (SQLAlchemyError, OverflowError) as e:
                session.rollback()
                raise DatabaseError(str(e)) from e


class SQLChannelRepo(_SQLRepo, ChannelRepository):
    def create(self, channel: Channel) -> Channel:
        with self._session() as session:
            session.add(_channel_to_row(channel))
            session.commit()
        logger.debug("inserted channel %s", channel.id)
        return channel

    def get(self, channel_id: ChannelId) -> Optional[Channel]:
        with self._session() as session:
            row = session.get(ChannelRow, channel_id)
            return _row_to_channel(row) if row else None

    def list(self, limit: int, offset: int) -> Page[Channel]:
        with self._session() as session:
            total = session.exec(select(func.count()).select_from(ChannelRow)).one()
            rows = session.exec(
                select(ChannelRow)
                .order_by(ChannelRow.created_at.desc(), ChannelRow.id)
                .offset(offset)
                .limit(limit)
            ).all()
            return Page[Channel](items=[_row_to_channel(r) for r in rows], total=total, offset=offset, limit=limit)

    def update(self, channel: Channel) -> Channel:
        with self._session() as session:
            row = session.get(ChannelRow, channel.id)
            if row is None:
                raise NotFoundError(f"channel {channel.id} not found")
            session.add(_channel_to_row(channel, row))
            session.commit()
        logger.debug("updated channel %s", channel.id)
        return channel

    def delete(self, channel_id: ChannelId) -> None:
        with self._session() as session:
            row = session.get(ChannelRow, channel_id)
            if row is None:
                raise NotFoundError(f"channel {channel_id} not found")
            session.delete(row)
            session.commit()
        logger.debug("deleted channel %s", channel_id)

    def count(self) -> int:
        with self._session() as session:
            return session.exec(select(func.count()).select_from(ChannelRow)).one()


class SQLBlockRepo(_SQLRepo, BlockRepository):
    def create(self, block: Block) -> Block:
        with self._session() as session:
            session.add(_block_to_row(block))
            session.commit()
        logger.debug("inserted block %s (%s)", block.id, block.content.type)
        return block

    def create_batch(self, blocks: list[Block]) -> list[Block]:
        rows = [_block_to_row(b) for b in blocks]
        with self._session() as session:
            session.add_all(rows)
            session.commit()
        logger.debug("inserted %d blocks in one transaction", len(rows))
        return blocks

    def get(self, block_id: BlockId) -> Optional[Block]:
        with self._session() as session:
            row = session.get(BlockRow, block_id)
            return _row_to_block(row) if row else None

    def update(self, block: Block) -> Block:
        with self._session() as session:
            row = session.get(BlockRow, block.id)
            if row is None:
                raise NotFoundError(f"block {block.id} not found")
            session.add(_block_to_row(block, row))
            session.commit()
        logger.debug("updated block %s", block.id)
        return block

    def delete(self, block_id: BlockId) -> None:
        with self._session() as session:
            row = session.get(BlockRow, block_id)
            if row is None:
                raise NotFoundError(f"block {block_id} not found")
            session.delete(row)
            session.commit()
        logger.debug("deleted block %s", block_id)


class SQLConnectionRepo(_SQLRepo, ConnectionRepository):
    @staticmethod
    def _key(block_id: BlockId, channel_id: ChannelId) -> dict:
        return {"block_id": block_id, "channel_id": channel_id}

    def connect(self, block_id: BlockId, channel_id: ChannelId, position: int) -> None:
        with self._session() as session:
            session.add(ConnectionRow(
                block_id=block_id,
                channel_id=channel_id,
                position=position,
                connected_at=format_datetime(utc_now()),
            ))
            session.commit()
        logger.debug("connected block %s to channel %s at %d", block_id, channel_id, position)

    def connect_batch(self, connections: list[tuple[BlockId, ChannelId, int]]) -> None:
        connected_at = format_datetime(utc_now())
        with self._session() as session:
            seen = set()
            for block_id, channel_id, _ in connections:
                if (block_id, channel_id) in seen or session.get(ConnectionRow, self._key(block_id, channel_id)):
                    raise DuplicateError(f"block {block_id} already connected to channel {channel_id}")
                seen.add((block_id, channel_id))
            session.add_all([
                ConnectionRow(block_id=b, channel_id=c, position=p, connected_at=connected_at)
                for b, c, p in connections
            ])
            session.commit()
        logger.debug("connected %d blocks in one transaction", len(connections))

    def disconnect(self, block_id: BlockId, channel_id: ChannelId) -> None:
        with self._session() as session:
            row = session.get(ConnectionRow, self._key(block_id, channel_id))
            if row is None:
                raise NotFoundError(f"block {block_id} not connected to channel {channel_id}")
            session.delete(row)
            session.commit()
        logger.debug("disconnected block %s from channel %s", block_id, channel_id)

    def get_blocks_in_channel(self, channel_id: ChannelId) -> list[tuple[Block, int]]:
        started = time.perf_counter()
        with self._session() as session:
            rows = session.exec(
                select(BlockRow, ConnectionRow.position)
                .join(ConnectionRow, ConnectionRow.block_id == BlockRow.id)
                .where(ConnectionRow.channel_id == channel_id)
                .order_by(ConnectionRow.position, ConnectionRow.connected_at, ConnectionRow.block_id)
            ).all()
            result = [(_row_to_block(block), position) for block, position in rows]
        elapsed = time.perf_counter() - started
        if elapsed > SLOW_QUERY_SECONDS:
            logger.warning("slow query: get_blocks_in_channel(%s) took %.1f ms for %d blocks",
                           channel_id, elapsed * 1000, len(result))
        return result

    def get_channels_for_block(self, block_id: BlockId) -> list[Channel]:
        with self._session() as session:
            rows = session.exec(
                select(ChannelRow)
                .join(ConnectionRow, ConnectionRow.channel_id == ChannelRow.id)
                .where(ConnectionRow.block_id == block_id)
                .order_by(ConnectionRow.connected_at.desc())
            ).all()
            return [_row_to_channel(r) for r in rows]

    def get_connection(self, block_id: BlockId, channel_id: ChannelId) -> Optional[Connection]:
        with self._session() as session:
            row = session.get(ConnectionRow, self._key(block_id, channel_id))
            return _row_to_connection(row) if row else None

    def reorder(self, channel_id: ChannelId, block_id: BlockId, new_position: int) -> None:
        with self._session() as session:
            row = session.get(ConnectionRow, self._key(block_id, channel_id))
            if row is None:
                raise NotFoundError(f"block {block_id} not connected to channel {channel_id}")
            row.position = new_position
            session.add(row)
            session.commit()
        logger.debug("moved block %s in channel %s to %d", block_id, channel_id, new_position)

    def next_position(self, channel_id: ChannelId) -> int:
        with self._session() as session:
            current = session.exec(
                select(func.max(ConnectionRow.position)).where(ConnectionRow.channel_id == channel_id)
            ).one()
        return 0 if current is None else current + 1


def sql_repos(engine: Engine) -> tuple[SQLChannelRepo, SQLBlockRepo, SQLConnectionRepo]:
    return SQLChannelRepo(engine), SQLBlockRepo(engine), SQLConnectionRepo(engine)
