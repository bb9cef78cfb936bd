"""Shared fixtures for crud unit tests"""

import pytest
from sqlmodel import SQLModel, Session

from garden.core.models import Block, Channel, TextContent
from garden.crud.database import init_db, make_engine
from garden.crud.sql_repo import SQLBlockRepo, SQLChannelRepo, SQLConnectionRepo


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with foreign keys on and all tables created."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Fresh session per test; changes are not committed."""
    with Session(engine) as s:
        yield s


@pytest.fixture(name="channels")
def channels_fixture(engine):
    return SQLChannelRepo(engine)


@pytest.fixture(name="blocks")
def blocks_fixture(engine):
    return SQLBlockRepo(engine)


@pytest.fixture(name="connections")
def connections_fixture(engine):
    return SQLConnectionRepo(engine)


@pytest.fixture(name="stored_channel")
def stored_channel_fixture(channels):
    """A minimal Channel persisted through the repository."""
    return channels.create(Channel.new("Stored"))


@pytest.fixture(name="stored_block")
def stored_block_fixture(blocks):
    """A minimal text Block persisted through the repository."""
    return blocks.create(Block.new(TextContent(body="stored")))
