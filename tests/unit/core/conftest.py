"""Shared fixtures for core unit tests: services over both storage adapters"""

import pytest

from garden.core.models import LinkContent, NewBlock, NewChannel, TextContent
from garden.core.service import GardenService
from garden.crud.database import init_db, make_engine
from garden.crud.memory_repo import MemoryStore, memory_repos
from garden.crud.sql_repo import sql_repos


@pytest.fixture(name="store")
def store_fixture():
    return MemoryStore()


@pytest.fixture(name="memory_service")
def memory_service_fixture(store):
    """GardenService over in-memory repositories sharing one store."""
    return GardenService(*memory_repos(store))


@pytest.fixture(name="sql_service")
def sql_service_fixture():
    """GardenService over SQL repositories on a fresh in-memory SQLite database."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield GardenService(*sql_repos(engine))
    engine.dispose()


@pytest.fixture(name="service", params=["memory", "sql"])
def service_fixture(request):
    """Runs the requesting test once per storage adapter."""
    return request.getfixturevalue(f"{request.param}_service")


@pytest.fixture(name="channel")
def channel_fixture(service):
    return service.create_channel(NewChannel(title="Reading list", description="things to read"))


@pytest.fixture(name="make_text")
def make_text_fixture(service):
    """Factory creating a persisted text block."""
    def make(body: str = "hello"):
        return service.create_block(NewBlock(content=TextContent(body=body)))
    return make


@pytest.fixture(name="link_block")
def link_block_fixture(service):
    return service.create_block(NewBlock(
        content=LinkContent(url="https://example.com/article", title="An article"),
        source_url="https://example.com",
        creator="A. Writer",
    ))
