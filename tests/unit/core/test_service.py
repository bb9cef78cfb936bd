"""Unit tests for core/service.py, run against both the memory and SQL adapters"""

import time

import pytest

from garden.core.models import (
    BlockUpdate,
    ChannelUpdate,
    FieldUpdate,
    ImageContent,
    LinkContent,
    NewBlock,
    NewChannel,
    POSITION_MAX,
    POSITION_MIN,
    TextContent,
)
from garden.errors import (
    BlockNotFound,
    ChannelNotFound,
    ConnectionNotFound,
    DatabaseError,
    DuplicateError,
    InvalidInput,
    NotFoundError,
    RepositoryError,
)


# --- channels ---

def test_create_and_get_channel(service, channel):
    """A created channel can be fetched back unchanged."""
    fetched = service.get_channel(channel.id)
    assert fetched == channel
    assert fetched.description == "things to read"
    assert service.count_channels() == 1


def test_create_channel_rejects_blank_title(service):
    """Whitespace titles are rejected before anything is stored."""
    with pytest.raises(InvalidInput):
        service.create_channel(NewChannel(title="   "))
    assert service.count_channels() == 0


def test_get_channel_missing(service):
    """Unknown channel ids raise ChannelNotFound carrying the id."""
    with pytest.raises(ChannelNotFound) as exc:
        service.get_channel("missing")
    assert exc.value.channel_id == "missing"


def test_list_channels_paginates(service):
    """list_channels returns a page with the overall total."""
    for i in range(5):
        service.create_channel(NewChannel(title=f"c{i}"))
    page = service.list_channels(limit=2, offset=2)
    assert len(page.items) == 2
    assert page.total == 5
    assert page.has_next and page.has_prev


def test_update_channel_title_and_description(service, channel):
    """Title replaces when given; description follows its FieldUpdate."""
    updated = service.update_channel(channel.id, ChannelUpdate(title="Renamed"))
    assert updated.title == "Renamed"
    assert updated.description == "things to read"
    assert updated.updated_at >= channel.updated_at

    cleared = service.update_channel(channel.id, ChannelUpdate(description=FieldUpdate[str].clear()))
    assert cleared.title == "Renamed"
    assert cleared.description is None
    assert service.get_channel(channel.id).description is None


def test_update_channel_rejects_blank_title(service, channel):
    """A blank replacement title is rejected and nothing changes."""
    with pytest.raises(InvalidInput):
        service.update_channel(channel.id, ChannelUpdate(title=" "))
    assert service.get_channel(channel.id).title == "Reading list"


def test_update_and_delete_missing_channel(service):
    """Updating or deleting an unknown channel raises ChannelNotFound."""
    with pytest.raises(ChannelNotFound):
        service.update_channel("nope", ChannelUpdate(title="x"))
    with pytest.raises(ChannelNotFound):
        service.delete_channel("nope")


# --- blocks ---

def test_create_block_carries_metadata(service, link_block):
    """NewBlock metadata is stored on the block."""
    fetched = service.get_block(link_block.id)
    assert fetched.source_url == "https://example.com"
    assert fetched.creator == "A. Writer"
    assert fetched.content == LinkContent(url="https://example.com/article", title="An article")


def test_get_block_missing(service):
    """Unknown block ids raise BlockNotFound carrying the id."""
    with pytest.raises(BlockNotFound) as exc:
        service.get_block("missing")
    assert exc.value.block_id == "missing"


def test_update_block_field_updates(service, link_block):
    """Each metadata field follows its own keep/clear/set update."""
    updated = service.update_block(link_block.id, BlockUpdate(
        source_url=FieldUpdate[str].clear(),
        notes=FieldUpdate[str].set("worth a reread"),
    ))
    assert updated.source_url is None
    assert updated.notes == "worth a reread"
    assert updated.creator == "A. Writer"

    stored = service.get_block(link_block.id)
    assert stored.source_url is None
    assert stored.notes == "worth a reread"
    assert stored.creator == "A. Writer"


def test_update_block_content(service, make_text):
    """New content is validated and replaces the old content."""
    block = make_text("before")
    updated = service.update_block(block.id, BlockUpdate(content=TextContent(body="after")))
    assert service.get_block(block.id).content == TextContent(body="after")
    assert updated.updated_at >= block.updated_at
    with pytest.raises(InvalidInput):
        service.update_block(block.id, BlockUpdate(content=TextContent(body="  ")))
    assert service.get_block(block.id).content == TextContent(body="after")


def test_delete_block(service, make_text):
    """Deleted blocks are gone; deleting again raises BlockNotFound."""
    block = make_text()
    service.delete_block(block.id)
    with pytest.raises(BlockNotFound):
        service.get_block(block.id)
    with pytest.raises(BlockNotFound):
        service.delete_block(block.id)


# --- field-update round trip ---

@pytest.mark.parametrize("update,expected", [
    (FieldUpdate[str].keep(), "original"),
    (FieldUpdate[str].clear(), None),
    (FieldUpdate[str].set("replacement"), "replacement"),
])
def test_field_update_round_trip(service, update, expected):
    """A stored field reads back as update.apply(previous)."""
    block = service.create_block(NewBlock(content=TextContent(body="x"), notes="original"))
    service.update_block(block.id, BlockUpdate(notes=update))
    assert service.get_block(block.id).notes == expected


# --- connection uniqueness ---

def test_connect_twice_is_rejected(service, channel, make_text):
    """A second connect of the same pair fails and keeps the first position."""
    block = make_text()
    first = service.connect_block(block.id, channel.id, 7)
    with pytest.raises(InvalidInput, match="already connected"):
        service.connect_block(block.id, channel.id, 9)
    assert service.get_connection(block.id, channel.id).position == first.position == 7


def test_repo_rejects_duplicate_pair(service, channel, make_text):
    """The repository itself refuses a second connection of the same pair."""
    block = make_text()
    service.connect_block(block.id, channel.id)
    with pytest.raises(DuplicateError):
        service.connections.connect(block.id, channel.id, 5)


def test_lost_race_surfaces_as_repository_duplicate(service, channel, make_text, monkeypatch):
    """A duplicate the pre-check misses comes back as RepositoryError(DuplicateError)."""
    block = make_text()
    service.connect_block(block.id, channel.id)
    monkeypatch.setattr(service.connections, "get_connection", lambda block_id, channel_id: None)

    with pytest.raises(RepositoryError) as exc:
        service.connect_block(block.id, channel.id, 3)
    assert isinstance(exc.value.error, DuplicateError)
    assert not isinstance(exc.value, InvalidInput)
    monkeypatch.undo()
    assert service.get_connection(block.id, channel.id).position == 0


# --- append-position monotonicity ---

def test_append_positions_are_monotonic(service, channel, make_text):
    """Appending assigns max(position) + 1, starting at 0."""
    a, b, c = make_text("a"), make_text("b"), make_text("c")
    assert service.connect_block(a.id, channel.id).position == 0
    assert service.connect_block(b.id, channel.id, 10).position == 10
    assert service.connect_block(c.id, channel.id).position == 11


def test_append_after_gap_and_disconnect(service, channel, make_text):
    """Positions are gap tolerant and follow the current maximum."""
    a, b, c = make_text("a"), make_text("b"), make_text("c")
    service.connect_block(a.id, channel.id, 3)
    service.connect_block(b.id, channel.id, 8)
    service.disconnect_block(b.id, channel.id)
    assert service.connect_block(c.id, channel.id).position == 4


@pytest.mark.parametrize("position", [POSITION_MAX + 1, POSITION_MIN - 1, 2**63])
def test_connect_rejects_out_of_range_position(service, channel, make_text, position):
    """Explicit positions outside the 32-bit range are InvalidInput and store nothing."""
    block = make_text()
    with pytest.raises(InvalidInput, match="is outside"):
        service.connect_block(block.id, channel.id, position)
    with pytest.raises(InvalidInput, match="is outside"):
        service.connect_blocks([block.id], channel.id, starting_position=position)
    assert service.get_blocks_in_channel(channel.id) == []


def test_append_after_max_position_is_rejected(service, channel, make_text):
    """Appending past the largest position is InvalidInput, not an overflow."""
    last, extra, other = make_text("last"), make_text("extra"), make_text("other")
    service.connect_block(last.id, channel.id, POSITION_MAX)
    with pytest.raises(InvalidInput, match="is outside"):
        service.connect_block(extra.id, channel.id)
    with pytest.raises(InvalidInput, match="is outside"):
        service.connect_blocks([extra.id, other.id], channel.id)
    with pytest.raises(InvalidInput, match="is outside"):
        service.connect_blocks([extra.id, other.id], channel.id, starting_position=POSITION_MAX)
    assert [b.id for b in service.get_blocks_in_channel(channel.id)] == [last.id]


def test_reorder_rejects_out_of_range_position(service, channel, make_text):
    """Reorder validates the new position before touching storage."""
    block = make_text()
    service.connect_block(block.id, channel.id, 2)
    with pytest.raises(InvalidInput, match="is outside"):
        service.reorder_block(channel.id, block.id, 2**63)
    assert service.get_connection(block.id, channel.id).position == 2


def test_repo_overflow_is_database_error(service, channel, make_text):
    """Both adapters report positions beyond a 64-bit integer as DatabaseError."""
    block = make_text()
    with pytest.raises(DatabaseError):
        service.connections.connect(block.id, channel.id, 2**63)
    assert service.connections.get_connection(block.id, channel.id) is None


# --- ordering preservation ---

def test_blocks_come_back_in_position_order(service, channel, make_text):
    """Blocks are listed by ascending position regardless of insert order."""
    blocks = {body: make_text(body) for body in ("x", "y", "z")}
    service.connect_block(blocks["x"].id, channel.id, 20)
    service.connect_block(blocks["y"].id, channel.id, -5)
    service.connect_block(blocks["z"].id, channel.id, 3)

    listed = service.get_blocks_in_channel_with_positions(channel.id)
    assert [(b.content.body, p) for b, p in listed] == [("y", -5), ("z", 3), ("x", 20)]
    assert [b.id for b in service.get_blocks_in_channel(channel.id)] == [b.id for b, _ in listed]


def test_reorder_moves_block(service, channel, make_text):
    """Reordering changes only the moved block's position."""
    a, b, c = make_text("a"), make_text("b"), make_text("c")
    service.connect_blocks([a.id, b.id, c.id], channel.id)
    service.reorder_block(channel.id, a.id, 5)
    listed = service.get_blocks_in_channel_with_positions(channel.id)
    assert [(blk.id, pos) for blk, pos in listed] == [(b.id, 1), (c.id, 2), (a.id, 5)]


def test_reorder_allows_duplicate_positions(service, channel, make_text):
    """Colliding positions are kept; ties list the earlier connection first."""
    a = make_text("a")
    service.connect_block(a.id, channel.id)
    time.sleep(0.002)
    b = make_text("b")
    service.connect_block(b.id, channel.id)
    service.reorder_block(channel.id, b.id, 0)
    listed = service.get_blocks_in_channel_with_positions(channel.id)
    assert [(blk.id, pos) for blk, pos in listed] == [(a.id, 0), (b.id, 0)]


def test_reorder_missing_connection(service, channel, make_text):
    """Reordering an unconnected block raises ConnectionNotFound."""
    block = make_text()
    with pytest.raises(ConnectionNotFound) as exc:
        service.reorder_block(channel.id, block.id, 3)
    assert exc.value.block_id == block.id
    assert exc.value.channel_id == channel.id


# --- cascade delete ---

def test_delete_channel_keeps_blocks(service, channel, make_text):
    """Deleting a channel drops its connections but not its blocks."""
    block = make_text()
    other = service.create_channel(NewChannel(title="Other"))
    service.connect_block(block.id, channel.id)
    service.connect_block(block.id, other.id)

    service.delete_channel(channel.id)
    assert service.get_block(block.id).id == block.id
    assert [c.id for c in service.get_channels_for_block(block.id)] == [other.id]
    with pytest.raises(ConnectionNotFound):
        service.get_connection(block.id, channel.id)


def test_delete_block_keeps_channels(service, channel, make_text):
    """Deleting a block drops its connections but not its channels."""
    keep, drop = make_text("keep"), make_text("drop")
    service.connect_blocks([keep.id, drop.id], channel.id)
    service.delete_block(drop.id)
    assert service.get_channel(channel.id).id == channel.id
    assert [b.id for b in service.get_blocks_in_channel(channel.id)] == [keep.id]


# --- validation rejects ---

@pytest.mark.parametrize("content", [
    TextContent(body=" "),
    LinkContent(url="ftp://example.com"),
    LinkContent(url="https://example.com", title="  "),
    ImageContent(file_path="../escape.png", mime_type="image/png"),
    ImageContent(file_path="images/a.png", mime_type="audio/mpeg"),
])
def test_invalid_content_is_never_stored(service, content):
    """Invalid content raises InvalidInput and stores nothing."""
    with pytest.raises(InvalidInput):
        service.create_block(NewBlock(content=content))
    with pytest.raises(InvalidInput):
        service.create_blocks([NewBlock(content=TextContent(body="fine")), NewBlock(content=content)])


def test_create_blocks_validates_before_writing(service, monkeypatch):
    """One invalid block in a batch stores none of them."""
    writes = []
    for name in ("create", "create_batch"):
        original = getattr(service.blocks, name)
        monkeypatch.setattr(service.blocks, name,
                            lambda *args, _write=original: writes.append(args) or _write(*args))

    good = NewBlock(content=TextContent(body="fine"))
    with pytest.raises(InvalidInput):
        service.create_blocks([good, NewBlock(content=TextContent(body=""))])
    assert writes == []

    created = service.create_blocks([good, good])
    assert len(writes) == 1
    assert len(created) == 2
    assert all(service.get_block(b.id) for b in created)


# --- batch atomicity ---

def test_connect_blocks_assigns_consecutive_positions(service, channel, make_text):
    """Batch connect appends in input order with consecutive positions."""
    existing = make_text("existing")
    service.connect_block(existing.id, channel.id, 4)
    blocks = [make_text(str(i)) for i in range(3)]
    conns = service.connect_blocks([b.id for b in blocks], channel.id)
    assert [(c.block_id, c.position) for c in conns] == [(b.id, 5 + i) for i, b in enumerate(blocks)]
    assert len({c.connected_at for c in conns}) == 1


def test_connect_blocks_with_starting_position(service, channel, make_text):
    """An explicit starting position is used as-is."""
    blocks = [make_text(str(i)) for i in range(2)]
    conns = service.connect_blocks([b.id for b in blocks], channel.id, starting_position=100)
    assert [c.position for c in conns] == [100, 101]


def test_connect_blocks_is_all_or_nothing(service, channel, make_text):
    """A batch containing a connected block or a missing block connects nothing."""
    a, b, c = make_text("a"), make_text("b"), make_text("c")
    service.connect_block(b.id, channel.id)

    with pytest.raises(InvalidInput, match=f"block {b.id} is already connected"):
        service.connect_blocks([a.id, b.id, c.id], channel.id)
    with pytest.raises(BlockNotFound):
        service.connect_blocks([a.id, "ghost", c.id], channel.id)
    assert [blk.id for blk in service.get_blocks_in_channel(channel.id)] == [b.id]


def test_connect_batch_duplicate_within_batch(service, channel, make_text):
    """The repository rejects a pair repeated inside one batch before inserting."""
    a, b = make_text("a"), make_text("b")
    with pytest.raises(DuplicateError):
        service.connections.connect_batch([(a.id, channel.id, 0), (b.id, channel.id, 1), (a.id, channel.id, 2)])
    assert service.get_blocks_in_channel(channel.id) == []


def test_connect_blocks_missing_channel(service, make_text):
    """Batch connect to an unknown channel raises ChannelNotFound."""
    with pytest.raises(ChannelNotFound):
        service.connect_blocks([make_text().id], "missing")


# --- end-to-end scenario ---

def test_end_to_end_scenario(service):
    """Create, connect, reorder, and update flow through one channel."""
    channel = service.create_channel(NewChannel(title="Scenario"))
    text = service.create_block(NewBlock(content=TextContent(body="note")))
    link = service.create_block(NewBlock(content=LinkContent(url="https://example.com")))

    service.connect_block(text.id, channel.id)
    service.connect_block(link.id, channel.id)
    service.reorder_block(channel.id, text.id, 10)
    assert [b.id for b in service.get_blocks_in_channel(channel.id)] == [link.id, text.id]

    service.update_block(link.id, BlockUpdate(notes=FieldUpdate[str].set("n")))
    service.update_block(link.id, BlockUpdate(notes=FieldUpdate[str].keep()))
    assert service.get_block(link.id).notes == "n"
    service.update_block(link.id, BlockUpdate(notes=FieldUpdate[str].clear()))
    assert service.get_block(link.id).notes is None


# --- disconnect then reconnect ---

def test_disconnect_then_reconnect(service, channel, make_text):
    """A disconnected pair can be connected again, appended at the end."""
    a, b = make_text("a"), make_text("b")
    service.connect_block(a.id, channel.id)
    service.connect_block(b.id, channel.id)
    service.disconnect_block(a.id, channel.id)
    with pytest.raises(ConnectionNotFound):
        service.disconnect_block(a.id, channel.id)

    again = service.connect_block(a.id, channel.id)
    assert again.position == 2
    assert [blk.id for blk in service.get_blocks_in_channel(channel.id)] == [b.id, a.id]


# --- existence checks and error wrapping ---

def test_connect_block_checks_existence(service, channel, make_text):
    """connect_block checks the block first, then the channel."""
    with pytest.raises(BlockNotFound):
        service.connect_block("ghost", "also-missing")
    with pytest.raises(ChannelNotFound):
        service.connect_block(make_text().id, "missing")


def test_get_channels_for_block_newest_first(service, make_text):
    """Channels are listed by most recent connection first."""
    block = make_text()
    first = service.create_channel(NewChannel(title="first"))
    second = service.create_channel(NewChannel(title="second"))
    service.connect_block(block.id, first.id)
    time.sleep(0.002)
    service.connect_block(block.id, second.id)
    assert [c.id for c in service.get_channels_for_block(block.id)] == [second.id, first.id]


def test_repo_errors_are_wrapped(memory_service, monkeypatch):
    """A RepoError escaping a repository becomes RepositoryError, chained."""
    def broken(_channel):
        raise NotFoundError("gone")

    channel = memory_service.create_channel(NewChannel(title="c"))
    monkeypatch.setattr(memory_service.channels, "update", broken)
    with pytest.raises(RepositoryError) as exc:
        memory_service.update_channel(channel.id, ChannelUpdate(title="d"))
    assert isinstance(exc.value.error, NotFoundError)
    assert exc.value.__cause__ is exc.value.error
