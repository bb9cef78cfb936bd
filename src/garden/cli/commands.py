"""CLI command implementations"""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from sqlmodel import SQLModel

from garden.bootstrap import AppState, configure_logging, create_media_dirs, initialize
from garden.config import Settings, load_config
from garden.core.models import ChannelUpdate, LinkContent, NewBlock, NewChannel, TextContent
from garden.crud.database import init_db, make_engine
from garden.errors import GardenError, InitializationError
from garden.ipc.commands import invoke


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


@contextmanager
def _app(overrides: dict = None):
    """Yield an initialized AppState; domain errors become CLI failures."""
    settings = _settings(overrides)
    configure_logging(settings.log_level)
    try:
        state = initialize(settings)
    except InitializationError as e:
        _fail("Initialization failed", e)
    try:
        yield state
    except GardenError as e:
        _fail(str(e))
    finally:
        state.close()


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize database schema and media directories. Use --reset to clear existing data."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    try:
        if reset:
            SQLModel.metadata.drop_all(engine)
            typer.echo("Existing data cleared.")
        init_db(engine)
        create_media_dirs(Path(settings.media_root))
    except (GardenError, OSError) as e:
        _fail("Initialization failed", e)
    finally:
        engine.dispose()
    typer.echo(f"Database initialized at: {settings.db_url}")
    typer.echo(f"Media directory: {settings.media_root}")


# --- channels ---

def channel_create_cmd(
    title: Annotated[str, typer.Argument(help="Channel title")],
    description: Annotated[Optional[str], typer.Option("--description", help="Channel description")] = None,
    ):
    """Create a channel and print its id."""
    with _app() as state:
        channel = state.service.create_channel(NewChannel(title=title, description=description))
    typer.echo(f"Created channel {channel.id}: {channel.title}")


def channel_list_cmd(
    limit: Annotated[Optional[int], typer.Option("--limit", help="Channels per page")] = None,
    offset: Annotated[int, typer.Option("--offset", help="Channels to skip")] = 0,
    ):
    """List channels, newest first."""
    with _app() as state:
        page = state.service.list_channels(state.settings.page_limit if limit is None else limit, offset)
    if not page.total:
        typer.echo("No channels found.")
        return
    for channel in page.items:
        typer.echo(f"{channel.id}  {channel.title}")
    typer.echo(f"Page {page.page_number + 1}/{page.total_pages} ({page.total} channels)")


def channel_rename_cmd(
    channel_id: Annotated[str, typer.Argument(help="Channel id")],
    title: Annotated[str, typer.Argument(help="New title")],
    ):
    """Change a channel's title."""
    with _app() as state:
        channel = state.service.update_channel(channel_id, ChannelUpdate(title=title))
    typer.echo(f"Renamed channel {channel.id}: {channel.title}")


def channel_delete_cmd(
    channel_id: Annotated[str, typer.Argument(help="Channel id")],
    ):
    """Delete a channel. Its blocks are kept."""
    with _app() as state:
        state.service.delete_channel(channel_id)
    typer.echo(f"Deleted channel {channel_id}")


# --- blocks ---

def block_add_text_cmd(
    body: Annotated[str, typer.Argument(help="Text body")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Private notes")] = None,
    ):
    """Create a text block."""
    with _app() as state:
        block = state.service.create_block(NewBlock(content=TextContent(body=body), notes=notes))
    typer.echo(f"Created block {block.id}: {block.display_title}")


def block_add_link_cmd(
    url: Annotated[str, typer.Argument(help="http(s) URL")],
    title: Annotated[Optional[str], typer.Option("--title", help="Link title")] = None,
    ):
    """Create a link block."""
    with _app() as state:
        block = state.service.create_block(NewBlock(content=LinkContent(url=url, title=title)))
    typer.echo(f"Created block {block.id}: {block.display_title}")


def block_import_cmd(
    source: Annotated[str, typer.Argument(help="http(s) URL or local file path")],
    ):
    """Import a media file and create an image, video, or audio block for it."""
    with _app() as state:
        if _is_url(source):
            info = state.media.import_from_url(source)
            new_block = NewBlock(content=info.into_block_content(), source_url=source)
        else:
            info = state.media.import_from_file(source)
            new_block = NewBlock(content=info.into_block_content())
        block = state.service.create_block(new_block)
    typer.echo(f"Imported {info.file_path} ({info.mime_type})")
    typer.echo(f"Created block {block.id}: {block.display_title}")


# --- connections ---

def connect_cmd(
    block_id: Annotated[str, typer.Argument(help="Block id")],
    channel_id: Annotated[str, typer.Argument(help="Channel id")],
    position: Annotated[Optional[int], typer.Option("--position", help="Position; appends when omitted")] = None,
    ):
    """Connect a block to a channel."""
    with _app() as state:
        connection = state.service.connect_block(block_id, channel_id, position)
    typer.echo(f"Connected {block_id} to {channel_id} at position {connection.position}")


def disconnect_cmd(
    block_id: Annotated[str, typer.Argument(help="Block id")],
    channel_id: Annotated[str, typer.Argument(help="Channel id")],
    ):
    """Disconnect a block from a channel."""
    with _app() as state:
        state.service.disconnect_block(block_id, channel_id)
    typer.echo(f"Disconnected {block_id} from {channel_id}")


def reorder_cmd(
    channel_id: Annotated[str, typer.Argument(help="Channel id")],
    block_id: Annotated[str, typer.Argument(help="Block id")],
    position: Annotated[int, typer.Argument(help="New position")],
    ):
    """Move a block to a new position within a channel."""
    with _app() as state:
        state.service.reorder_block(channel_id, block_id, position)
    typer.echo(f"Moved {block_id} to position {position}")


def show_cmd(
    channel_id: Annotated[str, typer.Argument(help="Channel id")],
    ):
    """Print a channel's blocks in order."""
    with _app() as state:
        channel = state.service.get_channel(channel_id)
        entries = state.service.get_blocks_in_channel_with_positions(channel_id)
    typer.echo(f"{channel.title} ({len(entries)} blocks)")
    for block, position in entries:
        typer.echo(f"  {position:>4}  {block.content.type:<5}  {block.id}  {block.display_title}")


def invoke_cmd(
    name: Annotated[str, typer.Argument(help="Command name, e.g. channel_create")],
    payload: Annotated[Optional[str], typer.Argument(help="JSON object of command arguments")] = None,
    ):
    """Run a transport command and print its JSON envelope."""
    try:
        args = json.loads(payload) if payload else {}
    except json.JSONDecodeError as e:
        _fail("Payload is not valid JSON", e)
    if not isinstance(args, dict):
        _fail("Payload must be a JSON object")

    with _app() as state:
        envelope = invoke(state, name, args)
    typer.echo(json.dumps(envelope, indent=2))
    if not envelope["ok"]:
        raise typer.Exit(1)
