"""CLI entrypoint: Typer app definition and command registration"""

import typer

from garden.cli.commands import (
    block_add_link_cmd,
    block_add_text_cmd,
    block_import_cmd,
    channel_create_cmd,
    channel_delete_cmd,
    channel_list_cmd,
    channel_rename_cmd,
    connect_cmd,
    disconnect_cmd,
    init_cmd,
    invoke_cmd,
    reorder_cmd,
    show_cmd,
)


app = typer.Typer(name="garden", no_args_is_help=True, help="Personal content curation: channels, blocks, and media")

app.command(name="init")(init_cmd)
app.command(name="channel-create")(channel_create_cmd)
app.command(name="channel-list")(channel_list_cmd)
app.command(name="channel-rename")(channel_rename_cmd)
app.command(name="channel-delete")(channel_delete_cmd)
app.command(name="block-add-text")(block_add_text_cmd)
app.command(name="block-add-link")(block_add_link_cmd)
app.command(name="block-import")(block_import_cmd)
app.command(name="connect")(connect_cmd)
app.command(name="disconnect")(disconnect_cmd)
app.command(name="reorder")(reorder_cmd)
app.command(name="show")(show_cmd)
app.command(name="invoke")(invoke_cmd)
