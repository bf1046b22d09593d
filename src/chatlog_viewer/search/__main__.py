"""CLI entry point for browsing and searching conversations.

Allows listing, searching, viewing and exporting conversations via command line.
"""

import sys
from pathlib import Path

import click

from chatlog_viewer.config import Config, load_config
from chatlog_viewer.exporter import export_filename
from chatlog_viewer.logging import setup_logging
from chatlog_viewer.models import Conversation
from chatlog_viewer.processor.index_store import IndexStore
from chatlog_viewer.processor.pipeline import (
    ConversationNotFoundError,
    Listing,
    build_listing,
    export_chat,
    load_chat_view,
)
from chatlog_viewer.search.engine import filter_by_message_count, search

TERMINAL_HIGHLIGHT = "\033[1;33m[{n}]{match}\033[0m"
ROLE_COLORS = {"user": "\033[36m", "assistant": "\033[32m", "tool_result": "\033[35m"}


def format_timestamp(conversation: Conversation) -> str:
    """Format a conversation's modification time for display."""
    return conversation.modified_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_conversation(conversation: Conversation, match_count: int | None = None) -> None:
    """Print one conversation with its summary."""
    click.echo(
        f"\033[36m[{format_timestamp(conversation)}]\033[0m "
        f"\033[1m{conversation.first_message_preview[:100].strip()}\033[0m"
    )
    line = f"Project: \033[32m{conversation.project_name}\033[0m | Messages: {conversation.message_count}"
    if match_count is not None:
        line += f" | Matches: {match_count}"
    click.echo(line)
    click.echo(f"ID: {conversation.project_path_key} {conversation.id}")

    if conversation.enhanced_summary is not None:
        click.echo(conversation.enhanced_summary.one_line)
        for bullet in conversation.enhanced_summary.bullets:
            click.echo(f"  • {bullet}")
    elif conversation.summary is not None:
        for bullet, link in conversation.summary.links(conversation.id):
            click.echo(f"  • {bullet}" + (f" ({link})" if link else ""))
    click.echo("-" * 40)


def _load_listing(config: Config) -> Listing:
    store = IndexStore(config.index_path, config.summarizer)
    return build_listing(config, store)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Path to config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Browse and search chat history."""
    config = load_config(config_path)
    setup_logging("search", log_dir=config.log_dir, console=False)
    ctx.obj = config


@cli.command("list")
@click.option("--min-messages", type=int, help="Hide chats with at most this many messages")
@click.pass_obj
def list_conversations(config: Config, min_messages: int | None) -> None:
    """List conversations grouped by project, newest first."""
    listing = _load_listing(config)
    threshold = min_messages if min_messages is not None else config.min_messages

    stats = listing.stats
    click.echo(
        f"{stats.total_conversations} conversations, {stats.total_messages} messages, "
        f"{stats.total_projects} projects\n"
    )
    for name in listing.sorted_projects:
        visible = filter_by_message_count(listing.projects[name], threshold)
        if not visible:
            continue
        click.echo(f"\033[1m== {name} ({len(visible)})\033[0m")
        for conversation in visible:
            print_conversation(conversation)


@cli.command("search")
@click.argument("query")
@click.option("--min-messages", type=int, help="Hide chats with at most this many messages")
@click.option("--limit", "-n", default=10, help="Number of results")
@click.pass_obj
def search_conversations(config: Config, query: str, min_messages: int | None, limit: int) -> None:
    """Search conversations, most matches first."""
    listing = _load_listing(config)
    threshold = min_messages if min_messages is not None else config.min_messages
    result = search(listing.conversations(), query, threshold)

    click.echo(
        f"Found {result.total_match_count} matches in {len(result.conversations)} "
        f"conversations (showing {min(limit, len(result.conversations))}):\n"
    )
    for conversation, match in zip(result.conversations[:limit], result.matches):
        print_conversation(conversation, match.match_count)


@cli.command()
@click.argument("project_dir")
@click.argument("chat_id")
@click.option("--search", "-s", "query", help="Highlight this search term")
@click.pass_obj
def show(config: Config, project_dir: str, chat_id: str, query: str | None) -> None:
    """Show one conversation.

    Put -- before PROJECT_DIR, since encoded directory names start with a dash.
    """
    try:
        view = load_chat_view(
            config.projects_root,
            project_dir,
            chat_id,
            query,
            template=TERMINAL_HIGHLIGHT,
            use_rendered=False,
        )
    except ConversationNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    conversation = view.conversation
    click.echo(f"\033[1m{conversation.project_name}\033[0m {conversation.id} ({len(view.messages)} messages)")
    if view.search_term:
        click.echo(f'Search "{view.search_term}": {view.search_count} matches')
    click.echo("-" * 40)

    for message in view.messages:
        color = ROLE_COLORS.get(message.role, "")
        stamp = message.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S") if message.timestamp else ""
        click.echo(f"{color}[{message.anchor_id}] {message.role}\033[0m {stamp}")
        if message.model:
            click.echo(f"Model: {message.model}")
        click.echo(f"\n{message.content}\n")
        click.echo("-" * 40)


@cli.command()
@click.argument("project_dir")
@click.argument("chat_id")
@click.option("--search", "-s", "query", help="Bold this search term")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Output file (use - for stdout)",
)
@click.pass_obj
def export(config: Config, project_dir: str, chat_id: str, query: str | None, output: Path | None) -> None:
    """Export one conversation as Markdown (pass -- before PROJECT_DIR)."""
    try:
        document = export_chat(config.projects_root, project_dir, chat_id, query)
    except ConversationNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output is not None and str(output) == "-":
        click.echo(document, nl=False)
        return

    target = output or Path(export_filename(chat_id))
    target.write_text(document, encoding="utf-8")
    click.echo(f"Exported to {target}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
