"""CLI entry point for scanning and analysing transcripts.

Allows running the processor as a module:
    python -m chatlog_viewer.processor scan
"""

import sys
from functools import partial
from pathlib import Path

import click

from chatlog_viewer.config import Config, load_config
from chatlog_viewer.logging import setup_logging
from chatlog_viewer.processor.index_store import AnalysisReport, IndexStore
from chatlog_viewer.processor.pipeline import (
    IndexNotFoundError,
    build_listing,
    dump_index,
    find_conversation_messages,
)


def print_report(report: AnalysisReport) -> None:
    """Print an analysis report."""
    if report.chats_updated == 0:
        click.echo("All chats are up to date")
    else:
        click.echo(
            f"Updated {report.chats_updated} chats in {report.total_duration_ms}ms "
            f"(check {report.check_duration_ms}ms, analysis {report.analysis_duration_ms}ms)"
        )
        for chat in report.chats_analyzed:
            click.echo(f"  \033[32m{chat.project}\033[0m {chat.chat_id} ({chat.duration_ms}ms) {chat.first_message}")
    if report.chats_skipped:
        click.echo(f"Skipped {len(report.chats_skipped)} chats without a source file")


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Path to config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Scan transcripts and maintain the history index."""
    config = load_config(config_path)
    setup_logging("processor", log_dir=config.log_dir, console=False)
    ctx.obj = config


@cli.command()
@click.option("--no-analyze", is_flag=True, help="Skip the Tier 2 analysis pass")
@click.pass_obj
def scan(config: Config, no_analyze: bool) -> None:
    """Scan all projects and refresh the history index."""
    if no_analyze:
        config.auto_analyze = False
    store = IndexStore(config.index_path, config.summarizer)
    listing = build_listing(config, store)

    stats = listing.stats
    click.echo(
        f"Projects: {stats.total_projects} | Conversations: {stats.total_conversations} "
        f"| Messages: {stats.total_messages}"
    )
    if listing.analysis is not None:
        print_report(listing.analysis)


@cli.command()
@click.pass_obj
def analyze(config: Config) -> None:
    """Run Tier 2 analysis for chats that are out of date."""
    store = IndexStore(config.index_path, config.summarizer)
    report = store.run_analysis(partial(find_conversation_messages, config.projects_root))
    print_report(report)


@cli.command("index")
@click.pass_obj
def show_index(config: Config) -> None:
    """Print the raw history index JSON."""
    store = IndexStore(config.index_path, config.summarizer)
    try:
        click.echo(dump_index(store))
    except IndexNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
