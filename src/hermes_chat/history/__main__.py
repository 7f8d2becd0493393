"""CLI entry point for archived conversation history.

Lists, shows, searches and deletes archived conversations, and archives a
saved transcript by hand.
"""

import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import click

from hermes_chat.agent.model import GeminiModel
from hermes_chat.archive.metadata import MetadataGenerator
from hermes_chat.archive.pipeline import ArchivalPipeline
from hermes_chat.config import Config, load_config
from hermes_chat.errors import ConfigurationError
from hermes_chat.logging import setup_logging
from hermes_chat.models import ArchivedConversation, Role, TranscriptEntry
from hermes_chat.storage.index import ArchiveIndex
from hermes_chat.storage.search import ArchiveSearchIndexer
from hermes_chat.storage.vault import FileSystemVault


def format_timestamp(ts: int) -> str:
    """Format timestamp for display."""
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def print_record(record: ArchivedConversation, verbose: bool = False) -> None:
    """Print one archived conversation as a summary tile."""
    messages = sum(1 for entry in record.conversation if entry.role in (Role.USER, Role.MODEL))
    click.echo(f"\033[36m[{format_timestamp(record.archived_at)}]\033[0m \033[1m{record.title}\033[0m")
    click.echo(f"Key: {record.key} | Messages: {messages}")
    if record.tags:
        click.echo(f"Tags: {', '.join(record.tags)}")
    if verbose:
        click.echo(f"Topic: {record.topic_id}")
        click.echo(f"File: {record.filename or 'unknown'}")
        if record.summary:
            click.echo(f"\n{record.summary}\n")
    click.echo("-" * 40)


def print_search_hit(hit: dict[str, Any]) -> None:
    """Print a Typesense search hit."""
    doc = hit["document"]
    click.echo(f"\033[36m[{format_timestamp(doc['archived_at'])}]\033[0m \033[1m{doc['title']}\033[0m")
    click.echo(f"Key: {doc['id']} | Tags: {', '.join(doc.get('tags', []))}")
    click.echo("-" * 40)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Browse and manage archived conversations."""
    setup_logging("history")
    ctx.obj = load_config(config_path)


@cli.command("list")
@click.option("--limit", "-n", default=20, help="Number of conversations")
@click.option("--verbose", "-v", is_flag=True, help="Show more details")
@click.pass_obj
def list_conversations(config: Config, limit: int, verbose: bool) -> None:
    """List archived conversations, newest first."""
    with ArchiveIndex(config.index_db) as index:
        records = index.load_archived_conversations()

    if not records:
        click.echo("No archived conversations yet.")
        return

    click.echo(f"{len(records)} archived conversations (showing {min(limit, len(records))}):\n")
    for record in records[:limit]:
        print_record(record, verbose)


@cli.command()
@click.argument("key")
@click.pass_obj
def show(config: Config, key: str) -> None:
    """Show an archived conversation."""
    with ArchiveIndex(config.index_db) as index:
        record = index.get(key)

    if record is None:
        click.echo(f"No archived conversation with key {key}", err=True)
        sys.exit(1)

    print_record(record, verbose=True)
    for entry in record.conversation:
        prefix = {Role.USER: "You", Role.MODEL: "Hermes", Role.SYSTEM: "System"}[entry.role]
        click.echo(f"{prefix}: {entry.text}")


@cli.command()
@click.argument("query")
@click.option("--tag", help="Filter by tag (Typesense only)")
@click.option("--limit", "-n", default=10, help="Number of results")
@click.option("--verbose", "-v", is_flag=True, help="Show more details")
@click.pass_obj
def search(config: Config, query: str, tag: str | None, limit: int, verbose: bool) -> None:
    """Search archived conversations."""
    if config.typesense.enabled:
        indexer = ArchiveSearchIndexer(config.typesense)
        try:
            results = indexer.search_archives(query, per_page=limit, tag=tag)
        except Exception as e:
            click.echo(f"Error searching conversations: {e}", err=True)
            sys.exit(1)

        hits = results.get("hits", [])
        click.echo(f"Found {results.get('found', 0)} conversations (showing {len(hits)}):\n")
        for hit in hits:
            print_search_hit(hit)
        return

    with ArchiveIndex(config.index_db) as index:
        records = index.search(query)

    if not records:
        click.echo("No conversations found matching your search.")
        return

    click.echo(f"Found {len(records)} conversations (showing {min(limit, len(records))}):\n")
    for record in records[:limit]:
        print_record(record, verbose)


@cli.command()
@click.argument("key")
@click.option("--keep-note", is_flag=True, help="Leave the vault note in place")
@click.pass_obj
def delete(config: Config, key: str, keep_note: bool) -> None:
    """Delete an archived conversation and trash its note."""
    with ArchiveIndex(config.index_db) as index:
        record = index.get(key)
        if record is None:
            click.echo(f"No archived conversation with key {key}", err=True)
            sys.exit(1)
        index.delete_archived_conversation(key)

    if config.typesense.enabled:
        ArchiveSearchIndexer(config.typesense).delete_archive(key)

    if record.filename and not keep_note:
        vault = FileSystemVault(config.vault_path)
        try:
            trashed = asyncio.run(vault.trash(record.filename))
        except FileNotFoundError:
            click.echo(f"Note already gone: {record.filename}")
        else:
            click.echo(f"Moved {record.filename} to {trashed}")

    click.echo(f"Deleted {key}")


@cli.command()
@click.argument("transcript", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--topic-id", help="Topic id to archive under (defaults to the transcript's)")
@click.pass_obj
def archive(config: Config, transcript: Path, topic_id: str | None) -> None:
    """Archive a saved transcript (a JSON list of entries)."""
    with open(transcript, encoding="utf-8") as f:
        entries = [TranscriptEntry.from_dict(item) for item in json.load(f)]

    try:
        model = GeminiModel(config.model)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    search_indexer = ArchiveSearchIndexer(config.typesense) if config.typesense.enabled else None
    with ArchiveIndex(config.index_db) as index:
        pipeline = ArchivalPipeline(
            FileSystemVault(config.vault_path),
            index,
            MetadataGenerator(model),
            chat_history_folder=config.chat_history_folder,
            config=config.archive,
            search_indexer=search_indexer,
        )
        result = asyncio.run(pipeline.archive(entries, topic_id))

    if not result.success:
        click.echo(f"{result.message}: {result.error}", err=True)
        sys.exit(1)
    click.echo(result.message)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
