"""CLI entry point for a text chat session.

Allows running an interactive session as a module:
    python -m hermes_chat.session
"""

import asyncio
import sys
from pathlib import Path

import click

from hermes_chat.agent.loop import ToolCallingLoop
from hermes_chat.agent.model import GeminiModel
from hermes_chat.agent.tools import build_default_registry
from hermes_chat.archive.metadata import MetadataGenerator
from hermes_chat.archive.pipeline import ArchivalPipeline, ArchiveResult
from hermes_chat.config import Config, load_config
from hermes_chat.errors import ConfigurationError, get_error_message
from hermes_chat.logging import get_logger, setup_logging
from hermes_chat.models import Mode, Role
from hermes_chat.session.coordinator import SessionCoordinator
from hermes_chat.storage.index import ArchiveIndex
from hermes_chat.storage.search import ArchiveSearchIndexer
from hermes_chat.storage.vault import FileSystemVault

logger = get_logger("session")

QUIT_COMMANDS = {"/quit", "/exit"}


def connect_search_indexer(config: Config) -> ArchiveSearchIndexer | None:
    """Typesense mirror if enabled and reachable, otherwise None."""
    if not config.typesense.enabled:
        return None
    try:
        indexer = ArchiveSearchIndexer(config.typesense)
        indexer.ensure_collection()
    except Exception:
        logger.warning("Could not connect to Typesense, search indexing disabled", exc_info=True)
        return None
    return indexer


def report_archive(result: ArchiveResult) -> None:
    if not result.success:
        click.echo(f"\033[31m[archive] {result.message}: {result.error}\033[0m", err=True)
    elif not result.skipped:
        click.echo(f"\033[2m[archive] {result.message}\033[0m")


async def run_session(config: Config, model: GeminiModel) -> None:
    """Read user messages from stdin until EOF or /quit."""
    vault = FileSystemVault(config.vault_path)
    with ArchiveIndex(config.index_db) as index:
        pipeline = ArchivalPipeline(
            vault,
            index,
            MetadataGenerator(model),
            chat_history_folder=config.chat_history_folder,
            config=config.archive,
            search_indexer=connect_search_indexer(config),
        )
        coordinator = SessionCoordinator(pipeline, on_archived=report_archive)
        registry = build_default_registry()
        loop = ToolCallingLoop(
            model,
            registry,
            coordinator,
            system_instruction="\n\n".join(
                part
                for part in (
                    config.model.system_instruction,
                    registry.instructions(),
                    config.model.custom_context,
                )
                if part
            ),
            max_steps=config.model.max_tool_steps,
            max_retries=config.model.max_retries,
            retry_delay=config.model.retry_delay_seconds,
        )

        coordinator.start()
        loop.add_context(coordinator.begin_mode(Mode.TEXT))
        click.echo(coordinator.store[0].text)

        while True:
            try:
                text = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                break
            if not text:
                continue
            if text in QUIT_COMMANDS:
                break
            if text == "/archive":
                await coordinator.end_session()
                continue

            seen = len(coordinator.store)
            try:
                await loop.send_message(text)
            except Exception as e:
                click.echo(f"\033[31mError: {get_error_message(e)}\033[0m", err=True)
                continue

            for entry in coordinator.store.snapshot(seen):
                if entry.role == Role.SYSTEM:
                    click.echo(f"\033[2m[{entry.text}]\033[0m")
                elif entry.role == Role.MODEL:
                    click.echo(entry.text)

            if coordinator.stop_requested:
                break

        click.echo("Ending session...")
        await coordinator.end_session()
        await coordinator.drain()
        logger.info(
            "Session ended: total_tokens=%s archives=%d",
            coordinator.usage.total_tokens,
            len(coordinator.archive_results),
        )


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.yaml",
)
def cli(config_path: Path | None) -> None:
    """Chat with Hermes in text mode."""
    setup_logging("session")
    config = load_config(config_path)

    try:
        model = GeminiModel(config.model)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        asyncio.run(run_session(config, model))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
