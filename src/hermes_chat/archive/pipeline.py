"""Archival pipeline: turn a finished topic into a vault note and an index record.

Steps:
1. DEDUP - skip topics already present in the archive index
2. FILTER - drop banner, bare acknowledgements and denylisted tool output
3. GATE - skip topics without enough user/model content
4. MARKDOWN - render the body
5. METADATA - title, tags, filename, summary, shouldSave from the model
6. SAVE GATE - skip when the model says the topic is not worth keeping
7. PERSIST - write <folder>/<date>-<NN>-<slug>.md, then the index record
"""

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import yaml

from hermes_chat.archive.filters import has_enough_content, select_for_archive
from hermes_chat.archive.markdown import convert_to_markdown
from hermes_chat.archive.metadata import ArchiveMetadata, MetadataGenerator
from hermes_chat.archive.naming import build_archive_path, next_archive_index
from hermes_chat.config import ArchiveConfig
from hermes_chat.errors import get_error_message
from hermes_chat.logging import get_logger
from hermes_chat.models import (
    ArchivedConversation,
    TranscriptEntry,
    new_archive_key,
    new_topic_id,
)
from hermes_chat.storage.index import ArchiveIndex
from hermes_chat.storage.search import ArchiveSearchIndexer
from hermes_chat.storage.vault import Vault

logger = get_logger("archive")

ARCHIVE_FORMAT = "hermes-chat-archive"
FRONTMATTER_TITLE_MAX_LENGTH = 50


@dataclass
class ArchiveResult:
    """Outcome of one archival attempt.

    Skips are successes (``skipped=True``); only persistence problems set
    ``success=False``.
    """

    success: bool
    message: str
    skipped: bool = False
    not_enough_content: bool = False
    error: str | None = None
    key: str | None = None
    filename: str | None = None
    suggested_filename: str | None = None


class _FrontmatterDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    if "\n" in value:
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", value)


_FrontmatterDumper.add_representer(str, _represent_str)


def _isoformat(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def build_frontmatter(
    metadata: ArchiveMetadata,
    topic_id: str,
    entries: list[TranscriptEntry],
) -> str:
    """YAML frontmatter block, delimited by --- lines."""
    timestamps = [entry.timestamp for entry in entries if entry.timestamp > 0]
    now = time.time()
    start = timestamps[0] if timestamps else now
    end = timestamps[-1] if timestamps else now

    title = metadata.title
    if len(title) > FRONTMATTER_TITLE_MAX_LENGTH:
        title = title[: FRONTMATTER_TITLE_MAX_LENGTH - 3] + "..."

    data: dict[str, Any] = {
        "title": title,
        "topic_id": topic_id,
        "date": _isoformat(start),
        "end_date": _isoformat(end),
        "duration": round(end - start) if len(timestamps) > 1 else 0,
        "tags": metadata.tags,
        "format": ARCHIVE_FORMAT,
        "summary": metadata.summary,
    }
    body = yaml.dump(
        data,
        Dumper=_FrontmatterDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=None,
        width=1000,
    )
    return f"---\n{body}---\n\n"


class ArchivalPipeline:
    """Archives finished topics, at most once per topic id.

    Runs for one topic id are serialized with a per-topic lock held from
    the dedup check through the index write, so two triggers for the same
    topic cannot both pass the dedup check.
    """

    def __init__(
        self,
        vault: Vault,
        index: ArchiveIndex,
        metadata: MetadataGenerator,
        chat_history_folder: str = "chat-history",
        config: ArchiveConfig | None = None,
        search_indexer: ArchiveSearchIndexer | None = None,
    ) -> None:
        self._vault = vault
        self._index = index
        self._metadata = metadata
        self._folder = chat_history_folder.strip("/")
        self._config = config or ArchiveConfig()
        self._search_indexer = search_indexer
        self._topic_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def _topic_lock(self, topic_id: str) -> AsyncIterator[None]:
        """Hold the topic's lock; the entry is dropped once no run needs it."""
        lock = self._topic_locks.get(topic_id)
        if lock is None:
            lock = self._topic_locks[topic_id] = asyncio.Lock()
        self._lock_users[topic_id] = self._lock_users.get(topic_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[topic_id] -= 1
            if not self._lock_users[topic_id]:
                del self._lock_users[topic_id]
                del self._topic_locks[topic_id]

    async def archive(
        self,
        entries: list[TranscriptEntry],
        topic_id: str | None = None,
        archive_date: datetime | None = None,
    ) -> ArchiveResult:
        """Archive a topic's entries.

        Args:
            entries: The topic slice, oldest first
            topic_id: Topic to archive (defaults to the first entry's topic)
            archive_date: Date used for the note name (defaults to the UTC date)

        Returns:
            ArchiveResult describing a write, a skip or a persistence failure
        """
        if topic_id is None:
            topic_id = next((entry.topic_id for entry in entries if entry.topic_id), None) or new_topic_id()

        if archive_date is None:
            archive_date = datetime.now(timezone.utc)

        async with self._topic_lock(topic_id):
            return await self._archive_locked(entries, topic_id, archive_date)

    async def _archive_locked(
        self,
        entries: list[TranscriptEntry],
        topic_id: str,
        archive_date: datetime,
    ) -> ArchiveResult:
        # Step 1: dedup
        try:
            already_archived = await asyncio.to_thread(self._index.has_topic, topic_id)
        except Exception as e:
            logger.error("Failed to read archive index: topic_id=%s error=%s", topic_id, e)
            return ArchiveResult(False, "Failed to read archive index", error=get_error_message(e))
        if already_archived:
            logger.info("Skipping archive, topic already archived: topic_id=%s", topic_id)
            return ArchiveResult(True, f"Topic already archived ({topic_id})", skipped=True)

        # Step 2: filter
        selected = select_for_archive(entries, self._config.filtered_tools)
        stored = [entry.without_tool_data() for entry in selected]

        # Step 3: content gate
        if not has_enough_content(stored, self._config.min_content_length, self._config.min_entries):
            logger.info(
                "Skipping archive, not enough content: topic_id=%s entries=%d",
                topic_id,
                len(stored),
            )
            return ArchiveResult(
                True,
                "No meaningful content to archive",
                skipped=True,
                not_enough_content=True,
            )

        # Step 4: markdown
        body = convert_to_markdown(selected)

        # Step 5: metadata
        metadata = await self._metadata.generate(stored)

        # Step 6: save gate
        if not metadata.should_save:
            logger.info("Skipping archive, model declined to save: topic_id=%s", topic_id)
            return ArchiveResult(
                True,
                "Content not substantial enough to archive",
                skipped=True,
                not_enough_content=True,
            )

        # Step 7: filename and persistence
        try:
            existing = await self._vault.list_files()
            index = next_archive_index(existing, self._folder, archive_date)
            filename = build_archive_path(self._folder, metadata.suggested_filename, index, archive_date)
            await self._vault.create_directory(self._folder)
            await self._vault.create_file(filename, build_frontmatter(metadata, topic_id, stored) + body)
        except Exception as e:
            logger.error("Failed to save archive to vault: topic_id=%s error=%s", topic_id, e)
            return ArchiveResult(False, "Failed to save to vault", error=get_error_message(e))

        record = ArchivedConversation(
            key=new_archive_key(),
            topic_id=topic_id,
            title=metadata.title,
            tags=metadata.tags,
            summary=metadata.summary,
            suggested_filename=metadata.suggested_filename,
            archived_at=int(time.time()),
            conversation=stored,
            filename=filename,
        )
        try:
            await asyncio.to_thread(self._index.add_archived_conversation, record)
        except Exception as e:
            logger.error(
                "Failed to save archive index record: topic_id=%s path=%s error=%s",
                topic_id,
                filename,
                e,
            )
            return ArchiveResult(
                False,
                "Failed to save to archive index",
                error=get_error_message(e),
                filename=filename,
            )

        if self._search_indexer is not None:
            await asyncio.to_thread(self._search_indexer.upsert_archive, record)

        logger.info("Archived topic: topic_id=%s path=%s key=%s", topic_id, filename, record.key)
        return ArchiveResult(
            True,
            f"Conversation archived to {filename}",
            key=record.key,
            filename=filename,
            suggested_filename=metadata.suggested_filename,
        )
