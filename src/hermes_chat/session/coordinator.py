"""Session coordinator: one logical conversation shared by voice and text modes."""

import asyncio
import logging
from collections.abc import Callable

from hermes_chat.archive.pipeline import ArchivalPipeline, ArchiveResult
from hermes_chat.logging import get_logger
from hermes_chat.models import (
    MODE_SWITCH_TOOL,
    WELCOME_ENTRY_ID,
    Mode,
    Role,
    ToolData,
    TranscriptEntry,
    UsageMetadata,
    new_entry_id,
    new_topic_id,
)
from hermes_chat.session.topics import TopicBoundaryDetector, select_topic_slice
from hermes_chat.session.transcript import TranscriptStore
from hermes_chat.session.watermark import WatermarkTracker, format_delta_for_injection

logger = get_logger("session")

DEFAULT_WELCOME_TEXT = "Hermes is ready. Speak or type to begin."

_LOG_LEVELS = {"error": logging.ERROR, "action": logging.INFO, "info": logging.INFO}


class SessionCoordinator:
    """Owns the transcript, the current topic id and the per-mode watermarks.

    Implements the conversation callbacks used by the tool-calling loop.
    Archival runs in background tasks: topic switches and session ends
    schedule them, and stopping a mode never cancels them; drain() waits
    for the outstanding ones.
    """

    def __init__(
        self,
        pipeline: ArchivalPipeline | None = None,
        store: TranscriptStore | None = None,
        on_archived: Callable[[ArchiveResult], None] | None = None,
    ) -> None:
        self.store = store if store is not None else TranscriptStore()
        self.watermarks = WatermarkTracker(self.store)
        self._detector = TopicBoundaryDetector()
        self._pipeline = pipeline
        self._on_archived = on_archived
        self._topic_id = new_topic_id()
        self._active_mode: Mode | None = None
        self._archive_tasks: set[asyncio.Task[ArchiveResult]] = set()
        self.archive_results: list[ArchiveResult] = []
        self.usage = UsageMetadata(prompt_tokens=0, candidates_tokens=0, total_tokens=0)
        self.current_folder = "/"
        self.current_note: str | None = None
        self.stop_requested = False

    @property
    def topic_id(self) -> str:
        return self._topic_id

    @property
    def active_mode(self) -> Mode | None:
        return self._active_mode

    def start(self, welcome_text: str = DEFAULT_WELCOME_TEXT) -> None:
        """Show the welcome banner; it never becomes part of an archive."""
        if self.store.get(WELCOME_ENTRY_ID) is None:
            self.store.append(
                TranscriptEntry(
                    id=WELCOME_ENTRY_ID,
                    role=Role.SYSTEM,
                    text=welcome_text,
                    topic_id=self._topic_id,
                )
            )

    # Conversation callbacks

    def on_log(self, message: str, level: str = "info") -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)

    def on_transcription(
        self,
        role: Role,
        text: str,
        is_complete: bool,
        mode: Mode | None = None,
    ) -> str | None:
        return self.store.append_or_update_streaming(
            role,
            text,
            is_complete,
            topic_id=self._topic_id,
            mode=mode or self._active_mode or Mode.TEXT,
        )

    def on_system_message(self, text: str, tool_data: ToolData | None = None) -> str:
        """Append a system entry, or update the one tracking a tool call.

        ToolData whose ``id`` names an existing entry replaces that entry in
        place. Any appended entry is checked for a topic-switch marker.
        """
        if tool_data is not None and tool_data.id and self.store.get(tool_data.id) is not None:
            self.store.update_tool_entry(tool_data.id, text, tool_data)
            return tool_data.id

        entry_id = tool_data.id if tool_data is not None and tool_data.id else new_entry_id()
        self.store.append(
            TranscriptEntry(
                id=entry_id,
                role=Role.SYSTEM,
                text=text,
                topic_id=self._topic_id,
                tool_data=tool_data,
            )
        )
        self._check_topic_boundary()
        return entry_id

    def on_file_state(self, folder: str, note: str | None) -> None:
        self.current_folder = folder
        self.current_note = note

    def on_usage(self, usage: UsageMetadata) -> None:
        self.usage = UsageMetadata(
            prompt_tokens=(self.usage.prompt_tokens or 0) + (usage.prompt_tokens or 0),
            candidates_tokens=(self.usage.candidates_tokens or 0) + (usage.candidates_tokens or 0),
            total_tokens=(self.usage.total_tokens or 0) + (usage.total_tokens or 0),
        )

    async def on_stop_session(self) -> None:
        # Runs inside a tool call; archival continues in the background and
        # the host ends the session once the current turn completes
        self.stop_requested = True
        self.rotate_topic()

    # Topics and archival

    def _check_topic_boundary(self) -> None:
        boundary = self._detector.observe(self.store.snapshot(), self._topic_id)
        if boundary is None:
            return
        self._topic_id = boundary.new_topic_id
        self._schedule_archive(boundary.entries, boundary.old_topic_id)

    def rotate_topic(self) -> asyncio.Task[ArchiveResult] | None:
        """End the current topic: archive its slice and mint a new topic id."""
        old_topic_id = self._topic_id
        entries = select_topic_slice(self.store.snapshot(), old_topic_id)
        self._topic_id = new_topic_id()
        logger.info("Topic ended: old_topic=%s new_topic=%s", old_topic_id, self._topic_id)
        return self._schedule_archive(entries, old_topic_id)

    async def end_session(self) -> ArchiveResult | None:
        """Archive the current topic and wait for that archival to finish."""
        task = self.rotate_topic()
        if task is None:
            return None
        return await task

    def _schedule_archive(
        self,
        entries: list[TranscriptEntry],
        topic_id: str,
    ) -> asyncio.Task[ArchiveResult] | None:
        if self._pipeline is None:
            return None
        task = asyncio.get_running_loop().create_task(
            self._run_archive(self._pipeline, entries, topic_id)
        )
        self._archive_tasks.add(task)
        task.add_done_callback(self._archive_tasks.discard)
        return task

    async def _run_archive(
        self,
        pipeline: ArchivalPipeline,
        entries: list[TranscriptEntry],
        topic_id: str,
    ) -> ArchiveResult:
        result = await pipeline.archive(entries, topic_id)
        self.archive_results.append(result)
        if not result.success:
            logger.error(
                "Archive failed: topic_id=%s message=%s error=%s",
                topic_id,
                result.message,
                result.error,
            )
        if self._on_archived is not None:
            self._on_archived(result)
        return result

    async def drain(self) -> list[ArchiveResult]:
        """Wait for all in-flight archival tasks."""
        if not self._archive_tasks:
            return []
        return list(await asyncio.gather(*self._archive_tasks))

    # Modes

    def begin_mode(self, mode: Mode) -> str:
        """Make ``mode`` the active mode and return the context it is missing.

        The leaving mode is treated as having seen everything so far. A
        mode-switch marker is recorded, the new mode's delta is formatted
        for its system prompt, and its watermark is advanced.

        Returns:
            A single-line context string, empty when there is nothing new
        """
        previous = self._active_mode
        if previous is not None and previous != mode:
            self.watermarks.advance(previous)
            self.on_system_message(
                f"Switched from {previous.value} mode to {mode.value} mode",
                ToolData(name=MODE_SWITCH_TOOL, filename="Session"),
            )

        injection = format_delta_for_injection(self.watermarks.delta_for(mode))
        self.watermarks.advance(mode)
        self._active_mode = mode
        return injection
