"""Topic boundary detection."""

from dataclasses import dataclass

from hermes_chat.logging import get_logger
from hermes_chat.models import (
    TOPIC_SWITCH_TOOL,
    WELCOME_ENTRY_ID,
    Role,
    ToolStatus,
    TranscriptEntry,
    new_topic_id,
)

logger = get_logger("topics")


@dataclass
class TopicBoundary:
    """A detected topic switch and the slice of the topic that just ended."""

    old_topic_id: str
    new_topic_id: str
    marker_id: str
    entries: list[TranscriptEntry]


def is_topic_marker(entry: TranscriptEntry | None) -> bool:
    """The context-update entry a topic_switch call appends.

    The loop's pending or failed status entry for the same call is not a
    marker.
    """
    return (
        entry is not None
        and entry.role == Role.SYSTEM
        and entry.tool_name == TOPIC_SWITCH_TOOL
        and entry.tool_data.status not in (ToolStatus.PENDING, ToolStatus.ERROR)
    )


def select_topic_slice(entries: list[TranscriptEntry], topic_id: str) -> list[TranscriptEntry]:
    """Entries of one topic, without the welcome banner or topic markers.

    Markers are matched by tool name, which also drops the status entry the
    tool-calling loop records for the topic_switch call itself.
    """
    return [
        entry
        for entry in entries
        if entry.topic_id == topic_id
        and entry.id != WELCOME_ENTRY_ID
        and entry.tool_name != TOPIC_SWITCH_TOOL
    ]


class TopicBoundaryDetector:
    """Fires once per topic-switch marker appended to the transcript."""

    def __init__(self) -> None:
        self._seen_markers: set[str] = set()

    def observe(
        self,
        entries: list[TranscriptEntry],
        current_topic_id: str,
    ) -> TopicBoundary | None:
        """Check the most recent entry for a topic-switch marker.

        Args:
            entries: Transcript snapshot, oldest first
            current_topic_id: The coordinator's topic id before this call

        Returns:
            The boundary to act on, or None when the last entry is not an
            unprocessed marker
        """
        if not entries:
            return None
        marker = entries[-1]
        if not is_topic_marker(marker) or marker.id in self._seen_markers:
            return None
        self._seen_markers.add(marker.id)

        old_topic_id = marker.topic_id or current_topic_id
        boundary = TopicBoundary(
            old_topic_id=old_topic_id,
            new_topic_id=new_topic_id(),
            marker_id=marker.id,
            entries=select_topic_slice(entries, old_topic_id),
        )
        logger.info(
            "Topic switch detected: old_topic=%s new_topic=%s entries=%d",
            boundary.old_topic_id,
            boundary.new_topic_id,
            len(boundary.entries),
        )
        return boundary
