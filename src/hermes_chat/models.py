"""Canonical data models."""

import secrets
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

WELCOME_ENTRY_ID = "welcome-init"
TOPIC_SWITCH_TOOL = "topic_switch"
MODE_SWITCH_TOOL = "mode_switch"


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class Mode(str, Enum):
    VOICE = "voice"
    TEXT = "text"


class ToolStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    SEARCH_RESULTS = "search_results"


def _short_token() -> str:
    return secrets.token_hex(3)


def new_entry_id() -> str:
    """Generate a transcript entry id."""
    return secrets.token_hex(5)


def new_topic_id() -> str:
    """Mint a topic id: topic-<epoch ms>-<random>."""
    return f"topic-{int(time.time() * 1000)}-{_short_token()}"


def new_archive_key() -> str:
    """Generate the key for an archived conversation record."""
    return f"conv-{int(time.time() * 1000)}-{_short_token()}"


def new_call_id() -> str:
    """Generate an id for one tool invocation."""
    return f"call-{int(time.time() * 1000)}-{_short_token()}"


@dataclass(frozen=True)
class ToolData:
    """Structured payload attached to a system entry produced by a tool."""

    name: str
    filename: str = ""
    id: str | None = None
    status: ToolStatus | None = None
    error: str | None = None
    old_content: str | None = None
    new_content: str | None = None
    additions: int | None = None
    removals: int | None = None
    files: list[str] | None = None
    search_results: list[dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "filename": self.filename}
        for key in (
            "id",
            "error",
            "old_content",
            "new_content",
            "additions",
            "removals",
            "files",
            "search_results",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.status is not None:
            data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolData":
        status = data.get("status")
        return cls(
            name=data["name"],
            filename=data.get("filename", ""),
            id=data.get("id"),
            status=ToolStatus(status) if status else None,
            error=data.get("error"),
            old_content=data.get("old_content"),
            new_content=data.get("new_content"),
            additions=data.get("additions"),
            removals=data.get("removals"),
            files=data.get("files"),
            search_results=data.get("search_results"),
        )


@dataclass(frozen=True)
class TranscriptEntry:
    """One user, model or system turn in the active session.

    Entries are immutable; the transcript store swaps in updated copies for
    streaming completion and tool status changes. ``topic_id`` is carried
    over unchanged by every update.
    """

    id: str
    role: Role
    text: str
    is_complete: bool = True
    timestamp: float = field(default_factory=time.time)
    topic_id: str | None = None
    tool_data: ToolData | None = None

    @property
    def tool_name(self) -> str | None:
        return self.tool_data.name if self.tool_data else None

    def without_tool_data(self) -> "TranscriptEntry":
        return replace(self, tool_data=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "is_complete": self.is_complete,
            "timestamp": self.timestamp,
            "topic_id": self.topic_id,
        }
        if self.tool_data is not None:
            data["tool_data"] = self.tool_data.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptEntry":
        tool_data = data.get("tool_data")
        return cls(
            id=data.get("id") or new_entry_id(),
            role=Role(data["role"]),
            text=data.get("text", ""),
            is_complete=data.get("is_complete", True),
            timestamp=float(data.get("timestamp", 0)),
            topic_id=data.get("topic_id"),
            tool_data=ToolData.from_dict(tool_data) if tool_data else None,
        )


@dataclass
class ArchivedConversation:
    """A finished topic as recorded in the archive index."""

    key: str
    topic_id: str
    title: str
    tags: list[str]
    summary: str
    suggested_filename: str
    archived_at: int  # Unix timestamp (seconds)
    conversation: list[TranscriptEntry]
    filename: str | None = None  # Vault path of the rendered note

    def conversation_text(self) -> str:
        """Plain user/model text, used for search."""
        return "\n".join(
            f"{entry.role.value}: {entry.text}"
            for entry in self.conversation
            if entry.role in (Role.USER, Role.MODEL)
        )

    def to_typesense_doc(self) -> dict[str, Any]:
        """Convert to Typesense document format."""
        return {
            "id": self.key,
            "topic_id": self.topic_id,
            "title": self.title,
            "tags": self.tags,
            "summary": self.summary,
            "filename": self.filename or "",
            "archived_at": self.archived_at,
            "content": self.conversation_text(),
        }


@dataclass
class UsageMetadata:
    """Token counts reported by the model for one response."""

    prompt_tokens: int | None = None
    candidates_tokens: int | None = None
    total_tokens: int | None = None
