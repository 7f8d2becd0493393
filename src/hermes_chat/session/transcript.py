"""In-memory transcript store for the active session."""

from collections.abc import Iterator
from dataclasses import replace

from hermes_chat.models import Mode, Role, ToolData, TranscriptEntry, new_entry_id


class TranscriptStore:
    """Ordered sequence of transcript entries shared by both modes.

    Entries live in an index-addressed arena: appends go to the end and the
    two permitted mutations (completing a streaming partial, resolving a
    tool call) replace an entry at its existing position. An entry id maps
    to its position, and each (mode, role) pair has at most one incomplete
    streaming entry.
    """

    def __init__(self) -> None:
        self._entries: list[TranscriptEntry] = []
        self._positions: dict[str, int] = {}
        self._streaming: dict[tuple[Mode, Role], int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> TranscriptEntry:
        return self._entries[index]

    def snapshot(self, start: int = 0, end: int | None = None) -> list[TranscriptEntry]:
        """Copy of entries[start:end] as of now."""
        return self._entries[start:end]

    @property
    def last(self) -> TranscriptEntry | None:
        return self._entries[-1] if self._entries else None

    def get(self, entry_id: str) -> TranscriptEntry | None:
        position = self._positions.get(entry_id)
        return None if position is None else self._entries[position]

    def append(self, entry: TranscriptEntry) -> str:
        """Append a new entry and return its id.

        Raises:
            ValueError: If an entry with the same id already exists
        """
        if entry.id in self._positions:
            raise ValueError(f"Duplicate transcript entry id: {entry.id}")
        self._positions[entry.id] = len(self._entries)
        self._entries.append(entry)
        return entry.id

    def incomplete_entry(self, role: Role, mode: Mode = Mode.TEXT) -> TranscriptEntry | None:
        position = self._streaming.get((mode, role))
        return None if position is None else self._entries[position]

    def append_or_update_streaming(
        self,
        role: Role,
        text: str,
        is_complete: bool,
        topic_id: str | None,
        mode: Mode = Mode.TEXT,
    ) -> str | None:
        """Record a (possibly partial) user or model utterance.

        If the mode already has an incomplete entry for this role it is
        updated in place; empty text keeps the previous partial text.
        Otherwise a new entry is appended, except when an empty completed
        text arrives or when the text repeats the last complete entry of
        the same role.

        Returns:
            The id of the appended or updated entry, or None if ignored
        """
        key = (mode, role)
        position = self._streaming.get(key)
        if position is not None:
            current = self._entries[position]
            self._entries[position] = replace(
                current, text=text or current.text, is_complete=is_complete
            )
            if is_complete:
                del self._streaming[key]
            return current.id

        if is_complete and not text:
            return None
        last = self.last
        if (
            is_complete
            and last is not None
            and last.role == role
            and last.is_complete
            and last.text == text
        ):
            return None

        entry_id = self.append(
            TranscriptEntry(
                id=new_entry_id(),
                role=role,
                text=text,
                is_complete=is_complete,
                topic_id=topic_id,
            )
        )
        if not is_complete:
            self._streaming[key] = self._positions[entry_id]
        return entry_id

    def update_tool_entry(
        self,
        entry_id: str,
        text: str,
        tool_data: ToolData,
    ) -> TranscriptEntry:
        """Replace the text and tool data of an existing system entry.

        Raises:
            KeyError: If no entry has this id
        """
        position = self._positions[entry_id]
        updated = replace(self._entries[position], text=text, tool_data=tool_data)
        self._entries[position] = updated
        return updated

    def entries_for_topic(self, topic_id: str) -> list[TranscriptEntry]:
        return [entry for entry in self._entries if entry.topic_id == topic_id]

    def clear(self) -> None:
        self._entries.clear()
        self._positions.clear()
        self._streaming.clear()
