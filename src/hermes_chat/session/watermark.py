"""Per-mode watermarks and cross-mode context deltas."""

import re
from collections.abc import Iterator

from hermes_chat.models import MODE_SWITCH_TOOL, Mode, Role, TranscriptEntry
from hermes_chat.session.transcript import TranscriptStore

# Anything that is not a word character, whitespace or basic sentence punctuation
_DISALLOWED_CHARS = re.compile(r"[^\w\s.,!?'\":;()-]")
_WHITESPACE = re.compile(r"\s+")

DELTA_PREFIX = "Conversation so far in the other mode:"


def is_delta_relevant(entry: TranscriptEntry) -> bool:
    """User/model turns with text, plus mode-switch markers."""
    if entry.role in (Role.USER, Role.MODEL):
        return bool(entry.text.strip())
    return entry.tool_name == MODE_SWITCH_TOOL


class TranscriptDelta:
    """Lazy view over the entries appended after a watermark.

    The upper bound is fixed when the delta is created, so entries appended
    later are left for the next delta. Iterating again restarts from the
    beginning of the view.
    """

    def __init__(self, store: TranscriptStore, start: int, end: int) -> None:
        self._store = store
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[TranscriptEntry]:
        for position in range(self.start, self.end):
            entry = self._store[position]
            if is_delta_relevant(entry):
                yield entry

    def __bool__(self) -> bool:
        return any(True for _ in self)

    def __len__(self) -> int:
        return sum(1 for _ in self)


def sanitize_for_prompt(text: str) -> str:
    """Reduce text to a single line of words and basic punctuation."""
    text = _DISALLOWED_CHARS.sub("", text)
    # \s covers newlines, tabs and carriage returns
    return _WHITESPACE.sub(" ", text).strip()


def format_delta_for_injection(delta: TranscriptDelta | list[TranscriptEntry]) -> str:
    """Serialize a delta into one line suitable for a system prompt.

    Returns an empty string for an empty delta.
    """
    parts = []
    for entry in delta:
        text = sanitize_for_prompt(entry.text)
        if not text:
            continue
        parts.append(f"{entry.role.value}: {text}")
    if not parts:
        return ""
    return f"{DELTA_PREFIX} " + " ; ".join(parts)


class WatermarkTracker:
    """Remembers how much of the transcript each mode has incorporated."""

    def __init__(self, store: TranscriptStore) -> None:
        self._store = store
        self._watermarks: dict[Mode, int] = {mode: 0 for mode in Mode}

    def watermark(self, mode: Mode) -> int:
        return self._watermarks[mode]

    def compute_delta(self, from_index: int) -> TranscriptDelta:
        """Delta of relevant entries from ``from_index`` to the current end.

        Raises:
            ValueError: If from_index is outside 0..len(transcript)
        """
        end = len(self._store)
        if not 0 <= from_index <= end:
            raise ValueError(f"Watermark {from_index} outside transcript of length {end}")
        return TranscriptDelta(self._store, from_index, end)

    def delta_for(self, mode: Mode) -> TranscriptDelta:
        return self.compute_delta(self._watermarks[mode])

    def advance(self, mode: Mode) -> int:
        """Move a mode's watermark to the transcript length as of now.

        The length is re-read here rather than derived from the delta's
        entry count, which is smaller than the span it covered whenever the
        relevance filter dropped entries.
        """
        current = len(self._store)
        self._watermarks[mode] = max(self._watermarks[mode], current)
        return self._watermarks[mode]

    def reset(self) -> None:
        for mode in self._watermarks:
            self._watermarks[mode] = 0
