"""Pre-archive filtering and the content-sufficiency gate."""

from collections.abc import Iterable

from hermes_chat.models import WELCOME_ENTRY_ID, Role, TranscriptEntry


def is_terse_acknowledgement(entry: TranscriptEntry) -> bool:
    """A bare "Done." from the model."""
    return entry.role == Role.MODEL and entry.text.strip().lower().replace(".", "") == "done"


def select_for_archive(
    entries: Iterable[TranscriptEntry],
    filtered_tools: Iterable[str],
) -> list[TranscriptEntry]:
    """Drop the welcome banner, bare acknowledgements and denylisted tools.

    Tool data is kept so that the markdown renderer can use it; see
    filter_for_archive() for the stored form.
    """
    denylist = set(filtered_tools)
    return [
        entry
        for entry in entries
        if entry.id != WELCOME_ENTRY_ID
        and not is_terse_acknowledgement(entry)
        and not (entry.tool_data is not None and entry.tool_data.name in denylist)
    ]


def filter_for_archive(
    entries: Iterable[TranscriptEntry],
    filtered_tools: Iterable[str],
) -> list[TranscriptEntry]:
    """Entries as stored in the archive index: filtered, without tool data."""
    return [entry.without_tool_data() for entry in select_for_archive(entries, filtered_tools)]


def meaningful_entries(entries: Iterable[TranscriptEntry]) -> list[TranscriptEntry]:
    return [
        entry
        for entry in entries
        if entry.role in (Role.USER, Role.MODEL) and entry.text.strip()
    ]


def has_enough_content(
    entries: Iterable[TranscriptEntry],
    min_content_length: int = 50,
    min_entries: int = 2,
) -> bool:
    """Whether a topic is substantial enough to archive.

    Needs at least ``min_entries`` user/model entries with text and a
    combined stripped length strictly greater than ``min_content_length``.
    """
    meaningful = meaningful_entries(entries)
    total_length = sum(len(entry.text.strip()) for entry in meaningful)
    return len(meaningful) >= min_entries and total_length > min_content_length
