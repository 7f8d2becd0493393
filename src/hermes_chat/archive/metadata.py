"""LLM-generated archive metadata, with deterministic fallbacks."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from hermes_chat.agent.model import ModelClient
from hermes_chat.errors import get_error_message
from hermes_chat.logging import get_logger
from hermes_chat.models import Role, TranscriptEntry

logger = get_logger("metadata")

TITLE_MAX_LENGTH = 30
FILENAME_MAX_LENGTH = 40

_CODE_FENCE = re.compile(r"```(?:json)?\n?")
_TITLE_PREFIX = re.compile(r"^(title|subject|topic):?\s*", re.IGNORECASE)
_SURROUNDING_QUOTES = re.compile(r"^[\"'`]|[\"'`]$")
_NON_WORD = re.compile(r"[^\w\s]")

METADATA_PROMPT = """Generate a JSON response with these fields:
- "title": A short, keyword-rich title (2-4 words, max 30 characters)
- "tags": Array of relevant tags for this conversation (e.g. ["file-management", "search"])
- "suggestedFilename": Primary keywords focusing on the TOPIC/CONTENT discussed, not file operations. Use lowercase, hyphen-separated (max 40 characters)
- "summary": A bulletpoint list summarizing the conversation
- "shouldSave": true/false - does this conversation have meaningful content worth saving?
  (false for: just greetings, "hi", "hello", "what were we doing", empty exchanges)

IMPORTANT: For filename generation, focus on WHAT WAS DISCUSSED or ACCOMPLISHED, not HOW it was done.
Examples:
- GOOD: "react-component-refactor", "openai-api-integration-setup", "wedding-planning", "weekend-activities"
- BAD: "create-file", "edit-code", "rename-component", "file-operations", "image-search"

Conversation:
{conversation}

Respond ONLY with valid JSON, no markdown."""


@dataclass
class ArchiveMetadata:
    title: str = "Conversation"
    tags: list[str] = field(default_factory=list)
    suggested_filename: str = ""
    summary: str = ""
    should_save: bool = True


def extract_keywords(text: str) -> str:
    """First few words longer than two characters, capped at 30 characters."""
    words = [word for word in _NON_WORD.sub(" ", text).split() if len(word) > 2]
    return " ".join(words[:4])[:TITLE_MAX_LENGTH].strip() or "Conversation"


def heuristic_metadata(entries: list[TranscriptEntry]) -> ArchiveMetadata:
    """Metadata derived from the first user message alone."""
    first_user = next((entry.text for entry in entries if entry.role == Role.USER), "")
    if not first_user.strip():
        return ArchiveMetadata()
    title = extract_keywords(first_user)
    return ArchiveMetadata(
        title=title,
        suggested_filename=re.sub(r"\s+", "-", title.lower()),
    )


def conversation_text(entries: list[TranscriptEntry]) -> str:
    return "\n".join(
        f"{entry.role.value}: {entry.text}"
        for entry in entries
        if entry.role in (Role.USER, Role.MODEL)
    )


def _metadata_from_json(data: dict[str, Any]) -> ArchiveMetadata:
    tags = data.get("tags")
    return ArchiveMetadata(
        title=str(data["title"])[:TITLE_MAX_LENGTH].strip() if data.get("title") else "Conversation",
        tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
        suggested_filename=(
            str(data["suggestedFilename"])[:FILENAME_MAX_LENGTH] if data.get("suggestedFilename") else ""
        ),
        summary=str(data["summary"]) if data.get("summary") else "",
        should_save=data.get("shouldSave") is not False,
    )


def parse_metadata_response(response: str) -> ArchiveMetadata | None:
    """Parse the model's reply into metadata.

    Strict JSON is tried first, after stripping code fences. Anything else
    is read as a bare title taken from the first line. Returns None when not
    even a two-character title can be recovered.
    """
    try:
        data = json.loads(_CODE_FENCE.sub("", response).strip())
    except ValueError:
        data = None
    if isinstance(data, dict):
        return _metadata_from_json(data)

    logger.warning("Metadata response was not a JSON object, using it as a title")
    lines = response.strip().splitlines()
    first_line = lines[0] if lines else ""
    title = _TITLE_PREFIX.sub("", first_line.strip()).removesuffix(".")
    title = _SURROUNDING_QUOTES.sub("", title).strip()[:TITLE_MAX_LENGTH]
    if len(title) < 2:
        return None
    return ArchiveMetadata(
        title=title,
        suggested_filename=re.sub(r"\s+", "-", title.lower()),
        should_save=True,
    )


class MetadataGenerator:
    """Asks the model to title, tag and summarize a finished topic."""

    def __init__(self, model: ModelClient | None) -> None:
        self._model = model

    async def generate(self, entries: list[TranscriptEntry]) -> ArchiveMetadata:
        """Never raises: model or parse failures fall back to heuristics."""
        fallback = heuristic_metadata(entries)
        text = conversation_text(entries)
        if self._model is None or not text.strip():
            return fallback

        prompt = METADATA_PROMPT.format(conversation=text)
        try:
            response = await self._model.generate_content(
                [{"role": "user", "parts": [{"text": prompt}]}]
            )
        except Exception as e:
            logger.warning("Metadata generation failed, using heuristics: error=%s", get_error_message(e))
            return fallback

        parsed = parse_metadata_response(response.text or "")
        return parsed if parsed is not None else fallback
