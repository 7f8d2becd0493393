"""Archive note naming: <folder>/<YYYY-MM-DD>-<NN>-<slug>.md."""

import re
from collections.abc import Iterable
from datetime import datetime, timezone

SLUG_MAX_LENGTH = 40

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9-]")
_REPEATED_DASHES = re.compile(r"-{2,}")


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated, at most 40 characters; "conversation" if empty."""
    slug = _NON_SLUG_CHARS.sub("-", text.lower())
    slug = _REPEATED_DASHES.sub("-", slug)[:SLUG_MAX_LENGTH].strip("-")
    return slug or "conversation"


def next_archive_index(
    existing_files: Iterable[str],
    folder: str,
    archive_date: datetime | None = None,
) -> int:
    """Next per-day sequence number for archives in ``folder``.

    Scans vault paths for notes named after the given date (defaults to the
    current UTC date) and returns the highest index found plus one, starting at 1.
    """
    if archive_date is None:
        archive_date = datetime.now(timezone.utc)
    date_str = archive_date.strftime("%Y-%m-%d")
    pattern = re.compile(rf"^{re.escape(folder.strip('/'))}/{date_str}-(\d{{2,}}).*\.md$")

    highest = 0
    for path in existing_files:
        match = pattern.match(path)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def build_archive_path(
    folder: str,
    suggested_filename: str,
    index: int,
    archive_date: datetime | None = None,
) -> str:
    """Vault path for an archive note, e.g. chat-history/2025-03-15-04-japan-trip.md.

    The date defaults to the current UTC date, matching the frontmatter.
    """
    if archive_date is None:
        archive_date = datetime.now(timezone.utc)
    date_str = archive_date.strftime("%Y-%m-%d")
    return f"{folder.strip('/')}/{date_str}-{index:02d}-{slugify(suggested_filename)}.md"
