"""Render archived transcript entries as an Obsidian-flavoured markdown body."""

import re
from itertools import groupby

from hermes_chat.models import TOPIC_SWITCH_TOOL, Role, TranscriptEntry

LINKABLE_EXTENSIONS = (
    "md|txt|js|ts|jsx|tsx|json|yaml|yml|css|html|py|java|cpp|c|h|go|rs|php|rb|"
    "swift|kt|scala|sh|sql|xml|csv|pdf|doc|docx|png|jpg|jpeg|gif|svg"
)

# Optional "file:" prefix, optional matching quote or backtick around the path
_FILE_REFERENCE = re.compile(
    r"(?<![\w/\[.-])(?:file:\s*)?([\"`]?)([A-Za-z0-9_/-]+\.(?:" + LINKABLE_EXTENSIONS + r"))\b\1"
)


def convert_file_links(text: str) -> str:
    """Turn bare file-like tokens into [[wiki links]]."""
    return _FILE_REFERENCE.sub(lambda match: f"[[{match.group(2)}]]", text)


def _fenced(language: str, body: str) -> str:
    return f"```{language}\n{body}\n```"


def render_system_entry(entry: TranscriptEntry) -> str:
    tool = entry.tool_data
    if tool is not None and tool.name == "rename_file":
        return f"**RENAME** ~~{tool.old_content}~~ -> [[{tool.new_content}]]"
    if tool is not None and tool.name == TOPIC_SWITCH_TOOL:
        return f"## {tool.new_content or entry.text}"

    output = _fenced("system", entry.text)
    if tool is None:
        return output

    file_ref = f"[[{tool.filename}]]"
    old, new = tool.old_content, tool.new_content
    if old is not None and new is not None and old != new:
        removed_something = bool(old.strip()) and old not in new
        if removed_something:
            output += (
                f"\n\n{file_ref}\n\n--- Removed\n{_fenced('markdown', old or '(empty)')}"
                f"\n\n+++ Added\n{_fenced('markdown', new or '(empty)')}"
            )
        else:
            output += f"\n\n{file_ref}\n{_fenced('markdown', new)}"
    elif tool.name in ("read_file", "create_file") and new is not None:
        output += f"\n\n{file_ref}\n{_fenced('markdown', new)}"
    return output


def convert_to_markdown(entries: list[TranscriptEntry]) -> str:
    """Render entries, merging consecutive turns of the same role.

    User text becomes plain paragraphs, model text a blockquote, and each
    system entry is rendered through its tool template.
    """
    blocks = []
    for role, group in groupby(entries, key=lambda entry: entry.role):
        group = list(group)
        if role == Role.SYSTEM:
            block = "\n\n".join(render_system_entry(entry) for entry in group)
        else:
            merged = convert_file_links(" ".join(entry.text for entry in group).strip())
            if role == Role.MODEL:
                block = "> " + merged.replace("\n", "\n> ")
            else:
                block = merged
        if block.strip() and block.strip() != ">":
            blocks.append(block)
    return "\n\n".join(blocks)
