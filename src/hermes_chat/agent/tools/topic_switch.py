"""topic_switch: the model marks the end of a conversation segment."""

from typing import Any

from hermes_chat.agent.tools.base import Tool, ToolCallbacks
from hermes_chat.models import TOPIC_SWITCH_TOOL, ToolData


class TopicSwitchTool(Tool):
    name = TOPIC_SWITCH_TOOL
    declaration = {
        "name": TOPIC_SWITCH_TOOL,
        "description": (
            "Signal that a major topic shift has occurred. "
            "Provide a summary of the previous conversation."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "summary": {
                    "type": "STRING",
                    "description": "A short one-sentence summary of the preceding conversation.",
                },
            },
            "required": ["summary"],
        },
    }
    instruction = """
TOPIC SWITCHING:
1. Monitor for harsh topic switches.
2. If a switch occurs (not at start), call "topic_switch" with a summary of the segment that just ended.
3. Respond with "Done." then continue with the new topic."""

    async def execute(self, args: dict[str, Any], callbacks: ToolCallbacks) -> dict[str, Any]:
        # Appending the marker is what ends the topic; the session reacts to it
        callbacks.on_system(
            "Context Update",
            ToolData(
                name=TOPIC_SWITCH_TOOL,
                filename="Session Context",
                new_content=str(args.get("summary", "")),
            ),
        )
        return {"status": "context_reset"}
