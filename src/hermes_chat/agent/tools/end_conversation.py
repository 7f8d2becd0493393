"""end_conversation: the model ends the session on the user's request."""

from typing import Any

from hermes_chat.agent.tools.base import Tool, ToolCallbacks
from hermes_chat.errors import get_error_message
from hermes_chat.logging import get_logger
from hermes_chat.models import ToolData, ToolStatus

logger = get_logger("tools")


class EndConversationTool(Tool):
    name = "end_conversation"
    declaration = {
        "name": "end_conversation",
        "description": "End the current conversation session.",
        "parameters": {"type": "OBJECT", "properties": {}, "required": []},
    }
    instruction = """
CONVERSATION CONTROL:
1. Use "end_conversation" when the user indicates they want to stop talking or end the conversation.
2. Do NOT say "Done." after calling this. The session will simply end."""

    async def execute(self, args: dict[str, Any], callbacks: ToolCallbacks) -> dict[str, Any]:
        callbacks.on_system(
            "Ending conversation...",
            ToolData(
                id=callbacks.call_id,
                name=self.name,
                filename="Session",
                status=ToolStatus.SUCCESS,
            ),
        )
        try:
            await callbacks.stop_session()
        except Exception as e:
            # The conversation ends regardless; archival reports its own failures
            logger.error("Error while stopping session: error=%s", get_error_message(e))
            return {"status": "conversation_ended_with_errors"}
        return {"status": "conversation_ended"}
