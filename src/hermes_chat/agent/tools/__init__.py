"""Tools the model can call."""

from .base import Tool, ToolCallbacks, ToolRegistry
from .end_conversation import EndConversationTool
from .topic_switch import TopicSwitchTool

__all__ = [
    "EndConversationTool",
    "Tool",
    "ToolCallbacks",
    "ToolRegistry",
    "TopicSwitchTool",
    "build_default_registry",
]


def build_default_registry() -> ToolRegistry:
    """Registry with the built-in conversation-control tools."""
    return ToolRegistry([TopicSwitchTool(), EndConversationTool()])
