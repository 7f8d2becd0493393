"""Tests for the tool registry and the built-in tools."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from hermes_chat.agent.tools import (
    EndConversationTool,
    Tool,
    ToolCallbacks,
    ToolRegistry,
    TopicSwitchTool,
    build_default_registry,
)
from hermes_chat.errors import UnknownToolError
from hermes_chat.models import TOPIC_SWITCH_TOOL, ToolData, ToolStatus


class NoopTool(Tool):
    name = "noop"
    declaration = {"name": "noop", "description": "Do nothing.", "parameters": {"type": "OBJECT"}}
    instruction = "Use noop sparingly."

    async def execute(self, args: dict[str, Any], callbacks: ToolCallbacks) -> dict[str, Any]:
        return {}


def make_callbacks(on_stop_session: AsyncMock | None = None) -> ToolCallbacks:
    return ToolCallbacks(
        call_id="call-1",
        on_log=MagicMock(),
        on_system=MagicMock(return_value="entry-id"),
        on_file_state=MagicMock(),
        on_stop_session=on_stop_session,
    )


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_get(self) -> None:
        """Registered tools are found by name."""
        tool = NoopTool()
        registry = ToolRegistry([tool])

        assert registry.get("noop") is tool
        assert "noop" in registry
        assert registry.names() == ["noop"]

    def test_unknown_tool(self) -> None:
        """Looking up an unregistered name raises UnknownToolError."""
        with pytest.raises(UnknownToolError, match="Command missing not found"):
            ToolRegistry().get("missing")

    def test_duplicate_registration(self) -> None:
        """Two tools cannot share a name."""
        registry = ToolRegistry([NoopTool()])

        with pytest.raises(ValueError, match="already registered"):
            registry.register(NoopTool())

    def test_declarations_and_instructions(self) -> None:
        """Declarations and instructions are collected from every tool."""
        registry = ToolRegistry([NoopTool()])

        assert registry.declarations() == [NoopTool.declaration]
        assert registry.instructions() == "Use noop sparingly."

    def test_default_registry(self) -> None:
        """The built-in registry holds the conversation-control tools."""
        registry = build_default_registry()

        assert registry.names() == [TOPIC_SWITCH_TOOL, "end_conversation"]
        assert "TOPIC SWITCHING" in registry.instructions()


class TestToolCallbacks:
    """Tests for ToolCallbacks."""

    def test_reporting_on_own_entry_resolves(self) -> None:
        """System messages targeting the call's entry mark it resolved."""
        callbacks = make_callbacks()

        callbacks.on_system("other", ToolData(name="noop"))
        assert callbacks.resolved is False

        callbacks.on_system("mine", ToolData(id="call-1", name="noop"))
        assert callbacks.resolved is True

    @pytest.mark.asyncio
    async def test_stop_session_without_handler(self) -> None:
        """Stopping without a handler is a no-op."""
        await make_callbacks().stop_session()


class TestTopicSwitchTool:
    """Tests for TopicSwitchTool."""

    @pytest.mark.asyncio
    async def test_appends_marker(self) -> None:
        """The tool appends a context update carrying the summary."""
        callbacks = make_callbacks()

        result = await TopicSwitchTool().execute({"summary": "Planned the Japan trip"}, callbacks)

        assert result == {"status": "context_reset"}
        text, tool_data = callbacks._on_system.call_args[0]
        assert text == "Context Update"
        assert tool_data.name == TOPIC_SWITCH_TOOL
        assert tool_data.new_content == "Planned the Japan trip"
        assert tool_data.id is None


class TestEndConversationTool:
    """Tests for EndConversationTool."""

    @pytest.mark.asyncio
    async def test_stops_session(self) -> None:
        """The tool resolves its entry and stops the session."""
        stop = AsyncMock()
        callbacks = make_callbacks(stop)

        result = await EndConversationTool().execute({}, callbacks)

        assert result == {"status": "conversation_ended"}
        stop.assert_awaited_once()
        assert callbacks.resolved is True
        tool_data = callbacks._on_system.call_args[0][1]
        assert tool_data.status == ToolStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_stop_failure_is_reported(self) -> None:
        """A failing stop still ends the conversation."""
        callbacks = make_callbacks(AsyncMock(side_effect=RuntimeError("archive failed")))

        result = await EndConversationTool().execute({}, callbacks)

        assert result == {"status": "conversation_ended_with_errors"}
