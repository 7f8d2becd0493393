"""Tool interface, per-call callbacks and the tool registry."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from hermes_chat.errors import UnknownToolError
from hermes_chat.models import ToolData

__all__ = ["Tool", "ToolCallbacks", "ToolRegistry"]


class ToolCallbacks:
    """Hooks handed to a tool for one invocation.

    ``call_id`` identifies the pending system entry created for this call.
    A tool that reports its outcome on that entry (by passing ToolData with
    ``id=call_id``) marks the call as resolved, and the execution loop then
    leaves the entry alone.
    """

    def __init__(
        self,
        call_id: str,
        on_log: Callable[[str, str], None],
        on_system: Callable[[str, ToolData | None], str | None],
        on_file_state: Callable[[str, str | None], None],
        on_stop_session: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.call_id = call_id
        self.resolved = False
        self._on_log = on_log
        self._on_system = on_system
        self._on_file_state = on_file_state
        self._on_stop_session = on_stop_session

    def on_log(self, message: str, level: str = "info") -> None:
        self._on_log(message, level)

    def on_system(self, text: str, tool_data: ToolData | None = None) -> str | None:
        if tool_data is not None and tool_data.id == self.call_id:
            self.resolved = True
        return self._on_system(text, tool_data)

    def on_file_state(self, folder: str, note: str | None) -> None:
        self._on_file_state(folder, note)

    async def stop_session(self) -> None:
        if self._on_stop_session is not None:
            await self._on_stop_session()


class Tool(ABC):
    """A capability the model can call by name.

    Subclasses set ``name`` and ``declaration`` (a function declaration in
    the provider's JSON schema dialect) and implement ``execute()``.
    """

    name: str
    declaration: dict[str, Any]
    instruction: str = ""

    @abstractmethod
    async def execute(self, args: dict[str, Any], callbacks: ToolCallbacks) -> dict[str, Any]:
        """Run the tool and return a JSON-serializable result for the model."""


class ToolRegistry:
    """Explicit name -> tool map, built once at start-up."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Look up a tool by name.

        Raises:
            UnknownToolError: If no tool has this name
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def declarations(self) -> list[dict[str, Any]]:
        return [tool.declaration for tool in self._tools.values()]

    def instructions(self) -> str:
        """Usage instructions of all tools, for the system prompt."""
        return "\n".join(tool.instruction.strip() for tool in self._tools.values() if tool.instruction)
