"""Tool-calling execution loop.

One outbound user message moves through:

    AWAITING_MODEL -> (text)           -> DONE
    AWAITING_MODEL -> (function calls) -> EXECUTING_TOOLS -> AWAITING_MODEL ...

bounded by ``max_steps`` model turns. Tool failures are reported back to
the model as ``{"error": message}`` responses; provider failures retry the
whole send a fixed number of times.
"""

import time
from enum import Enum
from typing import Any, Protocol

from hermes_chat.agent.model import (
    FunctionCall,
    ModelClient,
    function_response,
    model_turn,
    user_text,
)
from hermes_chat.agent.retry import with_retry
from hermes_chat.agent.tools import ToolCallbacks, ToolRegistry
from hermes_chat.errors import UnknownToolError, get_error_message
from hermes_chat.logging import get_logger
from hermes_chat.models import Role, ToolData, ToolStatus, UsageMetadata, new_call_id

logger = get_logger("loop")

NO_RESPONSE_TEXT = "No response received."


class LoopState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


class ConversationCallbacks(Protocol):
    def on_log(self, message: str, level: str = "info") -> None: ...

    def on_transcription(self, role: Role, text: str, is_complete: bool) -> str | None: ...

    def on_system_message(self, text: str, tool_data: ToolData | None = None) -> str | None: ...

    def on_file_state(self, folder: str, note: str | None) -> None: ...

    def on_usage(self, usage: UsageMetadata) -> None: ...

    async def on_stop_session(self) -> None: ...


class ToolCallingLoop:
    """Drives the model through multi-step function calling for one chat."""

    def __init__(
        self,
        model: ModelClient,
        registry: ToolRegistry,
        callbacks: ConversationCallbacks,
        system_instruction: str = "",
        max_steps: int = 10,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ) -> None:
        self._model = model
        self._registry = registry
        self._callbacks = callbacks
        self._system_instruction = system_instruction
        self._context: list[str] = []
        self._max_steps = max_steps
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._history: list[Any] = []
        self._state = LoopState.IDLE

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def history(self) -> list[Any]:
        return self._history

    @property
    def system_instruction(self) -> str:
        return "\n\n".join([self._system_instruction, *self._context]).strip()

    def add_context(self, text: str) -> None:
        """Append a line of context to the system instruction for later sends."""
        if text:
            self._context.append(text)

    def clear_history(self) -> None:
        self._history.clear()
        self._context.clear()
        self._state = LoopState.IDLE

    async def send_message(self, text: str) -> str:
        """Send a user message and run the loop until the model answers.

        Returns:
            The model's final text response

        Raises:
            Exception: The provider error once retries are exhausted
        """
        self._history.append(user_text(text))
        self._callbacks.on_transcription(Role.USER, text, True)

        def notify_retry(attempt: int, max_retries: int, error: Exception) -> None:
            notice = f"Text API failed, retrying attempt {attempt}/{max_retries}..."
            logger.warning("Model call failed, retrying: attempt=%d/%d error=%s", attempt, max_retries, error)
            self._callbacks.on_log(notice, "info")
            self._callbacks.on_system_message(notice)

        try:
            return await with_retry(
                self._run,
                max_retries=self._max_retries,
                delay=self._retry_delay,
                on_retry=notify_retry,
            )
        except Exception as e:
            self._state = LoopState.DONE
            message = get_error_message(e)
            logger.error("Model call failed after retries: error=%s", message)
            self._callbacks.on_log(f"Text API failed: {message}", "error")
            raise

    async def _run(self) -> str:
        for step in range(self._max_steps):
            self._state = LoopState.AWAITING_MODEL
            response = await self._model.generate_content(
                self._history,
                self.system_instruction,
                self._registry.declarations(),
            )
            if response.usage is not None:
                self._callbacks.on_usage(response.usage)

            self._history.append(model_turn(response))

            if not response.function_calls:
                text = response.text or NO_RESPONSE_TEXT
                self._callbacks.on_transcription(Role.MODEL, text, True)
                self._state = LoopState.DONE
                return text

            self._state = LoopState.EXECUTING_TOOLS
            logger.debug(
                "Executing tool calls: step=%d calls=%s",
                step + 1,
                [call.name for call in response.function_calls],
            )
            parts = [await self.execute_call(call) for call in response.function_calls]
            self._history.append({"role": "user", "parts": parts})

        message = f"Stopped after {self._max_steps} tool steps without a final answer."
        logger.warning("Tool step limit reached: max_steps=%d", self._max_steps)
        self._callbacks.on_transcription(Role.MODEL, message, True)
        self._state = LoopState.DONE
        return message

    async def execute_call(self, call: FunctionCall) -> dict[str, Any]:
        """Run one function call and return its function_response part.

        Never raises: failures become an error entry in the transcript and an
        ``{"error": message}`` response for the model. The transcript entry
        gets its own id; the provider's call id only travels back in the
        function response.
        """
        call_id = new_call_id()
        filename = str(call.args.get("filename", ""))

        try:
            tool = self._registry.get(call.name)
        except UnknownToolError as e:
            logger.error("Tool not found: name=%s", call.name)
            self._callbacks.on_log(f"Tool not found: {call.name}", "error")
            self._callbacks.on_system_message(
                f"Error in {call.name}: {e}",
                ToolData(id=call_id, name=call.name, filename=filename, status=ToolStatus.ERROR, error=str(e)),
            )
            return function_response(call.id, call.name, {"error": str(e)})

        self._callbacks.on_system_message(
            f"Running {call.name}...",
            ToolData(id=call_id, name=call.name, filename=filename, status=ToolStatus.PENDING),
        )
        tool_callbacks = ToolCallbacks(
            call_id=call_id,
            on_log=self._callbacks.on_log,
            on_system=self._callbacks.on_system_message,
            on_file_state=self._callbacks.on_file_state,
            on_stop_session=self._callbacks.on_stop_session,
        )

        start = time.monotonic()
        try:
            result = await tool.execute(call.args, tool_callbacks)
        except Exception as e:
            message = get_error_message(e)
            logger.exception("Tool execution failed: name=%s", call.name)
            self._callbacks.on_log(f"Tool execution error in {call.name}: {message}", "error")
            self._callbacks.on_system_message(
                f"Error in {call.name}: {message}",
                ToolData(id=call_id, name=call.name, filename=filename, status=ToolStatus.ERROR, error=message),
            )
            return function_response(call.id, call.name, {"error": message})

        duration_ms = round((time.monotonic() - start) * 1000)
        self._callbacks.on_log(f"Executed {call.name} in {duration_ms}ms", "action")
        if not tool_callbacks.resolved:
            self._callbacks.on_system_message(
                f"Executed {call.name}",
                ToolData(id=call_id, name=call.name, filename=filename, status=ToolStatus.SUCCESS),
            )
        return function_response(call.id, call.name, {"result": result})
