"""Model collaborator: the ModelClient protocol and its Gemini implementation.

History is a list of Gemini-style content dicts, e.g.
``{"role": "user", "parts": [{"text": "hi"}]}``; function calls and
responses use ``function_call`` / ``function_response`` parts.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from google import genai
from google.genai import types

from hermes_chat.config import ModelConfig, require_api_key
from hermes_chat.logging import get_logger
from hermes_chat.models import UsageMetadata

logger = get_logger("model")


@dataclass
class FunctionCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass
class ModelResponse:
    """One model turn.

    ``content`` is the provider's own representation of the turn, appended
    to history verbatim when present.
    """

    text: str | None = None
    function_calls: list[FunctionCall] = field(default_factory=list)
    usage: UsageMetadata | None = None
    content: Any = None


class ModelClient(Protocol):
    async def generate_content(
        self,
        history: list[Any],
        system_instruction: str | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelResponse: ...


def user_text(text: str) -> dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


def model_turn(response: ModelResponse) -> Any:
    """History item for a model response, built from its parts if needed."""
    if response.content is not None:
        return response.content
    parts: list[dict[str, Any]] = []
    if response.text:
        parts.append({"text": response.text})
    for call in response.function_calls:
        function_call: dict[str, Any] = {"name": call.name, "args": call.args}
        if call.id:
            function_call["id"] = call.id
        parts.append({"function_call": function_call})
    return {"role": "model", "parts": parts}


def function_response(call_id: str | None, name: str, response: dict[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": name, "response": response}
    if call_id:
        payload["id"] = call_id
    return {"function_response": payload}


class GeminiModel:
    """ModelClient backed by the google-genai SDK."""

    def __init__(self, config: ModelConfig, client: genai.Client | None = None) -> None:
        """Create the client.

        Raises:
            ConfigurationError: If no API key is configured and no client is given
        """
        self._model_name = config.name
        if client is None:
            client = genai.Client(api_key=require_api_key(config))
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model_name

    async def generate_content(
        self,
        history: list[Any],
        system_instruction: str | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelResponse:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction or None,
            tools=[types.Tool(function_declarations=tools)] if tools else None,
        )
        response = await self._client.aio.models.generate_content(
            model=self._model_name,
            contents=history,
            config=config,
        )
        return self._to_model_response(response)

    @staticmethod
    def _to_model_response(response: types.GenerateContentResponse) -> ModelResponse:
        usage = None
        if response.usage_metadata is not None:
            usage = UsageMetadata(
                prompt_tokens=response.usage_metadata.prompt_token_count,
                candidates_tokens=response.usage_metadata.candidates_token_count,
                total_tokens=response.usage_metadata.total_token_count,
            )

        candidate = response.candidates[0] if response.candidates else None
        content = candidate.content if candidate is not None else None
        parts = (content.parts or []) if content is not None else []

        text = "".join(part.text for part in parts if part.text and not part.thought)
        calls = [
            FunctionCall(
                name=part.function_call.name or "",
                args=dict(part.function_call.args or {}),
                id=part.function_call.id,
            )
            for part in parts
            if part.function_call is not None
        ]
        return ModelResponse(text=text or None, function_calls=calls, usage=usage, content=content)
