"""Tests for the Gemini model client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import types

from hermes_chat.agent.model import (
    FunctionCall,
    GeminiModel,
    ModelResponse,
    function_response,
    model_turn,
)
from hermes_chat.config import ModelConfig
from hermes_chat.errors import ConfigurationError


def gemini_response(*parts: types.Part, usage: bool = True) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))],
        usage_metadata=types.GenerateContentResponseUsageMetadata(
            prompt_token_count=12,
            candidates_token_count=3,
            total_token_count=15,
        )
        if usage
        else None,
    )


@pytest.fixture
def client() -> MagicMock:
    """Provide a mock genai client."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock()
    return client


class TestGeminiModelInit:
    """Tests for GeminiModel construction."""

    def test_missing_api_key(self) -> None:
        """Without a key or client the model refuses to start."""
        with pytest.raises(ConfigurationError):
            GeminiModel(ModelConfig(api_key=""))

    def test_uses_given_client(self, client: MagicMock) -> None:
        """An injected client is used without needing a key."""
        model = GeminiModel(ModelConfig(name="gemini-test"), client=client)

        assert model.model_name == "gemini-test"


class TestGenerateContent:
    """Tests for GeminiModel.generate_content."""

    @pytest.mark.asyncio
    async def test_text_response(self, client: MagicMock) -> None:
        """Text parts and usage are extracted."""
        client.aio.models.generate_content.return_value = gemini_response(types.Part(text="Hello!"))
        model = GeminiModel(ModelConfig(name="gemini-test"), client=client)
        history = [{"role": "user", "parts": [{"text": "hi"}]}]

        response = await model.generate_content(history, "Be brief.", [{"name": "echo"}])

        assert response.text == "Hello!"
        assert response.function_calls == []
        assert response.usage.total_tokens == 15
        assert response.usage.prompt_tokens == 12
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] is history
        assert kwargs["config"].system_instruction == "Be brief."
        assert kwargs["config"].tools[0].function_declarations[0].name == "echo"

    @pytest.mark.asyncio
    async def test_function_call_response(self, client: MagicMock) -> None:
        """Function calls are extracted with their ids and args."""
        client.aio.models.generate_content.return_value = gemini_response(
            types.Part(function_call=types.FunctionCall(id="call-1", name="topic_switch", args={"summary": "x"})),
            usage=False,
        )
        model = GeminiModel(ModelConfig(), client=client)

        response = await model.generate_content([])

        assert response.text is None
        assert response.usage is None
        assert response.function_calls == [FunctionCall(name="topic_switch", args={"summary": "x"}, id="call-1")]
        assert response.content is not None

    @pytest.mark.asyncio
    async def test_thoughts_are_skipped(self, client: MagicMock) -> None:
        """Thought parts are not part of the reply text."""
        client.aio.models.generate_content.return_value = gemini_response(
            types.Part(text="thinking...", thought=True),
            types.Part(text="Answer"),
        )
        model = GeminiModel(ModelConfig(), client=client)

        response = await model.generate_content([])

        assert response.text == "Answer"

    @pytest.mark.asyncio
    async def test_no_tools_means_no_tool_config(self, client: MagicMock) -> None:
        """Requests without tools send no tool configuration."""
        client.aio.models.generate_content.return_value = gemini_response(types.Part(text="ok"))
        model = GeminiModel(ModelConfig(), client=client)

        await model.generate_content([])

        config = client.aio.models.generate_content.call_args.kwargs["config"]
        assert config.tools is None
        assert config.system_instruction is None


class TestHistoryHelpers:
    """Tests for history item helpers."""

    def test_model_turn_from_parts(self) -> None:
        """Responses without provider content are rebuilt as dicts."""
        response = ModelResponse(text="Let me check", function_calls=[FunctionCall(name="search", args={"q": "x"}, id="c1")])

        assert model_turn(response) == {
            "role": "model",
            "parts": [
                {"text": "Let me check"},
                {"function_call": {"name": "search", "args": {"q": "x"}, "id": "c1"}},
            ],
        }

    def test_model_turn_prefers_content(self) -> None:
        """Provider content is used verbatim."""
        content = object()

        assert model_turn(ModelResponse(text="x", content=content)) is content

    def test_function_response_without_id(self) -> None:
        """Calls without ids respond by name only."""
        assert function_response(None, "echo", {"result": 1}) == {
            "function_response": {"name": "echo", "response": {"result": 1}}
        }
