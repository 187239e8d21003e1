# src/leadforge/tests/test_generation_client.py
"""
Unit tests for the OpenRouter generation client.

Tests cover:
- Model table lookups and prompt framing
- Request headers and payload shape
- Gateway fallback routing
- Error mapping for HTTP and transport failures
- Multi-model batches and streaming
"""
import io
import pytest
import requests
from unittest.mock import MagicMock

from leadforge.errors import ErrorCategory, RemoteGenerationError
from leadforge.generation_client import (
    MODEL_INFO,
    SYSTEM_PROMPT,
    TASK_MODELS,
    AIModels,
    GenerationClient,
    GenerationOptions,
    optimize_prompt_for_model,
    select_model_for_task,
)


def make_response(status_code=200, json_data=None, lines=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = json_data if json_data is not None else {}
    response.iter_lines.return_value = lines or []
    return response


def completion(text, model=AIModels.CLAUDE_SONNET_4):
    return {"model": model, "choices": [{"message": {"role": "assistant", "content": text}}]}


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return GenerationClient(
        api_key="sk-test",
        base_url="https://gateway.example.com/api/v1/",
        fallback_model=AIModels.GEMINI_2_5_FLASH,
        session=session,
    )


class TestModelSelection:
    """Tests for the task/model tables."""

    @pytest.mark.unit
    def test_task_table(self):
        """Test the configured model for each task category."""
        assert select_model_for_task("code") == AIModels.CLAUDE_SONNET_4
        assert select_model_for_task("structure") == AIModels.CLAUDE_OPUS_4_1
        assert select_model_for_task("optimization") == AIModels.GEMINI_2_5_FLASH

    @pytest.mark.unit
    def test_unknown_task_raises(self):
        """Test that unknown categories are rejected."""
        with pytest.raises(ValueError):
            select_model_for_task("poetry")

    @pytest.mark.unit
    def test_every_task_model_is_described(self):
        """Test that MODEL_INFO documents each mapped model."""
        for model in TASK_MODELS.values():
            assert model in MODEL_INFO

    @pytest.mark.unit
    def test_prompt_framing_by_family(self):
        """Test per-family prompt framing."""
        assert optimize_prompt_for_model("P", AIModels.CLAUDE_SONNET_4).startswith("Please provide")
        assert optimize_prompt_for_model("P", AIModels.GEMINI_2_5_PRO).startswith("Be creative")
        assert optimize_prompt_for_model("P", AIModels.GPT_4O).startswith("Instructions: P")
        assert optimize_prompt_for_model("P", AIModels.MISTRAL_LARGE) == "P"


class TestGenerate:
    """Tests for single completion requests."""

    @pytest.mark.unit
    def test_request_shape(self, client, session):
        """Test URL, headers and payload of a completion request."""
        session.post.return_value = make_response(json_data=completion("<html></html>"))

        text = client.generate("Build a site", AIModels.CLAUDE_SONNET_4, options=GenerationOptions(max_tokens=8000))

        assert text == "<html></html>"
        args, kwargs = session.post.call_args
        assert args[0] == "https://gateway.example.com/api/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["headers"]["X-Title"]
        payload = kwargs["json"]
        assert payload["model"] == AIModels.CLAUDE_SONNET_4
        assert payload["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert payload["messages"][1] == {"role": "user", "content": "Build a site"}
        assert payload["max_tokens"] == 8000
        assert payload["stream"] is False
        assert "route" not in payload

    @pytest.mark.unit
    def test_per_call_api_key(self, client, session):
        """Test that a per-call key overrides the configured one."""
        session.post.return_value = make_response(json_data=completion("ok"))
        client.generate("p", AIModels.GPT_4O, api_key="sk-user")
        assert session.post.call_args[1]["headers"]["Authorization"] == "Bearer sk-user"

    @pytest.mark.unit
    def test_missing_api_key_raises(self, session):
        """Test that a request without any key is refused before sending."""
        client = GenerationClient(api_key="", session=session)
        with pytest.raises(RemoteGenerationError) as exc_info:
            client.generate("p", AIModels.GPT_4O)
        assert exc_info.value.category == ErrorCategory.AUTHENTICATION
        session.post.assert_not_called()

    @pytest.mark.unit
    def test_empty_choices_returns_empty_text(self, client, session):
        """Test that a response without choices yields ''."""
        session.post.return_value = make_response(json_data={"choices": []})
        assert client.generate("p", AIModels.GPT_4O) == ""

    @pytest.mark.unit
    def test_http_error_uses_gateway_message(self, client, session):
        """Test mapping of a gateway error body."""
        session.post.return_value = make_response(429, {"error": {"message": "Slow down"}})

        with pytest.raises(RemoteGenerationError) as exc_info:
            client.generate("p", AIModels.GPT_4O)

        assert exc_info.value.message == "Slow down"
        assert exc_info.value.status_code == 429
        assert exc_info.value.category == ErrorCategory.RATE_LIMIT

    @pytest.mark.unit
    def test_http_error_without_body(self, client, session):
        """Test the generic message when the error body is not JSON."""
        response = make_response(500)
        response.json.side_effect = ValueError("no json")
        session.post.return_value = response

        with pytest.raises(RemoteGenerationError) as exc_info:
            client.generate("p", AIModels.GPT_4O)
        assert exc_info.value.message == "OpenRouter API error"

    @pytest.mark.unit
    def test_transport_error_is_network(self, client, session):
        """Test that connection failures become network errors."""
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RemoteGenerationError) as exc_info:
            client.generate("p", AIModels.GPT_4O)
        assert exc_info.value.category == ErrorCategory.NETWORK


class TestFallback:
    """Tests for gateway-side model fallback."""

    @pytest.mark.unit
    def test_fallback_route(self, client, session):
        """Test that the fallback model is sent as a gateway route."""
        session.post.return_value = make_response(json_data=completion("ok"))

        client.generate_with_fallback("p", AIModels.CLAUDE_SONNET_4)

        payload = session.post.call_args[1]["json"]
        assert payload["models"] == [AIModels.CLAUDE_SONNET_4, AIModels.GEMINI_2_5_FLASH]
        assert payload["route"] == "fallback"
        assert session.post.call_count == 1


class TestMultipleModels:
    """Tests for concurrent multi-model generation."""

    @pytest.mark.unit
    def test_failed_models_are_omitted(self, client, session):
        """Test that failures and empty outputs are left out."""
        def post(url, headers, json, timeout):
            model = json["model"]
            if model == AIModels.GPT_4O:
                return make_response(500, {"error": {"message": "down"}})
            if model == AIModels.GPT_4O_MINI:
                return make_response(json_data={"choices": []})
            return make_response(json_data=completion(f"from {model}", model))

        session.post.side_effect = post

        results = client.generate_with_multiple_models(
            "p", [AIModels.CLAUDE_SONNET_4, AIModels.GPT_4O, AIModels.GPT_4O_MINI]
        )

        assert results == {AIModels.CLAUDE_SONNET_4: f"from {AIModels.CLAUDE_SONNET_4}"}

    @pytest.mark.unit
    def test_no_models(self, client):
        """Test that an empty model list returns an empty mapping."""
        assert client.generate_with_multiple_models("p", []) == {}


class TestStream:
    """Tests for streamed completions."""

    @pytest.mark.unit
    def test_stream_accumulates_deltas(self, client, session):
        """Test chunk callbacks, skipped lines and the DONE sentinel."""
        session.post.return_value = make_response(lines=[
            ": keep-alive",
            'data: {"choices": [{"delta": {"content": "<html>"}}]}',
            "data: not-json",
            'data: {"choices": [{"delta": {}}]}',
            'data: {"choices": [{"delta": {"content": "</html>"}}]}',
            "data: [DONE]",
            'data: {"choices": [{"delta": {"content": "ignored"}}]}',
        ])
        chunks = []

        text = client.stream("p", AIModels.CLAUDE_SONNET_4, chunks.append)

        assert text == "<html></html>"
        assert chunks == ["<html>", "</html>"]
        assert session.post.call_args[1]["stream"] is True
        session.post.return_value.close.assert_called_once()

    @pytest.mark.unit
    @pytest.mark.parametrize("content_type", ["text/event-stream", None])
    def test_stream_decodes_utf8(self, client, session, content_type):
        """Test non-ASCII deltas survive whatever charset the headers imply."""
        body = 'data: {"choices":[{"delta":{"content":"Café ☕"}}]}\n\ndata: [DONE]\n\n'
        response = requests.Response()
        response.status_code = 200
        response.raw = io.BytesIO(body.encode("utf-8"))
        if content_type:
            response.headers["Content-Type"] = content_type
            response.encoding = requests.utils.get_encoding_from_headers(response.headers)
        session.post.return_value = response
        chunks = []

        text = client.stream("p", AIModels.CLAUDE_SONNET_4, chunks.append)

        assert text == "Café ☕"
        assert chunks == ["Café ☕"]


class TestLifecycle:
    """Tests for session management."""

    @pytest.mark.unit
    def test_close_releases_session(self, client, session):
        """Test that close() closes the session once."""
        with client:
            pass
        session.close.assert_called_once()
        assert client.get_usage_stats()["has_api_key"] is True
