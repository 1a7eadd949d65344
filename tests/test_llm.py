"""Tests for the language-model port and vendor selection."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage
from langchain_core.messages.tool import tool_call_chunk

from mixology.errors import ConfigurationError, ModelInvocationError, SchemaValidationError
from mixology.formatter import FormattedOutput, SMSFormattedOutput
from mixology.services import llm
from mixology.services.llm import (
    FinalAnswer,
    LanguageModelPort,
    ToolCallRequest,
    build_chat_model,
    build_language_model,
    classify_response,
    message_text,
)

HISTORY = [HumanMessage(content="What's a Margarita?")]


# ── Helpers ──────────────────────────────────────────────────────────


def _port(chat_model: MagicMock) -> LanguageModelPort:
    return LanguageModelPort(chat_model, provider="test")


def _structured_model(result: dict) -> MagicMock:
    chat_model = MagicMock()
    chat_model.with_structured_output.return_value.invoke.return_value = result
    return chat_model


# ── Response variants ────────────────────────────────────────────────


class TestClassifyResponse:
    def test_plain_message_is_final_answer(self):
        response = classify_response(AIMessage(content="Cheers!"))
        assert isinstance(response, FinalAnswer)
        assert response.text == "Cheers!"

    def test_tool_calls_make_a_request(self):
        message = AIMessage(content="", tool_calls=[{"name": "list_glasses", "args": {}, "id": "c1"}])
        response = classify_response(message)
        assert isinstance(response, ToolCallRequest)
        assert [c["name"] for c in response.calls] == ["list_glasses"]

    def test_content_blocks_are_flattened(self):
        message = AIMessage(content=[{"type": "text", "text": "Shake "}, {"type": "text", "text": "well."}])
        assert message_text(message) == "Shake well."


# ── Port ─────────────────────────────────────────────────────────────


class TestInvoke:
    def test_binds_tools_when_given(self):
        chat_model = MagicMock()
        chat_model.bind_tools.return_value.invoke.return_value = AIMessage(content="Hi")
        tool = MagicMock()

        response = _port(chat_model).invoke(HISTORY, [tool])

        assert isinstance(response, FinalAnswer)
        chat_model.bind_tools.assert_called_once_with([tool])

    def test_without_tools_uses_model_directly(self):
        chat_model = MagicMock()
        chat_model.invoke.return_value = AIMessage(content="Hi")

        assert _port(chat_model).invoke(HISTORY).text == "Hi"
        chat_model.bind_tools.assert_not_called()

    def test_provider_failure_is_wrapped(self):
        chat_model = MagicMock()
        chat_model.invoke.side_effect = TimeoutError("slow")

        with pytest.raises(ModelInvocationError, match="TimeoutError"):
            _port(chat_model).invoke(HISTORY)


class TestStream:
    def test_relays_deltas_and_aggregates(self):
        chat_model = MagicMock()
        chat_model.stream.return_value = iter([
            AIMessageChunk(content="Shake "),
            AIMessageChunk(content="with ice."),
        ])
        tokens: list[str] = []

        response = _port(chat_model).stream(HISTORY, on_token=tokens.append)

        assert tokens == ["Shake ", "with ice."]
        assert isinstance(response, FinalAnswer)
        assert response.text == "Shake with ice."
        assert isinstance(response.message, AIMessage)

    def test_streamed_tool_calls(self):
        chat_model = MagicMock()
        chat_model.stream.return_value = iter([
            AIMessageChunk(
                content="",
                tool_call_chunks=[
                    tool_call_chunk(name="get_cocktail_by_name", args='{"name": "Mojito"}', id="c1", index=0),
                ],
            ),
        ])

        response = _port(chat_model).stream(HISTORY)

        assert isinstance(response, ToolCallRequest)
        assert response.calls[0]["args"] == {"name": "Mojito"}

    def test_empty_stream_is_an_error(self):
        chat_model = MagicMock()
        chat_model.stream.return_value = iter([])

        with pytest.raises(ModelInvocationError, match="no output"):
            _port(chat_model).stream(HISTORY)

    def test_failure_mid_stream(self):
        def broken():
            yield AIMessageChunk(content="Shake ")
            raise ConnectionError("reset")

        chat_model = MagicMock()
        chat_model.stream.return_value = broken()

        with pytest.raises(ModelInvocationError):
            _port(chat_model).stream(HISTORY, on_token=lambda text: None)


class TestInvokeStructured:
    def test_returns_parsed_object(self):
        parsed = FormattedOutput(messages=["**Margarita**"])
        chat_model = _structured_model({"raw": AIMessage(content=""), "parsed": parsed, "parsing_error": None})

        assert _port(chat_model).invoke_structured(HISTORY, FormattedOutput) is parsed
        chat_model.with_structured_output.assert_called_once_with(FormattedOutput, include_raw=True)

    def test_parsed_dict_is_validated(self):
        chat_model = _structured_model({"raw": None, "parsed": {"messages": ["hi"]}, "parsing_error": None})
        assert _port(chat_model).invoke_structured(HISTORY, FormattedOutput).messages == ["hi"]

    def test_parsing_error_raises(self):
        chat_model = _structured_model({"raw": None, "parsed": None, "parsing_error": ValueError("bad json")})
        with pytest.raises(SchemaValidationError, match="bad json"):
            _port(chat_model).invoke_structured(HISTORY, FormattedOutput)

    def test_missing_object_raises(self):
        chat_model = _structured_model({"raw": None, "parsed": None, "parsing_error": None})
        with pytest.raises(SchemaValidationError):
            _port(chat_model).invoke_structured(HISTORY, FormattedOutput)

    def test_validator_failure_raises(self):
        chat_model = _structured_model({"raw": None, "parsed": {"messages": ["x" * 161]}, "parsing_error": None})
        with pytest.raises(SchemaValidationError):
            _port(chat_model).invoke_structured(HISTORY, SMSFormattedOutput)

    def test_provider_failure(self):
        chat_model = MagicMock()
        chat_model.with_structured_output.return_value.invoke.side_effect = RuntimeError("500")
        with pytest.raises(ModelInvocationError):
            _port(chat_model).invoke_structured(HISTORY, FormattedOutput)


# ── Vendor selection ────────────────────────────────────────────────


class TestBuildChatModel:
    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported assistant provider"):
            build_chat_model("llama", api_key="k")

    def test_openai(self):
        model = build_chat_model("openai", api_key="test-key", model="gpt-test", max_tokens=10, timeout=5)
        assert type(model).__name__ == "ChatOpenAI"


class TestBuildLanguageModel:
    def test_uses_configured_provider(self, monkeypatch):
        built = MagicMock()
        builder = MagicMock(return_value=built)
        monkeypatch.setattr(llm.config, "PROVIDER", "anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setattr(llm, "build_chat_model", builder)

        port = build_language_model()

        assert port.provider == "anthropic"
        assert builder.call_args.args == ("anthropic",)
        assert builder.call_args.kwargs["api_key"] == "sk-ant-test"

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(llm.config, "PROVIDER", "google")
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="GOOGLE_API_KEY"):
            build_language_model()

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setattr(llm.config, "PROVIDER", "llama")
        with pytest.raises(ConfigurationError):
            build_language_model()
