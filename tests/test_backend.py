"""
Tests for the generative backend: message building, invocation bounds and
fault translation. No test here talks to a real provider.
"""
import base64

import anthropic
import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage

from studyflow.engine.backend import (
    AnthropicBackend,
    _check_refusal,
    _extract_content,
    _wrap_text,
    build_message,
    invoke,
)
from studyflow.engine.media import DOCX_MIME_TYPE, MediaRef
from studyflow.engine.templates import RenderedPrompt
from studyflow.engine.variants import ModelConfig
from studyflow.errors import (
    AuthConfigFault,
    NetworkFault,
    OutputMalformedFault,
    SafetyBlockedFault,
    UnsupportedInput,
)
from studyflow.flows.summary import SummaryOutput
from studyflow.flows.tutor import TutorOutput

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class TestBuildMessage:
    def test_text_only_prompt(self):
        message = build_message(RenderedPrompt(parts=("Hello tutor",)))

        assert isinstance(message, HumanMessage)
        assert message.content == "Hello tutor"

    def test_pdf_becomes_file_block(self):
        prompt = RenderedPrompt(parts=("Read this:\n", MediaRef("application/pdf", "AAA"), "\n"))

        message = build_message(prompt)

        assert message.content == [
            {"type": "text", "text": "Read this:\n"},
            {"type": "file", "source_type": "base64", "mime_type": "application/pdf", "data": "AAA"},
        ]

    def test_image_becomes_image_block(self):
        message = build_message(RenderedPrompt(parts=(MediaRef("image/png", "iVBORw0KGgo="),)))

        assert message.content[0]["type"] == "image"
        assert message.content[0]["mime_type"] == "image/png"

    def test_plain_text_document_inlined(self):
        data = base64.b64encode(b"Cells divide by mitosis.").decode()

        message = build_message(RenderedPrompt(parts=("Doc:", MediaRef("text/plain", data))))

        assert message.content[1] == {"type": "text", "text": "Cells divide by mitosis."}

    def test_unreadable_word_document(self):
        data = base64.b64encode(b"not a zip archive").decode()

        with pytest.raises(UnsupportedInput):
            build_message(RenderedPrompt(parts=(MediaRef(DOCX_MIME_TYPE, data),)))


class TestResponseHelpers:
    def test_extract_content_from_blocks(self):
        content = [{"type": "text", "text": "a"}, {"type": "tool_use", "id": "x"}, {"type": "text", "text": "b"}]

        assert _extract_content(content) == "a\nb"
        assert _extract_content("plain") == "plain"

    def test_wrap_text_single_field(self):
        assert _wrap_text(TutorOutput, "Great question!") == {"response": "Great question!"}

    def test_wrap_text_multi_field_rejected(self):
        with pytest.raises(OutputMalformedFault):
            _wrap_text(SummaryOutput, "just text")

    def test_refusal_detected(self):
        raw = AIMessage(content="", response_metadata={"stop_reason": "refusal"})

        with pytest.raises(SafetyBlockedFault):
            _check_refusal(raw)

    def test_normal_stop_passes(self):
        _check_refusal(AIMessage(content="ok", response_metadata={"stop_reason": "end_turn"}))
        _check_refusal(None)


class TestInvoke:
    """Bounded backend calls with typed faults."""

    PROMPT = RenderedPrompt(parts=("hi",))

    @pytest.mark.asyncio
    async def test_returns_raw_result(self, fake_backend):
        backend = fake_backend({"response": "Hello"})

        raw = await invoke(backend, self.PROMPT, TutorOutput, ModelConfig())

        assert raw == {"response": "Hello"}
        assert backend.calls[0]["shape"] is TutorOutput

    @pytest.mark.asyncio
    async def test_timeout_is_network_fault(self, fake_backend):
        backend = fake_backend({"response": "late"}, delay=1.0)

        with pytest.raises(NetworkFault, match="timed out"):
            await invoke(backend, self.PROMPT, TutorOutput, ModelConfig(), timeout=0.01)

    @pytest.mark.asyncio
    async def test_connection_error_translated(self, fake_backend):
        backend = fake_backend(anthropic.APIConnectionError(request=REQUEST))

        with pytest.raises(NetworkFault):
            await invoke(backend, self.PROMPT, TutorOutput, ModelConfig())

    @pytest.mark.asyncio
    async def test_auth_error_translated(self, fake_backend):
        response = httpx.Response(401, request=REQUEST)
        backend = fake_backend(anthropic.AuthenticationError("invalid x-api-key", response=response, body=None))

        with pytest.raises(AuthConfigFault):
            await invoke(backend, self.PROMPT, TutorOutput, ModelConfig())

    @pytest.mark.asyncio
    async def test_flow_faults_pass_through(self, fake_backend):
        fault = SafetyBlockedFault("refused")
        backend = fake_backend(fault)

        with pytest.raises(SafetyBlockedFault) as exc:
            await invoke(backend, self.PROMPT, TutorOutput, ModelConfig())

        assert exc.value is fault

    @pytest.mark.asyncio
    async def test_unknown_errors_reraised(self, fake_backend):
        backend = fake_backend(RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await invoke(backend, self.PROMPT, TutorOutput, ModelConfig())


class FakeStructured:
    def __init__(self, result):
        self.result = result
        self.messages = None

    async def ainvoke(self, messages):
        self.messages = messages
        return self.result


class FakeLLM:
    def __init__(self, result):
        self.structured = FakeStructured(result)
        self.shape = None

    def with_structured_output(self, shape, include_raw=False):
        self.shape = shape
        assert include_raw
        return self.structured


class TestAnthropicBackend:
    PROMPT = RenderedPrompt(parts=("Explain osmosis",))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(AuthConfigFault):
            AnthropicBackend()._get_llm(ModelConfig())

    def test_placeholder_api_key(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "YOUR_ANTHROPIC_API_KEY_HERE")

        with pytest.raises(AuthConfigFault):
            AnthropicBackend()._get_llm(ModelConfig())

    def test_llm_uses_variant_config(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

        llm = AnthropicBackend(model="claude-sonnet-4-20250514")._get_llm(
            ModelConfig(temperature=0.2, model="claude-3-5-haiku-latest")
        )

        assert llm.model == "claude-3-5-haiku-latest"
        assert llm.temperature == 0.2
        assert llm.max_retries == 0

    def _backend(self, monkeypatch, result):
        fake = FakeLLM(result)
        backend = AnthropicBackend()
        monkeypatch.setattr(backend, "_get_llm", lambda config: fake)
        return backend, fake

    @pytest.mark.asyncio
    async def test_parsed_output_dumped_by_alias(self, monkeypatch):
        parsed = SummaryOutput(text_summary="t" * 30, audio_summary="a" * 30, mind_map="- m")
        backend, fake = self._backend(
            monkeypatch, {"raw": AIMessage(content=""), "parsed": parsed, "parsing_error": None}
        )

        raw = await backend.generate(self.PROMPT, SummaryOutput, ModelConfig())

        assert raw == {"textSummary": "t" * 30, "audioSummary": "a" * 30, "mindMap": "- m"}
        assert fake.shape is SummaryOutput
        assert fake.structured.messages[0].content == "Explain osmosis"

    @pytest.mark.asyncio
    async def test_parsing_error_is_malformed(self, monkeypatch):
        backend, _ = self._backend(
            monkeypatch,
            {"raw": AIMessage(content=""), "parsed": None, "parsing_error": ValueError("bad json")},
        )

        with pytest.raises(OutputMalformedFault):
            await backend.generate(self.PROMPT, SummaryOutput, ModelConfig())

    @pytest.mark.asyncio
    async def test_refusal_wins_over_parse_error(self, monkeypatch):
        raw = AIMessage(content="", response_metadata={"stop_reason": "refusal"})
        backend, _ = self._backend(
            monkeypatch, {"raw": raw, "parsed": None, "parsing_error": ValueError("empty")}
        )

        with pytest.raises(SafetyBlockedFault):
            await backend.generate(self.PROMPT, SummaryOutput, ModelConfig())

    @pytest.mark.asyncio
    async def test_nothing_parsed_returns_none(self, monkeypatch):
        backend, _ = self._backend(
            monkeypatch, {"raw": AIMessage(content=""), "parsed": None, "parsing_error": None}
        )

        assert await backend.generate(self.PROMPT, SummaryOutput, ModelConfig()) is None
