"""Generative backend: sends a rendered prompt to the model.

The backend call is the only point in a flow run that suspends. Faults
reported by the provider leave this module as typed FlowFaults so the
classifier never has to sniff error strings.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import BaseMessage, HumanMessage

from studyflow.engine.contracts import Shape
from studyflow.engine.documents import extract_text, needs_extraction
from studyflow.engine.media import MediaRef
from studyflow.engine.templates import RenderedPrompt
from studyflow.engine.variants import ModelConfig
from studyflow.errors import (
    AuthConfigFault,
    ErrorCategory,
    FlowFault,
    NetworkFault,
    OutputMalformedFault,
    SafetyBlockedFault,
    categorize,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_TIMEOUT = 60.0

_PLACEHOLDER_KEYS = {"", "YOUR_ANTHROPIC_API_KEY_HERE", "changeme"}

_FAULT_TYPES: dict[ErrorCategory, type[FlowFault]] = {
    ErrorCategory.AUTH_CONFIG_INVALID: AuthConfigFault,
    ErrorCategory.NETWORK_TRANSIENT: NetworkFault,
    ErrorCategory.OUTPUT_MALFORMED: OutputMalformedFault,
}


class GenerativeBackend(Protocol):
    """Anything that can turn a prompt into raw structured output."""

    async def generate(
        self, prompt: RenderedPrompt, output_shape: type[Shape], config: ModelConfig
    ) -> Any: ...


def _extract_content(content) -> str:
    """Normalize message content. Anthropic can return a list of blocks or a string."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, dict):
                if block.get("type", "text") == "text":
                    parts.append(block.get("text", ""))
            else:
                parts.append(str(block))
        return "\n".join(parts)
    return str(content)


def _media_block(ref: MediaRef) -> dict[str, Any]:
    if needs_extraction(ref):
        return {"type": "text", "text": extract_text(ref)}
    block_type = "image" if ref.is_image else "file"
    return {
        "type": block_type,
        "source_type": "base64",
        "mime_type": ref.mime_type,
        "data": ref.data,
    }


def build_message(prompt: RenderedPrompt) -> HumanMessage:
    """One human turn: plain text, or text blocks interleaved with media."""
    if not prompt.media:
        return HumanMessage(content=prompt.text)
    blocks: list[dict[str, Any]] = []
    for part in prompt.parts:
        if isinstance(part, MediaRef):
            blocks.append(_media_block(part))
        elif part.strip():
            blocks.append({"type": "text", "text": part})
    return HumanMessage(content=blocks)


def _wrap_text(shape: type[Shape], text: str) -> dict[str, Any]:
    """Fit a plain-text reply into a shape with exactly one string field."""
    fields = list(shape.model_fields.items())
    if len(fields) != 1 or fields[0][1].annotation is not str:
        raise OutputMalformedFault(
            f"{shape.__name__} cannot hold a plain-text reply; use structured output"
        )
    name, info = fields[0]
    return {info.alias or name: text}


def _check_refusal(raw: BaseMessage | None) -> None:
    if raw is None:
        return
    metadata = getattr(raw, "response_metadata", None) or {}
    if metadata.get("stop_reason") == "refusal":
        raise SafetyBlockedFault(f"Model refused the request (model={metadata.get('model')})")


class AnthropicBackend:
    """Claude via LangChain, typed against the flow's output shape."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        api_key: str | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._api_key = api_key

    def _get_llm(self, config: ModelConfig) -> ChatAnthropic:
        """Create an Anthropic LLM instance for one call."""
        api_key = self._api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        if api_key.strip() in _PLACEHOLDER_KEYS:
            raise AuthConfigFault("ANTHROPIC_API_KEY environment variable is not set")
        return ChatAnthropic(
            model=config.model or self.model,
            max_tokens=self.max_tokens,
            temperature=config.temperature,
            api_key=api_key,
            max_retries=0,
        )

    async def generate(
        self, prompt: RenderedPrompt, output_shape: type[Shape], config: ModelConfig
    ) -> Any:
        llm = self._get_llm(config)
        messages = [build_message(prompt)]

        if config.output_format == "text":
            response = await llm.ainvoke(messages)
            _check_refusal(response)
            return _wrap_text(output_shape, _extract_content(response.content))

        structured = llm.with_structured_output(output_shape, include_raw=True)
        result = await structured.ainvoke(messages)
        _check_refusal(result.get("raw"))

        if result.get("parsing_error") is not None:
            raise OutputMalformedFault(f"Could not parse model output: {result['parsing_error']}")
        parsed = result.get("parsed")
        if parsed is None:
            return None
        if isinstance(parsed, Shape):
            return parsed.model_dump(by_alias=True, exclude_none=True)
        return parsed


async def invoke(
    backend: GenerativeBackend,
    prompt: RenderedPrompt,
    output_shape: type[Shape],
    config: ModelConfig,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """Run one backend call bounded by ``timeout`` seconds.

    Returns the raw structured output (possibly None). Raises a typed
    FlowFault for provider faults. Cancellation propagates untouched.
    """
    logger.info(
        f"Invoking backend: model={config.model or 'default'}, "
        f"temperature={config.temperature}, media={len(prompt.media)}"
    )
    try:
        return await asyncio.wait_for(
            backend.generate(prompt, output_shape, config), timeout=timeout
        )
    except FlowFault:
        raise
    except TimeoutError as e:
        raise NetworkFault(f"Backend call timed out after {timeout}s") from e
    except Exception as e:
        fault_type = _FAULT_TYPES.get(categorize(e))
        if fault_type is None:
            raise
        raise fault_type(f"Backend fault: {type(e).__name__}: {e}") from e
