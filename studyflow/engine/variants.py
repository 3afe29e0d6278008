"""Prompt variants: template + model configuration pairs, chosen per request.

Variants are declared in the flow modules at import time and never
mutated afterwards, so concurrent runs share them without locking.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Literal

from studyflow.engine.helpers import HelperSet
from studyflow.engine.templates import check_template
from studyflow.errors import UnsupportedInput

logger = logging.getLogger(__name__)

Predicate = Callable[[dict[str, Any]], bool]


def always(data: dict[str, Any]) -> bool:
    return True


def mime_type_in(*mime_types: str, key: str = "fileType") -> Predicate:
    """Match when ``data[key]`` is one of ``mime_types``."""
    allowed = frozenset(m.lower() for m in mime_types)

    def predicate(data: dict[str, Any]) -> bool:
        return str(data.get(key, "")).lower() in allowed

    predicate.__name__ = f"mime_type_in({', '.join(sorted(allowed))})"
    return predicate


def mime_prefix(prefix: str, key: str = "fileType") -> Predicate:
    """Match when ``data[key]`` starts with ``prefix`` (e.g. ``image/``)."""

    def predicate(data: dict[str, Any]) -> bool:
        return str(data.get(key, "")).lower().startswith(prefix)

    predicate.__name__ = f"mime_prefix({prefix})"
    return predicate


@dataclass(frozen=True)
class ModelConfig:
    """Options handed to the generative backend.

    temperature  : sampling randomness, 0.0-1.0, lower = more deterministic
    output_format: "structured" (typed against the output shape) or "text"
    model        : backend model identifier; None means the configured default
    """

    temperature: float = 0.7
    output_format: Literal["structured", "text"] = "structured"
    model: str | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be within 0.0-1.0, got {self.temperature}")


@dataclass(frozen=True)
class PromptVariant:
    name: str
    template: str
    config: ModelConfig = field(default_factory=ModelConfig)
    helpers: HelperSet = field(default_factory=dict)
    predicate: Predicate = always

    def __post_init__(self) -> None:
        check_template(self.template)
        object.__setattr__(self, "helpers", MappingProxyType(dict(self.helpers)))

    def matches(self, data: dict[str, Any]) -> bool:
        return self.predicate(data)

    def with_overrides(self, temperature: float | None = None, model: str | None = None) -> PromptVariant:
        """Copy of this variant with configured overrides applied."""
        config = self.config
        if temperature is not None:
            config = replace(config, temperature=temperature)
        if model is not None:
            config = replace(config, model=model)
        return replace(self, config=config)


def select(variants: Sequence[PromptVariant], data: dict[str, Any]) -> PromptVariant:
    """Return the first variant, in registration order, whose predicate matches.

    Raises UnsupportedInput when none does; validated input should never
    get here, so this is an internal-consistency fault, not a default.
    """
    for variant in variants:
        if variant.matches(data):
            logger.debug(f"Selected variant '{variant.name}'")
            return variant
    raise UnsupportedInput(
        f"No variant accepts this input. Tried: {[v.name for v in variants]}"
    )
