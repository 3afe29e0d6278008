"""Flow registry: global name-based lookup for generation flows.

Each flow module declares one ``Flow`` and adds it with ``register``.
The registry is filled at import time; ``configure`` swaps in a copy
with the per-flow overrides from config.yaml applied. Registered
definitions themselves are never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Literal

from studyflow.engine.contracts import FlowContract
from studyflow.engine.recovery import OutputCheck, ShortCircuit
from studyflow.engine.variants import PromptVariant

if TYPE_CHECKING:
    from studyflow.config import FlowOverride

logger = logging.getLogger(__name__)

ResultStatus = Literal["success", "not_found"]


def _always_success(payload: dict[str, Any]) -> ResultStatus:
    return "success"


@dataclass(frozen=True)
class Flow:
    """One named generation pipeline with a fixed input/output contract.

    variants     : tried in order; first matching predicate wins
    checks       : content checks run after the output contract
    short_circuit: answers from the input alone when it can
    result_status: maps an accepted payload onto the result status
    """

    name: str
    description: str
    contract: FlowContract
    variants: tuple[PromptVariant, ...]
    checks: tuple[OutputCheck, ...] = ()
    short_circuit: ShortCircuit | None = None
    result_status: Callable[[dict[str, Any]], ResultStatus] = field(
        default=_always_success
    )

    def __post_init__(self) -> None:
        if not self.variants:
            raise ValueError(f"Flow '{self.name}' must have at least one variant")


_definitions: dict[str, Flow] = {}
_registry: Mapping[str, Flow] = {}


def register(flow: Flow) -> Flow:
    """Add a flow definition by its ``.name``."""
    global _registry
    if flow.name in _definitions:
        raise ValueError(f"Flow '{flow.name}' is already registered")
    _definitions[flow.name] = flow
    _registry = {**_registry, flow.name: flow}
    return flow


def get_flow(name: str) -> Flow | None:
    """Return the active flow by name, or None if not found."""
    return _registry.get(name)


def list_flows() -> list[str]:
    """Return all registered flow names."""
    return list(_definitions.keys())


def configure(overrides: Mapping[str, FlowOverride]) -> None:
    """Rebuild the active table from the definitions plus ``overrides``.

    Raises ``ValueError`` if an override names an unknown flow.
    """
    global _registry
    unknown = [name for name in overrides if name not in _definitions]
    if unknown:
        raise ValueError(
            f"Overrides for unknown flow(s): {unknown}. Available: {list_flows()}"
        )

    table: dict[str, Flow] = {}
    for name, flow in _definitions.items():
        override = overrides.get(name)
        if override is None:
            table[name] = flow
            continue
        variants = tuple(
            v.with_overrides(temperature=override.temperature, model=override.model)
            for v in flow.variants
        )
        table[name] = replace(flow, variants=variants)
        logger.info(
            f"Flow '{name}' overrides applied "
            f"(temperature={override.temperature}, model={override.model})"
        )
    # Swap the whole table at once; in-flight runs keep the flow they resolved.
    _registry = table


# Auto-import flow modules so the registry is populated on first access.
import studyflow.flows.tutor as _tutor  # noqa: E402, F401
import studyflow.flows.quiz as _quiz  # noqa: E402, F401
import studyflow.flows.reflection as _reflection  # noqa: E402, F401
import studyflow.flows.explainer as _explainer  # noqa: E402, F401
import studyflow.flows.summary as _summary  # noqa: E402, F401
import studyflow.flows.search as _search  # noqa: E402, F401
