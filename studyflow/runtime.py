"""Runtime: the flow façade every caller goes through.

One run walks a fixed state machine:

    Idle → Validating → Rendering → Invoking → ValidatingOutput → Success
                                                                ↘ Failed

A run either returns a payload that satisfies the flow's output
contract or a ``FlowError``; no other exception type leaves this module
except cancellation. The engine never retries on its own.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from studyflow.engine.backend import DEFAULT_TIMEOUT, GenerativeBackend, invoke
from studyflow.engine.contracts import render_view, validate
from studyflow.engine.recovery import accept, try_short_circuit
from studyflow.engine.templates import render
from studyflow.engine.variants import select
from studyflow.errors import FlowFailed, classify
from studyflow.flows import Flow
from studyflow.schemas import GenerationResult

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    RENDERING = "Rendering"
    INVOKING = "Invoking"
    VALIDATING_OUTPUT = "ValidatingOutput"
    SUCCESS = "Success"
    FAILED = "Failed"


_NEXT: dict[FlowState, set[FlowState]] = {
    FlowState.IDLE: {FlowState.VALIDATING, FlowState.FAILED},
    # Validating → Success is the input short-circuit.
    FlowState.VALIDATING: {FlowState.RENDERING, FlowState.SUCCESS, FlowState.FAILED},
    FlowState.RENDERING: {FlowState.INVOKING, FlowState.FAILED},
    FlowState.INVOKING: {FlowState.VALIDATING_OUTPUT, FlowState.FAILED},
    FlowState.VALIDATING_OUTPUT: {FlowState.SUCCESS, FlowState.FAILED},
    FlowState.SUCCESS: set(),
    FlowState.FAILED: set(),
}


@dataclass
class FlowRun:
    """Trace of one invocation. Owned by that invocation only."""

    flow: str
    state: FlowState = FlowState.IDLE
    variant: str | None = None
    history: list[FlowState] = field(default_factory=lambda: [FlowState.IDLE])

    def advance(self, state: FlowState) -> None:
        if state not in _NEXT[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} → {state.value}")
        self.state = state
        self.history.append(state)

    @property
    def backend_called(self) -> bool:
        return FlowState.INVOKING in self.history


async def run_flow(
    flow: Flow,
    data: Any,
    backend: GenerativeBackend,
    timeout: float | None = None,
    run: FlowRun | None = None,
) -> GenerationResult:
    """Execute one flow end to end and return its GenerationResult.

    1. Validate input against the flow's input contract
    2. Short-circuit from the input when the flow allows it
    3. Select a variant and render its template
    4. Invoke the backend (the only suspension point)
    5. Validate and check the output
    """
    run = run or FlowRun(flow=flow.name)
    contract = flow.contract

    try:
        run.advance(FlowState.VALIDATING)
        validated = validate(contract.input, data)

        canned = try_short_circuit(flow.short_circuit, validated, contract.output)
        if canned is not None:
            status = flow.result_status(canned)
            run.advance(FlowState.SUCCESS)
            logger.info(f"Flow '{flow.name}' answered from input without the backend")
            return GenerationResult(status=status, payload=canned)

        run.advance(FlowState.RENDERING)
        view = render_view(contract.input, validated)
        variant = select(flow.variants, view)
        run.variant = variant.name
        prompt = render(variant.template, view, variant.helpers)

        run.advance(FlowState.INVOKING)
        logger.info(f"Executing flow '{flow.name}' with variant '{variant.name}'")
        raw = await invoke(
            backend,
            prompt,
            contract.output,
            variant.config,
            timeout=timeout or DEFAULT_TIMEOUT,
        )

        run.advance(FlowState.VALIDATING_OUTPUT)
        payload = accept(raw, contract.output, flow.checks)

        status = flow.result_status(payload)
        run.advance(FlowState.SUCCESS)
        logger.info(f"Flow '{flow.name}' finished: {status}")
        return GenerationResult(status=status, payload=payload)

    except asyncio.CancelledError:
        logger.info(f"Flow '{flow.name}' cancelled during {run.state.value}")
        run.advance(FlowState.FAILED)
        raise
    except Exception as e:
        failed_in = run.state
        run.advance(FlowState.FAILED)
        error = classify(e, flow=flow.name)
        logger.info(f"Flow '{flow.name}' failed during {failed_in.value}: {error.category}")
        return GenerationResult(status="error", error=error)


async def generate(
    flow: Flow,
    data: Any,
    backend: GenerativeBackend,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Raising convention: return the payload or raise FlowFailed."""
    result = await run_flow(flow, data, backend, timeout=timeout)
    if result.error is not None:
        raise FlowFailed(result.error)
    return result.payload
