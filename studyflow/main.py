"""StudyFlow: FastAPI app exposing the generation flows.

Loads config.yaml on startup. Exposes /flows/{flow_name} to run a flow,
plus operational endpoints for health, flow listing, and hot-reload.
Callers are expected to be authenticated upstream; the optional API key
only guards the service itself.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studyflow.config import get_config, load_config, reload_config
from studyflow.engine.backend import AnthropicBackend, GenerativeBackend
from studyflow.engine.contracts import json_schema
from studyflow.errors import ErrorCategory
from studyflow.flows import get_flow, list_flows
from studyflow.runtime import run_flow
from studyflow.schemas import RunRequest

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    logger.info(
        f"StudyFlow started (origins={config.allowed_origins}, "
        f"auth={'enabled' if config.api_key else 'disabled'}, "
        f"model={config.backend.model}, flows={len(list_flows())})"
    )
    yield
    logger.info("StudyFlow shutting down")


# Load config early so we can read allowed_origins for CORS middleware.
_boot_config = load_config()

app = FastAPI(title="StudyFlow", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_boot_config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def verify_api_key(request: Request) -> None:
    """Validate X-API-Key header against the configured key.
    If no api_key is set in config, auth is disabled (dev mode).
    """
    config = get_config()
    if not config.api_key:
        return  # Auth disabled, no key configured

    key = request.headers.get("X-API-Key")
    if key != config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_backend() -> GenerativeBackend:
    """The backend for this request. Overridable via app.dependency_overrides."""
    backend = get_config().backend
    return AnthropicBackend(model=backend.model, max_tokens=backend.max_tokens)


# ---------------------------------------------------------------------------
# Flow endpoint
# ---------------------------------------------------------------------------


@app.post("/flows/{flow_name}", dependencies=[Depends(verify_api_key)])
async def run_flow_endpoint(
    flow_name: str,
    request: RunRequest,
    backend: GenerativeBackend = Depends(get_backend),
):
    """Run one generation flow and return its GenerationResult."""
    flow = get_flow(flow_name)
    if not flow:
        raise HTTPException(
            status_code=404,
            detail=f"Flow '{flow_name}' not found",
        )

    timeout = request.timeout or get_config().backend.timeout_seconds
    result = await run_flow(flow, request.data, backend, timeout=timeout)

    status_code = 200
    if result.error is not None:
        status_code = 422 if result.error.category == ErrorCategory.VALIDATION_FAILURE.value else 502
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Operational endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy", "flows": len(list_flows())}


@app.get("/flows")
async def describe_flows():
    """Return every flow with its variants and contracts as JSON schema."""
    described = []
    for name in list_flows():
        flow = get_flow(name)
        described.append(
            {
                "name": flow.name,
                "description": flow.description,
                "variants": [
                    {
                        "name": v.name,
                        "temperature": v.config.temperature,
                        "model": v.config.model or get_config().backend.model,
                    }
                    for v in flow.variants
                ],
                "input": json_schema(flow.contract.input),
                "output": json_schema(flow.contract.output),
            }
        )
    return {"flows": described}


@app.post("/reload", dependencies=[Depends(verify_api_key)])
async def reload():
    """Hot-reload config.yaml without restart.

    Rebuilds the active flow table with the new overrides. Runs already
    in flight keep the variants they resolved.
    """
    try:
        new_config = reload_config()
        return {
            "status": "reloaded",
            "model": new_config.backend.model,
            "overrides": sorted(new_config.flows),
        }
    except Exception as e:
        logger.error(f"Reload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Reload failed: {e}")
