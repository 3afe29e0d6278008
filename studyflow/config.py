"""Configuration loader: reads config.yaml, validates with Pydantic.

Flows and their prompt variants are declared in code (studyflow/flows/).
config.yaml only carries deployment settings: the backend model, the
default timeout, per-flow temperature/model overrides, and HTTP auth.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "STUDYFLOW_CONFIG"


class BackendConfig(BaseModel):
    """The generative backend every flow talks to."""

    provider: Literal["anthropic"] = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = Field(default=4096, gt=0)
    timeout_seconds: float = Field(default=60.0, gt=0)


class FlowOverride(BaseModel):
    """Per-flow adjustments applied to every variant of that flow."""

    temperature: float | None = Field(default=None, ge=0.0, le=1.0)
    model: str | None = None


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    backend: BackendConfig = BackendConfig()
    flows: dict[str, FlowOverride] = {}

    # Auth & CORS
    api_key: str | None = None
    allowed_origins: list[str] = ["*"]

    @model_validator(mode="after")
    def validate_references(self) -> EngineConfig:
        from studyflow.flows import list_flows

        known = set(list_flows())
        for name in self.flows:
            if name not in known:
                raise ValueError(
                    f"Override for unknown flow '{name}'. Available: {sorted(known)}"
                )
        return self


# ---------------------------------------------------------------------------
# Module-level config cache
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_path: str = "config.yaml"


def default_config_path() -> str:
    return os.environ.get(CONFIG_ENV_VAR, "config.yaml")


def load_config(path: str | None = None) -> EngineConfig:
    """Read config.yaml from disk, validate, apply flow overrides, and cache."""
    global _config, _config_path
    from studyflow.flows import configure

    path = path or default_config_path()
    _config_path = path

    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file.resolve()}")

    raw = yaml.safe_load(config_file.read_text()) or {}
    config = EngineConfig(**raw)
    configure(config.flows)
    _config = config

    logger.info(
        f"Loaded config: "
        f"model={config.backend.model}, overrides={sorted(config.flows)}"
    )
    return config


def get_config() -> EngineConfig:
    """Return cached config. Raises if not yet loaded."""
    if _config is None:
        raise RuntimeError("Config not loaded, call load_config() first")
    return _config


def reload_config() -> EngineConfig:
    """Re-read config from disk. Called by /reload endpoint."""
    logger.info(f"Reloading config from {_config_path}")
    return load_config(_config_path)
