"""
Configuration management for maq.

Centralised configuration with YAML loading and sensible defaults.
The config supplies the numeric tolerance used by the path builder
and the defaults of the bootstrap layer (replicate count, seed,
worker count and failure policy).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section configs
# ---------------------------------------------------------------------------

class PathConfig(BaseModel):
    """Solution path construction settings."""

    epsilon: float = Field(
        default=1e-12,
        ge=0,
        description="Ratio tolerance for envelope pruning and breakpoint collapsing",
    )


class BootstrapConfig(BaseModel):
    """Bootstrap replicate settings."""

    n_replicates: int = Field(default=200, ge=0)
    seed: int | None = Field(default=None, ge=0, description="None draws a fresh seed per fit")
    n_jobs: int = Field(default=1, ge=1, description="Worker threads for replicate paths")
    max_failure_rate: float = Field(default=0.1, ge=0, le=1)
    on_excess_failures: Literal["raise", "warn"] = Field(default="raise")


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

class MaqConfig(BaseModel):
    """Root configuration for maq."""

    path: PathConfig = Field(default_factory=PathConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "MaqConfig":
        """Load config from a YAML file."""
        with open(Path(path)) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Write config to a YAML file."""
        with open(Path(path), "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_config: MaqConfig | None = None


def get_config() -> MaqConfig:
    """Return the global config instance (creates default if needed)."""
    global _config
    if _config is None:
        _config = MaqConfig()
    return _config


def set_config(config: MaqConfig) -> None:
    """Override the global config instance."""
    global _config
    _config = config


def load_config(path: Path | str | None = None) -> MaqConfig:
    """
    Load config from file, falling back to standard locations, then defaults.
    """
    global _config

    if path is not None:
        _config = MaqConfig.from_yaml(path)
    else:
        for candidate in [Path("maq.yaml"), Path("config/maq.yaml")]:
            if candidate.exists():
                _config = MaqConfig.from_yaml(candidate)
                break
        else:
            _config = MaqConfig()

    return _config
