"""Shared helper: build a ``DeployConfig`` from CLI options over env defaults."""

from __future__ import annotations

from typing import Any

from deployforge.config import DeployConfig


def load_config(**overrides: Any) -> DeployConfig:
    """Settings from env/.env, with every non-None CLI option taking precedence."""
    return DeployConfig(**{k: v for k, v in overrides.items() if v is not None})
