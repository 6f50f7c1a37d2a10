"""Built-in provisioning steps.

Usage::

    from deployforge.steps import DEFAULT_REGISTRY, DEFAULT_STEPS

    step = DEFAULT_REGISTRY.get("Vendor")
    graph = DEFAULT_REGISTRY.graph()
"""

from __future__ import annotations

from deployforge.steps import dex, token_vendor
from deployforge.steps.base import StepRegistry, parse_ether


def build_default_registry() -> StepRegistry:
    """A fresh registry holding the built-in steps, in declaration order."""
    registry = StepRegistry()
    token_vendor.register(registry)
    dex.register(registry)
    return registry


DEFAULT_REGISTRY: StepRegistry = build_default_registry()
DEFAULT_STEPS = DEFAULT_REGISTRY.steps

__all__ = [
    "DEFAULT_REGISTRY",
    "DEFAULT_STEPS",
    "StepRegistry",
    "build_default_registry",
    "parse_ether",
]
