"""Step registration.

``StepRegistry`` collects steps in declaration order and refuses forward
references: a step may only depend on steps registered before it.  The
``register`` decorator turns a plain provisioning function into a ``Step``::

    registry = StepRegistry()

    @registry.register("Vendor", dependencies=["YourToken"],
                       artifacts={"Vendor": "Vendor"}, tags=["Vendor"])
    def deploy_vendor(ctx, deps):
        ctx.deploy("Vendor", [deps["YourToken"].handle])
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from deployforge.core.dependency_graph import (
    DependencyGraph,
    DuplicateStepError,
    UnknownDependencyError,
)
from deployforge.models.artifacts import get_artifact_kind
from deployforge.models.steps import Step

StepFunction = Callable[..., Any]


class StepRegistry:
    """Ordered, append-only collection of steps."""

    def __init__(self, steps: Iterable[Step] = ()) -> None:
        self._steps: dict[str, Step] = {}
        for step in steps:
            self.add(step)

    def add(self, step: Step) -> Step:
        """Register an already-built step."""
        if step.name in self._steps:
            raise DuplicateStepError(f"Step {step.name!r} is registered twice")
        for dep in step.dependencies:
            if dep == step.name:
                raise UnknownDependencyError(f"Step {step.name!r} depends on itself")
            if dep not in self._steps:
                raise UnknownDependencyError(
                    f"Step {step.name!r} depends on {dep!r}, which is not registered "
                    f"before it"
                )
        for kind in step.artifacts.values():
            get_artifact_kind(kind)
        self._steps[step.name] = step
        return step

    def register(
        self,
        name: str,
        *,
        dependencies: Iterable[str] = (),
        artifacts: Mapping[str, str] | None = None,
        tags: Iterable[str] = (),
        description: str = "",
    ) -> Callable[[StepFunction], Step]:
        """Decorator form of ``add``; returns the registered ``Step``."""

        def decorator(fn: StepFunction) -> Step:
            return self.add(
                Step(
                    name=name,
                    run=fn,
                    dependencies=tuple(dependencies),
                    artifacts=dict(artifacts or {}),
                    tags=tuple(tags),
                    description=description or _summary(fn),
                )
            )

        return decorator

    @property
    def steps(self) -> list[Step]:
        return list(self._steps.values())

    def get(self, name: str) -> Step:
        try:
            return self._steps[name]
        except KeyError:
            raise KeyError(
                f"Unknown step {name!r}. Registered steps: {sorted(self._steps)}"
            ) from None

    def graph(self) -> DependencyGraph:
        return DependencyGraph(self.steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)


def _summary(fn: StepFunction) -> str:
    """First line of a function's docstring, or an empty string."""
    doc = (fn.__doc__ or "").strip()
    return doc.splitlines()[0] if doc else ""


def parse_ether(amount: int | str) -> int:
    """Whole-token amount -> base units (18 decimals)."""
    return int(amount) * 10**18
