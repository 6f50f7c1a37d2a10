"""Step dependency DAG: validation, topological order, selection, blocking.

The graph is built (and validated) when a pipeline is constructed, before
the network is touched.  It rejects:

- duplicate step names and artifacts claimed by more than one step,
- dependencies on steps that do not exist,
- cycles,
- artifact kinds that are not in the catalogue.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable

from deployforge.core.errors import ConfigurationError
from deployforge.models.artifacts import get_artifact_kind
from deployforge.models.steps import Step, StepState


class CyclicDependencyError(ConfigurationError):
    """Raised when the step graph contains a cycle."""


class UnknownDependencyError(ConfigurationError):
    """Raised when a step depends on a step that is not registered."""


class DuplicateStepError(ConfigurationError):
    """Raised when two steps share a name or claim the same artifact."""


class DependencyGraph:
    """Directed acyclic graph of provisioning steps.

    Ties in the topological order are broken by registration order, so the
    plan is deterministic for a given list of steps.
    """

    def __init__(self, steps: Iterable[Step]) -> None:
        steps = list(steps)
        self._steps: dict[str, Step] = {}
        self._order: dict[str, int] = {}
        self._artifact_owner: dict[str, str] = {}

        for index, step in enumerate(steps):
            if step.name in self._steps:
                raise DuplicateStepError(f"Step {step.name!r} is registered twice")
            self._steps[step.name] = step
            self._order[step.name] = index
            for artifact, kind in step.artifacts.items():
                get_artifact_kind(kind)
                owner = self._artifact_owner.get(artifact)
                if owner is not None:
                    raise DuplicateStepError(
                        f"Artifact {artifact!r} is provisioned by both "
                        f"{owner!r} and {step.name!r}"
                    )
                self._artifact_owner[artifact] = step.name

        # Forward edges: step -> its dependencies
        self._dependencies: dict[str, list[str]] = {}
        # Reverse edges: step -> steps that depend on it
        self._dependents: dict[str, list[str]] = {name: [] for name in self._steps}
        for step in steps:
            for dep in step.dependencies:
                if dep not in self._steps:
                    raise UnknownDependencyError(
                        f"Step {step.name!r} depends on unknown step {dep!r}"
                    )
                self._dependents[dep].append(step.name)
            self._dependencies[step.name] = list(step.dependencies)

        self._topological = self._sort()

    def _sort(self) -> list[str]:
        """Kahn's algorithm; raises ``CyclicDependencyError`` on a cycle.

        Among the steps that are ready, the earliest-registered runs first.
        """
        in_degree = {name: len(deps) for name, deps in self._dependencies.items()}
        ready = [self._order[n] for n, d in in_degree.items() if d == 0]
        heapq.heapify(ready)
        names = list(self._steps)
        result: list[str] = []
        while ready:
            node = names[heapq.heappop(ready)]
            result.append(node)
            for dep in self._dependents[node]:
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    heapq.heappush(ready, self._order[dep])

        if len(result) != len(self._steps):
            stuck = sorted(n for n, d in in_degree.items() if d > 0)
            raise CyclicDependencyError(
                f"Step graph has a cycle through: {', '.join(stuck)}"
            )
        return result

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def step_names(self) -> list[str]:
        """All step names in topological order."""
        return list(self._topological)

    def get_step(self, name: str) -> Step:
        return self._steps[name]

    def get_dependencies(self, name: str) -> list[str]:
        """Direct dependencies of a step."""
        return list(self._dependencies.get(name, []))

    def get_ancestors(self, name: str) -> set[str]:
        """All transitive dependencies of a step."""
        seen: set[str] = set()
        queue = deque(self._dependencies.get(name, []))
        while queue:
            node = queue.popleft()
            if node not in seen:
                seen.add(node)
                queue.extend(self._dependencies.get(node, []))
        return seen

    def get_dependents(self, name: str) -> list[str]:
        """All transitive dependents of a step (BFS order)."""
        result: list[str] = []
        seen: set[str] = set()
        queue = deque(self._dependents.get(name, []))
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.add(node)
            result.append(node)
            queue.extend(self._dependents.get(node, []))
        return result

    def owner_of(self, artifact: str) -> str | None:
        """Name of the step that provisions *artifact*."""
        return self._artifact_owner.get(artifact)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, tags: Iterable[str] | None = None) -> list[str]:
        """Ordered step names for a run.

        Without tags every step runs.  With tags, the steps matching any tag
        run together with all of their transitive dependencies.  Unknown
        tags are a ``ConfigurationError``.
        """
        if not tags:
            return self.step_names

        wanted = set(tags)
        selected = {name for name, step in self._steps.items() if step.matches(wanted)}
        known = set(self._steps) | {t for s in self._steps.values() for t in s.tags}
        unknown = sorted(wanted - known)
        if unknown:
            raise ConfigurationError(f"Unknown tag(s): {', '.join(unknown)}")

        for name in list(selected):
            selected |= self.get_ancestors(name)
        return [name for name in self._topological if name in selected]

    def cascade_block(self, failed: str, states: dict[str, StepState]) -> list[str]:
        """Mark every not-yet-started dependent of *failed* as BLOCKED."""
        blocked: list[str] = []
        for name in self.get_dependents(failed):
            if states.get(name) == StepState.NOT_STARTED:
                states[name] = StepState.BLOCKED
                blocked.append(name)
        return blocked
