"""Step declarations, step states, and the per-run report."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deployforge.models.actions import ActionRecord
from deployforge.models.artifacts import ArtifactDescriptor


class StepState(str, Enum):
    """State of a step within one run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    BLOCKED = "blocked"


VALID_TRANSITIONS: dict[StepState, set[StepState]] = {
    StepState.NOT_STARTED: {StepState.RUNNING, StepState.BLOCKED},
    StepState.RUNNING: {StepState.PASSED, StepState.FAILED},
    StepState.PASSED: set(),
    StepState.FAILED: set(),
    StepState.BLOCKED: set(),
}


class Step(BaseModel):
    """A declarative provisioning unit.

    ``run`` is called as ``run(ctx, deps)`` where ``ctx`` is a
    ``StepContext`` and ``deps`` maps artifact name -> ``ArtifactDescriptor``
    for the artifacts provisioned by the steps named in ``dependencies``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    run: Callable[..., Any]
    dependencies: tuple[str, ...] = ()
    artifacts: dict[str, str] = {}  # artifact name -> artifact kind
    tags: tuple[str, ...] = ()
    description: str = ""

    def matches(self, tags: set[str]) -> bool:
        """Whether this step is selected by any of *tags* (its name counts as a tag)."""
        return self.name in tags or bool(tags.intersection(self.tags))


class RunReport(BaseModel):
    """Everything a run did, for rendering and for assertions in tests."""

    run_id: str
    network: str
    ephemeral: bool
    deployer: str
    plan: list[str] = []
    states: dict[str, StepState] = {}
    records: list[ActionRecord] = []
    artifacts: dict[str, ArtifactDescriptor] = {}
    follow_ups: list[str] = []
    error: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and all(
            state == StepState.PASSED for state in self.states.values()
        )
