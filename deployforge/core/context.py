"""Per-step view of the run: the environment plus action helpers.

A ``StepContext`` is handed to each step's ``run`` function.  It binds the
executor to the step's name (so every action record says which step issued
it) and only lets the step deploy the artifacts it declared.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from deployforge.core.errors import ConfigurationError
from deployforge.core.executor import ActionExecutor
from deployforge.models.actions import ActionKind, ActionResult
from deployforge.models.artifacts import ArtifactDescriptor
from deployforge.models.environment import Environment
from deployforge.models.steps import Step

logger = logging.getLogger(__name__)


class StepContext:
    """Environment and action helpers for one step invocation."""

    def __init__(
        self,
        step: Step,
        executor: ActionExecutor,
        *,
        on_deployed: Callable[[ArtifactDescriptor], None] | None = None,
    ) -> None:
        self._step = step
        self._executor = executor
        self._on_deployed = on_deployed
        self.results: list[ActionResult] = []
        self.follow_ups: list[str] = []

    @property
    def environment(self) -> Environment:
        return self._executor.environment

    @property
    def step_name(self) -> str:
        return self._step.name

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def deploy(self, name: str, args: list[Any] | None = None) -> ArtifactDescriptor:
        """Deploy (or reuse) one of this step's declared artifacts."""
        kind = self._step.artifacts.get(name)
        if kind is None:
            raise ConfigurationError(
                f"Step {self._step.name!r} did not declare artifact {name!r}; "
                f"declared: {sorted(self._step.artifacts)}"
            )
        result = self._run(name, ActionKind.DEPLOY, {"kind": kind, "args": list(args or [])})
        descriptor = ArtifactDescriptor(
            name=name, kind=kind, constructor_args=list(args or []), handle=result.handle,
            transaction_hash=result.record.transaction_hash,
        )
        if self._on_deployed is not None:
            self._on_deployed(descriptor)
        return descriptor

    def transfer(self, token: str, to: str, amount: int) -> ActionResult:
        return self._run(token, ActionKind.TRANSFER, {"to": to, "amount": amount})

    def approve(self, token: str, spender: str, amount: int) -> ActionResult:
        return self._run(token, ActionKind.APPROVE, {"spender": spender, "amount": amount})

    def init(self, artifact: str, tokens: int, *, value: int = 0) -> ActionResult:
        return self._run(artifact, ActionKind.INIT, {"tokens": tokens, "value": value})

    def transfer_ownership(self, artifact: str, new_owner: str) -> ActionResult:
        return self._run(artifact, ActionKind.TRANSFER_OWNERSHIP, {"new_owner": new_owner})

    def view(self, artifact: str, method: str, *args: Any) -> Any:
        """Read-only query against a deployed artifact."""
        return self._executor.view(artifact, method, list(args))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def follow_up(self, message: str) -> None:
        """Record an action an operator has to take by hand."""
        self.follow_ups.append(message)
        logger.warning("[%s] %s: manual follow-up: %s", self.environment.network, self.step_name, message)

    def note(self, message: str) -> None:
        logger.info("[%s] %s: %s", self.environment.network, self.step_name, message)

    def _run(self, artifact: str, action: ActionKind, params: dict[str, Any]) -> ActionResult:
        result = self._executor.execute(artifact, action, params, step=self._step.name)
        self.results.append(result)
        return result
