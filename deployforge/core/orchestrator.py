"""Pipeline orchestrator — the central coordinator for provisioning runs.

The Orchestrator wires together the environment classifier, the dependency
graph, the deployment registry, the action journal, and the action executor,
then walks the steps in dependency order.

Everything that can be rejected without touching the network (step graph,
operator overrides, network id) is rejected in ``__init__``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from deployforge.config import DeployConfig
from deployforge.core.classifier import build_environment
from deployforge.core.context import StepContext
from deployforge.core.dependency_graph import DependencyGraph
from deployforge.core.errors import ConfigurationError
from deployforge.core.executor import ActionExecutor
from deployforge.core.journal import ActionJournal
from deployforge.core.registry import DeploymentRegistry
from deployforge.models.artifacts import ArtifactDescriptor
from deployforge.models.steps import VALID_TRANSITIONS, RunReport, Step, StepState
from deployforge.network.client import NetworkClient

logger = logging.getLogger(__name__)


class DependencyNotResolvedError(RuntimeError):
    """Raised when a step would run before its dependencies are deployed."""


class InvalidTransitionError(RuntimeError):
    """Raised when a step state change is not allowed."""


class Orchestrator:
    """Dependency-ordered, idempotent provisioning pipeline.

    Parameters
    ----------
    steps:
        The steps to run.  Defaults to the built-in catalogue.
    config:
        Deployment settings.  Uses environment-driven defaults if not provided.
    client:
        Network client.  Defaults to ``deployforge.network.connect(config)``.
    run_id:
        Explicit run identifier; generated when None.
    """

    def __init__(
        self,
        steps: Iterable[Step] | None = None,
        *,
        config: DeployConfig | None = None,
        client: NetworkClient | None = None,
        run_id: str | None = None,
    ) -> None:
        self.config = config or DeployConfig()

        if steps is None:
            from deployforge.steps import DEFAULT_STEPS

            steps = DEFAULT_STEPS
        self.graph = DependencyGraph(steps)

        if client is None:
            from deployforge.network import connect

            client = connect(self.config)
        self.client = client

        deployer = self.config.deployer
        if not deployer:
            accounts = self.client.accounts()
            if not accounts:
                raise ConfigurationError("The network client exposes no accounts to deploy from.")
            deployer = accounts[0]

        self.environment = build_environment(
            self.config.network,
            deployer,
            owner_override=self.config.owner_override,
            prefund_address=self.config.prefund_address,
            extra_ephemeral=self.config.ephemeral_networks,
        )

        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        self.run_id = run_id or f"df-{ts}-{uuid.uuid4().hex[:6]}"

        self.registry = DeploymentRegistry(self.config.deployments_path, self.environment.network)
        self.journal = ActionJournal(self.config.journal_path)
        self.executor = ActionExecutor(
            self.client,
            self.registry,
            self.environment,
            journal=self.journal,
            run_id=self.run_id,
            confirmation_timeout=self.config.confirmation_timeout_seconds,
        )
        self.report: RunReport | None = None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, tags: Iterable[str] | None = None) -> RunReport:
        """Execute the planned steps in dependency order.

        Each step runs at most once.  Any exception raised while a step runs
        (a ``FatalActionError``, a ``ConfigurationError``, a registry or
        network error) marks the step FAILED, blocks every dependent, and is
        re-raised; ``self.report`` still holds the partial report.
        """
        plan = self.graph.plan(tags)
        env = self.environment
        report = RunReport(
            run_id=self.run_id,
            network=env.network,
            ephemeral=env.is_ephemeral,
            deployer=env.deployer,
            plan=plan,
            states={name: StepState.NOT_STARTED for name in plan},
        )
        self.report = report
        # Every declared artifact starts as an empty descriptor.
        for name in plan:
            for artifact, kind in self.graph.get_step(name).artifacts.items():
                report.artifacts[artifact] = ArtifactDescriptor(name=artifact, kind=kind)

        logger.info(
            "Run %s on %s (%s) as %s: %s",
            self.run_id, env.network, env.policy.label, env.deployer, " -> ".join(plan),
        )

        try:
            for name in plan:
                self._run_step(self.graph.get_step(name), report)
        finally:
            report.records = list(self.executor.records)
            report.finished_at = datetime.now(timezone.utc)

        logger.info("Run %s on %s completed", self.run_id, env.network)
        return report

    def _run_step(self, step: Step, report: RunReport) -> None:
        def on_deployed(descriptor: ArtifactDescriptor) -> None:
            report.artifacts[descriptor.name] = self.registry.resolve(descriptor.name) or descriptor

        ctx = StepContext(step, self.executor, on_deployed=on_deployed)
        self._transition(report, step.name, StepState.RUNNING)
        logger.info("[%s] step %s", self.environment.network, step.name)

        try:
            deps = self._resolve_dependencies(step, report)
            step.run(ctx, deps)
            missing = [a for a in step.artifacts if not report.artifacts[a].deployed]
            if missing:
                raise ConfigurationError(
                    f"Step {step.name!r} finished without deploying {', '.join(missing)}"
                )
        except Exception as exc:
            # Transition to FAILED on any exception, then re-raise
            report.follow_ups.extend(ctx.follow_ups)
            self._transition(report, step.name, StepState.FAILED)
            blocked = self.graph.cascade_block(step.name, report.states)
            report.error = f"{step.name}: {exc}"
            logger.error("[%s] step %s failed: %s", self.environment.network, step.name, exc)
            if blocked:
                logger.error("Blocked by %s: %s", step.name, ", ".join(blocked))
            raise

        report.follow_ups.extend(ctx.follow_ups)
        self._transition(report, step.name, StepState.PASSED)

    def _resolve_dependencies(
        self, step: Step, report: RunReport
    ) -> dict[str, ArtifactDescriptor]:
        """Descriptors of the artifacts provisioned by the step's direct dependencies."""
        deps: dict[str, ArtifactDescriptor] = {}
        for dep_name in self.graph.get_dependencies(step.name):
            if report.states.get(dep_name) != StepState.PASSED:
                raise DependencyNotResolvedError(
                    f"Step {step.name!r} cannot run: dependency {dep_name!r} is "
                    f"{report.states.get(dep_name, StepState.NOT_STARTED).value}"
                )
            for artifact in self.graph.get_step(dep_name).artifacts:
                descriptor = report.artifacts.get(artifact)
                if descriptor is None or not descriptor.deployed:
                    raise DependencyNotResolvedError(
                        f"Step {step.name!r} cannot run: {artifact} has no handle"
                    )
                deps[artifact] = descriptor
        return deps

    @staticmethod
    def _transition(report: RunReport, name: str, target: StepState) -> None:
        current = report.states.get(name, StepState.NOT_STARTED)
        if target not in VALID_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot move step {name} from {current.value} to {target.value}"
            )
        report.states[name] = target

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def get_states(self) -> dict[str, StepState]:
        """Return current state of all planned steps."""
        return dict(self.report.states) if self.report else {}

    def deployments(self) -> list[ArtifactDescriptor]:
        """Return every recorded deployment on this network."""
        return self.registry.list()

    def verify_journal(self) -> bool:
        """Verify the hash chain of this run's journal entries."""
        return self.journal.verify_chain(self.run_id)
