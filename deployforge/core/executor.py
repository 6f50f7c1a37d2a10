"""Action executor — submit one action, await finality, classify the outcome.

Classification policy:

- ``deploy`` resolves through the registry first and never creates a second
  instance of a recorded artifact.  A creation that was submitted but never
  recorded (the process died while waiting) is reconciled from its pending
  marker: the pending transaction is awaited, and an unconfirmed one aborts
  the run instead of being resubmitted.
- ``transfer`` / ``approve`` are convenience actions.  When their goal state
  already holds (balance or allowance already in place) the outcome is
  ``already_satisfied``; any other failure is ``failed`` but is *not* raised.
- ``init`` / ``transfer_ownership`` and ``deploy`` are critical.  ``init`` is
  already satisfied once the exchange holds liquidity, ``transfer_ownership``
  once the new owner is in place.  Apart from a recognised already-done
  signature, a failure raises ``FatalActionError``.

Each call blocks until the network confirms or rejects the action.  There is
no retry loop.
"""

from __future__ import annotations

import logging
from typing import Any

from deployforge.core.errors import (
    ConfigurationError,
    FatalActionError,
    InvalidAddressError,
    UnsupportedActionError,
)
from deployforge.core.journal import ActionJournal
from deployforge.core.registry import DeploymentRegistry
from deployforge.models.actions import ActionKind, ActionRecord, ActionResult, Outcome
from deployforge.models.artifacts import ArtifactDescriptor, ArtifactKind, get_artifact_kind
from deployforge.models.environment import Environment, is_address
from deployforge.network.client import NetworkClient, NetworkError, Receipt, TransactionRejected

logger = logging.getLogger(__name__)

# Revert reasons meaning "this one-time action has already been performed".
ALREADY_DONE_SIGNATURES: tuple[str, ...] = (
    "already has liquidity",
    "already initialized",
)

# Required parameters (and which of them are addresses) per action.
_ACTION_PARAMS: dict[ActionKind, tuple[tuple[str, ...], tuple[str, ...]]] = {
    ActionKind.TRANSFER: (("to", "amount"), ("to",)),
    ActionKind.APPROVE: (("spender", "amount"), ("spender",)),
    ActionKind.INIT: (("tokens",), ()),
    ActionKind.TRANSFER_OWNERSHIP: (("new_owner",), ("new_owner",)),
}


def is_already_done(exc: NetworkError) -> bool:
    """Whether a network failure carries a known already-done signature."""
    reason = exc.reason if isinstance(exc, TransactionRejected) else str(exc)
    reason = reason.lower()
    return any(signature in reason for signature in ALREADY_DONE_SIGNATURES)


class ActionExecutor:
    """Executes actions against named artifacts for one environment.

    Parameters
    ----------
    client:
        The network client used to submit and confirm actions.
    registry:
        Deployment records of the environment's network.
    environment:
        The run environment; ``environment.deployer`` signs every action.
    journal:
        Optional action journal; every executed action is appended to it.
    run_id:
        Run identifier stamped on every record.
    confirmation_timeout:
        Seconds to wait for each receipt.
    """

    def __init__(
        self,
        client: NetworkClient,
        registry: DeploymentRegistry,
        environment: Environment,
        *,
        journal: ActionJournal | None = None,
        run_id: str = "",
        confirmation_timeout: float = 120.0,
    ) -> None:
        self._client = client
        self._registry = registry
        self._env = environment
        self._journal = journal
        self._run_id = run_id
        self._timeout = confirmation_timeout
        self.records: list[ActionRecord] = []

    @property
    def environment(self) -> Environment:
        return self._env

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def execute(
        self,
        artifact: str,
        action: ActionKind | str,
        params: dict[str, Any] | None = None,
        *,
        step: str = "",
    ) -> ActionResult:
        """Execute *action* against *artifact* and return the classified result.

        For ``deploy`` the params are ``{"kind": str, "args": list}``.  Other
        actions target an already-deployed artifact resolved through the
        registry.

        Raises ``ConfigurationError`` for invalid requests (nothing is
        submitted) and ``FatalActionError`` when a critical action fails.
        """
        action = ActionKind(action)
        params = dict(params or {})

        if action == ActionKind.DEPLOY:
            return self._deploy(artifact, params, step)

        descriptor = self._registry.resolve(artifact)
        if descriptor is None:
            raise ConfigurationError(
                f"Cannot {action.value} on {artifact}: it is not deployed on "
                f"{self._env.network}"
            )
        kind = get_artifact_kind(descriptor.kind)
        if not kind.supports(action):
            raise UnsupportedActionError(
                f"{descriptor.kind} does not support {action.value}; "
                f"supported: {sorted(a.value for a in kind.actions)}"
            )
        self._validate_params(action, params)

        if self._goal_met(descriptor, action, params):
            return self._finish(
                step, artifact, action, params, Outcome.ALREADY_SATISFIED,
                handle=descriptor.handle, detail="goal state already holds",
            )

        try:
            receipt = self._transact(descriptor, action, params)
        except NetworkError as exc:
            return self._classify_failure(step, descriptor, action, params, exc)

        return self._finish(
            step, artifact, action, params, Outcome.SUCCESS,
            handle=descriptor.handle, transaction_hash=receipt.transaction_hash,
        )

    def view(self, artifact: str, method: str, args: list[Any] | None = None) -> Any:
        """Read-only query against a deployed artifact; nothing is submitted."""
        descriptor = self._registry.resolve(artifact)
        if descriptor is None:
            raise ConfigurationError(
                f"Cannot read {method} on {artifact}: it is not deployed on "
                f"{self._env.network}"
            )
        kind = get_artifact_kind(descriptor.kind)
        if method not in kind.views:
            raise UnsupportedActionError(
                f"{descriptor.kind} has no view {method!r}; available: {sorted(kind.views)}"
            )
        return self._client.call(descriptor.handle, method, list(args or []))

    # ------------------------------------------------------------------
    # Deploy-or-reuse
    # ------------------------------------------------------------------

    def _deploy(self, name: str, params: dict[str, Any], step: str) -> ActionResult:
        args = list(params.get("args", []))
        record_params = {"kind": params.get("kind", ""), "args": args}

        existing = self._registry.resolve(name)
        if existing is not None:
            if existing.constructor_args != args:
                logger.warning(
                    "%s on %s was deployed with args %s; keeping it (requested %s)",
                    name, self._env.network, existing.constructor_args, args,
                )
            return self._finish(
                step, name, ActionKind.DEPLOY, record_params, Outcome.ALREADY_SATISFIED,
                handle=existing.handle, detail=f"reusing deployment at {existing.handle}",
                transaction_hash=existing.transaction_hash,
            )

        recovered = self._recover_pending(name, step, record_params)
        if recovered is not None:
            return recovered

        kind = get_artifact_kind(params.get("kind") or name)
        record_params["kind"] = kind.name
        self._validate_constructor_args(name, kind, args)

        tx_hash = ""
        try:
            tx_hash = self._client.send_deploy(kind.name, args, sender=self._env.deployer)
            self._registry.mark_pending(name, kind.name, tx_hash, args)
            receipt = self._client.wait_for_receipt(tx_hash, self._timeout)
        except NetworkError as exc:
            if isinstance(exc, TransactionRejected):
                # Reverted creations leave nothing behind to reconcile.
                self._registry.clear_pending(name)
            record = self._record(
                step, name, ActionKind.DEPLOY, record_params, Outcome.FAILED,
                detail=str(exc), transaction_hash=tx_hash,
            )
            logger.error("[%s] deploy %s failed: %s", self._env.network, name, exc)
            raise FatalActionError(f"Deploying {name} failed: {exc}", record) from exc

        descriptor = self._store(name, kind.name, args, receipt)
        return self._finish(
            step, name, ActionKind.DEPLOY, record_params, Outcome.SUCCESS,
            handle=descriptor.handle, detail=f"deployed at {descriptor.handle}",
            transaction_hash=receipt.transaction_hash,
        )

    def _recover_pending(
        self, name: str, step: str, record_params: dict[str, Any]
    ) -> ActionResult | None:
        """Reconcile a creation submitted by an interrupted earlier run.

        The pending transaction is awaited before anything is resubmitted.
        Only a confirmed revert clears the marker.  A creation that is still
        unconfirmed keeps its marker and aborts the run.
        """
        pending = self._registry.pending(name)
        if pending is None:
            return None

        try:
            receipt = self._client.wait_for_receipt(pending.transaction_hash, self._timeout)
        except TransactionRejected as exc:
            logger.warning(
                "[%s] %s: pending deployment %s reverted (%s); resubmitting",
                self._env.network, name, pending.transaction_hash, exc.reason,
            )
            self._registry.clear_pending(name)
            return None
        except NetworkError as exc:
            record = self._record(
                step, name, ActionKind.DEPLOY, record_params, Outcome.FAILED,
                detail=str(exc), transaction_hash=pending.transaction_hash,
            )
            logger.error(
                "[%s] %s: pending deployment %s is still unconfirmed: %s",
                self._env.network, name, pending.transaction_hash, exc,
            )
            raise FatalActionError(
                f"Deployment of {name} in {pending.transaction_hash} is still "
                f"unconfirmed; remove {self._registry.pending_path(name)} to "
                f"resubmit it",
                record,
            ) from exc

        logger.info(
            "[%s] %s: recovered unrecorded deployment from %s",
            self._env.network, name, pending.transaction_hash,
        )
        descriptor = self._store(name, pending.kind, pending.constructor_args, receipt)
        return self._finish(
            step, name, ActionKind.DEPLOY, record_params, Outcome.ALREADY_SATISFIED,
            handle=descriptor.handle,
            detail=f"recovered pending deployment at {descriptor.handle}",
            transaction_hash=receipt.transaction_hash,
        )

    def _store(
        self, name: str, kind: str, args: list[Any], receipt: Receipt
    ) -> ArtifactDescriptor:
        if not receipt.contract_address:
            raise FatalActionError(
                f"Deploying {name} confirmed without a contract address "
                f"({receipt.transaction_hash})"
            )
        descriptor = self._registry.record(
            ArtifactDescriptor(
                name=name,
                kind=kind,
                constructor_args=args,
                handle=receipt.contract_address,
                transaction_hash=receipt.transaction_hash,
                block_number=receipt.block_number,
            )
        )
        self._registry.clear_pending(name)
        return descriptor

    # ------------------------------------------------------------------
    # Non-deploy actions
    # ------------------------------------------------------------------

    def _transact(
        self, descriptor: ArtifactDescriptor, action: ActionKind, params: dict[str, Any]
    ) -> Receipt:
        value = int(params.get("value", 0))
        if action == ActionKind.TRANSFER:
            args = [params["to"], int(params["amount"])]
        elif action == ActionKind.APPROVE:
            args = [params["spender"], int(params["amount"])]
        elif action == ActionKind.INIT:
            args = [int(params["tokens"])]
        else:
            args = [params["new_owner"]]

        tx_hash = self._client.send_transaction(
            descriptor.handle, action.method, args, sender=self._env.deployer, value=value
        )
        return self._client.wait_for_receipt(tx_hash, self._timeout)

    def _goal_met(
        self, descriptor: ArtifactDescriptor, action: ActionKind, params: dict[str, Any]
    ) -> bool:
        """Query whether the action's goal state already holds on the network."""
        try:
            if action == ActionKind.TRANSFER:
                balance = self._client.call(descriptor.handle, "balanceOf", [params["to"]])
                return int(balance) >= int(params["amount"])
            if action == ActionKind.APPROVE:
                allowance = self._client.call(
                    descriptor.handle, "allowance", [self._env.deployer, params["spender"]]
                )
                return int(allowance) >= int(params["amount"])
            if action == ActionKind.INIT:
                liquidity = self._client.call(descriptor.handle, "totalLiquidity", [])
                return int(liquidity) > 0
            if action == ActionKind.TRANSFER_OWNERSHIP:
                owner = self._client.call(descriptor.handle, "owner", [])
                return str(owner).lower() == str(params["new_owner"]).lower()
        except NetworkError as exc:
            logger.debug("Goal check for %s %s failed: %s", action.value, descriptor.name, exc)
        return False

    def _classify_failure(
        self,
        step: str,
        descriptor: ArtifactDescriptor,
        action: ActionKind,
        params: dict[str, Any],
        exc: NetworkError,
    ) -> ActionResult:
        tx_hash = getattr(exc, "transaction_hash", "")
        if is_already_done(exc) or self._goal_met(descriptor, action, params):
            return self._finish(
                step, descriptor.name, action, params, Outcome.ALREADY_SATISFIED,
                handle=descriptor.handle, detail=f"precondition already met ({exc})",
                transaction_hash=tx_hash,
            )

        record = self._record(
            step, descriptor.name, action, params, Outcome.FAILED,
            detail=str(exc), transaction_hash=tx_hash,
        )
        if action.critical:
            logger.error(
                "[%s] %s on %s failed: %s", self._env.network, action.value, descriptor.name, exc
            )
            raise FatalActionError(
                f"{action.value} on {descriptor.name} failed: {exc}", record
            ) from exc

        logger.warning(
            "[%s] %s on %s skipped due to transient error: %s",
            self._env.network, action.value, descriptor.name, exc,
        )
        return ActionResult(
            outcome=Outcome.FAILED, handle=descriptor.handle, detail=str(exc), record=record
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_constructor_args(name: str, kind: ArtifactKind, args: list[Any]) -> None:
        if len(args) != len(kind.constructor):
            raise ConfigurationError(
                f"{name} ({kind.name}) takes {len(kind.constructor)} constructor "
                f"argument(s), got {len(args)}"
            )
        for param, value in zip(kind.constructor, args):
            if param.type == "address" and not is_address(value):
                raise InvalidAddressError(
                    f"{name}: constructor argument {param.name!r} must be an address, "
                    f"got {value!r}"
                )
            if param.type == "uint256" and (
                isinstance(value, bool) or not isinstance(value, int) or value < 0
            ):
                raise ConfigurationError(
                    f"{name}: constructor argument {param.name!r} must be a "
                    f"non-negative integer, got {value!r}"
                )

    @staticmethod
    def _validate_params(action: ActionKind, params: dict[str, Any]) -> None:
        required, addresses = _ACTION_PARAMS[action]
        missing = [p for p in required if p not in params]
        if missing:
            raise ConfigurationError(f"{action.value} requires parameter(s) {missing}")
        for name in addresses:
            if not is_address(params[name]):
                raise InvalidAddressError(
                    f"{action.value}: {name} {params[name]!r} is not a valid address"
                )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _record(
        self,
        step: str,
        artifact: str,
        action: ActionKind,
        params: dict[str, Any],
        outcome: Outcome,
        *,
        detail: str = "",
        transaction_hash: str = "",
    ) -> ActionRecord:
        record = ActionRecord(
            run_id=self._run_id,
            network=self._env.network,
            step=step,
            artifact=artifact,
            action=action,
            params=params,
            outcome=outcome,
            detail=detail,
            transaction_hash=transaction_hash,
        )
        if self._journal is not None:
            record = self._journal.append(record)
        self.records.append(record)
        return record

    def _finish(
        self,
        step: str,
        artifact: str,
        action: ActionKind,
        params: dict[str, Any],
        outcome: Outcome,
        *,
        handle: str | None = None,
        detail: str = "",
        transaction_hash: str = "",
    ) -> ActionResult:
        record = self._record(
            step, artifact, action, params, outcome,
            detail=detail, transaction_hash=transaction_hash,
        )
        if outcome == Outcome.ALREADY_SATISFIED:
            logger.info(
                "[%s] %s %s: skipped, already satisfied (%s)",
                self._env.network, action.value, artifact, detail,
            )
        else:
            logger.info(
                "[%s] %s %s: %s%s",
                self._env.network, action.value, artifact, outcome.value,
                f" ({detail})" if detail else "",
            )
        return ActionResult(outcome=outcome, handle=handle, detail=detail, record=record)
