"""Action kinds, outcomes, and the per-action record kept for diagnostics."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    """State-changing actions the executor can submit."""

    DEPLOY = "deploy"
    TRANSFER = "transfer"
    APPROVE = "approve"
    INIT = "init"
    TRANSFER_OWNERSHIP = "transfer_ownership"

    @property
    def critical(self) -> bool:
        """Whether a failure of this action must abort the run."""
        return self in CRITICAL_ACTIONS

    @property
    def method(self) -> str:
        """Contract method name used when submitting the action."""
        return _METHOD_NAMES[self]


CRITICAL_ACTIONS: frozenset[ActionKind] = frozenset(
    {ActionKind.DEPLOY, ActionKind.INIT, ActionKind.TRANSFER_OWNERSHIP}
)

_METHOD_NAMES: dict[ActionKind, str] = {
    ActionKind.DEPLOY: "constructor",
    ActionKind.TRANSFER: "transfer",
    ActionKind.APPROVE: "approve",
    ActionKind.INIT: "init",
    ActionKind.TRANSFER_OWNERSHIP: "transferOwnership",
}


class Outcome(str, Enum):
    """Classified result of a single action."""

    SUCCESS = "success"
    ALREADY_SATISFIED = "already_satisfied"
    FAILED = "failed"


class ActionRecord(BaseModel):
    """One executed action, as appended to the action journal.

    ``previous_entry_hash`` and ``entry_hash`` are filled in by the journal
    when the record is sealed.
    """

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    network: str
    step: str = ""
    artifact: str
    action: ActionKind
    params: dict[str, Any] = {}
    outcome: Outcome
    detail: str = ""
    transaction_hash: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    params_hash: str = ""
    previous_entry_hash: str = ""
    entry_hash: str = ""


class ActionResult(BaseModel):
    """What a step gets back from the executor."""

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    handle: str | None = None
    detail: str = ""
    record: ActionRecord

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.FAILED
