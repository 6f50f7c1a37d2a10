"""Deployforge data models — all Pydantic v2, frozen where they cross a boundary."""

from deployforge.models.actions import (
    CRITICAL_ACTIONS,
    ActionKind,
    ActionRecord,
    ActionResult,
    Outcome,
)
from deployforge.models.artifacts import (
    ARTIFACT_KINDS,
    ArtifactDescriptor,
    ArtifactKind,
    ConstructorParam,
    PendingDeployment,
    get_artifact_kind,
)
from deployforge.models.environment import Environment, NetworkPolicy, is_address
from deployforge.models.steps import VALID_TRANSITIONS, RunReport, Step, StepState

__all__ = [
    # actions
    "ActionKind",
    "ActionRecord",
    "ActionResult",
    "CRITICAL_ACTIONS",
    "Outcome",
    # artifacts
    "ARTIFACT_KINDS",
    "ArtifactDescriptor",
    "ArtifactKind",
    "ConstructorParam",
    "PendingDeployment",
    "get_artifact_kind",
    # environment
    "Environment",
    "NetworkPolicy",
    "is_address",
    # steps
    "RunReport",
    "Step",
    "StepState",
    "VALID_TRANSITIONS",
]
