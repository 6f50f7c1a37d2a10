"""Artifact kind capability interfaces and deployed-artifact descriptors.

Each deployable artifact kind is described once, statically, by the shape of
its constructor arguments and the set of state-changing actions (and read-only
views) it exposes.  Steps name a kind when they register; the kind is resolved
into an ``ArtifactKind`` at that point, so an action that the kind does not
support is rejected before any network traffic.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from deployforge.core.errors import ConfigurationError
from deployforge.models.actions import ActionKind


class ConstructorParam(BaseModel):
    """One positional constructor parameter: ``address`` or ``uint256``."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str


class ArtifactKind(BaseModel):
    """Capability interface of a deployable artifact kind."""

    model_config = ConfigDict(frozen=True)

    name: str
    constructor: tuple[ConstructorParam, ...] = ()
    actions: frozenset[ActionKind] = frozenset()
    views: frozenset[str] = frozenset()

    def supports(self, action: ActionKind) -> bool:
        return action == ActionKind.DEPLOY or action in self.actions


class ArtifactDescriptor(BaseModel):
    """A named artifact in one environment, deployed or not yet deployed.

    Descriptors start empty (``handle=None``) when a step registers and are
    replaced with a populated copy after the first successful deploy.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str
    constructor_args: list[Any] = []
    handle: str | None = None
    transaction_hash: str = ""
    block_number: int | None = None
    deployed_at: datetime | None = None

    @property
    def deployed(self) -> bool:
        return bool(self.handle)


class PendingDeployment(BaseModel):
    """A deploy transaction that was submitted but not yet recorded."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str
    transaction_hash: str
    constructor_args: list[Any] = []
    submitted_at: datetime


_TOKEN_VIEWS = frozenset({"balanceOf", "allowance", "totalSupply", "decimals"})

# The artifact kinds the built-in steps know how to provision.
ARTIFACT_KINDS: dict[str, ArtifactKind] = {
    "YourToken": ArtifactKind(
        name="YourToken",
        actions=frozenset({ActionKind.TRANSFER, ActionKind.APPROVE}),
        views=_TOKEN_VIEWS,
    ),
    "Balloons": ArtifactKind(
        name="Balloons",
        actions=frozenset({ActionKind.TRANSFER, ActionKind.APPROVE}),
        views=_TOKEN_VIEWS,
    ),
    "Vendor": ArtifactKind(
        name="Vendor",
        constructor=(ConstructorParam(name="tokenAddress", type="address"),),
        actions=frozenset({ActionKind.TRANSFER_OWNERSHIP}),
        views=frozenset({"owner", "yourToken"}),
    ),
    "DEX": ArtifactKind(
        name="DEX",
        constructor=(ConstructorParam(name="tokenAddr", type="address"),),
        actions=frozenset({ActionKind.INIT}),
        views=frozenset({"totalLiquidity", "token"}),
    ),
}


def get_artifact_kind(kind: str) -> ArtifactKind:
    """Resolve a kind name to its capability interface.

    Raises ``ConfigurationError`` for unknown kinds.
    """
    try:
        return ARTIFACT_KINDS[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown artifact kind {kind!r}. "
            f"Known kinds: {sorted(ARTIFACT_KINDS.keys())}"
        ) from None
