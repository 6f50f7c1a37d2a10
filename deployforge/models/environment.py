"""Target environment and network policy models."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: object) -> bool:
    """Return True if *value* is a well-formed ``0x``-prefixed 20-byte hex address."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


class NetworkPolicy(BaseModel):
    """Behavioural policy derived from a network identifier.

    ``ephemeral`` networks are disposable and reproducible, so irreversible
    initialization may be automated there.  Everything else is treated as
    persistent/live.
    """

    model_config = ConfigDict(frozen=True)

    ephemeral: bool = False

    @property
    def label(self) -> str:
        return "ephemeral" if self.ephemeral else "persistent"


class Environment(BaseModel):
    """Everything a step may know about where and as whom it is running.

    Built once at pipeline start and never mutated.  Steps read the acting
    identity and operator overrides from here, never from process state.
    """

    model_config = ConfigDict(frozen=True)

    network: str
    policy: NetworkPolicy
    deployer: str
    owner_override: str | None = None  # late-binding ownership handoff target
    prefund_address: str | None = None  # convenience token pre-funding target

    @property
    def is_ephemeral(self) -> bool:
        return self.policy.ephemeral
