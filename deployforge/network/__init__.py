"""Network clients: the protocol the core consumes and the built-in simulated chain."""

from __future__ import annotations

from pathlib import Path

from deployforge.config import DeployConfig
from deployforge.core.classifier import classify
from deployforge.core.errors import ConfigurationError
from deployforge.network.client import (
    NetworkClient,
    NetworkError,
    Receipt,
    TransactionRejected,
    TransactionTimeout,
)
from deployforge.network.simulated import SimulatedChain


def connect(config: DeployConfig) -> NetworkClient:
    """Return the client for ``config.network``.

    Ephemeral networks (and any network when ``config.simulate`` is set) run
    on a ``SimulatedChain`` persisted under ``config.chain_state_dir``.  Live
    networks need a ``NetworkClient`` supplied by the caller.
    """
    policy = classify(config.network, config.ephemeral_networks)
    if policy.ephemeral or config.simulate:
        state_path = Path(config.chain_state_dir) / f"{config.network}.json"
        return SimulatedChain(state_path)
    raise ConfigurationError(
        f"No network client is configured for persistent network "
        f"{config.network!r}. Pass a NetworkClient to the Orchestrator, or set "
        f"DEPLOYFORGE_SIMULATE=true to rehearse on the simulated chain."
    )


__all__ = [
    "NetworkClient",
    "NetworkError",
    "Receipt",
    "SimulatedChain",
    "TransactionRejected",
    "TransactionTimeout",
    "connect",
]
