"""Shared test fixtures for deployforge."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from deployforge.config import DeployConfig
from deployforge.core.classifier import build_environment
from deployforge.core.executor import ActionExecutor
from deployforge.core.journal import ActionJournal
from deployforge.core.orchestrator import Orchestrator
from deployforge.core.registry import DeploymentRegistry
from deployforge.models.environment import Environment
from deployforge.network.simulated import DEFAULT_ACCOUNTS, SimulatedChain

DEPLOYER = DEFAULT_ACCOUNTS[0]
OPERATOR = DEFAULT_ACCOUNTS[1]
FRONTEND = "0x30228d57FF1933cee0C0F88ED7AA5f306774B162"


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep ambient DEPLOYFORGE_* variables and .env files out of the tests."""
    for name in list(os.environ):
        if name.startswith("DEPLOYFORGE_") or name == "FRONTEND_ADDRESS":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def chain() -> SimulatedChain:
    """Provide a fresh in-memory simulated chain."""
    return SimulatedChain()


@pytest.fixture
def make_config(tmp_dir: Path) -> Callable[..., DeployConfig]:
    """Factory fixture: DeployConfig with all storage under the temp dir."""

    def _factory(**overrides: Any) -> DeployConfig:
        defaults: dict[str, Any] = {
            "network": "localhost",
            "deployments_path": tmp_dir / "deployments",
            "journal_path": tmp_dir / "journal.db",
            "chain_state_dir": tmp_dir / "chains",
        }
        defaults.update(overrides)
        return DeployConfig(**defaults)

    return _factory


@pytest.fixture
def registry(tmp_dir: Path) -> DeploymentRegistry:
    """Provide a registry for the localhost network in a temp directory."""
    return DeploymentRegistry(tmp_dir / "deployments", "localhost")


@pytest.fixture
def journal(tmp_dir: Path) -> ActionJournal:
    """Provide a fresh ActionJournal backed by a temp SQLite database."""
    return ActionJournal(tmp_dir / "journal.db")


@pytest.fixture
def environment() -> Environment:
    """Provide an ephemeral localhost environment acting as the first account."""
    return build_environment("localhost", DEPLOYER)


@pytest.fixture
def executor(
    chain: SimulatedChain,
    registry: DeploymentRegistry,
    environment: Environment,
    journal: ActionJournal,
) -> ActionExecutor:
    """Provide an ActionExecutor wired to the test chain, registry and journal."""
    return ActionExecutor(
        chain, registry, environment, journal=journal, run_id="df-test-run-001"
    )


@pytest.fixture
def make_orchestrator(
    chain: SimulatedChain, make_config: Callable[..., DeployConfig]
) -> Callable[..., Orchestrator]:
    """Factory fixture: an Orchestrator on the shared test chain."""

    def _factory(steps: Any = None, **overrides: Any) -> Orchestrator:
        return Orchestrator(steps, config=make_config(**overrides), client=chain)

    return _factory


@pytest.fixture
def count_sent(chain: SimulatedChain) -> Callable[[str], int]:
    """Count transactions of one method (``"deploy"`` for creations) seen by the chain."""

    def _count(method: str) -> int:
        return sum(1 for tx in chain.sent if tx["method"] == method)

    return _count
