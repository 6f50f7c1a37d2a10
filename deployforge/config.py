"""Runtime configuration — env-driven.

Centralized settings using pydantic-settings.  Reads from a ``.env`` file
and ``DEPLOYFORGE_*`` environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeployConfig(BaseSettings):
    """Deployment settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export DEPLOYFORGE_NETWORK=sepolia
        export DEPLOYFORGE_LOG_LEVEL=DEBUG
        export DEPLOYFORGE_DEPLOYMENTS_PATH=/data/deployments

    The ownership handoff target also honours the bare ``FRONTEND_ADDRESS``
    variable used by the front-end tooling::

        FRONTEND_ADDRESS=0xYourFrontendAddress deployforge deploy
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEPLOYFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Target
    network: str = "localhost"
    deployer: str | None = None  # defaults to the client's first account

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    # Storage paths
    deployments_path: Path = Path("deployments")
    journal_path: Path = Path(".deployforge/journal.db")
    chain_state_dir: Path = Path(".deployforge/chains")

    # Run the simulated chain even for a persistent network id (rehearsal)
    simulate: bool = False

    # Operator overrides
    owner_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "owner_override", "DEPLOYFORGE_OWNER_OVERRIDE", "FRONTEND_ADDRESS"
        ),
    )
    prefund_address: str | None = None

    # Extra network ids classified as ephemeral, as a JSON list
    ephemeral_networks: list[str] = []

    confirmation_timeout_seconds: float = 120.0
