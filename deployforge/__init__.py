"""deployforge: dependency-ordered, idempotent contract provisioning.

Deploys-or-reuses a small, static graph of on-chain artifacts, threads the
addresses of deployed artifacts into their dependants, and runs
network-appropriate setup: full initialization on ephemeral networks,
deployment plus required handoffs (and a manual follow-up note) on live ones.
"""

__version__ = "0.1.0"
__description__ = "Dependency-ordered, idempotent contract provisioning pipeline"

from deployforge.core.orchestrator import Orchestrator
from deployforge.cli.app import app as cli

__all__ = ["Orchestrator", "cli", "__version__"]
