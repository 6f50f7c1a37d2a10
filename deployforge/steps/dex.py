"""Balloons token and the DEX that trades it.

The DEX is only seeded with liquidity (approve, then ``init``) on ephemeral
networks.  On a live network seeding is irreversible and spends real funds,
so the step stops after deployment and asks the operator to initialize the
exchange from the UI.
"""

from __future__ import annotations

from collections.abc import Mapping

from deployforge.core.context import StepContext
from deployforge.models.actions import Outcome
from deployforge.models.artifacts import ArtifactDescriptor
from deployforge.steps.base import StepRegistry, parse_ether

PREFUND_AMOUNT = parse_ether(10)
DEX_ALLOWANCE = parse_ether(100)
INITIAL_LIQUIDITY = parse_ether(1)


def register(registry: StepRegistry) -> None:
    """Register the DEX step on *registry*."""

    @registry.register(
        "DEX",
        artifacts={"Balloons": "Balloons", "DEX": "DEX"},
        tags=["Balloons", "DEX"],
    )
    def deploy_dex(ctx: StepContext, deps: Mapping[str, ArtifactDescriptor]) -> None:
        """Deploy Balloons and the DEX; seed liquidity on ephemeral networks."""
        env = ctx.environment
        balloons = ctx.deploy("Balloons")
        dex = ctx.deploy("DEX", [balloons.handle])

        if env.prefund_address is not None:
            ctx.transfer("Balloons", env.prefund_address, PREFUND_AMOUNT)

        if env.is_ephemeral:
            if ctx.view("DEX", "totalLiquidity") > 0:
                ctx.note("DEX already holds liquidity; allowance left as is")
            else:
                ctx.approve("Balloons", dex.handle, DEX_ALLOWANCE)
            result = ctx.init("DEX", INITIAL_LIQUIDITY, value=INITIAL_LIQUIDITY)
            if result.outcome == Outcome.SUCCESS:
                ctx.note("DEX initialized")
        else:
            ctx.note(f"Balloons deployed at {balloons.handle}")
            ctx.note(f"DEX deployed at {dex.handle}")
            ctx.follow_up(
                f"approve and init the DEX at {dex.handle} manually from the UI "
                f"(skipped on live network {env.network})"
            )
