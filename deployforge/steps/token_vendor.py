"""Token vendor provisioning: the ERC-20 token and the vendor that sells it.

- ``YourToken`` deploys the token; the full supply is minted to the deployer.
- ``Vendor`` deploys the vendor bound to the token and stocks it with
  1000 tokens.  On a re-run the stock is already in place and the transfer
  resolves as already satisfied.
- ``VendorOwnership`` hands the vendor to the operator's front-end address
  when ``DEPLOYFORGE_OWNER_OVERRIDE`` / ``FRONTEND_ADDRESS`` is set.
"""

from __future__ import annotations

from collections.abc import Mapping

from deployforge.core.context import StepContext
from deployforge.models.actions import Outcome
from deployforge.models.artifacts import ArtifactDescriptor
from deployforge.steps.base import StepRegistry, parse_ether

VENDOR_STOCK = parse_ether(1000)


def register(registry: StepRegistry) -> None:
    """Register the token vendor steps on *registry*."""

    @registry.register(
        "YourToken",
        artifacts={"YourToken": "YourToken"},
        tags=["YourToken"],
    )
    def deploy_your_token(ctx: StepContext, deps: Mapping[str, ArtifactDescriptor]) -> None:
        """Deploy the ERC-20 token."""
        ctx.deploy("YourToken")

    @registry.register(
        "Vendor",
        dependencies=["YourToken"],
        artifacts={"Vendor": "Vendor"},
        tags=["Vendor"],
    )
    def deploy_vendor(ctx: StepContext, deps: Mapping[str, ArtifactDescriptor]) -> None:
        """Deploy the vendor and stock it with tokens."""
        token = deps["YourToken"]
        vendor = ctx.deploy("Vendor", [token.handle])
        ctx.transfer("YourToken", vendor.handle, VENDOR_STOCK)

    @registry.register(
        "VendorOwnership",
        dependencies=["Vendor"],
        tags=["Vendor"],
    )
    def hand_over_vendor(ctx: StepContext, deps: Mapping[str, ArtifactDescriptor]) -> None:
        """Transfer vendor ownership to the configured front-end address."""
        new_owner = ctx.environment.owner_override
        if new_owner is None:
            ctx.note("no owner override configured; vendor ownership unchanged")
            return
        result = ctx.transfer_ownership("Vendor", new_owner)
        if result.outcome == Outcome.SUCCESS:
            ctx.note(f"vendor ownership transferred to {new_owner}")
