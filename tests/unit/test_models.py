"""Unit tests for the Pydantic models in deployforge.models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deployforge.core.errors import ConfigurationError
from deployforge.models import (
    ARTIFACT_KINDS,
    CRITICAL_ACTIONS,
    ActionKind,
    ArtifactDescriptor,
    Environment,
    NetworkPolicy,
    RunReport,
    StepState,
    get_artifact_kind,
    is_address,
)


class TestActionKind:
    def test_critical_actions(self):
        assert CRITICAL_ACTIONS == {
            ActionKind.DEPLOY,
            ActionKind.INIT,
            ActionKind.TRANSFER_OWNERSHIP,
        }
        assert ActionKind.TRANSFER.critical is False
        assert ActionKind.APPROVE.critical is False

    def test_method_names(self):
        assert ActionKind.TRANSFER_OWNERSHIP.method == "transferOwnership"
        assert ActionKind.INIT.method == "init"


class TestArtifactKinds:
    def test_catalogue(self):
        assert set(ARTIFACT_KINDS) == {"YourToken", "Balloons", "Vendor", "DEX"}

    def test_supports(self):
        vendor = get_artifact_kind("Vendor")
        assert vendor.supports(ActionKind.DEPLOY)
        assert vendor.supports(ActionKind.TRANSFER_OWNERSHIP)
        assert not vendor.supports(ActionKind.INIT)
        assert [p.type for p in vendor.constructor] == ["address"]

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            get_artifact_kind("Widget")


class TestDescriptors:
    def test_empty_descriptor_not_deployed(self):
        assert ArtifactDescriptor(name="DEX", kind="DEX").deployed is False

    def test_frozen(self):
        descriptor = ArtifactDescriptor(name="DEX", kind="DEX", handle="0x" + "1" * 40)
        with pytest.raises(ValidationError):
            descriptor.handle = "0x" + "2" * 40


class TestEnvironment:
    def test_is_address(self):
        assert is_address("0x" + "aB" * 20)
        assert not is_address("0x" + "a" * 39)
        assert not is_address("not-an-address")
        assert not is_address(None)

    def test_policy_label(self):
        assert NetworkPolicy(ephemeral=True).label == "ephemeral"
        assert NetworkPolicy().label == "persistent"

    def test_environment_frozen(self):
        env = Environment(network="localhost", policy=NetworkPolicy(ephemeral=True), deployer="0x" + "1" * 40)
        assert env.is_ephemeral
        with pytest.raises(ValidationError):
            env.network = "mainnet"


class TestRunReport:
    def test_succeeded_requires_all_passed(self):
        report = RunReport(
            run_id="r", network="localhost", ephemeral=True, deployer="0x" + "1" * 40,
            states={"A": StepState.PASSED, "B": StepState.BLOCKED},
        )
        assert report.succeeded is False
        report.states["B"] = StepState.PASSED
        assert report.succeeded is True

    def test_error_means_not_succeeded(self):
        report = RunReport(
            run_id="r", network="localhost", ephemeral=True, deployer="0x" + "1" * 40,
            error="boom",
        )
        assert report.succeeded is False
