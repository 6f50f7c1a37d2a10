"""End-to-end provisioning scenarios against the simulated chain.

These tests exercise the Orchestrator, the built-in steps, the
DeploymentRegistry, the ActionExecutor and the ActionJournal together.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from deployforge.config import DeployConfig
from deployforge.core.errors import FatalActionError, InvalidAddressError
from deployforge.core.orchestrator import Orchestrator
from deployforge.models.actions import ActionKind, Outcome
from deployforge.models.steps import StepState
from deployforge.network.simulated import DEFAULT_ACCOUNTS
from deployforge.steps.dex import DEX_ALLOWANCE, INITIAL_LIQUIDITY, PREFUND_AMOUNT
from deployforge.steps.token_vendor import VENDOR_STOCK

DEPLOYER = DEFAULT_ACCOUNTS[0]
FRONTEND = "0x30228d57FF1933cee0C0F88ED7AA5f306774B162"
TESTER = DEFAULT_ACCOUNTS[2]


def _snapshot(path: Path) -> dict[str, str]:
    return {p.name: p.read_text() for p in sorted(path.glob("*.json"))}


class TestTokenVendor:
    """YourToken -> Vendor -> VendorOwnership."""

    def test_fresh_run(self, make_orchestrator, chain):
        orch = make_orchestrator()
        report = orch.run(tags=["Vendor"])
        assert report.succeeded
        token = report.artifacts["YourToken"].handle
        vendor = report.artifacts["Vendor"].handle
        assert chain.call(vendor, "yourToken", []) == token.lower()
        assert chain.call(token, "balanceOf", [vendor]) == VENDOR_STOCK
        # no override: ownership stays with the deployer
        assert chain.call(vendor, "owner", []) == DEPLOYER.lower()

    def test_rerun_is_noop(self, make_orchestrator, count_sent):
        make_orchestrator().run(tags=["Vendor"])
        report = make_orchestrator().run(tags=["Vendor"])
        assert report.succeeded
        assert count_sent("deploy") == 2
        assert count_sent("transfer") == 1
        assert {r.outcome for r in report.records} == {Outcome.ALREADY_SATISFIED}

    def test_transient_transfer_failure_does_not_abort(self, make_orchestrator, chain):
        chain.schedule_failure("transfer", reason="nonce too low")
        report = make_orchestrator().run(tags=["Vendor"])
        assert report.succeeded
        transfers = [r for r in report.records if r.action == ActionKind.TRANSFER]
        assert [r.outcome for r in transfers] == [Outcome.FAILED]

        # the next run tops the vendor up
        again = make_orchestrator().run(tags=["Vendor"])
        transfers = [r for r in again.records if r.action == ActionKind.TRANSFER]
        assert [r.outcome for r in transfers] == [Outcome.SUCCESS]
        vendor = again.artifacts["Vendor"].handle
        token = again.artifacts["YourToken"].handle
        assert chain.call(token, "balanceOf", [vendor]) == VENDOR_STOCK


class TestOwnerOverride:
    def test_valid_override_transfers_once(self, make_orchestrator, chain, count_sent):
        report = make_orchestrator(owner_override=FRONTEND).run()
        vendor = report.artifacts["Vendor"].handle
        assert chain.call(vendor, "owner", []) == FRONTEND.lower()

        again = make_orchestrator(owner_override=FRONTEND).run()
        assert again.succeeded
        assert count_sent("transferOwnership") == 1

    def test_malformed_override_rejected_up_front(self, make_orchestrator, chain, tmp_dir):
        with pytest.raises(InvalidAddressError):
            make_orchestrator(owner_override="not-an-address")
        assert chain.sent == []
        assert not (tmp_dir / "deployments").exists()

    def test_override_from_frontend_address_env(self, monkeypatch, make_orchestrator, chain):
        monkeypatch.setenv("FRONTEND_ADDRESS", FRONTEND)
        report = make_orchestrator().run(tags=["Vendor"])
        vendor = report.artifacts["Vendor"].handle
        assert chain.call(vendor, "owner", []) == FRONTEND.lower()

    def test_failed_handoff_aborts(self, make_orchestrator, chain):
        chain.schedule_failure("transferOwnership", reason="replacement fee too low")
        orch = make_orchestrator(owner_override=FRONTEND)
        with pytest.raises(FatalActionError):
            orch.run()
        states = orch.get_states()
        assert states["VendorOwnership"] == StepState.FAILED
        assert states["Vendor"] == StepState.PASSED
        # DEX is independent of the vendor chain and had not started
        assert states["DEX"] == StepState.NOT_STARTED


class TestDexBranching:
    def test_ephemeral_initializes_liquidity(self, make_orchestrator, chain):
        report = make_orchestrator().run()
        assert report.succeeded
        assert report.ephemeral is True
        dex = report.artifacts["DEX"].handle
        balloons = report.artifacts["Balloons"].handle
        assert chain.call(dex, "totalLiquidity", []) == INITIAL_LIQUIDITY
        assert chain.call(balloons, "balanceOf", [dex]) == INITIAL_LIQUIDITY
        assert chain.call(balloons, "allowance", [DEPLOYER, dex]) == DEX_ALLOWANCE - INITIAL_LIQUIDITY
        assert chain.balance(dex) == INITIAL_LIQUIDITY
        assert report.follow_ups == []

    def test_ephemeral_rerun_init_already_satisfied(self, make_orchestrator, count_sent):
        make_orchestrator().run()
        report = make_orchestrator().run()
        assert report.succeeded
        init = [r for r in report.records if r.action == ActionKind.INIT]
        assert [r.outcome for r in init] == [Outcome.ALREADY_SATISFIED]
        assert not [r for r in report.records if r.action == ActionKind.APPROVE]
        assert count_sent("init") == 1
        assert count_sent("approve") == 1
        assert count_sent("deploy") == 4

    def test_persistent_network_skips_initialization(self, make_config, chain, count_sent):
        orch = Orchestrator(config=make_config(network="sepolia"), client=chain)
        report = orch.run()
        assert report.succeeded
        assert report.ephemeral is False
        assert count_sent("approve") == 0
        assert count_sent("init") == 0
        assert chain.call(report.artifacts["DEX"].handle, "totalLiquidity", []) == 0
        assert len(report.follow_ups) == 1
        assert report.artifacts["DEX"].handle in report.follow_ups[0]

    def test_prefund_address(self, make_orchestrator, chain):
        report = make_orchestrator(prefund_address=TESTER).run(tags=["DEX"])
        balloons = report.artifacts["Balloons"].handle
        assert chain.call(balloons, "balanceOf", [TESTER]) == PREFUND_AMOUNT


class TestIdempotency:
    def test_full_pipeline_twice(self, make_orchestrator, tmp_dir, count_sent):
        first = make_orchestrator().run()
        records_dir = tmp_dir / "deployments" / "localhost"
        before = _snapshot(records_dir)
        deploys = count_sent("deploy")

        second = make_orchestrator().run()
        assert second.succeeded
        assert _snapshot(records_dir) == before
        assert count_sent("deploy") == deploys
        assert {k: v.handle for k, v in second.artifacts.items()} == {
            k: v.handle for k, v in first.artifacts.items()
        }

    def test_networks_are_separate(self, make_orchestrator, make_config, chain, tmp_dir):
        make_orchestrator().run(tags=["YourToken"])
        Orchestrator(config=make_config(network="sepolia"), client=chain).run(tags=["YourToken"])
        assert (tmp_dir / "deployments" / "localhost" / "YourToken.json").exists()
        assert (tmp_dir / "deployments" / "sepolia" / "YourToken.json").exists()


class TestCrashRecovery:
    def test_unrecorded_deploy_is_adopted(self, make_orchestrator, chain, count_sent):
        orch = make_orchestrator()
        # simulate a crash after submitting, before recording
        tx = chain.send_deploy("YourToken", [], sender=DEPLOYER)
        orch.registry.mark_pending("YourToken", "YourToken", tx, [])

        report = orch.run(tags=["YourToken"])
        assert report.artifacts["YourToken"].handle == chain.get_receipt(tx).contract_address
        assert count_sent("deploy") == 1

    def test_timed_out_deploy_is_awaited_not_duplicated(
        self, make_orchestrator, chain, count_sent
    ):
        chain.schedule_failure("deploy", timeout=True)
        first = make_orchestrator()
        with pytest.raises(FatalActionError):
            first.run()
        assert first.get_states()["YourToken"] == StepState.FAILED

        second = make_orchestrator()
        with pytest.raises(FatalActionError, match="still unconfirmed"):
            second.run()
        assert second.get_states()["Vendor"] == StepState.BLOCKED
        assert count_sent("deploy") == 1

        [tx] = chain.release_held()
        report = make_orchestrator().run()
        assert report.succeeded
        assert report.artifacts["YourToken"].transaction_hash == tx
        assert count_sent("deploy") == 4


class TestPersistedChain:
    def test_local_chain_survives_restart(self, make_config):
        config: DeployConfig = make_config()
        first = Orchestrator(config=config).run()
        second = Orchestrator(config=config).run()
        assert second.succeeded
        assert second.artifacts["DEX"].handle == first.artifacts["DEX"].handle
        assert {r.outcome for r in second.records if r.action == ActionKind.DEPLOY} == {
            Outcome.ALREADY_SATISFIED
        }


class TestJournal:
    def test_runs_are_journaled_and_verified(self, make_orchestrator):
        first = make_orchestrator()
        first.run()
        second = make_orchestrator()
        second.run()
        assert first.verify_journal() and second.verify_journal()
        history = second.journal.get_artifact_history("localhost", "DEX")
        assert [r.run_id for r in history if r.action == ActionKind.DEPLOY] == [
            first.run_id,
            second.run_id,
        ]
