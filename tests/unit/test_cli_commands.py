"""Tests for the deployforge CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from deployforge.cli.app import app
from deployforge.network.simulated import SimulatedChain

runner = CliRunner()

FRONTEND = "0x30228d57FF1933cee0C0F88ED7AA5f306774B162"
CHAIN_STATE = Path(".deployforge/chains/localhost.json")


class TestDeployCommand:
    def test_deploy_localhost(self):
        result = runner.invoke(app, ["deploy"])
        assert result.exit_code == 0, result.output
        assert "All steps passed" in result.output
        assert Path("deployments/localhost/YourToken.json").exists()
        assert Path("deployments/localhost/DEX.json").exists()

    def test_second_deploy_changes_nothing(self):
        runner.invoke(app, ["deploy"])
        before = {p.name: p.read_text() for p in Path("deployments/localhost").glob("*.json")}
        result = runner.invoke(app, ["deploy"])
        after = {p.name: p.read_text() for p in Path("deployments/localhost").glob("*.json")}
        assert result.exit_code == 0, result.output
        assert before == after

    def test_owner_from_frontend_address(self):
        result = runner.invoke(app, ["deploy", "--tags", "Vendor"], env={"FRONTEND_ADDRESS": FRONTEND})
        assert result.exit_code == 0, result.output
        chain = SimulatedChain(CHAIN_STATE)
        vendor = Path("deployments/localhost/Vendor.json")
        assert vendor.exists()
        assert not Path("deployments/localhost/DEX.json").exists()
        address = json.loads(vendor.read_text())["address"]
        assert chain.call(address, "owner", []) == FRONTEND.lower()

    def test_invalid_owner_exits_before_deploying(self):
        result = runner.invoke(app, ["deploy", "--owner", "not-an-address"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert not Path("deployments").exists()

    def test_persistent_network_without_client(self):
        result = runner.invoke(app, ["deploy", "--network", "sepolia"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_simulated_rehearsal_on_persistent_network(self):
        result = runner.invoke(app, ["deploy", "--network", "sepolia", "--simulate"])
        assert result.exit_code == 0, result.output
        assert "Manual follow-up" in result.output
        assert Path("deployments/sepolia/DEX.json").exists()

    def test_unknown_tag(self):
        result = runner.invoke(app, ["deploy", "--tags", "Nope"])
        assert result.exit_code == 1
        assert "Run aborted" in result.output


class TestStatusCommand:
    def test_empty(self):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "No deployments recorded for localhost" in result.output

    def test_after_deploy(self):
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "YourToken" in result.output

    def test_unconfirmed_deploy_listed(self):
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        marker = Path("deployments/localhost/.pending/Vendor.json")
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text(json.dumps({
            "name": "Vendor",
            "kind": "Vendor",
            "transaction_hash": "0x" + "ab" * 32,
            "constructor_args": [],
            "submitted_at": "2026-01-01T00:00:00+00:00",
        }))
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0, result.output
        assert "Unconfirmed deploy" in result.output

    def test_corrupt_pending_marker(self):
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        marker = Path("deployments/localhost/.pending/YourToken.json")
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text("{broken")
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Registry error" in result.output


class TestHistoryCommand:
    def test_empty_journal(self):
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "The journal is empty" in result.output

    def test_latest_run_verified(self):
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0, result.output
        assert "Journal chain verified" in result.output

    def test_list_runs(self):
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        result = runner.invoke(app, ["history", "--list"])
        lines = [line for line in result.output.splitlines() if line.startswith("df-")]
        assert len(lines) == 2

    def test_unknown_run(self):
        runner.invoke(app, ["deploy", "--tags", "YourToken"])
        result = runner.invoke(app, ["history", "--run-id", "df-missing"])
        assert result.exit_code == 1


class TestClassifyCommand:
    def test_ephemeral(self):
        result = runner.invoke(app, ["classify", "hardhat"])
        assert "hardhat: ephemeral" in result.output

    def test_persistent(self):
        result = runner.invoke(app, ["classify", "mainnet"])
        assert "mainnet: persistent" in result.output

    def test_default_network(self):
        result = runner.invoke(app, ["classify"])
        assert "localhost: ephemeral" in result.output
