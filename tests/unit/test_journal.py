"""Tests for the ActionJournal — append-only, hash-chained, tamper-evident."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from deployforge.core.journal import ActionJournal, JournalIntegrityError
from deployforge.models.actions import ActionKind, ActionRecord, Outcome


def _record(run_id: str = "run-1", artifact: str = "YourToken", **kw) -> ActionRecord:
    defaults = {
        "network": "localhost",
        "step": artifact,
        "action": ActionKind.DEPLOY,
        "params": {"kind": artifact, "args": []},
        "outcome": Outcome.SUCCESS,
    }
    defaults.update(kw)
    return ActionRecord(run_id=run_id, artifact=artifact, **defaults)


class TestActionJournal:
    def test_append_seals_entry(self, journal: ActionJournal):
        sealed = journal.append(_record())
        assert sealed.entry_hash != ""
        assert sealed.params_hash != ""
        assert sealed.previous_entry_hash == ""  # first entry

    def test_hash_chain_links(self, journal: ActionJournal):
        e1 = journal.append(_record())
        e2 = journal.append(_record(artifact="Vendor"))
        assert e2.previous_entry_hash == e1.entry_hash

    def test_chains_are_per_run(self, journal: ActionJournal):
        journal.append(_record(run_id="run-1"))
        first_of_run_2 = journal.append(_record(run_id="run-2"))
        assert first_of_run_2.previous_entry_hash == ""

    def test_round_trip(self, journal: ActionJournal):
        journal.append(
            _record(
                action=ActionKind.TRANSFER,
                params={"to": "0x" + "a" * 40, "amount": 1000 * 10**18},
                outcome=Outcome.ALREADY_SATISFIED,
                detail="goal state already holds",
            )
        )
        (entry,) = journal.get_run_entries("run-1")
        assert entry.action == ActionKind.TRANSFER
        assert entry.outcome == Outcome.ALREADY_SATISFIED
        assert entry.params["amount"] == 1000 * 10**18

    def test_verify_chain_valid(self, journal: ActionJournal):
        journal.append(_record())
        journal.append(_record(artifact="Vendor"))
        assert journal.verify_chain("run-1") is True

    def test_verify_chain_empty(self, journal: ActionJournal):
        assert journal.verify_chain("nonexistent") is True

    def test_tampering_detected(self, journal: ActionJournal, tmp_dir: Path):
        journal.append(_record())
        journal.append(_record(artifact="Vendor"))
        with sqlite3.connect(str(tmp_dir / "journal.db")) as conn:
            conn.execute("UPDATE action_journal SET outcome = 'failed' WHERE id = 1")
            conn.commit()
        with pytest.raises(JournalIntegrityError):
            journal.verify_chain("run-1")

    def test_artifact_history_spans_runs(self, journal: ActionJournal):
        journal.append(_record(run_id="run-1"))
        journal.append(_record(run_id="run-2", outcome=Outcome.ALREADY_SATISFIED))
        journal.append(_record(run_id="run-2", artifact="Vendor"))
        history = journal.get_artifact_history("localhost", "YourToken")
        assert [r.outcome for r in history] == [Outcome.SUCCESS, Outcome.ALREADY_SATISFIED]

    def test_run_ids_most_recent_first(self, journal: ActionJournal):
        journal.append(_record(run_id="run-1"))
        journal.append(_record(run_id="run-2", network="sepolia"))
        assert journal.get_all_run_ids() == ["run-2", "run-1"]
        assert journal.get_all_run_ids("sepolia") == ["run-2"]

    def test_entry_id_unique(self, journal: ActionJournal):
        e1 = journal.append(_record())
        e2 = journal.append(_record())
        assert e1.entry_id != e2.entry_id
