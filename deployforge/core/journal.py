"""Append-only, hash-chained action journal backed by SQLite.

Every action the executor performs is appended here with its classified
outcome.  The journal is an audit trail for operators (what did this run
actually do on a live network?); it is never replayed to decide what to do,
the deployment registry and the network are.

Design:
- Append-only: only `append()` method; no update, no delete.
- Hash-chained per run: each entry includes SHA-256 of the previous entry.
- WAL journal mode for concurrent readers.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from deployforge.core.hasher import compute_entry_hash, compute_params_hash
from deployforge.models.actions import ActionRecord


_CREATE_JOURNAL = """
CREATE TABLE IF NOT EXISTS action_journal (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id            TEXT NOT NULL UNIQUE,
    run_id              TEXT NOT NULL,
    network             TEXT NOT NULL,
    step                TEXT NOT NULL DEFAULT '',
    artifact            TEXT NOT NULL,
    action              TEXT NOT NULL,
    params_json         TEXT NOT NULL DEFAULT '{}',
    outcome             TEXT NOT NULL,
    detail              TEXT NOT NULL DEFAULT '',
    transaction_hash    TEXT NOT NULL DEFAULT '',
    timestamp_utc       TEXT NOT NULL,
    params_hash         TEXT NOT NULL DEFAULT '',
    previous_entry_hash TEXT NOT NULL DEFAULT '',
    entry_hash          TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_RUN = """
CREATE INDEX IF NOT EXISTS idx_journal_run ON action_journal(run_id, id);
"""

_CREATE_IDX_ARTIFACT = """
CREATE INDEX IF NOT EXISTS idx_journal_artifact ON action_journal(network, artifact, id);
"""

_COLUMNS = (
    "entry_id, run_id, network, step, artifact, action, params_json, outcome, "
    "detail, transaction_hash, timestamp_utc, params_hash, previous_entry_hash, entry_hash"
)


class JournalIntegrityError(RuntimeError):
    """Raised when the hash chain is broken."""


class ActionJournal:
    """Append-only, hash-chained journal of executed actions.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_JOURNAL)
            conn.execute(_CREATE_IDX_RUN)
            conn.execute(_CREATE_IDX_ARTIFACT)
            conn.commit()

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(self, record: ActionRecord) -> ActionRecord:
        """Seal *record* into the chain of its run and persist it.

        Returns the record with ``params_hash``, ``previous_entry_hash`` and
        ``entry_hash`` set.
        """
        params_hash = compute_params_hash(
            record.artifact, record.action.value, record.params
        )
        linked = record.model_copy(
            update={
                "params_hash": params_hash,
                "previous_entry_hash": self._get_latest_hash(record.run_id),
                "entry_hash": "",
            }
        )
        sealed = linked.model_copy(
            update={"entry_hash": compute_entry_hash(linked.model_dump(mode="json"))}
        )
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO action_journal ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    sealed.entry_id,
                    sealed.run_id,
                    sealed.network,
                    sealed.step,
                    sealed.artifact,
                    sealed.action.value,
                    json.dumps(sealed.params, sort_keys=True, default=str),
                    sealed.outcome.value,
                    sealed.detail,
                    sealed.transaction_hash,
                    sealed.timestamp_utc.isoformat()
                    if isinstance(sealed.timestamp_utc, datetime)
                    else sealed.timestamp_utc,
                    sealed.params_hash,
                    sealed.previous_entry_hash,
                    sealed.entry_hash,
                ),
            )
            conn.commit()
        return sealed

    def _get_latest_hash(self, run_id: str) -> str:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT entry_hash FROM action_journal WHERE run_id = ? ORDER BY id DESC LIMIT 1",
                (run_id,),
            ).fetchone()
        return row[0] if row else ""

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_run_entries(self, run_id: str) -> list[ActionRecord]:
        """Return all records of a run, ordered chronologically."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM action_journal WHERE run_id = ? ORDER BY id ASC",
                (run_id,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get_artifact_history(self, network: str, artifact: str) -> list[ActionRecord]:
        """Return every record touching *artifact* on *network*, across runs."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM action_journal "
                "WHERE network = ? AND artifact = ? ORDER BY id ASC",
                (network, artifact),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get_all_run_ids(self, network: str | None = None) -> list[str]:
        """Return run ids, most recent first."""
        query = "SELECT run_id, MAX(id) AS last FROM action_journal"
        params: tuple = ()
        if network is not None:
            query += " WHERE network = ?"
            params = (network,)
        query += " GROUP BY run_id ORDER BY last DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self, run_id: str) -> bool:
        """Verify the hash chain of a run.

        Returns True if valid, raises ``JournalIntegrityError`` otherwise.
        """
        prev_hash = ""
        for record in self.get_run_entries(run_id):
            if record.previous_entry_hash != prev_hash:
                raise JournalIntegrityError(
                    f"Chain broken at entry {record.entry_id}: "
                    f"expected previous_hash={prev_hash!r}, "
                    f"got {record.previous_entry_hash!r}"
                )
            expected = compute_entry_hash(record.model_dump(mode="json"))
            if record.entry_hash != expected:
                raise JournalIntegrityError(
                    f"Tampered entry {record.entry_id}: "
                    f"expected hash={expected!r}, got {record.entry_hash!r}"
                )
            prev_hash = record.entry_hash
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row: tuple) -> ActionRecord:
        (
            entry_id,
            run_id,
            network,
            step,
            artifact,
            action,
            params_json,
            outcome,
            detail,
            transaction_hash,
            timestamp_utc,
            params_hash,
            previous_entry_hash,
            entry_hash,
        ) = row
        return ActionRecord(
            entry_id=entry_id,
            run_id=run_id,
            network=network,
            step=step,
            artifact=artifact,
            action=action,
            params=json.loads(params_json),
            outcome=outcome,
            detail=detail,
            transaction_hash=transaction_hash,
            timestamp_utc=timestamp_utc,
            params_hash=params_hash,
            previous_entry_hash=previous_entry_hash,
            entry_hash=entry_hash,
        )
