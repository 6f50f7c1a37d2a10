"""Deployment record store — one JSON file per (network, artifact).

Storage layout::

    {base_path}/{network}/{Artifact}.json            recorded deployments
    {base_path}/{network}/.pending/{Artifact}.json   submitted, not yet recorded

Files are pretty-printed with sorted keys so they can be committed and
diffed across runs.  Every write goes to a temporary file first and is moved
into place with ``os.replace``, so a reader never sees a half-written record.

The registry is the sole source of truth on restart: a run never replays its
action history, it asks the registry what already exists.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from deployforge.models.artifacts import ArtifactDescriptor, PendingDeployment

logger = logging.getLogger(__name__)


class RegistryError(RuntimeError):
    """Base class for deployment record store failures."""


class DuplicateDeploymentError(RegistryError):
    """Raised when a second, different handle is recorded for one artifact."""


class RegistryCorruptError(RegistryError):
    """Raised when a stored record cannot be parsed."""


class DeploymentRegistry:
    """Per-network deployment records with lookup-or-create semantics.

    Parameters
    ----------
    base_path:
        Root directory of the record store (shared by all networks).
    network:
        The network whose records this instance reads and writes.
    """

    def __init__(self, base_path: Path, network: str) -> None:
        self._network = network
        self._dir = Path(base_path) / network
        self._pending_dir = self._dir / ".pending"

    @property
    def network(self) -> str:
        return self._network

    @property
    def path(self) -> Path:
        return self._dir

    def _record_path(self, name: str) -> Path:
        return self._dir / f"{name}.json"

    def pending_path(self, name: str) -> Path:
        return self._pending_dir / f"{name}.json"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, name: str) -> ArtifactDescriptor | None:
        """Return the recorded descriptor for *name*, or None if never deployed."""
        path = self._record_path(name)
        if not path.exists():
            return None
        return self._read_record(path)

    def exists(self, name: str) -> bool:
        return self._record_path(name).exists()

    def list(self) -> list[ArtifactDescriptor]:
        """Return every recorded descriptor for this network, sorted by name."""
        if not self._dir.exists():
            return []
        return [self._read_record(p) for p in sorted(self._dir.glob("*.json"))]

    # ------------------------------------------------------------------
    # Record
    # ------------------------------------------------------------------

    def record(self, descriptor: ArtifactDescriptor) -> ArtifactDescriptor:
        """Persist a deployed descriptor.

        Recording the same handle twice is a no-op.  Recording a different
        handle for an already-recorded name raises
        ``DuplicateDeploymentError``; there is at most one live handle per
        (network, name).
        """
        if not descriptor.deployed:
            raise ValueError(f"Cannot record {descriptor.name!r} without a handle")

        existing = self.resolve(descriptor.name)
        if existing is not None:
            if existing.handle.lower() == descriptor.handle.lower():
                return existing
            raise DuplicateDeploymentError(
                f"{descriptor.name} is already recorded on {self._network} at "
                f"{existing.handle}; refusing to record {descriptor.handle}"
            )

        if descriptor.deployed_at is None:
            descriptor = descriptor.model_copy(
                update={"deployed_at": datetime.now(timezone.utc)}
            )
        self._write_json(self._record_path(descriptor.name), _to_record(descriptor))
        logger.debug("Recorded %s at %s on %s", descriptor.name, descriptor.handle, self._network)
        return descriptor

    # ------------------------------------------------------------------
    # Pending deployments
    # ------------------------------------------------------------------

    def mark_pending(
        self, name: str, kind: str, transaction_hash: str, constructor_args: list[Any]
    ) -> PendingDeployment:
        """Note a submitted creation before waiting for it to confirm."""
        pending = PendingDeployment(
            name=name,
            kind=kind,
            transaction_hash=transaction_hash,
            constructor_args=list(constructor_args),
            submitted_at=datetime.now(timezone.utc),
        )
        self._write_json(self.pending_path(name), pending.model_dump(mode="json"))
        return pending

    def pending(self, name: str) -> PendingDeployment | None:
        path = self.pending_path(name)
        if not path.exists():
            return None
        try:
            return PendingDeployment(**json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise RegistryCorruptError(f"Unreadable pending record {path}: {exc}") from exc

    def clear_pending(self, name: str) -> None:
        self.pending_path(name).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_record(self, path: Path) -> ArtifactDescriptor:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return ArtifactDescriptor(
                name=raw["name"],
                kind=raw["kind"],
                handle=raw["address"],
                constructor_args=raw.get("args", []),
                transaction_hash=raw.get("transactionHash", ""),
                block_number=raw.get("blockNumber"),
                deployed_at=raw.get("deployedAt"),
            )
        except (json.JSONDecodeError, KeyError, ValidationError) as exc:
            raise RegistryCorruptError(f"Unreadable deployment record {path}: {exc}") from exc

    @staticmethod
    def _write_json(path: Path, payload: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        os.replace(tmp, path)


def _to_record(descriptor: ArtifactDescriptor) -> dict[str, Any]:
    return {
        "name": descriptor.name,
        "kind": descriptor.kind,
        "address": descriptor.handle,
        "args": descriptor.constructor_args,
        "transactionHash": descriptor.transaction_hash,
        "blockNumber": descriptor.block_number,
        "deployedAt": descriptor.deployed_at.isoformat() if descriptor.deployed_at else None,
    }
