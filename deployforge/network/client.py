"""Network client protocol — the black-box "submit, await finality" primitive.

Any object with these methods satisfies ``NetworkClient``.  The provisioning
core never touches nonces, gas, or signing; it submits one action, blocks on
its receipt, and classifies the outcome.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


class NetworkError(RuntimeError):
    """Raised by a client when an action cannot be confirmed."""


class TransactionRejected(NetworkError):
    """The network rejected or reverted the transaction.

    Parameters
    ----------
    reason:
        The revert reason or rejection message reported by the network.
    transaction_hash:
        Hash of the rejected transaction, if it was ever broadcast.
    """

    def __init__(self, reason: str, transaction_hash: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.transaction_hash = transaction_hash


class TransactionTimeout(NetworkError):
    """No receipt arrived within the confirmation timeout."""

    def __init__(self, transaction_hash: str, timeout: float) -> None:
        super().__init__(
            f"Transaction {transaction_hash} not confirmed within {timeout:g}s"
        )
        self.transaction_hash = transaction_hash
        self.timeout = timeout


class Receipt(BaseModel):
    """Confirmation of a mined transaction."""

    model_config = ConfigDict(frozen=True)

    transaction_hash: str
    status: bool
    block_number: int
    contract_address: str | None = None
    revert_reason: str = ""


@runtime_checkable
class NetworkClient(Protocol):
    """Protocol for ledger/network backends."""

    def accounts(self) -> list[str]:
        """Return the identities this client can sign for."""
        ...

    def send_deploy(self, kind: str, args: list[Any], *, sender: str) -> str:
        """Broadcast a creation transaction and return its hash."""
        ...

    def send_transaction(
        self,
        to: str,
        method: str,
        args: list[Any],
        *,
        sender: str,
        value: int = 0,
    ) -> str:
        """Broadcast a state-changing call and return its hash."""
        ...

    def wait_for_receipt(self, transaction_hash: str, timeout: float) -> Receipt:
        """Block until the transaction is final.

        Raises ``TransactionRejected`` for a reverted transaction and
        ``TransactionTimeout`` if finality is not reached in time.
        """
        ...

    def get_receipt(self, transaction_hash: str) -> Receipt | None:
        """Return the receipt of a known transaction, or None."""
        ...

    def call(self, to: str, method: str, args: list[Any]) -> Any:
        """Read-only call against a deployed artifact."""
        ...
