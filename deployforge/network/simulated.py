"""Deterministic, auto-mining in-process chain for local provisioning.

``SimulatedChain`` satisfies ``NetworkClient`` and implements just enough of
the artifact kinds in the catalogue (ERC-20 style tokens, the token vendor,
and the DEX) to exercise every provisioning path: creation, value transfers,
allowances, one-time initialization, and ownership handoff.

Every transaction is mined immediately into its own block.  A reverted
transaction is still mined (it consumes the sender's nonce) and its receipt
carries ``status=False`` and the revert reason.

State can be persisted to a JSON file so that a "local" chain survives
process restarts the same way a long-running development node does.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from deployforge.core.hasher import canonical_json_bytes, sha256_hex
from deployforge.network.client import (
    NetworkError,
    Receipt,
    TransactionRejected,
    TransactionTimeout,
)

logger = logging.getLogger(__name__)

ETHER = 10**18
ZERO_ADDRESS = "0x" + "0" * 40

# Well-known development accounts, in the order development nodes expose them.
DEFAULT_ACCOUNTS: list[str] = [
    "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
    "0x90F79bf6EB2c4f870365E785982E1f101E93b906",
]

_INITIAL_BALANCE = 10_000 * ETHER
_TOKEN_SUPPLY = 1000 * ETHER


class _Revert(Exception):
    """Internal: a contract-level revert inside the simulated VM."""


def _require(condition: bool, reason: str) -> None:
    if not condition:
        raise _Revert(reason)


def _key(address: Any) -> str:
    return str(address).lower()


# ---------------------------------------------------------------------------
# Artifact behaviours
# ---------------------------------------------------------------------------


class _Token:
    """Fixed-supply ERC-20: mints the whole supply to the deployer."""

    @staticmethod
    def construct(sender: str, args: list[Any]) -> dict[str, Any]:
        _require(not args, "Token: unexpected constructor arguments")
        return {
            "balances": {_key(sender): _TOKEN_SUPPLY},
            "allowances": {},
            "totalSupply": _TOKEN_SUPPLY,
        }

    @staticmethod
    def transact(
        chain: SimulatedChain, state: dict, sender: str, method: str, args: list, value: int
    ) -> Any:
        _require(value == 0, "Token: non-payable")
        if method == "transfer":
            to, amount = args
            return _Token.move(state, sender, to, int(amount))
        if method == "approve":
            spender, amount = args
            state["allowances"][f"{_key(sender)}:{_key(spender)}"] = int(amount)
            return True
        if method == "transferFrom":
            owner, to, amount = args
            allowance_key = f"{_key(owner)}:{_key(sender)}"
            allowance = state["allowances"].get(allowance_key, 0)
            _require(allowance >= int(amount), "ERC20InsufficientAllowance")
            state["allowances"][allowance_key] = allowance - int(amount)
            return _Token.move(state, owner, to, int(amount))
        raise _Revert(f"Token: unknown method {method}")

    @staticmethod
    def move(state: dict, sender: str, to: str, amount: int) -> bool:
        _require(_key(to) != ZERO_ADDRESS, "ERC20InvalidReceiver")
        balances = state["balances"]
        _require(balances.get(_key(sender), 0) >= amount, "ERC20InsufficientBalance")
        balances[_key(sender)] = balances.get(_key(sender), 0) - amount
        balances[_key(to)] = balances.get(_key(to), 0) + amount
        return True

    @staticmethod
    def view(state: dict, method: str, args: list) -> Any:
        if method == "balanceOf":
            return state["balances"].get(_key(args[0]), 0)
        if method == "allowance":
            return state["allowances"].get(f"{_key(args[0])}:{_key(args[1])}", 0)
        if method == "totalSupply":
            return state["totalSupply"]
        if method == "decimals":
            return 18
        raise NetworkError(f"Token has no view {method!r}")


class _Vendor:
    """Ownable token vendor bound to a single token."""

    @staticmethod
    def construct(sender: str, args: list[Any]) -> dict[str, Any]:
        _require(len(args) == 1, "Vendor: expected token address")
        return {"owner": _key(sender), "yourToken": _key(args[0])}

    @staticmethod
    def transact(
        chain: SimulatedChain, state: dict, sender: str, method: str, args: list, value: int
    ) -> Any:
        _require(value == 0, "Vendor: non-payable")
        if method == "transferOwnership":
            (new_owner,) = args
            _require(_key(sender) == state["owner"], "OwnableUnauthorizedAccount")
            _require(_key(new_owner) != ZERO_ADDRESS, "OwnableInvalidOwner")
            state["owner"] = _key(new_owner)
            return None
        raise _Revert(f"Vendor: unknown method {method}")

    @staticmethod
    def view(state: dict, method: str, args: list) -> Any:
        if method in ("owner", "yourToken"):
            return state[method]
        raise NetworkError(f"Vendor has no view {method!r}")


class _Dex:
    """Constant-product exchange; ``init`` seeds the one-time liquidity."""

    @staticmethod
    def construct(sender: str, args: list[Any]) -> dict[str, Any]:
        _require(len(args) == 1, "DEX: expected token address")
        return {"token": _key(args[0]), "totalLiquidity": 0, "liquidity": {}}

    @staticmethod
    def transact(
        chain: SimulatedChain, state: dict, sender: str, method: str, args: list, value: int
    ) -> Any:
        if method == "init":
            (tokens,) = args
            _require(state["totalLiquidity"] == 0, "DEX: init - already has liquidity")
            state["totalLiquidity"] = value
            state["liquidity"][_key(sender)] = value
            chain._internal_call(
                state["token"], "transferFrom", [sender, state["self"], int(tokens)],
                sender=state["self"],
            )
            return state["totalLiquidity"]
        raise _Revert(f"DEX: unknown method {method}")

    @staticmethod
    def view(state: dict, method: str, args: list) -> Any:
        if method in ("totalLiquidity", "token"):
            return state[method]
        raise NetworkError(f"DEX has no view {method!r}")


_BEHAVIOURS: dict[str, type] = {
    "YourToken": _Token,
    "Balloons": _Token,
    "Vendor": _Vendor,
    "DEX": _Dex,
}


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class SimulatedChain:
    """Auto-mining in-process chain.

    Parameters
    ----------
    state_path:
        JSON file to load state from and save state to after every mined
        transaction.  Purely in-memory when None.
    accounts:
        Signer identities.  Defaults to the well-known development accounts.
    """

    chain_id = 31337

    def __init__(
        self, state_path: Path | None = None, *, accounts: list[str] | None = None
    ) -> None:
        self._state_path = Path(state_path) if state_path else None
        self._accounts = list(accounts or DEFAULT_ACCOUNTS)
        self._block = 0
        self._nonces: dict[str, int] = {}
        self._eth: dict[str, int] = {_key(a): _INITIAL_BALANCE for a in self._accounts}
        self._contracts: dict[str, dict[str, Any]] = {}
        self._receipts: dict[str, dict[str, Any]] = {}
        # tx hash -> deferred mining of a transaction held back by a timeout fault
        self._held: dict[str, Callable[[], None]] = {}
        # method -> list of scheduled faults, consumed in order
        self._faults: dict[str, list[dict[str, Any]]] = {}
        self.sent: list[dict[str, Any]] = []

        if self._state_path and self._state_path.exists():
            self._load()

    # ------------------------------------------------------------------
    # NetworkClient protocol
    # ------------------------------------------------------------------

    def accounts(self) -> list[str]:
        return list(self._accounts)

    def send_deploy(self, kind: str, args: list[Any], *, sender: str) -> str:
        behaviour = _BEHAVIOURS.get(kind)
        if behaviour is None:
            raise TransactionRejected(f"no bytecode for artifact kind {kind!r}")
        tx_hash, held = self._broadcast("deploy", sender, {"kind": kind, "args": args})
        address = self._derive_address(sender, self._nonces[_key(sender)] - 1)

        def apply() -> str:
            state = behaviour.construct(sender, list(args))
            state["self"] = address
            self._contracts[_key(address)] = {"kind": kind, "address": address, "state": state}
            return address

        self._submit(tx_hash, held, apply, contract_address=address)
        return tx_hash

    def send_transaction(
        self,
        to: str,
        method: str,
        args: list[Any],
        *,
        sender: str,
        value: int = 0,
    ) -> str:
        contract = self._contracts.get(_key(to))
        if contract is None:
            raise TransactionRejected(f"no contract deployed at {to}")
        tx_hash, held = self._broadcast(
            method, sender, {"to": to, "method": method, "args": args, "value": value}
        )

        def apply() -> Any:
            _require(self._eth.get(_key(sender), 0) >= value, "insufficient funds for value")
            self._eth[_key(sender)] = self._eth.get(_key(sender), 0) - value
            self._eth[_key(to)] = self._eth.get(_key(to), 0) + value
            target = self._contracts[_key(to)]
            behaviour = _BEHAVIOURS[target["kind"]]
            return behaviour.transact(self, target["state"], sender, method, list(args), value)

        self._submit(tx_hash, held, apply)
        return tx_hash

    def wait_for_receipt(self, transaction_hash: str, timeout: float) -> Receipt:
        receipt = self.get_receipt(transaction_hash)
        if receipt is None:
            raise TransactionTimeout(transaction_hash, timeout)
        if not receipt.status:
            raise TransactionRejected(receipt.revert_reason, transaction_hash)
        return receipt

    def get_receipt(self, transaction_hash: str) -> Receipt | None:
        raw = self._receipts.get(transaction_hash)
        return Receipt(**raw) if raw else None

    def call(self, to: str, method: str, args: list[Any]) -> Any:
        contract = self._contracts.get(_key(to))
        if contract is None:
            raise NetworkError(f"no contract deployed at {to}")
        return _BEHAVIOURS[contract["kind"]].view(contract["state"], method, list(args))

    # ------------------------------------------------------------------
    # Inspection and fault injection
    # ------------------------------------------------------------------

    @property
    def block_number(self) -> int:
        return self._block

    def balance(self, address: str) -> int:
        """Native-currency balance of *address*."""
        return self._eth.get(_key(address), 0)

    def has_code(self, address: str) -> bool:
        return _key(address) in self._contracts

    def schedule_failure(
        self,
        method: str,
        *,
        reason: str = "",
        timeout: bool = False,
        times: int = 1,
    ) -> None:
        """Make the next *times* submissions of *method* fail.

        ``method`` is a contract method name, or ``"deploy"`` for creations.
        With ``timeout=True`` the transaction is accepted but held back until
        ``release_held`` is called;
        otherwise it is rejected by the node with *reason*.
        """
        fault = {"reason": reason or "transaction rejected", "timeout": timeout}
        self._faults.setdefault(method, []).extend(dict(fault) for _ in range(times))

    def release_held(self) -> list[str]:
        """Mine every transaction held back by a timeout fault, in submission order.

        Held transactions live in memory only; they are lost when the chain
        is reloaded from its state file.
        """
        released = list(self._held)
        for tx_hash in released:
            self._held.pop(tx_hash)()
        return released

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _broadcast(self, method: str, sender: str, payload: dict[str, Any]) -> tuple[str, bool]:
        if _key(sender) not in self._eth:
            raise TransactionRejected(f"unknown account {sender}")

        faults = self._faults.get(method)
        fault = faults.pop(0) if faults else None
        if fault and not fault["timeout"]:
            raise TransactionRejected(fault["reason"])

        nonce = self._nonces.get(_key(sender), 0)
        self._nonces[_key(sender)] = nonce + 1
        tx_hash = "0x" + sha256_hex(
            canonical_json_bytes(
                {"chain": self.chain_id, "sender": _key(sender), "nonce": nonce, "payload": payload}
            )
        )
        self.sent.append({"hash": tx_hash, "sender": sender, "method": method, **payload})

        if fault and fault["timeout"]:
            logger.debug("Simulated chain held back %s (%s)", tx_hash, method)
            return tx_hash, True
        return tx_hash, False

    def _submit(
        self, tx_hash: str, held: bool, apply: Callable[[], Any], contract_address: str | None = None
    ) -> None:
        if held:
            self._held[tx_hash] = lambda: self._mine(tx_hash, apply, contract_address)
        else:
            self._mine(tx_hash, apply, contract_address)

    def _mine(self, tx_hash: str, apply: Callable[[], Any], contract_address: str | None = None) -> None:
        snapshot = (copy.deepcopy(self._contracts), dict(self._eth))
        self._block += 1
        try:
            apply()
        except _Revert as exc:
            self._contracts, self._eth = snapshot
            receipt = Receipt(
                transaction_hash=tx_hash,
                status=False,
                block_number=self._block,
                revert_reason=str(exc),
            )
        else:
            receipt = Receipt(
                transaction_hash=tx_hash,
                status=True,
                block_number=self._block,
                contract_address=contract_address,
            )
        self._receipts[tx_hash] = receipt.model_dump()
        self._save()

    def _internal_call(self, to: str, method: str, args: list[Any], *, sender: str) -> Any:
        contract = self._contracts.get(_key(to))
        _require(contract is not None, f"call to non-contract {to}")
        behaviour = _BEHAVIOURS[contract["kind"]]
        return behaviour.transact(self, contract["state"], sender, method, args, 0)

    def _derive_address(self, sender: str, nonce: int) -> str:
        digest = sha256_hex(canonical_json_bytes({"sender": _key(sender), "nonce": nonce}))
        return "0x" + digest[-40:]

    def _save(self) -> None:
        if self._state_path is None:
            return
        self._state_path.parent.mkdir(parents=True, exist_ok=True)
        state = {
            "chainId": self.chain_id,
            "block": self._block,
            "nonces": self._nonces,
            "eth": self._eth,
            "contracts": self._contracts,
            "receipts": self._receipts,
        }
        tmp = self._state_path.with_name(self._state_path.name + ".tmp")
        tmp.write_text(json.dumps(state, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._state_path)

    def _load(self) -> None:
        state = json.loads(self._state_path.read_text(encoding="utf-8"))
        self._block = state["block"]
        self._nonces = state["nonces"]
        self._eth = state["eth"]
        self._contracts = state["contracts"]
        self._receipts = state["receipts"]
        logger.debug(
            "Loaded simulated chain state from %s (block %d)", self._state_path, self._block
        )
