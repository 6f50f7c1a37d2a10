"""Environment classification: network id -> policy, and environment assembly."""

from __future__ import annotations

from collections.abc import Iterable

from deployforge.core.errors import ConfigurationError, InvalidAddressError
from deployforge.models.environment import Environment, NetworkPolicy, is_address

# Disposable development networks.  Anything not listed is treated as live.
EPHEMERAL_NETWORKS: frozenset[str] = frozenset(
    {"hardhat", "localhost", "local", "anvil", "ganache", "development"}
)


def _normalize(network_id: str | None) -> str:
    return (network_id or "").strip().lower()


def classify(
    network_id: str | None, extra_ephemeral: Iterable[str] = ()
) -> NetworkPolicy:
    """Map a network identifier to its policy.

    Total over all inputs: unknown or empty ids classify as persistent, the
    branch that never automates irreversible initialization.
    """
    name = _normalize(network_id)
    ephemeral_ids = EPHEMERAL_NETWORKS | {_normalize(n) for n in extra_ephemeral}
    return NetworkPolicy(ephemeral=bool(name) and name in ephemeral_ids)


def _optional_address(value: str | None, field: str) -> str | None:
    """Absent (None or blank) -> None; present -> must be a well-formed address."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not is_address(value):
        raise InvalidAddressError(
            f"{field} {value!r} is not a valid address "
            f"(expected 0x followed by 40 hex digits)."
        )
    return value


def build_environment(
    network: str,
    deployer: str,
    *,
    owner_override: str | None = None,
    prefund_address: str | None = None,
    extra_ephemeral: Iterable[str] = (),
) -> Environment:
    """Validate operator inputs and build the immutable run environment.

    Raises ``ConfigurationError`` (or ``InvalidAddressError``) before any
    network action when a value is malformed.
    """
    network = network.strip() if network else ""
    if not network:
        raise ConfigurationError("A network identifier is required.")
    if any(sep in network for sep in ("/", "\\")) or network.startswith("."):
        raise ConfigurationError(f"Invalid network identifier {network!r}.")
    if not is_address(deployer):
        raise InvalidAddressError(f"Deployer {deployer!r} is not a valid address.")

    return Environment(
        network=network,
        policy=classify(network, extra_ephemeral),
        deployer=deployer,
        owner_override=_optional_address(owner_override, "Owner override"),
        prefund_address=_optional_address(prefund_address, "Prefund address"),
    )
