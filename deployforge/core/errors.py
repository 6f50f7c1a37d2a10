"""Shared error taxonomy for provisioning runs.

Two roots matter to callers:

- ``ConfigurationError``: the pipeline is mis-declared or mis-configured.
  Always raised before any network action; never retryable.
- ``FatalActionError``: a correctness-critical action (deploy, init,
  ownership transfer) failed on the network.  Aborts the run.

Everything else (already-satisfied outcomes, transient failures of
convenience actions) is absorbed at the step boundary and never raised.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when steps, artifacts, or operator settings are invalid."""


class UnsupportedActionError(ConfigurationError):
    """Raised when an action is not part of an artifact kind's interface."""


class InvalidAddressError(ConfigurationError):
    """Raised when an address value is not well-formed."""


class FatalActionError(RuntimeError):
    """Raised when a critical action fails and the run must stop.

    Parameters
    ----------
    message:
        Human-readable description.
    record:
        The ``ActionRecord`` of the failed action, when one exists.
    """

    def __init__(self, message: str, record: object | None = None) -> None:
        super().__init__(message)
        self.record = record
