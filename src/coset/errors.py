"""Exception hierarchy for Coset operations.

Configuration errors are raised from constructors. Everything else is
raised by the lower layers and turned into failure-tagged results at the
``Coset`` API boundary.
"""

from __future__ import annotations


class CosetError(Exception):
    """Base exception for Coset operations."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigurationError(CosetError):
    """Bad oracle address, endpoint, network, or unsupported token."""


class PolicyError(CosetError):
    """A local policy refused the operation before it was attempted."""


class SpendingLimitExceededError(PolicyError):
    """Cumulative spend has reached the configured ceiling."""


class InsufficientBalanceError(PolicyError):
    """Payer balance is below the amount the provider requires."""


class NetworkError(CosetError):
    """Transport failure: DNS, connect, read, or timeout."""


class ProtocolError(CosetError):
    """The provider answered with a body we cannot interpret."""


class HttpError(CosetError):
    """The provider answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message, status_code=status_code)


class SignatureError(CosetError):
    """The signer could not produce a payment authorization."""
