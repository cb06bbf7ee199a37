"""Coset: pay-per-update oracle client.

Reads on-chain oracle data and buys refreshes over HTTP 402 (x402)
payments, within a client-side spending limit.
"""

__version__ = "0.2.0"

from coset.client import Coset
from coset.config import CosetConfig
from coset.constants import Network, PaymentToken, TOKEN_ADDRESSES
from coset.errors import (
    CosetError,
    ConfigurationError,
    PolicyError,
    SpendingLimitExceededError,
    InsufficientBalanceError,
    NetworkError,
    ProtocolError,
    HttpError,
    SignatureError,
)
from coset.models import Balance, CostBreakdown, ReadOutcome, ReadResult, UpdateMetadata, UpdateResult
from coset.oracle import OracleReference
from coset.signer import PaymentSigner, LocalAccountSigner
from coset.spend_guard import SpendGuard, SpendState
from coset.staleness import is_stale

__all__ = [
    "Coset",
    "CosetConfig",
    "Network",
    "PaymentToken",
    "TOKEN_ADDRESSES",
    "CosetError",
    "ConfigurationError",
    "PolicyError",
    "SpendingLimitExceededError",
    "InsufficientBalanceError",
    "NetworkError",
    "ProtocolError",
    "HttpError",
    "SignatureError",
    "Balance",
    "CostBreakdown",
    "ReadOutcome",
    "ReadResult",
    "UpdateMetadata",
    "UpdateResult",
    "OracleReference",
    "PaymentSigner",
    "LocalAccountSigner",
    "SpendGuard",
    "SpendState",
    "is_stale",
]
