"""Networks, payment tokens, and the static token address table."""

from enum import Enum


class Network(str, Enum):
    """Chains the Coset provider serves oracles on."""

    MANTLE = "mantle"
    MANTLE_TESTNET = "mantle-testnet"
    CRONOS = "cronos"
    CRONOS_TESTNET = "cronos-testnet"


class PaymentToken(str, Enum):
    """Token symbols accepted for update payments."""

    USDC = "USDC"
    CST = "CST"


DEFAULT_API_URL = "https://api.coset.dev"

# Base units per whole token for the stable payment tokens.
TOKEN_DECIMALS = 6

CHAIN_IDS: dict[Network, int] = {
    Network.MANTLE: 5000,
    Network.MANTLE_TESTNET: 5003,
    Network.CRONOS: 25,
    Network.CRONOS_TESTNET: 338,
}

# (network, symbol) -> token contract. Entries missing here can be supplied
# through CosetConfig.token_addresses.
TOKEN_ADDRESSES: dict[Network, dict[PaymentToken, str]] = {
    Network.MANTLE: {
        PaymentToken.USDC: "0x09Bc4E0D864854c6aFB6eB9A9cdF58aC190D0dF9",
    },
    Network.MANTLE_TESTNET: {},
    Network.CRONOS: {
        PaymentToken.USDC: "0xc21223249CA28397B4B6541dfFaEcC539BfF0c59",
    },
    Network.CRONOS_TESTNET: {
        PaymentToken.USDC: "0xc01efAaF7C5C61bEbFAeb358E1161b537b8bC0e0",
    },
}

# x402 protocol constants
X402_VERSION = 1
X402_SCHEME = "exact"
PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_REQUIRED_HEADER = "PAYMENT-REQUIRED"
DEFAULT_PAYMENT_TIMEOUT_SECS = 60

SPENDING_LIMIT_EXCEEDED = "Spending limit exceeded"
INSUFFICIENT_BALANCE = "Insufficient token balance for payment"
NO_DATA_FOUND = "No data found"
