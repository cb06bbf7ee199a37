"""Oracle endpoint identity: network, contract address, and payment token."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from coset.constants import TOKEN_ADDRESSES, Network, PaymentToken
from coset.errors import ConfigurationError

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: str) -> bool:
    """True for a 0x-prefixed 20-byte hex identifier."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def resolve_token_address(
    network: Network,
    token: PaymentToken,
    overrides: Mapping[str, Mapping[str, str]] | None = None,
) -> str:
    """Look up the token contract for ``token`` on ``network``.

    ``overrides`` takes precedence over the built-in table. Raises
    ConfigurationError when neither has an entry.
    """
    address = None
    if overrides:
        address = overrides.get(network.value, {}).get(token.value)
    if address is None:
        address = TOKEN_ADDRESSES.get(network, {}).get(token)
    if address is None:
        raise ConfigurationError(
            f"Payment token {token.value} is not supported on {network.value}"
        )
    if not is_address(address):
        raise ConfigurationError(
            f"Invalid token address for {token.value} on {network.value}: {address!r}"
        )
    return address


@dataclass(frozen=True)
class OracleReference:
    network: Network
    oracle_address: str
    payment_token: PaymentToken
    token_address: str

    @classmethod
    def create(
        cls,
        oracle_address: str,
        network: Network | str,
        payment_token: PaymentToken | str,
        token_overrides: Mapping[str, Mapping[str, str]] | None = None,
    ) -> OracleReference:
        """Validate inputs and resolve the payment token address.

        All problems surface here as ConfigurationError so a misconfigured
        client never gets as far as a network call.
        """
        if not is_address(oracle_address):
            raise ConfigurationError("Invalid oracle address")
        try:
            net = Network(network)
        except ValueError:
            raise ConfigurationError(f"Unsupported network: {network!r}") from None
        try:
            token = PaymentToken(payment_token)
        except ValueError:
            raise ConfigurationError(f"Unsupported payment token: {payment_token!r}") from None

        return cls(
            network=net,
            oracle_address=oracle_address,
            payment_token=token,
            token_address=resolve_token_address(net, token, token_overrides),
        )

    def query_params(self) -> dict[str, str]:
        return {"network": self.network.value, "oracleAddress": self.oracle_address}
