"""Coset configuration as a plain frozen dataclass, no pydantic.

The host application constructs this from its own settings (env vars,
pydantic-settings, etc.) and passes it to the ``Coset`` client.
"""

from dataclasses import dataclass, field

from coset.constants import DEFAULT_API_URL, TOKEN_DECIMALS


@dataclass(frozen=True)
class CosetConfig:
    api_url: str = DEFAULT_API_URL
    # None means no client-side deadline; callers impose their own.
    http_timeout: float | None = None
    token_decimals: int = TOKEN_DECIMALS
    # Extra (network, symbol) -> address entries, e.g.
    # {"mantle-testnet": {"CST": "0x..."}}. Overrides the built-in table.
    token_addresses: dict[str, dict[str, str]] = field(default_factory=dict)
