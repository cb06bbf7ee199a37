"""Payment signing capability.

Defines the PaymentSigner Protocol the payment layer depends on, plus a
local implementation backed by an eth-account key. Remote signers (KMS,
hardware wallets) only need ``address`` and ``sign_typed_data``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_typed_data

from coset.errors import ConfigurationError, SignatureError

logger = logging.getLogger(__name__)


@runtime_checkable
class PaymentSigner(Protocol):
    """Account that can authorize token transfers."""

    @property
    def address(self) -> str: ...

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str: ...


class LocalAccountSigner:
    """EIP-712 signer holding a private key in process memory."""

    def __init__(self, private_key: str) -> None:
        try:
            self._account = Account.from_key(private_key)
        except Exception as exc:
            # eth-account raises a mix of ValueError/binascii errors here
            raise ConfigurationError(f"Invalid private key: {type(exc).__name__}") from None

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str:
        """Sign a full EIP-712 message and return the 0x-prefixed signature."""
        try:
            signable = encode_typed_data(full_message=typed_data)
            signed = self._account.sign_message(signable)
        except Exception as exc:
            logger.warning("Signing failed for %s: %s", self.address, exc)
            raise SignatureError(f"Could not sign payment authorization: {exc}") from exc
        return "0x" + bytes(signed.signature).hex()

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address!r})"
