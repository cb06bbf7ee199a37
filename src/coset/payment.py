"""x402 payment negotiation for paid provider endpoints.

Payment flow:
  1. Client POSTs the request with no payment attached.
  2. Provider answers 402 with a challenge: ``{"x402Version", "accepts": [...]}``
     in the body, or the same object base64-encoded in ``PAYMENT-REQUIRED``.
  3. Client picks the ``exact`` requirement for its payment token, checks its
     token balance, and signs an ERC-3009 TransferWithAuthorization.
  4. Client retries once with the authorization in ``X-PAYMENT``.
  5. Provider settles the transfer and serves the response.

There is exactly one retry. A rejected retry is surfaced, never re-negotiated.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from coset.api_client import OracleApiClient, decode_json
from coset.constants import (
    CHAIN_IDS,
    DEFAULT_PAYMENT_TIMEOUT_SECS,
    INSUFFICIENT_BALANCE,
    PAYMENT_HEADER,
    PAYMENT_REQUIRED_HEADER,
    X402_SCHEME,
    X402_VERSION,
)
from coset.errors import (
    CosetError,
    HttpError,
    InsufficientBalanceError,
    ProtocolError,
    SignatureError,
)
from coset.models import Balance, parse_units
from coset.oracle import OracleReference
from coset.signer import PaymentSigner

logger = logging.getLogger(__name__)

PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

# Back-date validAfter so small clock differences with the chain don't
# make a fresh authorization "not yet valid".
_VALID_AFTER_SKEW_SECS = 600

_TRANSFER_WITH_AUTHORIZATION_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


def _first_present(data: dict[str, Any], *options: str) -> Any:
    for key in options:
        if key in data and data[key] is not None:
            return data[key]
    return None


# ---------------------------------------------------------------------------
# PaymentRequirements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentRequirements:
    """One acceptable way to pay, as offered in a 402 challenge."""

    scheme: str
    network: str
    amount: int
    pay_to: str
    asset: str
    resource: str | None = None
    description: str | None = None
    max_timeout_seconds: int = DEFAULT_PAYMENT_TIMEOUT_SECS
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> PaymentRequirements:
        if not isinstance(data, dict):
            raise ProtocolError("Payment requirement is not an object")
        required = {
            "scheme": _first_present(data, "scheme"),
            "network": _first_present(data, "network"),
            "maxAmountRequired": _first_present(data, "maxAmountRequired", "amount"),
            "payTo": _first_present(data, "payTo", "pay_to"),
            "asset": _first_present(data, "asset"),
        }
        missing = [name for name, value in required.items() if value is None]
        if missing:
            raise ProtocolError(
                f"Payment requirements missing fields: {', '.join(sorted(missing))}"
            )
        timeout_raw = _first_present(data, "maxTimeoutSeconds", "max_timeout_seconds")
        extra = data.get("extra")
        return cls(
            scheme=str(required["scheme"]),
            network=str(required["network"]),
            amount=parse_units(required["maxAmountRequired"], "maxAmountRequired"),
            pay_to=str(required["payTo"]),
            asset=str(required["asset"]),
            resource=data.get("resource"),
            description=data.get("description"),
            max_timeout_seconds=(
                parse_units(timeout_raw, "maxTimeoutSeconds")
                if timeout_raw is not None
                else DEFAULT_PAYMENT_TIMEOUT_SECS
            ),
            extra=extra if isinstance(extra, dict) else {},
        )

    def chain_id(self, fallback: int) -> int:
        """Chain id from a CAIP-2 ``eip155:<id>`` network, else ``fallback``."""
        namespace, _, reference = self.network.partition(":")
        if namespace == "eip155" and reference.isdigit():
            return int(reference)
        return fallback


# ---------------------------------------------------------------------------
# PaymentAuthorization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentAuthorization:
    """A signed ERC-3009 transfer answering one challenge requirement."""

    requirement: PaymentRequirements
    x402_version: int
    from_address: str
    value: int
    valid_after: int
    valid_before: int
    nonce: str
    signature: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "x402Version": self.x402_version,
            "scheme": self.requirement.scheme,
            "network": self.requirement.network,
            "payload": {
                "signature": self.signature,
                "authorization": {
                    "from": self.from_address,
                    "to": self.requirement.pay_to,
                    "value": str(self.value),
                    "validAfter": str(self.valid_after),
                    "validBefore": str(self.valid_before),
                    "nonce": self.nonce,
                },
            },
        }

    def header_value(self) -> str:
        """Base64 JSON envelope for the ``X-PAYMENT`` header."""
        encoded = json.dumps(self.to_payload(), separators=(",", ":"))
        return base64.b64encode(encoded.encode("utf-8")).decode("ascii")


# ---------------------------------------------------------------------------
# PaymentChallenge
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentChallenge:
    """A parsed 402 response: the payment options the provider accepts."""

    x402_version: int
    accepts: tuple[PaymentRequirements, ...]
    error: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> PaymentChallenge:
        if not isinstance(data, dict) or not isinstance(data.get("accepts"), list):
            raise ProtocolError("Payment challenge has no accepts list")
        try:
            version = int(data.get("x402Version", X402_VERSION))
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"Bad x402Version: {data.get('x402Version')!r}") from exc
        return cls(
            x402_version=version,
            accepts=tuple(PaymentRequirements.from_dict(r) for r in data["accepts"]),
            error=data.get("error"),
        )

    @classmethod
    def from_response(cls, response: httpx.Response) -> PaymentChallenge:
        """Parse the challenge from the 402 body, falling back to the header."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("accepts"), list):
            return cls.from_dict(body)

        header = response.headers.get(PAYMENT_REQUIRED_HEADER)
        if not header:
            raise ProtocolError("402 response carries no payment requirements")
        try:
            decoded = json.loads(base64.b64decode(header, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise ProtocolError(f"Malformed {PAYMENT_REQUIRED_HEADER} header") from exc
        return cls.from_dict(decoded)

    def select(self, token_address: str) -> PaymentRequirements:
        """Pick the ``exact`` requirement paid in ``token_address``."""
        wanted = token_address.lower()
        for requirement in self.accepts:
            if requirement.scheme == X402_SCHEME and requirement.asset.lower() == wanted:
                return requirement
        offered = ", ".join(f"{r.scheme}:{r.asset}" for r in self.accepts) or "none"
        raise ProtocolError(
            f"No acceptable payment requirement for token {token_address} (offered: {offered})"
        )

    async def authorize(
        self,
        requirement: PaymentRequirements,
        signer: PaymentSigner,
        balance: Balance,
        chain_id: int,
        now: int,
    ) -> PaymentAuthorization:
        """Sign a transfer for ``requirement``, refusing first if underfunded.

        The balance comparison precedes any use of the signer, so an
        underfunded payer never produces a signature.
        """
        if balance.units < requirement.amount:
            raise InsufficientBalanceError(INSUFFICIENT_BALANCE)

        name = requirement.extra.get("name")
        version = requirement.extra.get("version")
        if not name or not version:
            raise ProtocolError(
                "Payment requirement is missing the token's EIP-712 name/version"
            )

        valid_after = max(0, now - _VALID_AFTER_SKEW_SECS)
        valid_before = now + requirement.max_timeout_seconds
        nonce = "0x" + secrets.token_hex(32)
        typed_data = {
            "types": _TRANSFER_WITH_AUTHORIZATION_TYPES,
            "primaryType": "TransferWithAuthorization",
            "domain": {
                "name": str(name),
                "version": str(version),
                "chainId": requirement.chain_id(chain_id),
                "verifyingContract": requirement.asset.lower(),
            },
            "message": {
                "from": signer.address,
                "to": requirement.pay_to.lower(),
                "value": requirement.amount,
                "validAfter": valid_after,
                "validBefore": valid_before,
                "nonce": nonce,
            },
        }
        try:
            signature = await signer.sign_typed_data(typed_data)
        except CosetError:
            raise
        except Exception as exc:
            raise SignatureError(f"Signing failed: {exc}") from exc
        return PaymentAuthorization(
            requirement=requirement,
            x402_version=self.x402_version,
            from_address=signer.address,
            value=requirement.amount,
            valid_after=valid_after,
            valid_before=valid_before,
            nonce=nonce,
            signature=signature,
        )


# ---------------------------------------------------------------------------
# Negotiator
# ---------------------------------------------------------------------------


def decode_settlement(response: httpx.Response) -> dict[str, Any] | None:
    """Decode the provider's ``X-PAYMENT-RESPONSE`` header, if present."""
    header = response.headers.get(PAYMENT_RESPONSE_HEADER)
    if not header:
        return None
    try:
        decoded = json.loads(base64.b64decode(header, validate=True))
    except (binascii.Error, ValueError):
        logger.warning("Ignoring malformed %s header.", PAYMENT_RESPONSE_HEADER)
        return None
    return decoded if isinstance(decoded, dict) else None


class PaymentNegotiator:
    """Runs at most one challenge/authorization round per paid request."""

    def __init__(
        self,
        api: OracleApiClient,
        signer: PaymentSigner,
        oracle: OracleReference,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._api = api
        self._signer = signer
        self._oracle = oracle
        self._clock = clock

    async def pay_and_fetch(self, endpoint: str, body: dict[str, Any]) -> httpx.Response:
        """POST ``body`` to ``endpoint``, paying if the provider demands it.

        Raises InsufficientBalanceError before signing when the payer cannot
        cover the amount, HttpError for a non-2xx final answer, ProtocolError
        for an unusable challenge, SignatureError if signing fails.
        """
        response = await self._api.post(endpoint, body)
        if response.status_code != 402:
            return _ensure_success(response, endpoint)

        challenge = PaymentChallenge.from_response(response)
        requirement = challenge.select(self._oracle.token_address)
        balance = await self._api.get_balance(
            self._oracle, self._signer.address, self._oracle.token_address
        )
        try:
            authorization = await challenge.authorize(
                requirement,
                self._signer,
                balance,
                chain_id=CHAIN_IDS[self._oracle.network],
                now=int(self._clock()),
            )
        except InsufficientBalanceError:
            logger.warning(
                "Balance %d below required %d for %s; not paying.",
                balance.units, requirement.amount, endpoint,
            )
            raise
        logger.info(
            "Paying %d of %s to %s for %s.",
            authorization.value, requirement.asset, requirement.pay_to, endpoint,
        )

        retry = await self._api.post(
            endpoint, body, headers={PAYMENT_HEADER: authorization.header_value()}
        )
        return _ensure_success(retry, endpoint)


def _ensure_success(response: httpx.Response, endpoint: str) -> httpx.Response:
    if 200 <= response.status_code < 300:
        return response
    detail = response.text
    try:
        body = decode_json(response, endpoint)
        detail = str(body.get("error") or body.get("message") or detail)
    except ProtocolError:
        pass
    raise HttpError(
        f"{endpoint} returned HTTP {response.status_code}: {detail}",
        status_code=response.status_code,
    )
