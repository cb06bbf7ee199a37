"""Async HTTP client for the Coset oracle provider API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from coset.errors import ConfigurationError, HttpError, NetworkError, ProtocolError
from coset.models import Balance, UpdateMetadata, parse_units
from coset.oracle import OracleReference

logger = logging.getLogger(__name__)


class OracleApiClient:
    """Async client for the provider's read and update endpoints.

    Constructor accepts explicit params, no env-var loading. A ``timeout``
    of None leaves requests without a client-side deadline.
    """

    def __init__(self, base_url: str, timeout: float | None = None) -> None:
        _check_base_url(base_url)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    # -- internal request dispatcher -----------------------------------------

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, str] | None = None,
        json_data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, mapping httpx request errors to CosetError subclasses."""
        logger.debug("%s %s", method, endpoint)
        try:
            return await self._client.request(
                method, endpoint, params=params, json=json_data, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request to {endpoint} timed out: {exc}") from exc
        except httpx.DecodingError as exc:
            raise ProtocolError(f"Response from {endpoint} could not be decoded: {exc}") from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Request to {endpoint} failed: {exc}") from exc

    async def _get_json(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        response = await self._send("GET", endpoint, params=params)
        if response.status_code >= 400:
            raise HttpError(
                f"{endpoint} returned HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return decode_json(response, endpoint)

    # -- public API methods ---------------------------------------------------

    async def get_balance(
        self, oracle: OracleReference, owner_address: str, token_address: str
    ) -> Balance:
        """GET /get-balance: token balance of ``owner_address``."""
        body = await self._get_json(
            "/get-balance",
            {
                "network": oracle.network.value,
                "address": owner_address,
                "tokenAddress": token_address,
            },
        )
        return Balance.from_dict(body)

    async def get_update_metadata(self, oracle: OracleReference) -> UpdateMetadata:
        """GET /get-update-metadata: refresh interval and last update time."""
        body = await self._get_json("/get-update-metadata", oracle.query_params())
        return UpdateMetadata.from_dict(body)

    async def get_data(self, oracle: OracleReference) -> Any:
        """GET /get-data: fails on the provider side when data is stale."""
        body = await self._get_json("/get-data", oracle.query_params())
        return body.get("data")

    async def get_data_without_check(self, oracle: OracleReference) -> Any:
        """GET /get-data-without-check: latest data regardless of age."""
        body = await self._get_json("/get-data-without-check", oracle.query_params())
        return body.get("data")

    async def get_update_price(self, oracle: OracleReference) -> int:
        """GET /get-data-update-price: current update price in base units."""
        body = await self._get_json("/get-data-update-price", oracle.query_params())
        return parse_units(body.get("price"), "price")

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """POST without status mapping; the payment layer inspects the status."""
        return await self._send("POST", endpoint, json_data=body, headers=headers)

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> OracleApiClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def _check_base_url(base_url: str) -> None:
    """Raise ConfigurationError unless ``base_url`` is an absolute http(s) URL."""
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigurationError(f"Invalid API endpoint: {base_url!r}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"Invalid API endpoint: {base_url!r}")


def decode_json(response: httpx.Response, endpoint: str) -> dict[str, Any]:
    """Decode a JSON object body or raise ProtocolError."""
    try:
        body = response.json()
    except ValueError as exc:
        raise ProtocolError(
            f"Response from {endpoint} is not valid JSON"
        ) from exc
    if not isinstance(body, dict):
        raise ProtocolError(
            f"Response from {endpoint} is not a JSON object"
        )
    return body
