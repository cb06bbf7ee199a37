"""Coset client: read oracle data and buy refreshes within a spending budget."""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable

from coset.api_client import OracleApiClient, decode_json
from coset.config import CosetConfig
from coset.constants import NO_DATA_FOUND, Network, PaymentToken
from coset.errors import (
    ConfigurationError,
    CosetError,
    HttpError,
    ProtocolError,
    SpendingLimitExceededError,
)
from coset.models import CostBreakdown, ReadOutcome, ReadResult, UpdateResult, format_timestamp
from coset.oracle import OracleReference
from coset.payment import PaymentNegotiator, decode_settlement
from coset.signer import LocalAccountSigner, PaymentSigner
from coset.spend_guard import SpendGuard, SpendState
from coset.staleness import is_stale

logger = logging.getLogger(__name__)

UPDATE_ENDPOINT = "/update"


class Coset:
    """Client for one oracle, paying for updates from one wallet.

    Configuration problems (bad address, unsupported network or token,
    invalid key, malformed API endpoint) raise ConfigurationError here. Every operational failure
    after that is returned as a result with ``success=False`` and a
    ``message``; ``asyncio.CancelledError`` is the one exception that still
    propagates, so callers can enforce their own deadlines.

    An instance is not safe for overlapping ``update()`` calls: the spending
    limit is checked before the payment and recorded after it, with no lock
    in between.
    """

    def __init__(
        self,
        private_key: str | None,
        oracle_address: str,
        network: Network | str = Network.MANTLE,
        payment_token: PaymentToken | str = PaymentToken.USDC,
        config: CosetConfig | None = None,
        *,
        signer: PaymentSigner | None = None,
        api: OracleApiClient | None = None,
        spend_state: SpendState | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CosetConfig()
        self.oracle = OracleReference.create(
            oracle_address,
            network,
            payment_token,
            token_overrides=self.config.token_addresses,
        )
        if signer is None:
            if private_key is None:
                raise ConfigurationError("Coset needs either private_key or signer")
            signer = LocalAccountSigner(private_key)
        self.signer = signer
        self._api = api or OracleApiClient(self.config.api_url, timeout=self.config.http_timeout)
        self._guard = SpendGuard(spend_state)
        self._clock = clock
        self._negotiator = PaymentNegotiator(self._api, self.signer, self.oracle, clock=clock)

    # -- spend accounting ----------------------------------------------------

    @property
    def address(self) -> str:
        return self.signer.address

    @property
    def spent(self) -> int:
        return self._guard.spent

    @property
    def spending_limit(self) -> float:
        return self._guard.spending_limit

    @property
    def spend_state(self) -> SpendState:
        return self._guard.state

    def set_spending_limit(self, spending_limit: float) -> None:
        self._guard.set_limit(spending_limit)

    # -- reads ---------------------------------------------------------------

    async def read(self, strict: bool = False) -> ReadResult:
        """Read oracle data along with its freshness metadata. Free to call.

        ``strict`` uses the provider path that refuses stale data. The data
        and metadata requests run concurrently and both must succeed.
        """
        fetch = (
            self._api.get_data(self.oracle)
            if strict
            else self._api.get_data_without_check(self.oracle)
        )
        results = await asyncio.gather(
            fetch, self._api.get_update_metadata(self.oracle), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, CosetError):
                raise result
        data, metadata = results
        for result in results:
            if isinstance(result, CosetError):
                logger.warning("Read of %s failed: %s", self.oracle.oracle_address, result)
                return ReadResult.failure(result.message)

        if not data:
            return ReadResult.failure(NO_DATA_FOUND)
        return ReadResult(
            success=True,
            data=data,
            last_update_timestamp=metadata.last_update_timestamp,
            last_update_formatted=format_timestamp(metadata.last_update_timestamp),
            recommended_update_duration=metadata.recommended_update_duration,
            is_update_recommended=is_stale(metadata, self._clock()),
        )

    async def is_update_needed(self) -> bool:
        """True when the oracle's recommended update interval has elapsed.

        Returns False if the metadata cannot be fetched.
        """
        try:
            metadata = await self._api.get_update_metadata(self.oracle)
        except CosetError as e:
            logger.warning("Could not fetch update metadata: %s", e)
            return False
        return is_stale(metadata, self._clock())

    async def strict_read_outcome(self, force: bool = False) -> ReadOutcome:
        """Read fresh data, buying an update first if the provider reports it stale.

        An HTTP error from the strict data endpoint is the provider's stale
        signal and triggers one update. Transport and protocol errors fail
        the read without touching the budget.
        """
        try:
            data = await self._api.get_data(self.oracle)
        except HttpError as e:
            logger.info("Strict read refused (%s); updating.", e.status_code)
        except CosetError as e:
            return ReadOutcome.failed(e.message)
        else:
            if data:
                return ReadOutcome.fresh(data)
            logger.info("Strict read returned no data; updating.")

        update = await self.update(force=force)
        if not update.success:
            return ReadOutcome.failed(update.message or "Update failed", update=update)
        return ReadOutcome.refreshed(update)

    async def strict_read(self, force: bool = False) -> ReadResult:
        outcome = await self.strict_read_outcome(force=force)
        return outcome.to_read_result()

    async def get_update_cost(self) -> Decimal:
        """Current update price in whole tokens, always queried fresh.

        Raises CosetError if the price cannot be fetched.
        """
        units = await self._api.get_update_price(self.oracle)
        return Decimal(units).scaleb(-self.config.token_decimals)

    # -- updates -------------------------------------------------------------

    async def update(self, force: bool = False) -> UpdateResult:
        """Buy an oracle data update.

        Refused locally, with no network traffic, once spend has reached the
        limit unless ``force`` is set. Spend is recorded only after the
        provider confirms the update and its cost parses cleanly.
        """
        try:
            self._guard.check(force)
        except SpendingLimitExceededError as e:
            logger.warning(
                "Update refused: spent %d of limit %s.",
                self._guard.spent, self._guard.spending_limit,
            )
            return UpdateResult.failure(e.message)

        body = {
            "oracleAddress": self.oracle.oracle_address,
            "network": self.oracle.network.value,
            "paymentToken": self.oracle.payment_token.value,
            "tokenAddress": self.oracle.token_address,
        }
        try:
            response = await self._negotiator.pay_and_fetch(UPDATE_ENDPOINT, body)
            payload = decode_json(response, UPDATE_ENDPOINT)
            if payload.get("success") is False:
                raise ProtocolError(str(payload.get("error") or "Provider reported a failed update"))
            spent = CostBreakdown.from_price_details(payload.get("priceDetails"))
        except CosetError as e:
            logger.warning("Update of %s failed: %s", self.oracle.oracle_address, e)
            return UpdateResult.failure(e.message)

        self._guard.record(spent.total)
        settlement = decode_settlement(response) or {}
        return UpdateResult(
            success=True,
            spent=spent,
            data=payload.get("data"),
            tx=payload.get("tx") or settlement.get("transaction"),
        )

    async def optional_update(self) -> UpdateResult | None:
        """Update only if one is recommended.

        Returns None when no update was needed, otherwise the update result,
        failures included.
        """
        if not await self.is_update_needed():
            return None
        return await self.update()

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        await self._api.close()

    async def __aenter__(self) -> Coset:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()