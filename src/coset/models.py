"""Result and metadata types passed between the Coset layers.

Pure data model, no I/O. Token amounts are integers in base units unless
a field says otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from coset.errors import ProtocolError


def parse_units(value: Any, name: str) -> int:
    """Parse a non-negative base-unit amount from a provider payload."""
    if isinstance(value, bool):
        raise ProtocolError(f"{name} must be an integer amount, got {value!r}")
    try:
        if isinstance(value, str):
            text = value.strip()
            units = int(text, 16) if text.lower().startswith("0x") else int(text)
        else:
            units = int(value)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"{name} must be an integer amount, got {value!r}") from exc
    if isinstance(value, float) and value != units:
        raise ProtocolError(f"{name} must be an integer amount, got {value!r}")
    if units < 0:
        raise ProtocolError(f"{name} must be non-negative, got {units}")
    return units


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Remote state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpdateMetadata:
    """Oracle freshness metadata. A duration of 0 means no recommendation."""

    recommended_update_duration: int = 0
    last_update_timestamp: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateMetadata:
        try:
            return cls(
                recommended_update_duration=int(data.get("recommendedUpdateDuration") or 0),
                last_update_timestamp=int(data.get("lastUpdateTimestamp") or 0),
            )
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"Malformed update metadata: {data!r}") from exc


@dataclass(frozen=True)
class Balance:
    """Token balance: ``units`` in base units, ``amount`` in whole tokens."""

    units: int
    amount: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Balance:
        units = parse_units(data.get("units"), "units")
        try:
            amount = Decimal(str(data.get("amount", 0)))
        except InvalidOperation as exc:
            raise ProtocolError(f"Malformed balance amount: {data.get('amount')!r}") from exc
        return cls(units=units, amount=amount)


# ---------------------------------------------------------------------------
# CostBreakdown
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CostBreakdown:
    """What one update cost, split by recipient. All values in base units."""

    total: int = 0
    gas_fee: int = 0
    platform_fee: int = 0
    data_provider_fee: int = 0

    @classmethod
    def zero(cls) -> CostBreakdown:
        return cls()

    @classmethod
    def from_price_details(cls, details: Any) -> CostBreakdown:
        """Build a breakdown from the provider's ``priceDetails`` object.

        ``platform_fee`` is derived as ``updatePrice - providerAmount``.
        Raises ProtocolError when any field is missing or malformed, so the
        caller never records a guessed amount.
        """
        if not isinstance(details, dict):
            raise ProtocolError("Update response is missing priceDetails")
        gas = details.get("methodGasFee")
        if not isinstance(gas, dict):
            raise ProtocolError("priceDetails is missing methodGasFee")

        total = parse_units(details.get("totalCost"), "totalCost")
        gas_fee = parse_units(gas.get("token"), "methodGasFee.token")
        provider_fee = parse_units(details.get("providerAmount"), "providerAmount")
        update_price = parse_units(details.get("updatePrice"), "updatePrice")
        if update_price < provider_fee:
            raise ProtocolError(
                f"updatePrice ({update_price}) is below providerAmount ({provider_fee})"
            )
        return cls(
            total=total,
            gas_fee=gas_fee,
            platform_fee=update_price - provider_fee,
            data_provider_fee=provider_fee,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "gasFee": self.gas_fee,
            "platformFee": self.platform_fee,
            "dataProviderFee": self.data_provider_fee,
        }


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass
class ReadResult:
    """Outcome of a read. On failure ``data`` is None and ``message`` says why."""

    success: bool
    data: Any = None
    last_update_timestamp: int | None = None
    last_update_formatted: str | None = None
    recommended_update_duration: int | None = None
    is_update_recommended: bool | None = None
    message: str | None = None

    @classmethod
    def failure(cls, message: str) -> ReadResult:
        return cls(success=False, data=None, message=message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.success, "data": self.data}
        if self.last_update_timestamp is not None:
            result["lastUpdateTimestamp"] = self.last_update_timestamp
            result["lastUpdateFormatted"] = self.last_update_formatted
        if self.recommended_update_duration is not None:
            result["recommendedUpdateDuration"] = self.recommended_update_duration
        if self.is_update_recommended is not None:
            result["isUpdateRecommended"] = self.is_update_recommended
        if self.message is not None:
            result["message"] = self.message
        return result


@dataclass
class UpdateResult:
    """Outcome of an update. Failed updates always carry a zeroed breakdown."""

    success: bool
    spent: CostBreakdown = field(default_factory=CostBreakdown.zero)
    data: Any = None
    tx: str | None = None
    message: str | None = None

    @classmethod
    def failure(cls, message: str) -> UpdateResult:
        return cls(success=False, spent=CostBreakdown.zero(), message=message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.success,
            "spent": self.spent.to_dict(),
            "data": self.data,
        }
        if self.tx is not None:
            result["tx"] = self.tx
        if self.message is not None:
            result["message"] = self.message
        return result


@dataclass
class ReadOutcome:
    """Discriminated result of a strict read.

    - ``fresh``: the provider served current data.
    - ``refreshed``: data was stale, an update ran and ``update`` holds it.
    - ``failed``: neither path produced data; ``reason`` says why and
      ``update`` is set when a fallback update was attempted.
    """

    kind: str
    data: Any = None
    update: UpdateResult | None = None
    reason: str | None = None

    FRESH = "fresh"
    REFRESHED = "refreshed"
    FAILED = "failed"

    @classmethod
    def fresh(cls, data: Any) -> ReadOutcome:
        return cls(kind=cls.FRESH, data=data)

    @classmethod
    def refreshed(cls, update: UpdateResult) -> ReadOutcome:
        return cls(kind=cls.REFRESHED, data=update.data, update=update)

    @classmethod
    def failed(cls, reason: str, update: UpdateResult | None = None) -> ReadOutcome:
        return cls(kind=cls.FAILED, update=update, reason=reason)

    def to_read_result(self) -> ReadResult:
        if self.kind == self.FAILED:
            return ReadResult.failure(self.reason or "Read failed")
        return ReadResult(success=True, data=self.data)
