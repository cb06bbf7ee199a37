"""Client-side spending ceiling for paid oracle updates.

Pure accounting, no I/O. Amounts are token base units. The guard checks
the ceiling before an operation, never after, so a single approved or
forced update may carry ``spent_total`` past the limit.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass

from coset.constants import SPENDING_LIMIT_EXCEEDED
from coset.errors import SpendingLimitExceededError

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

UNLIMITED = math.inf


# ---------------------------------------------------------------------------
# SpendState
# ---------------------------------------------------------------------------


@dataclass
class SpendState:
    """Cumulative spend and the ceiling it is checked against."""

    spent_total: int = 0
    spending_limit: float = UNLIMITED

    # -- serialization --------------------------------------------------------

    def to_json(self) -> str:
        """Serialize with schema version. An unbounded limit is stored as null."""
        limit = None if math.isinf(self.spending_limit) else self.spending_limit
        return json.dumps({
            "v": _SCHEMA_VERSION,
            "spent_total": self.spent_total,
            "spending_limit": limit,
        })

    @classmethod
    def from_json(cls, data: str) -> SpendState:
        """Deserialize from JSON. Returns a fresh state on corrupt data."""
        try:
            obj = json.loads(data)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Spend state is corrupt; starting from zero.")
            return cls()

        if not isinstance(obj, dict):
            logger.warning("Spend state is not a dict; starting from zero.")
            return cls()

        limit = obj.get("spending_limit")
        if limit is not None and (
            isinstance(limit, bool) or not isinstance(limit, (int, float))
        ):
            logger.warning("Spend state has a non-numeric limit; starting from zero.")
            return cls()
        try:
            return cls(
                spent_total=int(obj.get("spent_total", 0)),
                spending_limit=UNLIMITED if limit is None else limit,
            )
        except (TypeError, ValueError):
            logger.warning("Spend state has malformed fields; starting from zero.")
            return cls()


# ---------------------------------------------------------------------------
# SpendGuard
# ---------------------------------------------------------------------------


class SpendGuard:
    """Gate paid operations on cumulative spend.

    One guard per client instance, mutated only by that client. Concurrent
    updates on the same instance are not supported: nothing stops two calls
    from both passing ``can_spend`` before either records.
    """

    def __init__(self, state: SpendState | None = None) -> None:
        self._state = state if state is not None else SpendState()

    @property
    def state(self) -> SpendState:
        return self._state

    @property
    def spent(self) -> int:
        return self._state.spent_total

    @property
    def spending_limit(self) -> float:
        return self._state.spending_limit

    @property
    def remaining(self) -> float:
        """Budget left before the ceiling; 0 once it has been reached."""
        return max(0, self._state.spending_limit - self._state.spent_total)

    def can_spend(self, force: bool = False) -> bool:
        """True when forced or while spend is strictly below the limit."""
        return force or self._state.spent_total < self._state.spending_limit

    def check(self, force: bool = False) -> None:
        """Raise SpendingLimitExceededError unless ``can_spend(force)``."""
        if not self.can_spend(force):
            raise SpendingLimitExceededError(SPENDING_LIMIT_EXCEEDED)

    def record(self, amount: int) -> None:
        """Add a settled cost. Negative amounts are rejected."""
        if amount < 0:
            raise ValueError(f"spend amount must be non-negative, got {amount}")
        was_within = self._state.spent_total < self._state.spending_limit
        self._state.spent_total += amount
        logger.info(
            "Recorded spend of %d; total %d (limit %s).",
            amount, self._state.spent_total, self._state.spending_limit,
        )
        if was_within and self._state.spent_total >= self._state.spending_limit:
            logger.warning(
                "Spending limit reached: %d >= %s.",
                self._state.spent_total, self._state.spending_limit,
            )

    def set_limit(self, new_limit: float) -> None:
        """Replace the ceiling. Takes effect on the next ``can_spend``."""
        self._state.spending_limit = new_limit
