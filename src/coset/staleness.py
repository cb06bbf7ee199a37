"""Decide whether oracle data is due for a refresh."""

from __future__ import annotations

from coset.models import UpdateMetadata


def is_stale(metadata: UpdateMetadata, now: float) -> bool:
    """True once ``recommended_update_duration`` seconds have elapsed.

    A duration of 0 means the oracle has no refresh policy; a negative
    duration is treated the same way. A ``now`` earlier than the last update
    (clock skew) is never stale.
    """
    duration = metadata.recommended_update_duration
    if duration <= 0:
        return False
    elapsed = now - metadata.last_update_timestamp
    if elapsed < 0:
        return False
    return elapsed >= duration