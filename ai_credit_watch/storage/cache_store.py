"""
In-memory cache store for the account balance.

A passive single slot. It does no locking of its own; the controller
sequences every read and write.
"""

import time
from typing import Optional

from .models import EMPTY_ENTRY, BalanceRecord, CacheEntry, CredentialKey


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class BalanceCacheStore:
    """Holds the last known balance, its fetch time and its credentials."""

    def __init__(self):
        self._entry = EMPTY_ENTRY

    def read(self) -> CacheEntry:
        """Return the current entry (possibly empty)."""
        return self._entry

    def write(
        self,
        record: BalanceRecord,
        timestamp_ms: int,
        credentials: Optional[CredentialKey] = None
    ) -> None:
        """Overwrite the slot with a freshly fetched record.

        Args:
            record: Balance returned by a successful fetch
            timestamp_ms: Fetch completion time in milliseconds
            credentials: Credentials the record was fetched with
        """
        self._entry = CacheEntry(
            record=record,
            fetched_at_ms=timestamp_ms,
            credentials=credentials
        )

    def clear(self) -> None:
        """Drop the cached record."""
        self._entry = EMPTY_ENTRY


# Global store instance shared by every controller in the process
_default_store: Optional[BalanceCacheStore] = None


def get_default_store() -> BalanceCacheStore:
    """Get the process-wide store.

    Returns:
        The shared BalanceCacheStore, created on first use
    """
    global _default_store
    if _default_store is None:
        _default_store = BalanceCacheStore()
    return _default_store


def reset_default_store() -> None:
    """Forget the process-wide store so the next caller gets a fresh one."""
    global _default_store
    _default_store = None
