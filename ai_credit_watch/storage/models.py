"""
Data models for the balance cache.

Defines the credential key, the balance record and the cache entry.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class CredentialKey:
    """Endpoint and secret identifying which account is being cached.

    The secret is kept out of repr so keys can be logged safely.
    """
    endpoint: Optional[str]
    secret: Optional[str] = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        """True when both the endpoint and the secret are non-empty."""
        return bool(self.endpoint) and bool(self.secret)


@dataclass(frozen=True)
class BalanceRecord:
    """Immutable account balance as returned by the remote service.

    balance_nanos is fixed-point: divide by 1,000,000,000 for currency units.
    keys_status is an opaque token such as "active" or "suspended".
    """
    balance_nanos: int
    keys_status: str


@dataclass(frozen=True)
class CacheEntry:
    """Last known balance and the time it was fetched.

    An entry without a record is empty. Staleness is decided at read time;
    entries never expire on their own.
    """
    record: Optional[BalanceRecord] = None
    fetched_at_ms: Optional[int] = None
    credentials: Optional[CredentialKey] = None

    @property
    def is_empty(self) -> bool:
        return self.record is None or self.fetched_at_ms is None

    def age_ms(self, now_ms: int) -> int:
        """Milliseconds elapsed since the fetch.

        Raises:
            ValueError: If the entry is empty
        """
        if self.is_empty:
            raise ValueError("empty cache entry has no age")
        return now_ms - self.fetched_at_ms

    def is_fresh(self, now_ms: int, freshness_window_ms: int) -> bool:
        """True while the entry is inside the freshness window (inclusive)."""
        return not self.is_empty and self.age_ms(now_ms) <= freshness_window_ms

    def matches(self, credentials: CredentialKey) -> bool:
        """True when the entry was fetched with the given credentials."""
        return self.credentials == credentials


EMPTY_ENTRY = CacheEntry()
