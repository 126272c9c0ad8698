"""
Stale-while-revalidate controller for the account balance.

Binds a credential key to the cache store and a fetcher, decides whether
to serve cached data, revalidate in the background or block on a
foreground fetch, and publishes the resulting view to subscribers.

State transitions per binding:
1. Unbound - endpoint or secret missing; nothing is fetched or surfaced
2. Loading - no usable entry; foreground fetch, consumer sees no data
3. Idle - entry within the freshness window; served without fetching
4. Revalidating - stale entry served while a background fetch runs
5. Error - foreground failure (no data) or background failure (stale data kept)

A superseded fetch is a strict no-op: its continuation checks the
binding's cancellation token before touching the store or publishing.
"""

import asyncio
import logging
import traceback
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Set

from ai_credit_watch.storage.cache_store import BalanceCacheStore, get_default_store, now_ms
from ai_credit_watch.storage.models import BalanceRecord, CacheEntry, CredentialKey

from .cancellation import CancellationToken
from .log_sink import LoggingSink, LogLevel, LogSink, safe_log

if TYPE_CHECKING:
    from ai_credit_watch.config.loader import WatchConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_FRESHNESS_WINDOW_MS = 30_000


class FetchState(Enum):
    """Ephemeral fetch state of one controller binding."""
    UNBOUND = auto()
    IDLE = auto()
    LOADING = auto()       # Foreground, consumer is blocked
    REVALIDATING = auto()  # Background, stale record still shown
    ERROR = auto()


@dataclass(frozen=True)
class BalanceView:
    """What a consumer sees: record, loading flag and error.

    Error and record may both be set after a failed background refresh.
    """
    record: Optional[BalanceRecord] = None
    is_loading: bool = False
    error: Optional[Exception] = None
    state: FetchState = FetchState.UNBOUND

    @property
    def has_data(self) -> bool:
        return self.record is not None


UNBOUND_VIEW = BalanceView()


class BalanceFetcher(Protocol):
    """Anything that can fetch a balance for a credential key."""

    async def fetch(self, credentials: CredentialKey) -> BalanceRecord:
        ...


Listener = Callable[[BalanceView], None]


class BalanceController:
    """Consumer-facing orchestrator for the cached account balance.

    Fetches run as asyncio tasks, so any call that may start one (bind,
    read) must happen inside a running event loop.
    """

    def __init__(
        self,
        fetcher: BalanceFetcher,
        store: Optional[BalanceCacheStore] = None,
        freshness_window_ms: int = DEFAULT_FRESHNESS_WINDOW_MS,
        share_across_credentials: bool = False,
        clock: Callable[[], int] = now_ms,
        sink: Optional[LogSink] = None
    ):
        """Initialize the controller.

        Args:
            fetcher: Remote fetcher used for every fetch
            store: Cache store (defaults to the process-wide store)
            freshness_window_ms: Age up to which an entry is served as-is
            share_across_credentials: Serve entries fetched with other
                credentials instead of treating them as empty
            clock: Returns the current time in milliseconds
            sink: Log sink for fetch outcomes (defaults to stdlib logging)

        Raises:
            ValueError: If freshness_window_ms is negative
        """
        if freshness_window_ms < 0:
            raise ValueError("freshness_window_ms must be >= 0")

        self._fetcher = fetcher
        self._store = store if store is not None else get_default_store()
        self.freshness_window_ms = freshness_window_ms
        self.share_across_credentials = share_across_credentials
        self._clock = clock
        self._sink = sink or LoggingSink()

        self._credentials: Optional[CredentialKey] = None
        self._bound = False
        self._closed = False
        self._token = CancellationToken()
        self._task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._view = UNBOUND_VIEW
        self._listeners: List[Listener] = []

    @classmethod
    def from_config(
        cls,
        config: "WatchConfig",
        fetcher: BalanceFetcher,
        store: Optional[BalanceCacheStore] = None,
        sink: Optional[LogSink] = None
    ) -> "BalanceController":
        """Build a controller using the cache section of a WatchConfig."""
        return cls(
            fetcher=fetcher,
            store=store,
            freshness_window_ms=config.cache.freshness_window_ms,
            share_across_credentials=config.cache.share_across_credentials,
            sink=sink
        )

    @property
    def view(self) -> BalanceView:
        return self._view

    @property
    def state(self) -> FetchState:
        return self._view.state

    @property
    def credentials(self) -> Optional[CredentialKey]:
        return self._credentials

    @property
    def store(self) -> BalanceCacheStore:
        return self._store

    @property
    def is_fetching(self) -> bool:
        """True while the current binding has an outstanding fetch."""
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for every published view.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def bind(self, credentials: Optional[CredentialKey]) -> BalanceView:
        """Bind a credential key, re-evaluating only when the key changed.

        Args:
            credentials: Endpoint and secret, or None to unbind

        Returns:
            The view published for the binding
        """
        self._ensure_open()
        if self._bound and credentials == self._credentials:
            return self._view
        return self._enter(credentials)

    def read(self, credentials: Optional[CredentialKey] = None) -> BalanceView:
        """Read the balance as a new consumer would.

        Rebinds when credentials differ from the bound key. Otherwise the
        cache freshness is evaluated again, unless a fetch for the current
        binding is still outstanding.

        Args:
            credentials: Credentials to read with (defaults to the bound key)

        Returns:
            The view after evaluation
        """
        self._ensure_open()
        if credentials is not None and (not self._bound or credentials != self._credentials):
            return self._enter(credentials)
        if not self._bound or self.is_fetching:
            return self._view
        return self._enter(self._credentials)

    async def wait_for_fetch(self) -> BalanceView:
        """Wait for the outstanding fetch of the current binding, if any."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)
        return self._view

    def close(self) -> None:
        """Tear down: signal the token and cancel outstanding fetches."""
        if self._closed:
            return
        self._closed = True
        self._token.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()

    async def aclose(self) -> None:
        """Close and wait until cancelled fetches have unwound."""
        tasks = list(self._tasks)
        self.close()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "BalanceController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("BalanceController is closed")

    def _usable(self, entry: CacheEntry, credentials: CredentialKey) -> bool:
        if entry.is_empty:
            return False
        return self.share_across_credentials or entry.matches(credentials)

    def _enter(self, credentials: Optional[CredentialKey]) -> BalanceView:
        # Whatever the previous binding was doing is now superseded
        self._token.cancel()
        self._token = CancellationToken()
        self._task = None
        self._credentials = credentials
        self._bound = True

        if credentials is None or not credentials.is_complete:
            self._publish(UNBOUND_VIEW)
            return self._view

        entry = self._store.read()
        if not self._usable(entry, credentials):
            # Task only runs at the next await, so listeners still see LOADING first
            self._start_fetch(credentials, background=False)
            self._publish(BalanceView(is_loading=True, state=FetchState.LOADING))
        elif entry.is_fresh(self._clock(), self.freshness_window_ms):
            self._publish(BalanceView(record=entry.record, state=FetchState.IDLE))
        else:
            self._start_fetch(credentials, background=True)
            self._publish(BalanceView(record=entry.record, state=FetchState.REVALIDATING))
        return self._view

    def _start_fetch(self, credentials: CredentialKey, background: bool) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_fetch(credentials, self._token, background))
        self._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_fetch(
        self,
        credentials: CredentialKey,
        token: CancellationToken,
        background: bool
    ) -> None:
        try:
            record = await self._fetcher.fetch(credentials)
        except Exception as e:
            if token.cancelled:
                LOGGER.debug("Dropping failure of superseded balance fetch: %s", e)
                return
            self._on_failure(e, background)
            return

        if token.cancelled:
            LOGGER.debug("Dropping result of superseded balance fetch")
            return
        self._on_success(credentials, record)

    def _on_success(self, credentials: CredentialKey, record: BalanceRecord) -> None:
        self._store.write(record, self._clock(), credentials)
        self._publish(BalanceView(record=record, state=FetchState.IDLE))
        safe_log(
            self._sink,
            LogLevel.INFO,
            f"Account balance fetched successfully: {record.balance_nanos} nanos"
        )

    def _on_failure(self, error: Exception, background: bool) -> None:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        safe_log(self._sink, LogLevel.ERROR, f"Fetch error: {error}", stack)

        if background:
            # Stale value is preferred over no value
            view = BalanceView(record=self._view.record, error=error, state=FetchState.ERROR)
        else:
            self._store.clear()
            view = BalanceView(error=error, state=FetchState.ERROR)
        self._publish(view)

    def _publish(self, view: BalanceView) -> None:
        self._view = view
        for listener in list(self._listeners):
            listener(view)
