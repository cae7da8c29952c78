"""Cache-first loading of stock data for the currently selected symbol.

Each selection runs on a worker thread. A selection generation acts as the
liveness flag: a load only commits its result if no newer selection happened
meanwhile. Loads for a symbol that is already in flight join the running
fetch, so timer-driven and user-driven refreshes never race on the cache
write.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from stockscan.domain.errors import MissingCredentialError
from stockscan.domain.models.financials import FetchStatus, StockData, SymbolMatch
from stockscan.infrastructure.cache import CacheManager
from stockscan.workflows.gateway import FinancialDataGateway
from stockscan.workflows.state import ViewState

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data returned (possible rate limit or invalid symbol)."

StateListener = Callable[[ViewState], None]


@dataclass(frozen=True)
class LoadOutcome:
    stock_data: Optional[StockData] = None
    error: Optional[str] = None
    from_cache: bool = False
    stale: bool = False


class StockDataLoader:
    """Coordinate the dataset cache and the gateway for one presentation surface."""

    def __init__(
        self,
        gateway: FinancialDataGateway,
        cache: CacheManager,
        *,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 4,
        listener: Optional[StateListener] = None,
    ) -> None:
        self._gateway = gateway
        self._cache = cache
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="stockscan")
        self._listeners: List[StateListener] = [listener] if listener is not None else []
        self._lock = threading.Lock()
        self._generation = 0
        self._state = ViewState()
        self._inflight: Dict[str, "Future[LoadOutcome]"] = {}
        self._inflight_lock = threading.Lock()

    def subscribe(self, listener: StateListener) -> None:
        """Call ``listener`` with every published state snapshot."""
        self._listeners.append(listener)

    @property
    def state(self) -> ViewState:
        with self._lock:
            return self._state

    # ---------
    # Selection
    # ---------
    def select(self, symbol: str) -> "Optional[Future[ViewState]]":
        """Switch to ``symbol`` and start loading it; returns None for a blank symbol."""
        ticker = (symbol or "").strip().upper()
        if not ticker:
            return None
        with self._lock:
            self._generation += 1
            generation = self._generation
            keep = self._state.stock_data if self._state.symbol == ticker else None
            self._state = ViewState(symbol=ticker, stock_data=keep, loading=True)
            snapshot = self._state
        self._notify(snapshot)
        return self._executor.submit(self._run, generation, ticker)

    def refresh(self) -> "Optional[Future[ViewState]]":
        """Reload the current symbol under the same caching rule."""
        symbol = self.state.symbol
        if not symbol:
            return None
        logger.debug("Refreshing %s", symbol)
        return self.select(symbol)

    def search(self, query: str) -> List[SymbolMatch]:
        """Search-cache-first symbol lookup keyed by the literal query."""
        if not query or not query.strip():
            return []
        cached = self._cache.search.get(query)
        if cached is not None:
            logger.debug("Search cache hit for %r", query)
            return cached
        result = self._gateway.search(query)
        matches = list(result.data or [])
        if result.status in (FetchStatus.OK, FetchStatus.EMPTY):
            self._cache.search.put(query, matches)
        return matches

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # --------
    # Internals
    # --------
    def _run(self, generation: int, ticker: str) -> ViewState:
        try:
            outcome = self._load_shared(ticker)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Loading %s failed", ticker)
            outcome = LoadOutcome(error=str(exc))
        self._commit(generation, ticker, outcome)
        return self.state

    def _load_shared(self, ticker: str) -> LoadOutcome:
        with self._inflight_lock:
            pending = self._inflight.get(ticker)
            owner = pending is None
            if owner:
                pending = Future()
                self._inflight[ticker] = pending
        if not owner:
            logger.debug("Joining in-flight load for %s", ticker)
            return pending.result()

        try:
            outcome = self._load(ticker)
        except BaseException as exc:
            pending.set_exception(exc)
            raise
        else:
            pending.set_result(outcome)
            return outcome
        finally:
            with self._inflight_lock:
                self._inflight.pop(ticker, None)

    def _load(self, ticker: str) -> LoadOutcome:
        datasets = self._cache.datasets
        entry = datasets.read(ticker)
        if entry is not None and datasets.is_fresh(entry):
            logger.debug("Serving %s from cache", ticker)
            return LoadOutcome(stock_data=entry.payload, from_cache=True)

        previous = entry.payload if entry is not None else None
        try:
            result = self._gateway.fetch(ticker)
        except MissingCredentialError as exc:
            return LoadOutcome(stock_data=previous, error=str(exc), from_cache=previous is not None, stale=previous is not None)

        if result.is_ok and result.data is not None:
            datasets.put(ticker, result.data)
            return LoadOutcome(stock_data=result.data)

        logger.warning("No data for %s (%s): %s", ticker, result.status.value, result.reason)
        return LoadOutcome(
            stock_data=previous,
            error=NO_DATA_MESSAGE,
            from_cache=previous is not None,
            stale=previous is not None,
        )

    def _commit(self, generation: int, ticker: str, outcome: LoadOutcome) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding result for %s; selection changed", ticker)
                return False
            self._state = replace(
                self._state,
                stock_data=outcome.stock_data,
                loading=False,
                error=outcome.error,
                from_cache=outcome.from_cache,
                stale=outcome.stale,
            )
            snapshot = self._state
        self._notify(snapshot)
        return True

    def _notify(self, state: ViewState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:  # pylint: disable=broad-except
                logger.exception("State listener failed")


class PriceRefresher:
    """Background timer re-triggering :meth:`StockDataLoader.refresh`."""

    def __init__(self, loader: StockDataLoader, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._loader = loader
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="stockscan-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            self._loader.refresh()
