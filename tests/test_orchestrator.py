from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import timedelta

import pytest

from stockscan.domain.models.financials import CompanyOverview, FetchResult, SymbolMatch
from stockscan.domain.services.fixtures import build_mock_stock_data
from stockscan.infrastructure.cache import CacheManager
from stockscan.infrastructure.credentials import CredentialStore
from stockscan.workflows.gateway import FinancialDataGateway
from stockscan.workflows.orchestrator import NO_DATA_MESSAGE, PriceRefresher, StockDataLoader

WAIT = 5.0


def _stock(symbol: str, price: float = 10.0):
    data = build_mock_stock_data()
    return replace(data, overview=CompanyOverview(symbol=symbol, name=f"{symbol} Corp", current_price=price))


class StubGateway:
    """Programmable stand-in for :class:`FinancialDataGateway`."""

    def __init__(self, results=None, search_results=None):
        self.results = dict(results or {})
        self.search_results = dict(search_results or {})
        self.fetch_calls = []
        self.search_calls = []
        self.gates = {}
        self.entered = {}

    def block(self, symbol):
        self.gates[symbol] = threading.Event()
        self.entered[symbol] = threading.Event()
        return self.gates[symbol]

    def fetch(self, symbol):
        self.fetch_calls.append(symbol)
        if symbol in self.gates:
            self.entered[symbol].set()
            assert self.gates[symbol].wait(WAIT)
        outcome = self.results.get(symbol, FetchResult.empty("unknown"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def search(self, query):
        self.search_calls.append(query)
        return self.search_results.get(query, FetchResult.empty("no matches"))


class Clock:
    def __init__(self):
        self.now = 1_700_000_000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def cache(store, clock):
    return CacheManager(store, ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def make_loader(cache):
    loaders = []

    def _make(gateway, **kwargs):
        loader = StockDataLoader(gateway, cache, **kwargs)
        loaders.append(loader)
        return loader

    yield _make
    for loader in loaders:
        loader.close()


def test_blank_selection_is_ignored(make_loader):
    loader = make_loader(StubGateway())
    assert loader.select("  ") is None
    assert loader.refresh() is None
    assert loader.state.symbol == ""


def test_fresh_cache_hit_skips_gateway(make_loader, cache):
    cached = _stock("IBM", 150.0)
    cache.datasets.put("IBM", cached)
    gateway = StubGateway({"IBM": FetchResult.ok(_stock("IBM", 999.0))})
    loader = make_loader(gateway)

    state = loader.select("ibm").result(WAIT)

    assert gateway.fetch_calls == []
    assert state.symbol == "IBM"
    assert state.stock_data == cached
    assert state.from_cache and not state.loading and state.error is None


def test_stale_entry_triggers_one_fetch_and_overwrite(make_loader, cache, clock):
    cache.datasets.put("IBM", _stock("IBM", 150.0))
    clock.now += timedelta(hours=25).total_seconds()
    fresh = _stock("IBM", 160.0)
    gateway = StubGateway({"IBM": FetchResult.ok(fresh)})
    loader = make_loader(gateway)

    state = loader.select("IBM").result(WAIT)

    assert gateway.fetch_calls == ["IBM"]
    assert state.stock_data == fresh
    assert not state.from_cache
    entry = cache.datasets.read("IBM")
    assert entry.payload == fresh
    assert entry.captured_at_ms == int(clock.now * 1000)


def test_failed_refresh_keeps_stale_entry(make_loader, cache, clock):
    old = _stock("IBM", 150.0)
    cache.datasets.put("IBM", old)
    stamp = cache.datasets.read("IBM").captured_at_ms
    clock.now += timedelta(hours=25).total_seconds()
    gateway = StubGateway({"IBM": FetchResult.failed("HTTP 503")})
    loader = make_loader(gateway)

    state = loader.select("IBM").result(WAIT)

    assert state.error == NO_DATA_MESSAGE
    assert state.stock_data == old
    assert state.stale
    assert cache.datasets.read("IBM").captured_at_ms == stamp


def test_no_data_without_cache_reports_error(make_loader):
    loader = make_loader(StubGateway({"NOPE": FetchResult.empty("empty overview")}))

    state = loader.select("nope").result(WAIT)

    assert state.stock_data is None
    assert state.error == NO_DATA_MESSAGE
    assert not state.loading


def test_missing_credential_surfaces_as_error_state(make_loader, store, make_upstream):
    upstream = make_upstream({})
    gateway = FinancialDataGateway(CredentialStore(store), upstream.factory())
    loader = make_loader(gateway)

    state = loader.select("IBM").result(WAIT)

    assert state.stock_data is None
    assert "API key" in state.error
    assert upstream.calls == []


def test_reserved_symbol_loads_and_caches_without_key(make_loader, store, cache, make_upstream):
    gateway = FinancialDataGateway(CredentialStore(store), make_upstream({}).factory())
    loader = make_loader(gateway)

    state = loader.select("test").result(WAIT)

    assert state.stock_data.analysis.quick_scan_score == 79
    assert cache.datasets.get_fresh("TEST") == build_mock_stock_data()


def test_unexpected_gateway_error_does_not_kill_loader(make_loader):
    loader = make_loader(StubGateway({"IBM": RuntimeError("boom")}))
    state = loader.select("IBM").result(WAIT)
    assert state.error == "boom"
    assert not state.loading


def test_listener_sees_loading_then_result(make_loader):
    seen = []
    loader = make_loader(StubGateway({"IBM": FetchResult.ok(_stock("IBM"))}), listener=seen.append)

    loader.select("IBM").result(WAIT)

    assert [s.loading for s in seen] == [True, False]
    assert seen[-1].stock_data.symbol == "IBM"


def test_switching_symbols_discards_late_result(make_loader):
    gateway = StubGateway({"SLOW": FetchResult.ok(_stock("SLOW")), "FAST": FetchResult.ok(_stock("FAST"))})
    release = gateway.block("SLOW")
    loader = make_loader(gateway)

    slow = loader.select("SLOW")
    assert gateway.entered["SLOW"].wait(WAIT)
    loader.select("FAST").result(WAIT)
    release.set()
    slow.result(WAIT)

    state = loader.state
    assert state.symbol == "FAST"
    assert state.stock_data.symbol == "FAST"


def test_concurrent_loads_of_one_symbol_share_a_fetch(make_loader, cache):
    gateway = StubGateway({"IBM": FetchResult.ok(_stock("IBM"))})
    release = gateway.block("IBM")
    loader = make_loader(gateway)

    first = loader.select("IBM")
    assert gateway.entered["IBM"].wait(WAIT)
    second = loader.refresh()
    release.set()
    first.result(WAIT)
    second.result(WAIT)

    assert gateway.fetch_calls == ["IBM"]
    assert loader.state.stock_data.symbol == "IBM"
    assert cache.datasets.get_fresh("IBM") is not None


def test_reselecting_same_symbol_keeps_shown_data(make_loader, cache, clock):
    gateway = StubGateway({"IBM": FetchResult.ok(_stock("IBM"))})
    loader = make_loader(gateway)
    loader.select("IBM").result(WAIT)
    clock.now += timedelta(hours=25).total_seconds()
    release = gateway.block("IBM")

    pending = loader.refresh()
    assert gateway.entered["IBM"].wait(WAIT)
    assert loader.state.loading
    assert loader.state.stock_data is not None
    release.set()
    pending.result(WAIT)


# ------
# Search
# ------
def test_search_is_cached_by_literal_query(make_loader):
    matches = [SymbolMatch("IBM", "International Business Machines")]
    gateway = StubGateway(search_results={"ibm": FetchResult.ok(matches)})
    loader = make_loader(gateway)

    assert loader.search("ibm") == matches
    assert loader.search("ibm") == matches
    assert gateway.search_calls == ["ibm"]

    loader.search("IBM")
    assert gateway.search_calls == ["ibm", "IBM"]


def test_failed_search_is_not_cached(make_loader):
    gateway = StubGateway(search_results={"ibm": FetchResult.failed("rate limited")})
    loader = make_loader(gateway)

    assert loader.search("ibm") == []
    assert loader.search("ibm") == []
    assert gateway.search_calls == ["ibm", "ibm"]
    assert loader.search("") == []
    assert gateway.search_calls == ["ibm", "ibm"]


# ---------
# Refresher
# ---------
class CountingLoader:
    def __init__(self, target):
        self.count = 0
        self.target = target
        self.done = threading.Event()

    def refresh(self):
        self.count += 1
        if self.count >= self.target:
            self.done.set()


def test_price_refresher_ticks_until_stopped():
    loader = CountingLoader(target=3)
    refresher = PriceRefresher(loader, interval_seconds=0.01)

    refresher.start()
    assert refresher.running
    assert loader.done.wait(WAIT)
    refresher.stop(timeout=WAIT)

    assert not refresher.running
    ticks = loader.count
    assert ticks >= 3
    time.sleep(0.05)
    assert loader.count == ticks


def test_price_refresher_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        PriceRefresher(CountingLoader(1), interval_seconds=0)
