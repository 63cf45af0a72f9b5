"""
tests/test_client_extras.py — Click-Speed Meter, Auto-Clicker & Transports
==========================================================================
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from clickrank.client.aggregator import ClickAggregator
from clickrank.client.autoclick import AutoClicker
from clickrank.client.speed import ClickSpeedMeter
from clickrank.client.transport import HttpClickTransport, LedgerClickTransport
from clickrank.errors import AuthenticationError, TransientStoreError, ValidationError
from conftest import run_async


class _CountingTransport:
    def __init__(self):
        self.total = 0
        self.speeds = []
        self.speed_error = None

    async def submit_total(self, new_total):
        self.total = new_total
        return new_total

    async def fetch_total(self):
        return self.total

    async def submit_click_speed(self, rate):
        if self.speed_error:
            raise self.speed_error
        self.speeds.append(rate)
        return [rate]


# ===========================================================================
# Click-speed meter
# ===========================================================================
class TestClickSpeedMeter:
    def test_counts_within_window(self):
        now = [100.0]
        meter = ClickSpeedMeter(window=5, clock=lambda: now[0])
        for _ in range(4):
            meter.record()
            now[0] += 1
        assert meter.rate() == 4

        now[0] += 3   # first clicks fall out of the window
        assert meter.rate() == 1
        assert meter.best == 4

    def test_report_submits_best_only_when_improved(self):
        now = [0.0]
        meter = ClickSpeedMeter(window=5, clock=lambda: now[0])
        transport = _CountingTransport()
        meter.record(12)

        assert run_async(meter.report(transport)) == [12]
        assert run_async(meter.report(transport)) == []
        meter.record(3)
        assert run_async(meter.report(transport)) == [15]
        assert transport.speeds == [12, 15]

    def test_failed_report_is_retried(self):
        meter = ClickSpeedMeter(clock=lambda: 0.0)
        meter.record(7)
        transport = _CountingTransport()
        transport.speed_error = TransientStoreError("down")
        with pytest.raises(TransientStoreError):
            run_async(meter.report(transport))

        transport.speed_error = None
        assert run_async(meter.report(transport)) == [7]


# ===========================================================================
# Auto-clicker
# ===========================================================================
class TestAutoClicker:
    def test_enqueues_click_value_while_rate_positive(self):
        async def _inner():
            agg = ClickAggregator(_CountingTransport(), seed_delay=0.001)
            auto = AutoClicker(agg)
            auto.update(rate=10, click_value=3)   # every 100 ms
            assert auto.interval_ms == 100
            await asyncio.sleep(0.35)
            auto.update(rate=0)
            assert not auto.running
            await agg.close()
            return agg

        agg = run_async(_inner())
        assert agg.confirmed_total > 0
        assert agg.confirmed_total % 3 == 0

    def test_restart_keeps_new_task_handle(self):
        async def _inner():
            agg = ClickAggregator(_CountingTransport(), seed_delay=0.001)
            auto = AutoClicker(agg)
            auto.update(rate=10)
            first = auto._task
            await asyncio.sleep(0)
            auto.stop()
            auto.update(rate=10)
            second = auto._task
            await asyncio.sleep(0.01)   # first task unwinds its cancellation
            assert first.done()
            assert auto._task is second
            assert auto.running
            auto.stop()
            await agg.close()

        run_async(_inner())

    def test_loop_exit_clears_handle(self):
        async def _inner():
            agg = ClickAggregator(_CountingTransport(), seed_delay=0.001)
            await agg.close()
            auto = AutoClicker(agg)
            auto.update(rate=10)   # enqueue fails on the closed aggregator
            await asyncio.sleep(0.15)
            return auto

        assert not run_async(_inner()).running


# ===========================================================================
# HTTP transport
# ===========================================================================
def _transport(handler) -> HttpClickTransport:
    client = httpx.AsyncClient(
        base_url="http://clickrank.test", transport=httpx.MockTransport(handler),
    )
    return HttpClickTransport("http://clickrank.test", token="tok", client=client)


class TestHttpTransport:
    def test_submit_sends_full_total_with_bearer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = request.content
            return httpx.Response(200, json={"click_total": 42})

        assert run_async(_transport(handler).submit_total(42)) == 42
        assert seen["auth"] == "Bearer tok"
        assert b'"total"' in seen["body"] and b"42" in seen["body"]

    @pytest.mark.parametrize("status, error", [
        (401, AuthenticationError),
        (503, TransientStoreError),
    ])
    def test_status_mapping(self, status, error):
        def handler(request):
            return httpx.Response(status, json={"detail": "nope"})

        with pytest.raises(error):
            run_async(_transport(handler).submit_total(1))

    def test_conflict_carries_current_total(self):
        def handler(request):
            return httpx.Response(
                409, json={"detail": {"message": "Click total cannot decrease",
                                      "current_total": 77}},
            )

        with pytest.raises(ValidationError) as info:
            run_async(_transport(handler).submit_total(1))
        assert info.value.current_total == 77

    def test_network_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        with pytest.raises(TransientStoreError):
            run_async(_transport(handler).fetch_total())

    def test_click_speed_posts_rate(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = request.content
            return httpx.Response(200, json={"rate": 21, "granted_achievements": [3, 4]})

        assert run_async(_transport(handler).submit_click_speed(21)) == [3, 4]
        assert seen["path"] == "/api/click-speed"
        assert b'"rate"' in seen["body"]


# ===========================================================================
# In-process transport
# ===========================================================================
class TestLedgerTransport:
    def test_click_speed_grants_milestones(self, ledger, catalog):
        transport = LedgerClickTransport(ledger, catalog, "u1")
        granted = run_async(transport.submit_click_speed(21))
        names = {catalog.achievement(aid).name for aid in granted}
        assert names == {"Quick Clicker", "Speed Demon"}
        assert ledger.list_grants("u1") != []
