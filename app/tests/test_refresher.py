from __future__ import annotations

import asyncio

import pytest

from app.config import settings as settings_module
from app.jobs import refresher
from app.services.alcor import EndpointError, MarketFeeds
from app.services.board import BubbleBoard
from app.services.chart import BubbleChart

TOKENS = [{"symbol": "A", "usd_price": 2}]
POOLS = [{"tokenA": {"symbol": "A"}, "tokenB": {"symbol": "B"}, "change24": 1, "changeWeek": 2}]


def _board(fail: dict) -> BubbleBoard:
    async def fetch():
        if fail.get("on"):
            raise EndpointError("pools", "https://alcor.test/pools", status=502)
        return MarketFeeds(tokens=TOKENS, pools=POOLS)

    return BubbleBoard(BubbleChart(400, 200), fetch_fn=fetch)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_run_once_tracks_failures_and_recovery():
    fail = {"on": True}
    board = _board(fail)
    refresher._state.stats = refresher._fresh_stats()

    assert await refresher.run_once(board) is False
    assert await refresher.run_once(board) is False
    assert refresher._state.stats["consecutive_failures"] == 2
    assert "502" in refresher._state.stats["last_error"]

    fail["on"] = False
    assert await refresher.run_once(board) is True
    assert refresher._state.stats["consecutive_failures"] == 0
    assert refresher._state.stats["last_success_ts"] is not None
    assert board.chart.rendered


@pytest.mark.asyncio
async def test_start_and_stop_refresher():
    board = _board({})
    handle = refresher.start_refresher(board, interval_s=60)
    try:
        assert handle is not None
        assert handle.running
        await _wait_for(lambda: board.chart.rendered)

        info = handle.info()
        assert info["interval_s"] == 60
        assert info["consecutive_failures"] == 0

        # second start returns the live handle
        again = refresher.start_refresher(board, interval_s=60)
        assert again is not None and again.running
    finally:
        await refresher.stop_refresher()

    assert not handle.running


@pytest.mark.asyncio
async def test_interval_has_a_floor():
    handle = refresher.start_refresher(_board({}), interval_s=1)
    try:
        assert handle.info()["interval_s"] == refresher.MIN_INTERVAL_SECONDS
    finally:
        await refresher.stop_refresher()


@pytest.mark.asyncio
async def test_disabled_by_default(monkeypatch):
    monkeypatch.delenv("REFRESH_ENABLED", raising=False)
    settings_module.reset_settings()
    try:
        assert refresher.start_refresher(_board({})) is None
    finally:
        settings_module.reset_settings()
