from __future__ import annotations

import asyncio
import time

import pytest

from app.config.metrics import Metric
from app.services.alcor import EndpointError, MarketFeeds
from app.services.board import BubbleBoard
from app.services import chart as chart_module
from app.services.chart import BubbleChart, ChartStateError

TOKENS = [{"symbol": "A", "usd_price": 2}, {"symbol": "B", "usd_price": 1}]
POOLS = [{"tokenA": {"symbol": "A"}, "tokenB": {"symbol": "B"}, "change24": 10, "changeWeek": 5}]


def _static_fetch(tokens=TOKENS, pools=POOLS):
    async def fetch():
        return MarketFeeds(tokens=list(tokens), pools=list(pools))

    return fetch


@pytest.mark.asyncio
async def test_first_refresh_renders_then_updates():
    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=_static_fetch())

    first = await board.refresh()
    assert board.chart.rendered
    assert board.chart.metric == Metric.market_cap
    assert first[0].caption == "24H: 10.00%"

    second = await board.refresh("price")
    assert board.chart.metric == Metric.price
    assert second[0].caption == "$2"
    assert board.last_error is None
    assert board.last_refresh_ts is not None


@pytest.mark.asyncio
async def test_refresh_without_metric_keeps_current_metric():
    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=_static_fetch())
    await board.refresh(Metric.volume_24h)
    await board.refresh()
    assert board.chart.metric == Metric.volume_24h


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_frame():
    state = {"fail": False}

    async def fetch():
        if state["fail"]:
            raise EndpointError("tokens", "https://alcor.test/tokens", status=500)
        return MarketFeeds(tokens=TOKENS, pools=POOLS)

    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=fetch)
    before = await board.refresh()
    svg_before = board.chart.to_svg()

    state["fail"] = True
    with pytest.raises(EndpointError):
        await board.refresh("price")

    assert board.chart.metric == Metric.market_cap
    assert board.chart.bubbles == before
    assert board.chart.to_svg() == svg_before
    assert "500" in board.last_error
    assert board.info()["last_error"] == board.last_error


@pytest.mark.asyncio
async def test_endpoint_failure_before_first_render_attempts_no_render():
    async def fetch():
        raise EndpointError("tokens", "https://alcor.test/tokens", status=500)

    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=fetch)
    with pytest.raises(EndpointError) as err:
        await board.refresh()

    assert err.value.endpoint == "tokens"
    assert not board.chart.rendered


@pytest.mark.asyncio
async def test_overlapping_refreshes_run_one_at_a_time():
    active = 0
    max_active = 0
    gate = asyncio.Event()

    async def fetch():
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        await gate.wait()
        active -= 1
        return MarketFeeds(tokens=TOKENS, pools=POOLS)

    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=fetch)

    first = asyncio.create_task(board.refresh(Metric.price))
    second = asyncio.create_task(board.refresh(Metric.circulating_supply))
    await asyncio.sleep(0)
    assert board.refreshing

    gate.set()
    await asyncio.gather(first, second)

    assert max_active == 1
    # queued refresh ran last with its own metric
    assert board.chart.metric == Metric.circulating_supply
    assert not board.refreshing


@pytest.mark.asyncio
async def test_disposed_board_refuses_refresh():
    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=_static_fetch())
    await board.refresh()
    board.dispose()

    with pytest.raises(ChartStateError):
        await board.refresh()
    assert board.info()["disposed"] is True


@pytest.mark.asyncio
async def test_layout_runs_off_the_event_loop(monkeypatch):
    real_pack = chart_module.pack_layout

    def slow_pack(*args, **kwargs):
        time.sleep(0.3)
        return real_pack(*args, **kwargs)

    monkeypatch.setattr(chart_module, "pack_layout", slow_pack)

    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=_static_fetch())
    ticks = 0
    done = False

    async def ticker():
        nonlocal ticks
        while not done:
            ticks += 1
            await asyncio.sleep(0.01)

    tick_task = asyncio.create_task(ticker())
    try:
        bubbles = await board.refresh()
    finally:
        done = True
        await tick_task

    assert len(bubbles) == 2
    # a blocked loop would tick once or twice during the 300ms layout
    assert ticks >= 5


@pytest.mark.asyncio
async def test_render_failure_is_recorded(monkeypatch):
    board = BubbleBoard(BubbleChart(600, 300), fetch_fn=_static_fetch())

    def broken_render(records, metric=None):
        raise RuntimeError("layout exploded")

    monkeypatch.setattr(board.chart, "render", broken_render)

    with pytest.raises(RuntimeError):
        await board.refresh()

    assert "layout exploded" in board.last_error
    assert board.info()["last_error"] == board.last_error
    assert board.last_refresh_ts is None
    assert not board.chart.rendered
