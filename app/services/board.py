from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from app.config.metrics import Metric, resolve_metric
from app.schemas.bubbles import TokenRecord
from app.services.aggregator import DEFAULT_PROFILE, AggregationProfile, aggregate_tokens
from app.services.alcor import MarketFeeds, fetch_market_feeds
from app.services.chart import Bubble, BubbleChart, ChartStateError

logger = logging.getLogger("token_bubbles.board")

FeedFetcher = Callable[[], Awaitable[MarketFeeds]]


async def load_records(
    fetch_fn: FeedFetcher = fetch_market_feeds,
    profile: AggregationProfile = DEFAULT_PROFILE,
) -> List[TokenRecord]:
    feeds = await fetch_fn()
    return aggregate_tokens(feeds.tokens, feeds.pools, profile)


class BubbleBoard:
    """
    Owns the chart surface and runs refreshes one at a time.

    A refresh requested while another is in flight waits for it, then runs
    with its own metric. A failed refresh leaves the previous frame on the
    chart. Layout runs in a worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        chart: BubbleChart,
        fetch_fn: FeedFetcher = fetch_market_feeds,
        profile: AggregationProfile = DEFAULT_PROFILE,
    ):
        self.chart = chart
        self.fetch_fn = fetch_fn
        self.profile = profile
        self._lock = asyncio.Lock()
        self.last_refresh_ts: Optional[float] = None
        self.last_error: Optional[str] = None
        self.last_records: List[TokenRecord] = []

    @property
    def refreshing(self) -> bool:
        return self._lock.locked()

    async def refresh(self, metric: str | Metric | None = None) -> List[Bubble]:
        metric = resolve_metric(metric) if metric is not None else None

        async with self._lock:
            if self.chart.disposed:
                raise ChartStateError("Board chart has been disposed")
            if metric is None:
                metric = self.chart.metric
            t0 = time.perf_counter()
            try:
                records = await load_records(self.fetch_fn, self.profile)
                if self.chart.rendered:
                    bubbles = await asyncio.to_thread(self.chart.update, records, metric)
                else:
                    bubbles = await asyncio.to_thread(self.chart.render, records, metric)
            except Exception as e:
                self.last_error = repr(e)[:300]
                raise

            self.last_records = records
            self.last_refresh_ts = time.time()
            self.last_error = None
            logger.info(
                "board refreshed | metric=%s | tokens=%d | bubbles=%d | %dms",
                metric.value,
                len(records),
                len(bubbles),
                int((time.perf_counter() - t0) * 1000),
            )
            return bubbles

    def info(self) -> dict[str, Any]:
        return {
            "ok": self.chart.rendered and not self.chart.disposed,
            "rendered": self.chart.rendered,
            "disposed": self.chart.disposed,
            "refreshing": self.refreshing,
            "metric": self.chart.metric.value,
            "tokens": self.chart.record_count,
            "last_refresh_ts": self.last_refresh_ts,
            "last_error": self.last_error,
        }

    def dispose(self) -> None:
        self.chart.dispose()
