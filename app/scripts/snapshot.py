# app/scripts/snapshot.py
from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from app.config.metrics import Metric, resolve_metric
from app.config.settings import get_settings
from app.services.board import BubbleBoard
from app.services.chart import BubbleChart
from app.services.alcor import EndpointError, fetch_market_feeds


@dataclass
class SnapshotResult:
    metric: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    bubbles: int = 0
    svg_path: Optional[str] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "metric": self.metric,
            "tokens": len(self.records),
            "bubbles": self.bubbles,
            "records": self.records,
            "svg_path": self.svg_path,
            "error": self.error,
        }


async def execute_snapshot(
    *,
    metric: Metric,
    svg_path: Optional[Path] = None,
    fetch_fn: Callable[..., Any] = fetch_market_feeds,
) -> SnapshotResult:
    """One refresh cycle outside the web app: fetch, aggregate, draw."""
    settings = get_settings()
    chart = BubbleChart(
        width=settings.CHART_WIDTH,
        height=settings.CHART_HEIGHT,
        padding=settings.CHART_PADDING,
        max_bubbles=settings.CHART_MAX_BUBBLES,
    )
    board = BubbleBoard(chart, fetch_fn=fetch_fn)

    try:
        bubbles = await board.refresh(metric)
        records = [r.model_dump() for r in board.last_records]

        written = None
        if svg_path is not None:
            svg_path.write_text(chart.to_svg(), encoding="utf-8")
            written = str(svg_path)

        return SnapshotResult(metric=metric.value, records=records, bubbles=len(bubbles), svg_path=written)
    except EndpointError as exc:
        return SnapshotResult(metric=metric.value, error={"type": "endpoint", **exc.to_dict()})
    except ValueError as exc:
        return SnapshotResult(metric=metric.value, error={"type": "data", "message": str(exc)})
    finally:
        board.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Render one token bubble chart snapshot")
    parser.add_argument("--metric", default=None, choices=[m.value for m in Metric])
    parser.add_argument("--svg", default=None, help="write the chart to this SVG file")
    args = parser.parse_args()

    metric = resolve_metric(args.metric or get_settings().DEFAULT_METRIC)
    svg_path = Path(args.svg) if args.svg else None

    result = asyncio.run(execute_snapshot(metric=metric, svg_path=svg_path))
    print(json.dumps(result.to_dict()))
    raise SystemExit(0 if result.ok else 1)


if __name__ == "__main__":
    main()
