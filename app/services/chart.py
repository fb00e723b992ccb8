"""
Bubble chart surface.

Layout is delegated to circlify (circle packing, area proportional to value);
this module scales the packing into the drawing box and emits SVG.

Lifecycle: BubbleChart(...) -> render() -> update()* -> dispose().
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import List, Optional, Sequence, Tuple

import circlify

from app.config.metrics import DISPLAY_FIELDS, Metric, resolve_metric
from app.schemas.bubbles import TokenRecord

FONT_FAMILY = "BloombergBold"


class ChartStateError(RuntimeError):
    pass


@dataclass(frozen=True)
class Bubble:
    symbol: str
    x: float
    y: float
    r: float
    value: float
    caption: str
    tooltip: str

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "x": self.x,
            "y": self.y,
            "r": self.r,
            "value": self.value,
            "caption": self.caption,
        }


def pack_layout(
    values: Sequence[float],
    width: int,
    height: int,
    padding: float = 0.0,
    limit: Optional[int] = None,
) -> List[Tuple[int, float, float, float]]:
    """
    Pack one circle per positive value into a width x height box.
    Returns (input index, cx, cy, r) sorted by value descending.
    Non-positive values are left out; with `limit`, only the largest `limit`
    values are packed (circlify slows down steeply past ~100 circles).
    Padding is taken off each packed radius (padding / 2 per circle), not
    reserved between siblings while packing.
    """
    ranked = sorted((i for i, v in enumerate(values) if v > 0), key=lambda i: (-values[i], i))
    if limit is not None:
        ranked = ranked[: max(0, limit)]
    data = [{"id": i, "datum": float(values[i])} for i in ranked]
    if not data:
        return []

    circles = circlify.circlify(data, show_enclosure=False)

    scale = min(width, height) / 2.0
    cx0, cy0 = width / 2.0, height / 2.0

    out = []
    for c in circles:
        idx = c.ex["id"]
        r = max(0.0, c.r * scale - padding / 2.0)
        # svg y axis points down
        out.append((idx, cx0 + c.x * scale, cy0 - c.y * scale, r))

    out.sort(key=lambda t: (-values[t[0]], t[0]))
    return out


def _tooltip(record: TokenRecord) -> str:
    return "\n".join(
        [
            f"Currency: {record.symbol}",
            f"Market Capitalization: {record.market_cap_display}",
            f"24H Change: {record.change_24h_display}",
            f"7D Change: {record.change_7d_display}",
        ]
    )


class BubbleChart:
    def __init__(
        self,
        width: int = 1200,
        height: int = 500,
        padding: float = 1.5,
        metric: str | Metric | None = None,
        max_bubbles: Optional[int] = None,
    ):
        if width <= 0 or height <= 0:
            raise ValueError("Chart width and height must be positive")
        if max_bubbles is not None and max_bubbles < 1:
            raise ValueError("max_bubbles must be >= 1")
        self.max_bubbles = max_bubbles
        self.width = width
        self.height = height
        self.padding = padding
        self._bubbles: Optional[List[Bubble]] = None
        self._metric: Metric = resolve_metric(metric)
        self._disposed = False
        self.record_count = 0

    # ---------- state ----------

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def rendered(self) -> bool:
        return self._bubbles is not None

    @property
    def metric(self) -> Metric:
        return self._metric

    @property
    def bubbles(self) -> List[Bubble]:
        self._ensure_alive()
        if self._bubbles is None:
            raise ChartStateError("Chart has not been rendered yet")
        return list(self._bubbles)

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise ChartStateError("Chart has been disposed")

    # ---------- drawing ----------

    def _layout(self, records: Sequence[TokenRecord], metric: Metric, caption_field: str | None) -> List[Bubble]:
        values = [float(getattr(rec, metric.value)) for rec in records]
        bubbles = []
        for idx, x, y, r in pack_layout(values, self.width, self.height, self.padding, self.max_bubbles):
            rec = records[idx]
            if caption_field is None:
                caption = f"24H: {rec.change_24h_display}"
            else:
                caption = str(getattr(rec, caption_field))
            bubbles.append(
                Bubble(
                    symbol=rec.symbol,
                    x=round(x, 2),
                    y=round(y, 2),
                    r=round(r, 2),
                    value=values[idx],
                    caption=caption,
                    tooltip=_tooltip(rec),
                )
            )
        return bubbles

    def render(self, records: Sequence[TokenRecord], metric: str | Metric | None = None) -> List[Bubble]:
        """First draw: bubbles captioned with the averaged 24h change."""
        self._ensure_alive()
        metric = resolve_metric(metric)
        self._bubbles = self._layout(records, metric, caption_field=None)
        self._metric = metric
        self.record_count = len(records)
        return list(self._bubbles)

    def update(self, records: Sequence[TokenRecord], metric: str | Metric) -> List[Bubble]:
        """Re-pack by another metric; captions switch to that metric's display value."""
        self._ensure_alive()
        if self._bubbles is None:
            raise ChartStateError("Cannot update a chart before its first render")
        metric = resolve_metric(metric)
        self._bubbles = self._layout(records, metric, caption_field=DISPLAY_FIELDS[metric])
        self._metric = metric
        self.record_count = len(records)
        return list(self._bubbles)

    def to_svg(self) -> str:
        bubbles = self.bubbles
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" height="{self.height}" '
            f'overflow="hidden" data-metric="{self._metric.value}">'
        ]
        for b in bubbles:
            label_size = round(b.r / 5, 2)
            caption_size = round(b.r / 7, 2)
            parts.append(
                f'<g class="node" transform="translate({b.x},{b.y})">'
                f"<title>{escape(b.tooltip)}</title>"
                f'<circle r="{b.r}" fill="black"></circle>'
                f'<text class="labels" dy=".2em" font-family="{FONT_FAMILY}" font-size="{label_size}" '
                f'fill="white" style="text-anchor: middle">{escape(b.symbol)}</text>'
                f'<text class="ranks" dy="1.8em" font-family="{FONT_FAMILY}" font-size="{caption_size}" '
                f'fill="white" style="text-anchor: middle">{escape(b.caption)}</text>'
                "</g>"
            )
        parts.append("</svg>")
        return "".join(parts)

    def dispose(self) -> None:
        self._bubbles = None
        self.record_count = 0
        self._disposed = True
