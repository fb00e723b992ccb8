from __future__ import annotations

import logging
from html import escape
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from app.config.metrics import DISPLAY_FIELDS, Metric
from app.schemas.bubbles import FrameSummary, MetricInfo, TokenRecord
from app.services.aggregator import AggregationError
from app.services.alcor import EndpointError
from app.services.board import BubbleBoard, load_records
from app.services.chart import ChartStateError

logger = logging.getLogger("token_bubbles.api")

router = APIRouter(prefix="/bubbles", tags=["bubbles"])


def _error_response(
    *,
    code: str,
    message: str,
    status_code: int = 502,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=payload)


def _refresh_failure(exc: Exception) -> JSONResponse:
    if isinstance(exc, EndpointError):
        logger.warning("upstream failed | %s", exc)
        return _error_response(code="upstream_failed", message=str(exc), details=exc.to_dict())
    if isinstance(exc, AggregationError):
        logger.warning("upstream malformed | %s", exc)
        return _error_response(
            code="upstream_malformed",
            message=str(exc),
            details={"collection": exc.collection, "index": exc.index},
        )
    if isinstance(exc, ChartStateError):
        return _error_response(code="chart_unavailable", message=str(exc), status_code=409)
    raise exc


def _board(request: Request) -> BubbleBoard:
    return request.app.state.board


def _frame_summary(board: BubbleBoard) -> FrameSummary:
    chart = board.chart
    return FrameSummary(
        metric=chart.metric.value,
        width=chart.width,
        height=chart.height,
        tokens=chart.record_count,
        bubbles=[b.to_dict() for b in chart.bubbles],
    )


def _page(board: BubbleBoard) -> str:
    chart = board.chart
    links = " | ".join(
        (
            f"<strong>{m.value}</strong>"
            if m == chart.metric
            else f'<a href="/bubbles?metric={m.value}">{m.value}</a>'
        )
        for m in Metric
    )
    return (
        "<!DOCTYPE html>"
        '<html><head><meta charset="utf-8"><title>Token Bubbles</title></head>'
        '<body style="margin:0;background:#fff">'
        f'<nav style="padding:8px;font-family:sans-serif">{links}</nav>'
        f'<div id="graph">{chart.to_svg()}</div>'
        f'<footer style="padding:8px;font-family:sans-serif;font-size:12px">'
        f"{escape(str(chart.record_count))} tokens, sized by {escape(chart.metric.value)}</footer>"
        "</body></html>"
    )


@router.get("", response_class=HTMLResponse)
async def bubbles_page(request: Request, metric: Optional[Metric] = None):
    board = _board(request)
    try:
        await board.refresh(metric)
    except (EndpointError, AggregationError, ChartStateError) as exc:
        return _refresh_failure(exc)
    return HTMLResponse(_page(board))


@router.post("/refresh", response_model=FrameSummary)
async def refresh_bubbles(request: Request, metric: Optional[Metric] = None):
    board = _board(request)
    try:
        await board.refresh(metric)
    except (EndpointError, AggregationError, ChartStateError) as exc:
        return _refresh_failure(exc)
    return _frame_summary(board)


@router.get("/chart.svg")
async def current_chart(request: Request):
    board = _board(request)
    try:
        svg = board.chart.to_svg()
    except ChartStateError as exc:
        return _error_response(code="not_rendered", message=str(exc), status_code=404)
    return Response(content=svg, media_type="image/svg+xml")


@router.get("/data", response_model=list[TokenRecord])
async def bubble_data(request: Request, metric: Metric = Metric.market_cap):
    """
    Freshly fetched records, largest first by `metric`. Does not touch the chart.
    Example: /bubbles/data?metric=volume_24h
    """
    board = _board(request)
    try:
        records = await load_records(board.fetch_fn, board.profile)
    except (EndpointError, AggregationError) as exc:
        return _refresh_failure(exc)
    return sorted(records, key=lambda r: getattr(r, metric.value), reverse=True)


@router.get("/metrics", response_model=list[MetricInfo])
async def list_metrics(request: Request):
    current = _board(request).chart.metric
    return [
        MetricInfo(name=m.value, display_field=DISPLAY_FIELDS[m], current=(m == current))
        for m in Metric
    ]
