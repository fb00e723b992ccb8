# app/api/health.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response

router = APIRouter(tags=["health"])

APP_STARTED_AT = time.time()


def _now_meta() -> Dict[str, Any]:
    now_ts = time.time()
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    return {
        "now_unix": int(now_ts),
        "now_iso": now_dt.isoformat().replace("+00:00", "Z"),
        "uptime_s": int(now_ts - APP_STARTED_AT),
    }


def _check_board(request: Request) -> Dict[str, Any]:
    board = getattr(request.app.state, "board", None)
    if board is None:
        return {"ok": False, "error": "board not initialised"}
    return board.info()


def _check_refresher(request: Request) -> Dict[str, Any]:
    handle = getattr(request.app.state, "refresher", None)
    if handle is None:
        # running without a background refresher is a valid configuration
        return {"ok": True, "running": False, "enabled": False}
    return {"enabled": True, **handle.info()}


# ----------------------------
# Endpoints
# ----------------------------
@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request, response: Response):
    board = _check_board(request)
    refresher = _check_refresher(request)

    degraded_reasons = []
    if board.get("disposed") or "error" in board:
        degraded_reasons.append("board_unavailable")
    elif board.get("last_error"):
        degraded_reasons.append("last_refresh_failed")
    if not refresher.get("ok", False):
        degraded_reasons.append("refresher_failing")

    payload: Dict[str, Any] = {
        **_now_meta(),
        "checks": {"board": board, "refresher": refresher},
        "degraded": bool(degraded_reasons),
        "degraded_reasons": degraded_reasons,
        "status": "degraded" if degraded_reasons else "ok",
    }
    if degraded_reasons:
        response.status_code = 503
    return payload


@router.get("/health")
async def health(request: Request, response: Response):
    return await ready(request, response)
