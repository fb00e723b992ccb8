# app/jobs/refresher.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.config.settings import get_settings
from app.services.board import BubbleBoard

logger = logging.getLogger("token_bubbles.refresher")

MIN_INTERVAL_SECONDS = 5


def _iso_z_from_epoch(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    dt = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def _now_epoch() -> float:
    return time.time()


# ----------------------------
# refresher state + handle
# ----------------------------
@dataclass
class RefresherState:
    started: bool = False
    stop_event: Optional[asyncio.Event] = None
    task: Optional[asyncio.Task] = None
    interval_s: int = 0
    started_at: Optional[float] = None
    stats: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RefresherHandle:
    """
    Stored in app.state.refresher so /ready can report refresher status.
    """
    _state: RefresherState

    @property
    def running(self) -> bool:
        return bool(self._state.started and self._state.stop_event and not self._state.stop_event.is_set())

    def info(self) -> Dict[str, Any]:
        s = self._state.stats
        return {
            "ok": self.running and int(s.get("consecutive_failures", 0)) == 0,
            "running": self.running,
            "interval_s": self._state.interval_s,
            "started_at_iso": _iso_z_from_epoch(self._state.started_at),
            "last_run_ts": s.get("last_run_ts"),
            "last_run_iso": _iso_z_from_epoch(s.get("last_run_ts")),
            "last_success_ts": s.get("last_success_ts"),
            "last_success_iso": _iso_z_from_epoch(s.get("last_success_ts")),
            "last_success_ms": s.get("last_success_ms"),
            "consecutive_failures": s.get("consecutive_failures", 0),
            "last_error_ts": s.get("last_error_ts"),
            "last_error": s.get("last_error"),
        }


_state = RefresherState()


def _fresh_stats() -> Dict[str, Any]:
    return {
        "last_run_ts": None,
        "last_success_ts": None,
        "last_success_ms": None,
        "last_error_ts": None,
        "last_error": None,
        "consecutive_failures": 0,
    }


# ----------------------------
# loop
# ----------------------------
async def run_once(board: BubbleBoard) -> bool:
    """One refresh with the currently displayed metric. Returns True on success."""
    stats = _state.stats
    stats["last_run_ts"] = _now_epoch()
    t0 = time.perf_counter()

    try:
        await board.refresh()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        stats["last_error_ts"] = _now_epoch()
        stats["last_error"] = repr(e)[:300]
        stats["consecutive_failures"] = int(stats.get("consecutive_failures", 0)) + 1
        logger.exception("refresh error | %dms", dt_ms)
        return False

    dt_ms = int((time.perf_counter() - t0) * 1000)
    stats["last_success_ts"] = _now_epoch()
    stats["last_success_ms"] = dt_ms
    stats["consecutive_failures"] = 0
    return True


async def _refresh_loop(board: BubbleBoard, stop_event: asyncio.Event, interval_s: int) -> None:
    logger.info("refresher started | interval_s=%s", interval_s)

    while not stop_event.is_set():
        await run_once(board)

        # stop-aware sleep
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_s)
        except asyncio.TimeoutError:
            pass

    logger.info("refresher stopped")


# ----------------------------
# public API
# ----------------------------
def start_refresher(board: BubbleBoard, interval_s: Optional[int] = None) -> Optional[RefresherHandle]:
    settings = get_settings()

    if interval_s is None:
        if not settings.REFRESH_ENABLED:
            logger.info("refresher disabled (REFRESH_ENABLED=false)")
            return None
        interval_s = settings.REFRESH_INTERVAL_SECONDS

    if _state.started and _state.stop_event and not _state.stop_event.is_set():
        logger.warning("refresher already started (in-process)")
        return RefresherHandle(_state)

    _state.interval_s = max(MIN_INTERVAL_SECONDS, int(interval_s))
    _state.stop_event = asyncio.Event()
    _state.started = True
    _state.started_at = _now_epoch()
    _state.stats = _fresh_stats()
    _state.task = asyncio.create_task(
        _refresh_loop(board, _state.stop_event, _state.interval_s),
        name="bubble-refresher",
    )
    return RefresherHandle(_state)


async def stop_refresher(timeout_s: float = 6.0) -> None:
    if not _state.started:
        return

    if _state.stop_event:
        _state.stop_event.set()

    task = _state.task
    try:
        if task:
            await asyncio.wait_for(asyncio.gather(task, return_exceptions=True), timeout=timeout_s)
    except asyncio.TimeoutError:
        if task and not task.done():
            task.cancel()
        if task:
            await asyncio.gather(task, return_exceptions=True)
    finally:
        _state.task = None
        _state.stop_event = None
        _state.started = False
        _state.started_at = None
