# app/main.py
from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from app.api.bubbles import router as bubbles_router
from app.api.health import router as health_router

from app.config.settings import get_settings
from app.services.board import BubbleBoard
from app.services.chart import BubbleChart

from app.jobs.refresher import start_refresher, stop_refresher


def create_board() -> BubbleBoard:
    settings = get_settings()
    chart = BubbleChart(
        width=settings.CHART_WIDTH,
        height=settings.CHART_HEIGHT,
        padding=settings.CHART_PADDING,
        metric=settings.DEFAULT_METRIC,
        max_bubbles=settings.CHART_MAX_BUBBLES,
    )
    return BubbleBoard(chart)


app = FastAPI(title="Token Bubbles")

# Routers
app.include_router(health_router)
app.include_router(bubbles_router)

app.state.board = None
app.state.refresher = None


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Token bubbles: see /bubbles"}


@app.on_event("startup")
async def on_startup() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s | %(message)s",
    )

    # One chart surface per process
    app.state.board = create_board()

    # Optional periodic refresh (disabled unless REFRESH_ENABLED=true)
    app.state.refresher = start_refresher(app.state.board)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await stop_refresher()
    app.state.refresher = None

    if app.state.board is not None:
        app.state.board.dispose()
        app.state.board = None


def run() -> None:
    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
