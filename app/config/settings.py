from __future__ import annotations

import os
from dataclasses import dataclass


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


@dataclass(frozen=True)
class Settings:
    TOKENS_URL: str
    POOLS_URL: str
    HTTP_TIMEOUT_SECONDS: float
    CHART_WIDTH: int
    CHART_HEIGHT: int
    CHART_PADDING: float
    CHART_MAX_BUBBLES: int
    DEFAULT_METRIC: str
    REFRESH_ENABLED: bool
    REFRESH_INTERVAL_SECONDS: int
    LOG_LEVEL: str
    HOST: str
    PORT: int

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            TOKENS_URL=os.getenv("TOKENS_URL", "https://alcor.exchange/api/v2/tokens"),
            POOLS_URL=os.getenv("POOLS_URL", "https://alcor.exchange/api/v2/swap/pools"),
            HTTP_TIMEOUT_SECONDS=parse_float(os.getenv("HTTP_TIMEOUT_SECONDS"), 10.0),
            CHART_WIDTH=parse_int(os.getenv("CHART_WIDTH"), 1200),
            CHART_HEIGHT=parse_int(os.getenv("CHART_HEIGHT"), 500),
            CHART_PADDING=parse_float(os.getenv("CHART_PADDING"), 1.5),
            CHART_MAX_BUBBLES=parse_int(os.getenv("CHART_MAX_BUBBLES"), 60),
            DEFAULT_METRIC=os.getenv("DEFAULT_METRIC", "market_cap"),
            REFRESH_ENABLED=parse_bool(os.getenv("REFRESH_ENABLED"), False),
            REFRESH_INTERVAL_SECONDS=parse_int(os.getenv("REFRESH_INTERVAL_SECONDS"), 60),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
            HOST=os.getenv("HOST", "127.0.0.1"),
            PORT=parse_int(os.getenv("PORT"), 8000),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
