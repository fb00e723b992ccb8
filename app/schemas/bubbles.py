"""Pydantic models for the token/pool feeds and the derived chart records."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Token(BaseModel):
    """Subset of an Alcor token entry; other upstream fields are ignored."""

    symbol: str = Field(..., min_length=1, strict=True)
    usd_price: float = Field(..., allow_inf_nan=False, strict=True)


class PoolToken(BaseModel):
    symbol: str = Field(..., min_length=1, strict=True)


class Pool(BaseModel):
    """Subset of an Alcor swap pool entry."""

    model_config = ConfigDict(populate_by_name=True)

    token_a: PoolToken = Field(..., alias="tokenA")
    token_b: PoolToken = Field(..., alias="tokenB")
    change_24h: float = Field(..., alias="change24", allow_inf_nan=False, strict=True)
    change_week: float = Field(..., alias="changeWeek", allow_inf_nan=False, strict=True)
    volume_usd_24h: Optional[float] = Field(default=None, alias="volumeUSD24", allow_inf_nan=False, strict=True)

    def involves(self, symbol: str) -> bool:
        return self.token_a.symbol == symbol or self.token_b.symbol == symbol


class TokenRecord(BaseModel):
    """One bubble: raw figures, their display strings and cross-pool aggregates."""

    symbol: str

    market_cap: float
    market_cap_display: str
    volume_24h: float
    volume_24h_display: str
    price: float
    price_display: str
    circulating_supply: float
    circulating_supply_display: str

    # None when no pool references the token
    change_24h: Optional[float] = None
    change_7d: Optional[float] = None
    change_24h_display: str = "n/a"
    change_7d_display: str = "n/a"

    pool_volume_24h: Optional[float] = None
    pool_count: int = 0


class BubbleOut(BaseModel):
    symbol: str
    x: float
    y: float
    r: float
    value: float
    caption: str


class FrameSummary(BaseModel):
    """Response for POST /bubbles/refresh."""

    metric: str
    width: int
    height: int
    tokens: int
    bubbles: list[BubbleOut]


class MetricInfo(BaseModel):
    name: str
    display_field: str
    current: bool = False
