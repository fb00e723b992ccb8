from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from pydantic import BaseModel, ValidationError

from app.config.metrics import PRICE_MULTIPLIERS, Metric
from app.schemas.bubbles import Pool, Token, TokenRecord
from app.utils.formatting import format_percent, format_supply, format_usd


class AggregationError(ValueError):
    def __init__(self, message: str, *, collection: str | None = None, index: int | None = None):
        super().__init__(message)
        self.collection = collection
        self.index = index


@dataclass(frozen=True)
class AggregationProfile:
    """
    Which pool fields feed which record fields.
      averages: record field -> pool field, arithmetic mean over matching pools
      totals:   record field -> pool field, sum over matching pools
    """

    averages: Mapping[str, str] = field(default_factory=dict)
    totals: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        pool_fields = set(Pool.model_fields)
        record_fields = set(TokenRecord.model_fields)
        for out, src in [*self.averages.items(), *self.totals.items()]:
            if src not in pool_fields:
                raise ValueError(f"Unknown pool field '{src}'")
            if out not in record_fields:
                raise ValueError(f"Unknown record field '{out}'")
        overlap = set(self.averages) & set(self.totals)
        if overlap:
            raise ValueError(f"Fields both averaged and totalled: {sorted(overlap)}")


CHANGE_PROFILE = AggregationProfile(
    averages={"change_24h": "change_24h", "change_7d": "change_week"},
)

DEFAULT_PROFILE = AggregationProfile(
    averages={"change_24h": "change_24h", "change_7d": "change_week"},
    totals={"pool_volume_24h": "volume_usd_24h"},
)

# averaged record field -> its display field
_PERCENT_DISPLAY = {
    "change_24h": "change_24h_display",
    "change_7d": "change_7d_display",
}


def _validate_all(items: Iterable[Any], model: type[BaseModel], collection: str) -> List[Any]:
    out = []
    for i, item in enumerate(items):
        if isinstance(item, model):
            out.append(item)
            continue
        try:
            out.append(model.model_validate(item))
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
            raise AggregationError(
                f"Malformed {collection} record at index {i}: {loc}: {first.get('msg')}",
                collection=collection,
                index=i,
            ) from exc
    return out


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def matching_pools(symbol: str, pools: Sequence[Pool]) -> List[Pool]:
    return [p for p in pools if p.involves(symbol)]


def build_record(token: Token, pools: Sequence[Pool], profile: AggregationProfile = DEFAULT_PROFILE) -> TokenRecord:
    price = token.usd_price
    market_cap = price * PRICE_MULTIPLIERS[Metric.market_cap]
    volume_24h = price * PRICE_MULTIPLIERS[Metric.volume_24h]
    supply = price * PRICE_MULTIPLIERS[Metric.circulating_supply]

    relevant = matching_pools(token.symbol, pools)

    data: Dict[str, Any] = {
        "symbol": token.symbol,
        "market_cap": market_cap,
        "market_cap_display": format_usd(market_cap),
        "volume_24h": volume_24h,
        "volume_24h_display": format_usd(volume_24h),
        "price": price,
        "price_display": format_usd(price),
        "circulating_supply": supply,
        "circulating_supply_display": format_supply(supply),
        "pool_count": len(relevant),
    }

    for out, src in profile.averages.items():
        avg = mean([getattr(p, src) for p in relevant])
        data[out] = avg
        if out in _PERCENT_DISPLAY:
            data[_PERCENT_DISPLAY[out]] = format_percent(avg)

    for out, src in profile.totals.items():
        data[out] = float(sum(v for v in (getattr(p, src) for p in relevant) if v is not None))

    return TokenRecord(**data)


def aggregate_tokens(
    tokens: Iterable[Any],
    pools: Iterable[Any],
    profile: AggregationProfile = DEFAULT_PROFILE,
) -> List[TokenRecord]:
    """
    Join tokens with the pools that trade them, one record per token in input order.

    Every token and pool is validated up front; a single malformed entry fails
    the whole batch with AggregationError. Tokens without any pool get None for
    averaged fields and 0.0 for totals.
    """
    token_models = _validate_all(tokens, Token, "token")
    pool_models = _validate_all(pools, Pool, "pool")
    return [build_record(t, pool_models, profile) for t in token_models]
