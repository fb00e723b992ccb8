from enum import Enum


class Metric(str, Enum):
    market_cap = "market_cap"
    volume_24h = "volume_24h"
    price = "price"
    circulating_supply = "circulating_supply"


# metric -> pre-formatted display field on TokenRecord
DISPLAY_FIELDS = {
    Metric.market_cap: "market_cap_display",
    Metric.volume_24h: "volume_24h_display",
    Metric.price: "price_display",
    Metric.circulating_supply: "circulating_supply_display",
}

# Placeholder conversions from usd_price; the upstream token feed carries no
# supply or volume figures of its own.
PRICE_MULTIPLIERS = {
    Metric.market_cap: 1e6,   # pretend 1M units outstanding
    Metric.volume_24h: 1e3,
    Metric.price: 1.0,
    Metric.circulating_supply: 1e2,
}

DEFAULT_METRIC = Metric.market_cap


def resolve_metric(value: "str | Metric | None") -> Metric:
    if value is None:
        return DEFAULT_METRIC
    if isinstance(value, Metric):
        return value
    try:
        return Metric(value)
    except ValueError as exc:
        supported = ", ".join(m.value for m in Metric)
        raise ValueError(f"Unsupported metric '{value}' (supported: {supported})") from exc
