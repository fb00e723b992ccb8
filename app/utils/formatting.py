"""Display formatting for chart labels and tooltips."""

from __future__ import annotations

import math

SI_PREFIXES = ["y", "z", "a", "f", "p", "n", "µ", "m", "", "k", "M", "G", "T", "P", "E", "Z", "Y"]
_SI_OFFSET = 8  # index of "" in SI_PREFIXES

_SUFFIX_EXPONENTS = {p: (i - _SI_OFFSET) * 3 for i, p in enumerate(SI_PREFIXES) if p}
_SUFFIX_EXPONENTS["u"] = -6
_SUFFIX_EXPONENTS["B"] = 9  # billions, see format_supply


def _require_finite(value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite value {value!r}")
    return value


def format_usd(value: float) -> str:
    """
    Dollar amount with grouped thousands, shortest form up to 12 significant digits.
    Fixed notation for decimal exponents -6..11, exponent form outside that.
      2000000 -> "$2,000,000"
      1234.5  -> "$1,234.5"
      0.00005 -> "$0.00005"
    """
    value = _require_finite(value)
    sign = "-" if value < 0 else ""
    x = abs(value)

    exponent = int(f"{x:.11e}".split("e")[1])
    if -7 < exponent < 12:
        s = f"{x:,.{max(0, 11 - exponent)}f}"
        if "." in s:
            s = s.rstrip("0").rstrip(".")
    else:
        s = f"{x:.12g}"
    return f"{sign}${s}"


def format_si(value: float, precision: int = 3) -> str:
    """
    SI-prefixed number with `precision` significant digits.
      1500   -> "1.50k"
      999.9  -> "1.00k"
      0      -> "0.00"
    """
    if precision < 1:
        raise ValueError("precision must be >= 1")
    value = _require_finite(value)
    sign = "-" if value < 0 else ""
    x = abs(value)

    # round first so the prefix reflects the rounded magnitude (999.9 -> 1.00k)
    exponent = int(f"{x:.{precision - 1}e}".split("e")[1])
    k = max(-_SI_OFFSET, min(_SI_OFFSET, exponent // 3))
    scaled = x / (10 ** (3 * k))
    decimals = max(0, precision - 1 - (exponent - 3 * k))

    return f"{sign}{scaled:.{decimals}f}{SI_PREFIXES[k + _SI_OFFSET]}"


def format_supply(value: float) -> str:
    s = format_si(value, 3)
    if s.endswith("G"):
        return s[:-1] + "B"
    return s


def format_percent(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return "n/a"
    return f"{_require_finite(value):.{decimals}f}%"


def parse_usd(text: str) -> float:
    s = text.strip()
    negative = s.startswith("-")
    if negative:
        s = s[1:]
    if not s.startswith("$"):
        raise ValueError(f"Not a dollar amount: {text!r}")
    out = float(s[1:].replace(",", ""))
    return -out if negative else out


def parse_si(text: str) -> float:
    s = text.strip()
    if not s:
        raise ValueError("Empty SI value")
    suffix = s[-1]
    if suffix in _SUFFIX_EXPONENTS:
        return float(s[:-1]) * (10 ** _SUFFIX_EXPONENTS[suffix])
    return float(s)
