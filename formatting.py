"""
formatting.py — Number coercion and display formatting for the seller dashboard
"""
import math
from numbers import Real

import numpy as np
import pandas as pd


# Marker for a reporting value that could not be read as a number
UNAVAILABLE = float("nan")
PLACEHOLDER = "—"


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def to_number(v) -> float:
    """
    Coerce a number or numeric text to a finite float.

    Anything else (blank or non-numeric text, None, booleans, inf/nan)
    becomes UNAVAILABLE. Never returns 0 in place of a bad value.
    """
    if isinstance(v, (bool, np.bool_)):
        return UNAVAILABLE
    if isinstance(v, str):
        text = v.strip()
        # float() would accept digit separators such as "1_000"
        if not text or "_" in text:
            return UNAVAILABLE
        try:
            n = float(text)
        except ValueError:
            return UNAVAILABLE
    elif isinstance(v, Real):
        try:
            n = float(v)
        except (OverflowError, ValueError):
            return UNAVAILABLE
    else:
        return UNAVAILABLE
    return n if math.isfinite(n) else UNAVAILABLE


def is_available(v) -> bool:
    return not math.isnan(to_number(v))


# ---------------------------------------------------------------------------
# Formatters — every one renders UNAVAILABLE as PLACEHOLDER
# ---------------------------------------------------------------------------

def fmt_currency(v) -> str:
    n = to_number(v)
    if math.isnan(n):
        return PLACEHOLDER
    if n < 0:
        return f"-${abs(n):,.2f}"
    return f"${n:,.2f}"


def fmt_compact(v) -> str:
    """Short dollar label for chart axes and KPI subtitles."""
    n = to_number(v)
    if math.isnan(n):
        return PLACEHOLDER
    sign = "-" if n < 0 else ""
    a = abs(n)
    if a >= 1_000_000: return f"{sign}${a/1_000_000:.2f}M"
    if a >= 1_000:     return f"{sign}${a/1_000:.1f}K"
    return f"{sign}${a:,.0f}"


def fmt_percent(v) -> str:
    """Value is already in percent units: 12.38 -> '12.38%'."""
    n = to_number(v)
    if math.isnan(n):
        return PLACEHOLDER
    return f"{n:.2f}%"


def fmt_count(v) -> str:
    n = to_number(v)
    if math.isnan(n):
        return PLACEHOLDER
    if n.is_integer():
        return f"{int(n):,}"
    return f"{n:,.2f}"


# ---------------------------------------------------------------------------
# Projection views
# ---------------------------------------------------------------------------

TABLE_HEADERS = {
    "month":       "Month",
    "capacity":    "Capacity",
    "profit":      "Profit ($)",
    "reinvest":    "Reinvest ($)",
    "withdrawal":  "Withdrawal ($)",
    "added_units": "Added Units",
}
_INT_COLS = ("month", "capacity", "added_units")


def projection_table(rows) -> pd.DataFrame:
    """
    All six projection fields as display strings: integers for month,
    capacity and added units; currency for profit, reinvest and withdrawal.
    """
    records = []
    for r in rows:
        rec = {}
        for col in TABLE_HEADERS:
            val = getattr(r, col)
            rec[TABLE_HEADERS[col]] = str(int(val)) if col in _INT_COLS else fmt_currency(val)
        records.append(rec)
    return pd.DataFrame(records, columns=list(TABLE_HEADERS.values()))


def projection_series(rows) -> dict:
    """Chart input: month on x, capacity on the left axis, cash flows on the right."""
    rows = list(rows)
    return {
        "month":      [r.month for r in rows],
        "capacity":   [r.capacity for r in rows],
        "reinvest":   [r.reinvest for r in rows],
        "withdrawal": [r.withdrawal for r in rows],
    }
