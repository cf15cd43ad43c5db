"""
engine.py — Self-funded growth projection for the seller dashboard
"""
import logging
import math
from dataclasses import asdict, dataclass, fields
from functools import lru_cache

import pandas as pd

logger = logging.getLogger(__name__)


class InvalidConfig(ValueError):
    """Projection assumptions that cannot produce a meaningful simulation."""


# ---------------------------------------------------------------------------
# Default assumptions
# ---------------------------------------------------------------------------

def default_projection() -> dict:
    return {
        "starting_units_per_month": 60,   # sellable capacity in month 1
        "profit_per_unit":          20.0,
        "unit_cost":                41.0,  # landed cost of one more unit of capacity
        "months":                   8,
        "reinvest_cap":             5_000.0,  # $ per month plowed back; remainder withdrawn
    }


# Exchange-format names used by the dashboard data files
_CAMEL_KEYS = {
    "startingUnitsPerMonth": "starting_units_per_month",
    "profitPerUnit":         "profit_per_unit",
    "unitCost":              "unit_cost",
    "months":                "months",
    "reinvestCap":           "reinvest_cap",
}


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectionConfig:
    starting_units_per_month: int = 60
    profit_per_unit: float = 20.0
    unit_cost: float = 41.0
    months: int = 8
    reinvest_cap: float = 5_000.0

    def __post_init__(self):
        _require_int(self.starting_units_per_month, "starting_units_per_month")
        _require_int(self.months, "months")
        for name in ("profit_per_unit", "unit_cost", "reinvest_cap"):
            _require_real(getattr(self, name), name)

        if self.months < 1:
            raise InvalidConfig(f"months must be at least 1, got {self.months}")
        if self.unit_cost <= 0:
            raise InvalidConfig(f"unit_cost must be positive, got {self.unit_cost}")
        if self.starting_units_per_month < 0:
            raise InvalidConfig(
                f"starting_units_per_month cannot be negative, got {self.starting_units_per_month}"
            )
        if self.reinvest_cap < 0:
            raise InvalidConfig(f"reinvest_cap cannot be negative, got {self.reinvest_cap}")
        if not self._fits_in_floats():
            raise InvalidConfig(
                "Settings too large to simulate: capacity or profit would overflow "
                f"(reinvest_cap={self.reinvest_cap}, unit_cost={self.unit_cost}, "
                f"profit_per_unit={self.profit_per_unit})"
            )

    def _fits_in_floats(self) -> bool:
        # Capacity can grow by at most reinvest_cap / unit_cost units a month
        per_month = self.reinvest_cap / self.unit_cost
        if not math.isfinite(per_month):
            return False
        peak = self.starting_units_per_month + self.months * math.floor(per_month)
        try:
            return math.isfinite(peak * self.profit_per_unit)
        except OverflowError:
            return False

    @classmethod
    def from_dict(cls, values: dict) -> "ProjectionConfig":
        """
        Build a config from a mapping keyed by field name or by the camelCase
        exchange name. Missing keys fall back to `default_projection()`.
        """
        merged = default_projection()
        known = {f.name for f in fields(cls)}
        for key, value in values.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in known:
                raise InvalidConfig(f"Unknown projection setting: {key!r}")
            merged[name] = value
        return cls(**merged)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ProjectionRow:
    month: int
    capacity: int
    profit: float
    reinvest: float
    withdrawal: float
    added_units: int


def _require_int(value, name):
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfig(f"{name} must be an integer, got {value!r}")


def _require_real(value, name):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfig(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidConfig(f"{name} must be finite, got {value!r}")


# ---------------------------------------------------------------------------
# Main engine
# ---------------------------------------------------------------------------

def project(config: ProjectionConfig | None = None) -> tuple:
    """
    Simulate monthly reinvestment of profit into new capacity.

    Each month's capacity earns `profit_per_unit` per unit. Up to
    `reinvest_cap` of that profit buys whole units at `unit_cost`, which
    become available the following month; the remainder is withdrawn.

    Parameters
    ----------
    config : ProjectionConfig, defaults to `default_projection()`

    Returns
    -------
    tuple[ProjectionRow, ...] — exactly `config.months` rows, month 1 first
    """
    if config is None:
        config = ProjectionConfig(**default_projection())
    if not isinstance(config, ProjectionConfig):
        raise InvalidConfig(f"Expected ProjectionConfig, got {type(config).__name__}")
    return _run(config)


@lru_cache(maxsize=32)
def _run(config: ProjectionConfig) -> tuple:
    capacity = config.starting_units_per_month
    rows = []
    for m in range(1, config.months + 1):
        profit     = capacity * config.profit_per_unit
        # A loss month reinvests nothing; the cap bounds it from above
        reinvest   = min(max(profit, 0.0), config.reinvest_cap)
        withdrawal = max(0.0, profit - reinvest)
        added      = math.floor(reinvest / config.unit_cost)

        rows.append(ProjectionRow(
            month=m,
            capacity=capacity,
            profit=float(profit),
            reinvest=float(reinvest),
            withdrawal=float(withdrawal),
            added_units=added,
        ))
        capacity += added

    logger.debug("Projected %d months, ending capacity %d", config.months, capacity)
    return tuple(rows)


# ---------------------------------------------------------------------------
# Views over the row sequence
# ---------------------------------------------------------------------------

PROJECTION_COLUMNS = ["month", "capacity", "profit", "reinvest", "withdrawal", "added_units"]


def projection_frame(rows) -> pd.DataFrame:
    """One DataFrame row per projected month, in month order."""
    return pd.DataFrame([asdict(r) for r in rows], columns=PROJECTION_COLUMNS)


def projection_summary(rows) -> dict:
    rows = list(rows)
    if not rows:
        raise InvalidConfig("Cannot summarise an empty projection.")
    last = rows[-1]
    crossover = next((r.month for r in rows if r.withdrawal > 0), None)
    return {
        "months":           len(rows),
        "total_profit":     sum(r.profit for r in rows),
        "total_reinvest":   sum(r.reinvest for r in rows),
        "total_withdrawal": sum(r.withdrawal for r in rows),
        "starting_capacity": rows[0].capacity,
        "ending_capacity":  last.capacity + last.added_units,
        "crossover_month":  crossover,
    }
