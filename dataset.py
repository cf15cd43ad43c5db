"""
dataset.py — Reporting dataset schema, loading, and derived dashboard figures
"""
from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Tuple

import pandas as pd
from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from formatting import (
    UNAVAILABLE, fmt_count, fmt_currency, fmt_percent, to_number,
)

logger = logging.getLogger(__name__)

# Every numeric field passes through to_number once, at load time
Number = Annotated[float, BeforeValidator(to_number)]

CURRENCY_TOL = 0.01


class DatasetError(ValueError):
    """Reporting dataset is structurally unusable (missing sections, bad lists, bad JSON)."""


# ---------------------------------------------------------------------------
# Bundled snapshot
# ---------------------------------------------------------------------------

def default_dataset() -> dict:
    """Amazon seller snapshot, Apr 1 – Aug 31, 2025, in exchange-format keys."""
    return {
        "meta": {"period": "Apr 1 – Aug 31, 2025"},
        "purchases": {
            "units": 403,
            "merch": 16528.07,
            "shipping": 70.0,
            "invoiceTotal": 16598.07,
            "avgCost": 41.17,
        },
        "orders": {
            "units": 305,
            "grossSales": 18526.09,
            "conversion": 1.11,   # percent
            "buyBox": 12.38,      # percent
        },
        "shipments": {
            "totalUnits": 300,
            "totalGross": 20118.22,
            "uniqueOrders": 267,
            "monthly": [
                {"month": "2025-04", "units": 74, "sales": 3863.15, "orders": 64},
                {"month": "2025-05", "units": 30, "sales": 2229.67, "orders": 27},
                {"month": "2025-06", "units": 67, "sales": 3899.64, "orders": 59},
                {"month": "2025-07", "units": 50, "sales": 3422.15, "orders": 42},
                {"month": "2025-08", "units": 79, "sales": 6703.61, "orders": 75},
            ],
        },
        "payments": {
            "productSales": 16081.25,
            "sellingFees": 2466.13,
            "fbaFees": 1178.82,
            "otherFees": 1669.17,
            "totalFees": 5314.12,
            "netPayout": 10803.81,
        },
        "storage": {
            "byMonth": [
                {"month": "2025-04", "amount": 5.73},
                {"month": "2025-05", "amount": 4.90},
                {"month": "2025-06", "amount": 2.67},
                {"month": "2025-07", "amount": 12.16},
                {"month": "2025-08", "amount": 5.29},
            ],
            "total": 30.75,
        },
        "returns": {
            "totalUnits": 28,
            "reasons": [
                {"name": "Not as Described", "qty": 8},
                {"name": "Missing Parts", "qty": 5},
                {"name": "Defective", "qty": 4},
                {"name": "Ordered Wrong Item", "qty": 3},
                {"name": "Unwanted Item", "qty": 3},
                {"name": "Other", "qty": 5},
            ],
            "disposition": [
                {"name": "Sellable", "qty": 17},
                {"name": "Customer Damaged", "qty": 7},
                {"name": "Defective", "qty": 4},
            ],
        },
        "reimbursements": {
            "amount": 603.82,
            "units": 23,
            "reasonsAmount": [
                {"name": "Customer Return", "amount": 225.53},
                {"name": "Damaged in Warehouse", "amount": 196.34},
                {"name": "Customer Service Issue", "amount": 110.82},
                {"name": "Lost in Warehouse", "amount": 71.13},
            ],
        },
        "profitability": {
            "orderedGross": 18526.09,
            "netPayout": 10803.81,
            "purchases": 16598.07,
            "reimbursements": 603.82,
            "storageFees": 30.75,
            "netPosition": -5221.19,
        },
    }


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Meta(_Record):
    period: str = ""


class Purchases(_Record):
    units: Number = UNAVAILABLE
    merch: Number = UNAVAILABLE
    shipping: Number = UNAVAILABLE
    invoice_total: Number = UNAVAILABLE
    avg_cost: Number = UNAVAILABLE


class Orders(_Record):
    units: Number = UNAVAILABLE
    gross_sales: Number = UNAVAILABLE
    conversion: Number = UNAVAILABLE
    buy_box: Number = UNAVAILABLE


class ShipmentMonth(_Record):
    month: str
    units: Number = UNAVAILABLE
    sales: Number = UNAVAILABLE
    orders: Number = UNAVAILABLE


class Shipments(_Record):
    total_units: Number = UNAVAILABLE
    total_gross: Number = UNAVAILABLE
    unique_orders: Number = UNAVAILABLE
    monthly: Tuple[ShipmentMonth, ...]


class Payments(_Record):
    product_sales: Number = UNAVAILABLE
    selling_fees: Number = UNAVAILABLE
    fba_fees: Number = UNAVAILABLE
    other_fees: Number = UNAVAILABLE
    total_fees: Number = UNAVAILABLE
    net_payout: Number = UNAVAILABLE


class StorageMonth(_Record):
    month: str
    amount: Number = UNAVAILABLE


class Storage(_Record):
    by_month: Tuple[StorageMonth, ...]
    total: Number = UNAVAILABLE


class NamedQty(_Record):
    name: str
    qty: Number = UNAVAILABLE


class Returns(_Record):
    total_units: Number = UNAVAILABLE
    reasons: Tuple[NamedQty, ...]
    disposition: Tuple[NamedQty, ...]


class NamedAmount(_Record):
    name: str
    amount: Number = UNAVAILABLE


class Reimbursements(_Record):
    amount: Number = UNAVAILABLE
    units: Number = UNAVAILABLE
    reasons_amount: Tuple[NamedAmount, ...]


class Profitability(_Record):
    ordered_gross: Number = UNAVAILABLE
    net_payout: Number = UNAVAILABLE
    purchases: Number = UNAVAILABLE
    reimbursements: Number = UNAVAILABLE
    storage_fees: Number = UNAVAILABLE
    net_position: Number = UNAVAILABLE


class ReportingDataset(_Record):
    meta: Meta = Meta()
    purchases: Purchases
    orders: Orders
    shipments: Shipments
    payments: Payments
    storage: Storage
    returns: Returns
    reimbursements: Reimbursements
    profitability: Profitability

    def to_dict(self) -> dict:
        """Exchange-format mapping; keys and nesting match the source files."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_report(source=None) -> tuple:
    """
    Validate a reporting snapshot once and run its consistency checks.

    Parameters
    ----------
    source : None for the bundled snapshot, a mapping, or a path to a JSON file

    Malformed numbers become UNAVAILABLE and are logged; only structural
    problems raise DatasetError. Diagnostics run here, once, and never raise.

    Returns
    -------
    (ReportingDataset, list[str]) — the immutable record and its diagnostics
    """
    if source is None:
        raw = default_dataset()
    elif isinstance(source, Mapping):
        raw = source
    else:
        path = Path(source)
        try:
            with path.open(encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise DatasetError(f"Could not read dataset from {path}: {e}") from e

    try:
        ds = ReportingDataset.model_validate(raw)
    except ValidationError as e:
        raise DatasetError(f"Reporting dataset is malformed:\n{e}") from e

    for field in unavailable_fields(ds):
        logger.warning("Dataset field %s is not a number; shown as unavailable", field)
    return ds, run_diagnostics(ds)


def load_dataset(source=None) -> ReportingDataset:
    """Like `load_report`, keeping only the dataset."""
    return load_report(source)[0]


def unavailable_fields(ds: ReportingDataset) -> list:
    """Dotted exchange-format paths of every numeric field holding UNAVAILABLE."""
    found = []

    def _walk(node, prefix):
        if isinstance(node, dict):
            for k, v in node.items():
                _walk(v, f"{prefix}.{k}" if prefix else k)
        elif isinstance(node, (list, tuple)):
            for i, v in enumerate(node):
                _walk(v, f"{prefix}[{i}]")
        elif isinstance(node, float) and math.isnan(node):
            found.append(prefix)

    _walk(ds.to_dict(), "")
    return found


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

def _close(a: float, b: float, tol: float) -> bool:
    # NaN on either side never matches
    return abs(a - b) <= tol


def run_diagnostics(ds: ReportingDataset) -> list:
    """
    Cross-check the snapshot's totals against its own breakdowns.

    Returns the failed checks as messages (empty when consistent); each is
    also logged as a warning. A failure never stops the dashboard.
    """
    issues = []
    sh, stor, pay, ret = ds.shipments, ds.storage, ds.payments, ds.returns
    prof = ds.profitability

    if math.isnan(stor.total):
        issues.append("Storage total invalid: not a finite number")

    checks = [
        ("Shipments mismatch: monthly units",
         sum(m.units for m in sh.monthly), sh.total_units, 0, fmt_count),
        ("Shipments mismatch: monthly sales",
         sum(m.sales for m in sh.monthly), sh.total_gross, CURRENCY_TOL, fmt_currency),
        ("Shipments mismatch: monthly orders",
         sum(m.orders for m in sh.monthly), sh.unique_orders, 0, fmt_count),
        ("Storage mismatch: monthly fees",
         sum(m.amount for m in stor.by_month), stor.total, CURRENCY_TOL, fmt_currency),
        ("Payments mismatch: fee lines",
         pay.selling_fees + pay.fba_fees + pay.other_fees, pay.total_fees, CURRENCY_TOL, fmt_currency),
        ("Returns mismatch: reasons",
         sum(r.qty for r in ret.reasons), ret.total_units, 0, fmt_count),
        ("Returns mismatch: dispositions",
         sum(r.qty for r in ret.disposition), ret.total_units, 0, fmt_count),
        ("Reimbursements mismatch: reasons",
         sum(r.amount for r in ds.reimbursements.reasons_amount),
         ds.reimbursements.amount, CURRENCY_TOL, fmt_currency),
        ("Profitability mismatch: net position",
         prof.net_payout - prof.purchases + prof.reimbursements - prof.storage_fees,
         prof.net_position, CURRENCY_TOL, fmt_currency),
    ]
    for label, derived, reported, tol, fmt in checks:
        # Sums of whole counts can pick up float noise from string coercion
        if not _close(derived, reported, max(tol, 1e-9)):
            issues.append(f"{label} sum to {fmt(derived)}, reported {fmt(reported)}")

    for msg in issues:
        logger.warning("Dataset diagnostic: %s", msg)
    return issues


# ---------------------------------------------------------------------------
# Derived figures
# ---------------------------------------------------------------------------

FUNNEL_STEPS = [
    "Purchases (Cost)",
    "Orders (Gross)",
    "Shipments (Gross)",
    "Payments (Net)",
    "Reimbursements (+)",
    "Storage Fees (−)",
]


def reconciliation_funnel(ds: ReportingDataset) -> list:
    """Cash narrative from spend to net payout, as (label, signed amount) pairs."""
    values = [
        ds.purchases.invoice_total,
        ds.orders.gross_sales,
        ds.shipments.total_gross,
        ds.payments.net_payout,
        ds.reimbursements.amount,
        -ds.storage.total,
    ]
    return list(zip(FUNNEL_STEPS, values))


def average_sale_price(ds: ReportingDataset) -> float:
    units = ds.orders.units
    if math.isnan(units) or units == 0:
        return UNAVAILABLE
    return ds.orders.gross_sales / units


def kpi_summary(ds: ReportingDataset) -> list:
    """Header cards as dicts of label / value / sub, already formatted."""
    return [
        {"label": "Units Purchased", "value": fmt_count(ds.purchases.units),
         "sub": fmt_currency(ds.purchases.invoice_total)},
        {"label": "Units Ordered", "value": fmt_count(ds.orders.units),
         "sub": fmt_currency(ds.orders.gross_sales)},
        {"label": "Units Shipped", "value": fmt_count(ds.shipments.total_units),
         "sub": fmt_currency(ds.shipments.total_gross)},
        {"label": "Net Payout", "value": fmt_currency(ds.payments.net_payout),
         "sub": f"Fees {fmt_currency(ds.payments.total_fees)}"},
    ]


def sales_quality(ds: ReportingDataset) -> list:
    return [
        ("Conversion", fmt_percent(ds.orders.conversion)),
        ("Buy Box Share", fmt_percent(ds.orders.buy_box)),
        ("Avg Cost / Unit", fmt_currency(ds.purchases.avg_cost)),
        ("Avg Sale Price (approx)", fmt_currency(average_sale_price(ds))),
    ]


def fee_breakdown(ds: ReportingDataset) -> list:
    p = ds.payments
    return [
        ("Selling Fees", p.selling_fees),
        ("FBA Fees", p.fba_fees),
        ("Other Fees", p.other_fees),
    ]


def returns_by_reason(ds: ReportingDataset) -> list:
    """Return reasons with a positive quantity; unavailable counts are dropped."""
    return [r for r in ds.returns.reasons if r.qty > 0]


def profitability_rows(ds: ReportingDataset) -> list:
    p = ds.profitability
    return [
        ("Gross Sales (Ordered)", p.ordered_gross),
        ("Net Amazon Payout", p.net_payout),
        ("Purchases (Invoices)", p.purchases),
        ("Reimbursements", p.reimbursements),
        ("Storage Fees", p.storage_fees),
        ("Approx. Net Position", p.net_position),
    ]


SHIPMENT_COLUMNS = ["month", "units", "sales", "orders"]


def shipments_frame(ds: ReportingDataset) -> pd.DataFrame:
    """Monthly shipments, one row per month; keeps its columns when there are no months."""
    return pd.DataFrame([m.model_dump() for m in ds.shipments.monthly], columns=SHIPMENT_COLUMNS)


def footer_text(ds: ReportingDataset) -> str:
    return f"Built for investor review • Data window: {ds.meta.period}"
