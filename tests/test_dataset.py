"""
Tests for the reporting dataset — schema, loading, diagnostics, derived figures.
"""

import json
import logging
import math

import pytest
from pydantic import ValidationError

from dataset import (
    FUNNEL_STEPS, SHIPMENT_COLUMNS, DatasetError, ReportingDataset, average_sale_price,
    default_dataset, fee_breakdown, footer_text, kpi_summary, load_dataset, load_report,
    profitability_rows, reconciliation_funnel, returns_by_reason, run_diagnostics,
    sales_quality, shipments_frame, unavailable_fields,
)


@pytest.fixture
def raw():
    return default_dataset()


@pytest.fixture
def ds():
    return load_dataset()


# ---------------------------------------------------------------------------
# Loading & schema
# ---------------------------------------------------------------------------

def test_bundled_snapshot_loads(ds):
    assert isinstance(ds, ReportingDataset)
    assert ds.meta.period == "Apr 1 – Aug 31, 2025"
    assert ds.purchases.invoice_total == 16598.07
    assert ds.shipments.monthly[0].month == "2025-04"
    assert len(ds.storage.by_month) == 5
    assert ds.profitability.net_position == -5221.19


def test_exchange_keys_round_trip(ds):
    """Keys and nesting survive a load/dump cycle unchanged."""
    assert json.loads(json.dumps(ds.to_dict())) == default_dataset()


def test_default_dataset_is_fresh_each_call(raw):
    raw["purchases"]["units"] = 0
    assert default_dataset()["purchases"]["units"] == 403


def test_numeric_text_is_normalised_once(raw):
    raw["orders"]["grossSales"] = "18526.09"
    raw["shipments"]["monthly"][0]["units"] = " 74 "
    ds = load_dataset(raw)
    assert ds.orders.gross_sales == 18526.09
    assert ds.shipments.monthly[0].units == 74.0
    assert run_diagnostics(ds) == []


def test_snake_case_keys_also_accepted(raw):
    raw["purchases"] = {"units": 403, "invoice_total": 16598.07}
    ds = load_dataset(raw)
    assert ds.purchases.invoice_total == 16598.07
    assert math.isnan(ds.purchases.avg_cost)


def test_dataset_is_read_only(ds):
    with pytest.raises(ValidationError):
        ds.purchases.units = 1


def test_load_from_json_file(tmp_path, raw):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(raw), encoding="utf-8")
    assert load_dataset(path) == load_dataset(raw)
    assert load_dataset(str(path)).payments.net_payout == 10803.81


def test_bad_json_file_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DatasetError):
        load_dataset(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(DatasetError):
        load_dataset(tmp_path / "nope.json")


def test_missing_section_raises(raw):
    del raw["payments"]
    with pytest.raises(DatasetError, match="payments"):
        load_dataset(raw)


def test_malformed_breakdown_raises(raw):
    raw["shipments"]["monthly"] = "74,30,67"
    with pytest.raises(DatasetError):
        load_dataset(raw)


# ---------------------------------------------------------------------------
# Coercion failures
# ---------------------------------------------------------------------------

def test_malformed_field_degrades_to_unavailable(raw, caplog):
    raw["storage"]["total"] = "abc"
    with caplog.at_level(logging.WARNING, logger="dataset"):
        ds = load_dataset(raw)
    assert math.isnan(ds.storage.total)
    assert unavailable_fields(ds) == ["storage.total"]
    assert any("storage.total" in r.getMessage() for r in caplog.records)


def test_oversized_integer_degrades_to_unavailable(raw):
    raw["storage"]["total"] = 10**400
    ds = load_dataset(raw)
    assert math.isnan(ds.storage.total)
    assert unavailable_fields(ds) == ["storage.total"]


def test_underscored_digits_are_not_numbers(raw):
    raw["purchases"]["units"] = "4_03"
    ds = load_dataset(raw)
    assert math.isnan(ds.purchases.units)


def test_missing_numeric_field_is_unavailable_not_zero(raw):
    del raw["orders"]["buyBox"]
    raw["reimbursements"]["reasonsAmount"][1]["amount"] = None
    ds = load_dataset(raw)
    assert math.isnan(ds.orders.buy_box)
    assert unavailable_fields(ds) == ["orders.buyBox", "reimbursements.reasonsAmount[1].amount"]


def test_clean_snapshot_has_no_unavailable_fields(ds):
    assert unavailable_fields(ds) == []


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

def test_bundled_snapshot_is_consistent(ds):
    assert run_diagnostics(ds) == []


def test_shipped_units_mismatch_is_reported(raw, caplog):
    raw["shipments"]["totalUnits"] = 301
    with caplog.at_level(logging.WARNING, logger="dataset"):
        ds = load_dataset(raw)
    issues = run_diagnostics(ds)
    assert issues == ["Shipments mismatch: monthly units sum to 300, reported 301"]
    assert any("Shipments mismatch" in r.getMessage() for r in caplog.records)


def test_load_report_runs_checks_once(raw, caplog):
    raw["shipments"]["totalUnits"] = 301
    with caplog.at_level(logging.WARNING, logger="dataset"):
        ds, issues = load_report(raw)
    assert isinstance(ds, ReportingDataset)
    assert issues == ["Shipments mismatch: monthly units sum to 300, reported 301"]
    logged = [r for r in caplog.records if "Shipments mismatch" in r.getMessage()]
    assert len(logged) == 1


def test_clean_snapshot_reports_no_issues():
    ds, issues = load_report()
    assert ds == load_dataset()
    assert issues == []


def test_empty_shipment_months_load_with_a_warning(raw):
    raw["shipments"]["monthly"] = []
    ds, issues = load_report(raw)
    assert ds.shipments.monthly == ()
    assert "Shipments mismatch: monthly units sum to 0, reported 300" in issues


def test_invalid_storage_total_is_reported(raw):
    raw["storage"]["total"] = "n/a"
    issues = run_diagnostics(load_dataset(raw))
    assert issues[0] == "Storage total invalid: not a finite number"
    assert any(i.startswith("Storage mismatch") for i in issues)


def test_unavailable_month_fails_units_check(raw):
    raw["shipments"]["monthly"][2]["units"] = "??"
    issues = run_diagnostics(load_dataset(raw))
    assert issues == ["Shipments mismatch: monthly units sum to —, reported 300"]


@pytest.mark.parametrize("section, key, value, prefix", [
    ("payments", "totalFees", 5400.0, "Payments mismatch"),
    ("returns", "totalUnits", 27, "Returns mismatch: reasons"),
    ("reimbursements", "amount", 600.0, "Reimbursements mismatch"),
    ("profitability", "netPosition", -5000.0, "Profitability mismatch"),
])
def test_other_reconciliations(raw, section, key, value, prefix):
    raw[section][key] = value
    issues = run_diagnostics(load_dataset(raw))
    assert any(i.startswith(prefix) for i in issues)


def test_currency_checks_tolerate_a_cent(raw):
    raw["shipments"]["totalGross"] = 20118.225
    assert run_diagnostics(load_dataset(raw)) == []


# ---------------------------------------------------------------------------
# Reconciliation funnel
# ---------------------------------------------------------------------------

def test_funnel_order_and_signs(ds):
    funnel = reconciliation_funnel(ds)
    assert [label for label, _ in funnel] == [
        "Purchases (Cost)",
        "Orders (Gross)",
        "Shipments (Gross)",
        "Payments (Net)",
        "Reimbursements (+)",
        "Storage Fees (−)",
    ]
    assert [label for label, _ in funnel] == FUNNEL_STEPS
    assert [v for _, v in funnel] == [16598.07, 18526.09, 20118.22, 10803.81, 603.82, -30.75]


def test_funnel_keeps_unavailable_steps(raw):
    raw["storage"]["total"] = "bad"
    funnel = reconciliation_funnel(load_dataset(raw))
    assert len(funnel) == 6
    assert math.isnan(funnel[-1][1])


# ---------------------------------------------------------------------------
# KPIs & breakdowns
# ---------------------------------------------------------------------------

def test_kpi_summary(ds):
    cards = kpi_summary(ds)
    assert cards[0] == {"label": "Units Purchased", "value": "403", "sub": "$16,598.07"}
    assert cards[2] == {"label": "Units Shipped", "value": "300", "sub": "$20,118.22"}
    assert cards[3] == {"label": "Net Payout", "value": "$10,803.81", "sub": "Fees $5,314.12"}


def test_sales_quality(ds):
    assert sales_quality(ds) == [
        ("Conversion", "1.11%"),
        ("Buy Box Share", "12.38%"),
        ("Avg Cost / Unit", "$41.17"),
        ("Avg Sale Price (approx)", "$60.74"),
    ]


@pytest.mark.parametrize("units", [0, "", "x"])
def test_average_sale_price_unavailable_without_units(raw, units):
    raw["orders"]["units"] = units
    ds = load_dataset(raw)
    assert math.isnan(average_sale_price(ds))
    assert sales_quality(ds)[-1] == ("Avg Sale Price (approx)", "—")


def test_fee_breakdown(ds):
    assert fee_breakdown(ds) == [
        ("Selling Fees", 2466.13),
        ("FBA Fees", 1178.82),
        ("Other Fees", 1669.17),
    ]


def test_returns_by_reason_drops_empty_reasons(raw):
    raw["returns"]["reasons"][4]["qty"] = 0
    raw["returns"]["reasons"][5]["qty"] = "?"
    names = [r.name for r in returns_by_reason(load_dataset(raw))]
    assert names == ["Not as Described", "Missing Parts", "Defective", "Ordered Wrong Item"]


def test_profitability_rows(ds):
    rows = profitability_rows(ds)
    assert [label for label, _ in rows] == [
        "Gross Sales (Ordered)", "Net Amazon Payout", "Purchases (Invoices)",
        "Reimbursements", "Storage Fees", "Approx. Net Position",
    ]
    assert rows[-1][1] == -5221.19


def test_shipments_frame(ds):
    frame = shipments_frame(ds)
    assert list(frame.columns) == SHIPMENT_COLUMNS
    assert len(frame) == 5
    assert frame["month"].str[5:].tolist()[0] == "04"


def test_shipments_frame_without_months_keeps_columns(raw):
    raw["shipments"]["monthly"] = []
    frame = shipments_frame(load_dataset(raw))
    assert frame.empty
    assert list(frame.columns) == SHIPMENT_COLUMNS
    assert frame["month"].str[5:].tolist() == []


def test_footer_text(ds):
    assert footer_text(ds) == "Built for investor review • Data window: Apr 1 – Aug 31, 2025"
