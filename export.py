"""
export.py — Excel export for the seller dashboard
"""
import io

import pandas as pd
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

from dataset import (
    ReportingDataset, profitability_rows, reconciliation_funnel, shipments_frame,
)
from engine import ProjectionConfig, projection_frame


_HEADER_FILL = PatternFill("solid", fgColor="14532D")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_ALT_FILL    = PatternFill("solid", fgColor="DCFCE7")

_MONEY_FMT = '"$"#,##0.00;-"$"#,##0.00'

# Columns written as dollars, by header text
_MONEY_HEADERS = {"profit", "reinvest", "withdrawal", "sales", "amount", "Amount"}


def _fmt_sheet(ws, col_widths=None):
    """Style the header row, size columns, shade every other row, format dollar columns."""
    money_cols = []
    for cell in ws[1]:
        cell.font      = _HEADER_FONT
        cell.fill      = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center")
        if cell.value in _MONEY_HEADERS:
            money_cols.append(cell.column)

    for i, col in enumerate(ws.iter_cols(), 1):
        if col_widths and i <= len(col_widths):
            width = col_widths[i - 1]
        else:
            width = min(max(len(str(c.value or "")) for c in col) + 4, 30)
        ws.column_dimensions[get_column_letter(i)].width = width

    for r, row in enumerate(ws.iter_rows(min_row=2), start=2):
        for cell in row:
            if cell.column in money_cols:
                cell.number_format = _MONEY_FMT
            if r % 2 == 0 and cell.fill.fill_type is None:
                cell.fill = _ALT_FILL


def _write(writer, df: pd.DataFrame, sheet: str, col_widths=None):
    df.to_excel(writer, sheet_name=sheet, index=False)
    _fmt_sheet(writer.sheets[sheet], col_widths)


def build_excel(dataset: ReportingDataset, config: ProjectionConfig, rows) -> bytes:
    """
    Build an Excel workbook and return as bytes.

    Parameters
    ----------
    dataset : validated reporting snapshot
    config  : projection assumptions behind `rows`
    rows    : output of engine.project(config)

    Unavailable values are written as empty cells.
    """
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine="openpyxl") as writer:

        # ── Assumptions ──────────────────────────────────────────────
        a_rows = [{"Parameter": k, "Value": v} for k, v in config.to_dict().items()]
        a_rows.insert(0, {"Parameter": "reporting_period", "Value": dataset.meta.period})
        _write(writer, pd.DataFrame(a_rows), "Assumptions")

        # ── Projection ───────────────────────────────────────────────
        _write(writer, projection_frame(rows), "Projection")

        # ── Reconciliation funnel ────────────────────────────────────
        funnel = pd.DataFrame(reconciliation_funnel(dataset), columns=["Step", "Amount"])
        _write(writer, funnel, "Funnel", col_widths=[24, 14])

        # ── Shipments ────────────────────────────────────────────────
        _write(writer, shipments_frame(dataset), "Shipments")

        # ── Storage ──────────────────────────────────────────────────
        stor = pd.DataFrame([m.model_dump() for m in dataset.storage.by_month],
                            columns=["month", "amount"])
        _write(writer, stor, "Storage")

        # ── Returns ──────────────────────────────────────────────────
        ret = pd.DataFrame(
            [{"Breakdown": "Reason", "Name": r.name, "Qty": r.qty} for r in dataset.returns.reasons]
            + [{"Breakdown": "Disposition", "Name": r.name, "Qty": r.qty}
               for r in dataset.returns.disposition],
            columns=["Breakdown", "Name", "Qty"],
        )
        _write(writer, ret, "Returns")

        # ── Reimbursements ───────────────────────────────────────────
        reimb = pd.DataFrame([r.model_dump() for r in dataset.reimbursements.reasons_amount],
                             columns=["name", "amount"])
        _write(writer, reimb, "Reimbursements")

        # ── Profitability ────────────────────────────────────────────
        prof = pd.DataFrame(profitability_rows(dataset), columns=["Metric", "Amount"])
        _write(writer, prof, "Profitability", col_widths=[26, 14])

    output.seek(0)
    return output.read()
