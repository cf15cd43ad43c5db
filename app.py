"""
Seller Performance Dashboard — Ecomet
"""
from __future__ import annotations
import logging, os, warnings

import numpy as np
import plotly.graph_objects as go
import streamlit as st

from dataset import (
    DatasetError, load_report, unavailable_fields, footer_text, shipments_frame,
    reconciliation_funnel, kpi_summary, sales_quality, fee_breakdown,
    returns_by_reason, profitability_rows,
)
from engine import (
    InvalidConfig, ProjectionConfig, default_projection,
    project, projection_summary,
)
from export import build_excel
from formatting import (
    fmt_compact, fmt_count, fmt_currency, projection_series, projection_table,
)

warnings.filterwarnings("ignore")
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("seller_dashboard")

DATASET_ENV = "SELLER_DASHBOARD_DATASET"

st.set_page_config(
    page_title="Ecomet Investor Dashboard",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# ── CSS ──────────────────────────────────────────────────────────────────────
st.markdown("""
<style>
#MainMenu, footer { visibility: hidden; }
header { visibility: hidden; height: 0; }
.stApp { background: #000; }
.block-container { padding-top: 1rem; padding-bottom: 1rem; position: relative; z-index: 1; }

/* KPI cards */
.kpi-card {
    background: #171717;
    border: 1px solid #262626;
    border-radius: 16px;
    padding: 14px 18px;
    height: 100%;
}
.kpi-label { color: #a3a3a3; font-size: 11px; text-transform: uppercase; letter-spacing: 1px; margin-bottom: 4px; }
.kpi-value { color: #f5f5f5; font-size: 22px; font-weight: 700; line-height: 1.1; }
.kpi-sub   { color: #737373; font-size: 11px; margin-top: 3px; }

/* Line items */
.li-row { display:flex; justify-content:space-between; background:#171717; border-radius:8px;
          padding:8px 12px; margin-bottom:6px; font-size:14px; }
.li-row span { color:#a3a3a3; }
.li-row strong { color:#86efac; font-variant-numeric: tabular-nums; }

.warn-box  { background:#2D1F1F; border-left:3px solid #E05252; padding:8px 12px; border-radius:4px; font-size:13px; margin-bottom:6px; }

.sec-hdr {
    color: #86efac; font-size: 10px; text-transform: uppercase;
    letter-spacing: 1.5px; margin: 6px 0 4px 0;
    border-bottom: 1px solid #262626; padding-bottom: 2px;
}

/* Starfield: fixed, behind content, ignores pointer events */
.starfield { position: fixed; inset: 0; z-index: 0; pointer-events: none; overflow: hidden; }
.starfield span { position: absolute; background: #d4d4d4; animation: twinkle ease-in-out infinite; }
@keyframes twinkle { 0%, 100% { opacity: .15; } 50% { opacity: .9; } }
</style>
""", unsafe_allow_html=True)

PC  = ["#7ed957", "#17becf", "#ff7f0e", "#bcbd22", "#9467bd", "#8c564b", "#e377c2", "#7f7f7f"]
TPL = "plotly_dark"


# ── Helpers ───────────────────────────────────────────────────────────────────
def kpi(col, label, value, sub=None):
    sub_h = f'<div class="kpi-sub">{sub}</div>' if sub else ""
    col.markdown(
        f'<div class="kpi-card"><div class="kpi-label">{label}</div>'
        f'<div class="kpi-value">{value}</div>{sub_h}</div>',
        unsafe_allow_html=True
    )

def li_row(col, label, value):
    col.markdown(f'<div class="li-row"><span>{label}</span><strong>{value}</strong></div>',
                 unsafe_allow_html=True)

def section(label):
    st.markdown(f'<div class="sec-hdr">{label}</div>', unsafe_allow_html=True)

def starfield(star_count=120):
    """Decorative twinkling pixels; placement is random on every render."""
    rng = np.random.default_rng()
    spans = []
    for top, left, big, delay, dur in zip(
        rng.uniform(0, 100, star_count), rng.uniform(0, 100, star_count),
        rng.random(star_count) >= 0.85, rng.uniform(0, 6, star_count),
        rng.uniform(3, 8, star_count),
    ):
        px_ = 2 if big else 1
        spans.append(
            f'<span style="top:{top:.2f}vh;left:{left:.2f}vw;width:{px_}px;height:{px_}px;'
            f'animation-delay:{delay:.2f}s;animation-duration:{dur:.2f}s"></span>'
        )
    st.markdown(f'<div class="starfield" aria-hidden="true">{"".join(spans)}</div>',
                unsafe_allow_html=True)

def _bar(x, y, title, money=True, height=300, colors=None):
    fig = go.Figure(go.Bar(x=x, y=y, marker_color=colors or PC[0]))
    fig.update_layout(template=TPL, title=title, height=height,
                      margin=dict(l=10, r=10, t=36, b=10),
                      yaxis=dict(tickformat="$,.0f" if money else ",d"))
    return fig

@st.cache_data
def _load(path):
    return load_report(path)


# ── Load ─────────────────────────────────────────────────────────────────────
try:
    ds, issues = _load(os.environ.get(DATASET_ENV) or None)
    cfg = ProjectionConfig(**default_projection())
    rows = project(cfg)
except (DatasetError, InvalidConfig) as e:
    logger.error("Dashboard failed to load: %s", e)
    st.error(f"Dashboard failed to load: {e}")
    st.stop()

starfield()


# ════════════════════════════════════════════════════════════════════════════
# Header + KPIs
# ════════════════════════════════════════════════════════════════════════════
h1, h2 = st.columns([5, 1])
h1.markdown("## Ecomet Investor Dashboard")
h1.caption(f"Amazon Business Performance • {ds.meta.period}")
h2.download_button(
    "Download Excel", data=build_excel(ds, cfg, rows),
    file_name="ecomet_investor_dashboard.xlsx",
    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    use_container_width=True,
)

for msg in issues:
    st.markdown(f'<div class="warn-box">Data check: {msg}</div>', unsafe_allow_html=True)
_missing = unavailable_fields(ds)
if _missing:
    st.markdown(
        f'<div class="warn-box">{len(_missing)} field(s) could not be read as numbers '
        f'and are shown as —: {", ".join(_missing)}</div>',
        unsafe_allow_html=True
    )

for col, card in zip(st.columns(4), kpi_summary(ds)):
    kpi(col, card["label"], card["value"], card["sub"])
st.divider()


# ════════════════════════════════════════════════════════════════════════════
# TABS
# ════════════════════════════════════════════════════════════════════════════
tab_ov, tab_ship, tab_fees, tab_ret, tab_prof, tab_proj = st.tabs([
    "Overview", "Shipments", "Fees", "Returns", "Profitability", "Projection"
])


# ── Overview ──────────────────────────────────────────────────────────────────
with tab_ov:
    section("Reconciliation Funnel")
    st.caption("Tracks value from purchases to net payout with adjustments.")
    funnel = reconciliation_funnel(ds)
    fig_fn = _bar([s for s, _ in funnel], [v for _, v in funnel], None, height=320)
    fig_fn.update_traces(hovertemplate="%{x}: $%{y:,.2f}<extra></extra>")
    st.plotly_chart(fig_fn, use_container_width=True)

    c1, c2 = st.columns([2, 1])
    with c1:
        section("Sales Quality")
        for label, value in sales_quality(ds):
            li_row(st, label, value)
    with c2:
        section("Storage Fees")
        stor = ds.storage.by_month
        st.plotly_chart(_bar([m.month[5:] for m in stor], [m.amount for m in stor], None, height=220),
                        use_container_width=True)
        li_row(st, "Total", fmt_currency(ds.storage.total))


# ── Shipments ─────────────────────────────────────────────────────────────────
with tab_ship:
    section("Monthly Shipments")
    ship = shipments_frame(ds)
    if ship.empty:
        st.caption("No monthly shipment figures in this snapshot.")
    fig_sh = go.Figure()
    fig_sh.add_trace(go.Scatter(x=ship["month"].str[5:], y=ship["units"], name="Units",
                                mode="lines", line=dict(color=PC[0], width=2)))
    fig_sh.add_trace(go.Scatter(x=ship["month"].str[5:], y=ship["sales"], name="Sales",
                                mode="lines", line=dict(color=PC[1], width=2), yaxis="y2"))
    fig_sh.update_layout(template=TPL, height=320, margin=dict(l=10, r=10, t=10, b=10),
                         legend=dict(orientation="h", y=-0.2),
                         yaxis=dict(title="Units"),
                         yaxis2=dict(tickformat="$,.0f", overlaying="y", side="right", showgrid=False))
    st.plotly_chart(fig_sh, use_container_width=True)
    s1, s2, s3 = st.columns(3)
    li_row(s1, "Units Shipped", fmt_count(ds.shipments.total_units))
    li_row(s2, "Gross Sales (Shipped)", fmt_currency(ds.shipments.total_gross))
    li_row(s3, "Unique Orders", fmt_count(ds.shipments.unique_orders))


# ── Fees ──────────────────────────────────────────────────────────────────────
with tab_fees:
    section("Amazon Fees Breakdown")
    fees = fee_breakdown(ds)
    st.plotly_chart(_bar([n for n, _ in fees], [v for _, v in fees], None), use_container_width=True)
    f1, f2 = st.columns(2)
    li_row(f1, "Total Fees", fmt_currency(ds.payments.total_fees))
    li_row(f2, "Net Payout", fmt_currency(ds.payments.net_payout))


# ── Returns ───────────────────────────────────────────────────────────────────
with tab_ret:
    r1, r2 = st.columns(2)
    with r1:
        section("Returns by Reason")
        reasons = returns_by_reason(ds)
        fig_pie = go.Figure(go.Pie(labels=[r.name for r in reasons], values=[r.qty for r in reasons],
                                   marker=dict(colors=PC), hole=0))
        fig_pie.update_layout(template=TPL, height=320, margin=dict(l=10, r=10, t=10, b=10))
        st.plotly_chart(fig_pie, use_container_width=True)
        st.markdown(f"**Total Returned Units:** {fmt_count(ds.returns.total_units)}")
    with r2:
        section("Returns Disposition")
        disp = ds.returns.disposition
        st.plotly_chart(_bar([d.name for d in disp], [d.qty for d in disp], None, money=False),
                        use_container_width=True)

    section("Reimbursements")
    reimb = ds.reimbursements.reasons_amount
    st.plotly_chart(_bar([r.name for r in reimb], [r.amount for r in reimb], None, height=260),
                    use_container_width=True)
    m1, m2 = st.columns(2)
    li_row(m1, "Reimbursed Amount", fmt_currency(ds.reimbursements.amount))
    li_row(m2, "Reimbursed Units", fmt_count(ds.reimbursements.units))


# ── Profitability ─────────────────────────────────────────────────────────────
with tab_prof:
    section("Profitability Snapshot")
    cols = st.columns(3)
    for i, (label, value) in enumerate(profitability_rows(ds)):
        li_row(cols[i % 3], label, fmt_currency(value))
    st.caption("Note: Net reflects timing differences between orders, shipments, and payouts. "
               "As remaining inventory sells, cash flow should improve.")


# ── Projection ────────────────────────────────────────────────────────────────
with tab_proj:
    section("Self-Funded Growth Projection")
    st.caption(
        f"Assumptions: start {cfg.starting_units_per_month} units/month, "
        f"{fmt_currency(cfg.profit_per_unit)} profit per unit, {fmt_currency(cfg.unit_cost)} unit cost, "
        f"reinvest up to {fmt_compact(cfg.reinvest_cap)}/month; withdraw the remainder."
    )
    series = projection_series(rows)
    fig_pj = go.Figure()
    fig_pj.add_trace(go.Scatter(x=series["month"], y=series["capacity"], name="Capacity",
                                mode="lines", line=dict(color=PC[0], width=2)))
    fig_pj.add_trace(go.Scatter(x=series["month"], y=series["withdrawal"], name="Withdrawal",
                                mode="lines", line=dict(color=PC[2], width=2), yaxis="y2"))
    fig_pj.add_trace(go.Scatter(x=series["month"], y=series["reinvest"], name="Reinvest",
                                mode="lines", line=dict(color=PC[1], width=2), yaxis="y2"))
    fig_pj.update_layout(template=TPL, height=320, margin=dict(l=10, r=10, t=10, b=10),
                         legend=dict(orientation="h", y=-0.2),
                         xaxis=dict(title="Month", dtick=1),
                         yaxis=dict(title="Units"),
                         yaxis2=dict(tickformat="$,.0f", overlaying="y", side="right", showgrid=False))
    st.plotly_chart(fig_pj, use_container_width=True)

    summ = projection_summary(rows)
    k1, k2, k3, k4 = st.columns(4)
    kpi(k1, "Ending Capacity", fmt_count(summ["ending_capacity"]),
        f"from {summ['starting_capacity']} units/month")
    kpi(k2, "Total Reinvested", fmt_compact(summ["total_reinvest"]), f"over {summ['months']} months")
    kpi(k3, "Total Withdrawn", fmt_compact(summ["total_withdrawal"]), "cash taken out")
    kpi(k4, "Cap Reached", f"Month {summ['crossover_month']}" if summ["crossover_month"] else "—",
        "first withdrawal")

    section(f"Projection Table ({cfg.months} Months)")
    st.dataframe(projection_table(rows), use_container_width=True, hide_index=True)


st.caption(footer_text(ds))
