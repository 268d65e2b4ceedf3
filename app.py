#!/usr/bin/env python3
"""
FDV Comparison Dashboard - Streamlit App

Run with: streamlit run app.py
"""

import asyncio

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from fdv_dashboard.calculator.bonus import calc_bonus_apr
from fdv_dashboard.calculator.valuation import ValuationCalculator
from fdv_dashboard.core.config import get_config
from fdv_dashboard.core.models import ComparisonResult
from fdv_dashboard.orchestrator import ComparisonOrchestrator
from fdv_dashboard.output.formatters import format_currency, format_number

# Page config
st.set_page_config(
    page_title="FDV Comparison",
    page_icon="📊",
    layout="wide"
)


# Load data - cached for a minute, cleared by the refresh button
@st.cache_data(ttl=60)
def load_comparison() -> ComparisonResult:
    orchestrator = ComparisonOrchestrator(config=get_config())
    return asyncio.run(orchestrator.run())


def reload() -> None:
    load_comparison.clear()
    st.rerun()


with st.spinner("Fetching market and TVL data..."):
    result = load_comparison()

program = result.program
calculator = ValuationCalculator(program)

# Sidebar
st.sidebar.title("FDV Comparison")
st.sidebar.markdown("---")
if st.sidebar.button("Refresh data"):
    reload()
st.sidebar.caption(f"Fetched: {result.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")

failed = [s for s in result.statuses if not s.success]
if failed:
    with st.sidebar.expander(f"⚠️ {len(failed)} fallback(s) used"):
        for status in failed:
            st.markdown(f"- **{status.key or status.slot.value}**: {status.error_message}")

# Missing token data is an error state with a retry action
missing = [t for t in result.tokens if not t.fetch_ok]
if missing:
    st.error(
        "Failed to fetch token data for "
        + ", ".join(t.reference.name for t in missing)
        + ". Please try again."
    )
    if st.button("Retry"):
        reload()
    st.stop()

labels = " vs ".join([program.name] + [t.reference.label for t in result.tokens])
st.title(f"{labels} FDV Comparison")
st.markdown(
    f"Compare the Fully Diluted Valuation of {program.name} token with "
    + " and ".join(t.name for t in result.tokens)
)

tab_basic, tab_tvl, tab_bonus = st.tabs(["Basic", "TVL Based", "Bonus"])

# ============================================================================
# BASIC: program valued at each reference token's FDV
# ============================================================================

with tab_basic:
    custom_points = st.number_input(
        "Custom points",
        min_value=0.0,
        value=10_000.0,
        step=1_000.0,
        help="Value an arbitrary point count at each FDV",
    )

    columns = st.columns(len(result.tokens))
    for col, token in zip(columns, result.tokens):
        snap = token.snapshot
        v = token.valuation
        with col:
            st.subheader(f"{token.name} ({token.symbol})")
            m1, m2 = st.columns(2)
            m1.metric("Price", format_currency(snap.current_price))
            m2.metric(
                "24h",
                f"{snap.price_change_percentage_24h or 0:.2f}%",
            )
            m1.metric("Market Cap", format_currency(snap.market_cap))
            m2.metric("FDV", format_currency(snap.fully_diluted_valuation))

            st.markdown(f"**{program.name} at {token.reference.label} FDV**")
            rows = [
                ("Token Price", format_currency(v.implied_token_price)),
                ("Market Cap", format_currency(v.implied_market_cap)),
                (
                    f"{program.flat_allocation_label} ({program.flat_allocation_percent}%)",
                    format_currency(v.flat_allocation_value),
                ),
                (
                    f"Point Program ({program.point_program_percent}%)",
                    format_currency(v.point_program_allocation_value),
                ),
            ]
            for phase in v.phases:
                rows.append((
                    f"{phase.name} ({format_number(phase.total_points)} pts)",
                    format_currency(phase.total_value),
                ))
            rows.append((
                f"Custom ({format_number(custom_points)} pts)",
                format_currency(calculator.custom_points_value(custom_points, v.reference_fdv)),
            ))
            st.dataframe(
                pd.DataFrame(rows, columns=["Metric", "Value"]),
                use_container_width=True,
                hide_index=True,
            )

    if len(result.tokens) >= 2:
        first, second = result.tokens[0], result.tokens[1]
        comparison = calculator.compare_token_points(
            custom_points,
            first.reference.label,
            first.valuation.reference_fdv,
            second.reference.label,
            second.valuation.reference_fdv,
        )
        st.markdown(f"**Value Comparison ({format_number(custom_points)} pts)**")
        c1, c2, c3, c4 = st.columns(4)
        c1.metric(f"{comparison.first_label} FDV Value", format_currency(comparison.first_value))
        c2.metric(f"{comparison.second_label} FDV Value", format_currency(comparison.second_value))
        c3.metric(
            "Value Difference",
            format_currency(comparison.difference),
            f"{comparison.higher} higher",
            delta_color="off",
        )
        c4.metric("Average Value", format_currency(comparison.average))

    # Allocation values side by side
    fig = go.Figure()
    categories = [f"{program.flat_allocation_label}"] + [p.name for p in program.phases]
    for token in result.tokens:
        v = token.valuation
        fig.add_trace(go.Bar(
            x=categories,
            y=[v.flat_allocation_value] + v.per_phase_total_value,
            name=f"at {token.reference.label} FDV",
            text=[format_currency(y) for y in [v.flat_allocation_value] + v.per_phase_total_value],
            textposition="outside"
        ))
    fig.update_layout(
        title=f"{program.name} Allocation Value by Reference FDV",
        yaxis_title="Value (USD)",
        barmode="group",
        height=450,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1)
    )
    st.plotly_chart(fig, use_container_width=True)

# ============================================================================
# TVL BASED: base token FDV scaled by the TVL ratio
# ============================================================================

with tab_tvl:
    base = result.base_token
    ratio = result.tvl_ratio
    scaled = result.tvl_scaled

    col1, col2 = st.columns(2)
    for col, tvl, total in (
        (col1, result.subject_tvl, result.subject_tvl.total),
        (col2, result.reference_tvl, result.reference_tvl_total),
    ):
        with col:
            st.subheader(f"{tvl.label} TVL")
            st.metric("Total", format_currency(total))
            st.caption(f"{tvl.component_a_label}: {format_currency(tvl.component_a)}")
            component_b = f"{tvl.component_b_label}: {format_currency(tvl.component_b)}"
            if tvl.component_b_native is not None and tvl.reference_token_price:
                component_b += (
                    f" ({format_number(tvl.component_b_native)} ETH"
                    f" @ {format_currency(tvl.reference_token_price)})"
                )
            st.caption(component_b)

    if result.reference_tvl_is_fixed:
        st.info(f"No live {result.reference_tvl.label} TVL available, using the fixed figure.")

    r1, r2, r3, r4 = st.columns(4)
    r1.metric("TVL Ratio", f"{ratio.ratio:.4f}" if ratio.available else "N/A")
    r2.metric("Difference", format_currency(ratio.difference))
    r3.metric("Percentage", f"{ratio.percentage:.2f}%" if ratio.available else "N/A")
    r4.metric(f"Projected {program.name} FDV", format_currency(scaled.reference_fdv))
    st.caption(
        f"Projected FDV = {base.reference.label} FDV × "
        f"({result.subject_tvl.label} TVL / {result.reference_tvl.label} TVL)"
    )

    tvl_rows = [
        ("Token Price", format_currency(scaled.implied_token_price)),
        (program.flat_allocation_label, format_currency(scaled.flat_allocation_value)),
        ("Point Program", format_currency(scaled.point_program_allocation_value)),
    ]
    for phase in scaled.phases:
        tvl_rows.append((phase.name, format_currency(phase.total_value)))
    tvl_rows.append(("Total Allocation", format_currency(scaled.total_allocation_value)))
    st.dataframe(
        pd.DataFrame(tvl_rows, columns=["Metric", "Value at TVL Ratio"]),
        use_container_width=True,
        hide_index=True,
    )

    st.markdown("### Custom Points: FDV vs TVL")
    tvl_points = st.number_input(
        "Points to compare",
        min_value=0.0,
        value=10_000.0,
        step=1_000.0,
        key="tvl_points",
    )
    comparison = calculator.compare_custom_points(
        tvl_points, base.valuation.reference_fdv, ratio
    )
    c1, c2, c3 = st.columns(3)
    c1.metric(f"At {base.reference.label} FDV", format_currency(comparison.fdv_value))
    c2.metric("At TVL Ratio", format_currency(comparison.tvl_value))
    c3.metric("Average", format_currency(comparison.average))
    st.caption(f"Difference: {format_currency(comparison.difference)} ({comparison.higher} higher)")

# ============================================================================
# BONUS: APR from the current phase's point emissions
# ============================================================================

with tab_bonus:
    st.subheader(f"{program.name.upper()} BONUS APR CALCULATOR")
    phase = program.phases[-1] if program.phases else None
    if phase is None:
        st.info("No point phases configured")
        st.stop()

    b1, b2, b3 = st.columns(3)
    with b1:
        assumed_fdv = st.number_input("Assumed FDV (millions USD)", min_value=0.0, value=0.0)
    with b2:
        user_deposit = st.number_input(f"Your deposit in {program.name} Vaults (USD)", min_value=0.0, value=0.0)
    with b3:
        current_tvl = st.number_input("Current TVL (USD)", min_value=0.0, value=0.0)

    bonus = calc_bonus_apr(
        points_per_day=phase.points_per_day,
        assumed_fdv=assumed_fdv * 1_000_000,
        total_supply=program.total_supply,
        user_deposit=user_deposit,
        current_tvl=current_tvl,
    )

    o1, o2 = st.columns(2)
    o1.metric("Bonus APR", f"{bonus.apr_percent:.2f}%")
    o2.metric("Yearly Bonus (USD)", format_currency(bonus.yearly_bonus))
    st.caption(
        f"{phase.name}: {format_number(phase.points_per_day)} points per day, worth "
        f"{format_currency(bonus.points_value_per_day)} per day at the assumed FDV"
    )

st.markdown("---")
st.caption(f"Last Updated: {result.generated_at.strftime('%Y-%m-%d %H:%M UTC')}")
