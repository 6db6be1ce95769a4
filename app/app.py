# app/app.py: Solidarity Fund Simulator dashboard
import sys, json
from pathlib import Path

import pandas as pd
import streamlit as st
import plotly.graph_objects as go
import plotly.express as px

# ----- import engine from repo root -----
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engine import (
    SCENARIO_REGISTRY,
    SimulationEngine,
    SimulationParameters,
    run_monte_carlo,
)

# ---------- Page + global style ----------
st.set_page_config(page_title="Solidarity Fund Simulator", layout="wide")

st.markdown("""
<style>
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;600;700&display=swap');
* { font-family: Inter, -apple-system, BlinkMacSystemFont, "SF Pro Text", system-ui, "Segoe UI", Roboto, "Helvetica Neue", Arial, sans-serif; }
.block-container { padding-top: 1.0rem; padding-bottom: 2rem; }
.hero{
  background: linear-gradient(180deg,#FFFFFF 0%,#F7F9FC 100%);
  border:1px solid #E5E7EB; border-radius:22px; padding:18px 22px; margin-bottom:14px;
  box-shadow:0 6px 18px rgba(18,38,63,.06);
}
.hero h1{ margin:0; font-weight:700; color:#0B1220; letter-spacing:.2px;}
.hero p{ margin:.25rem 0 0; color:#4B5563;}
.card{
  background:#FFFFFF; border:1px solid #E5E7EB; border-radius:18px; padding:16px 18px;
  box-shadow:0 2px 10px rgba(15,23,42,.04);
}
.kpi .label{ color:#6B7280; font-size:12px; letter-spacing:.02em; }
.kpi .value{ color:#0B1220; font-size:26px; font-weight:700; }
</style>
""", unsafe_allow_html=True)

# ---------- session state ----------
if "engine" not in st.session_state:
    st.session_state["engine"] = None
if "mc_results" not in st.session_state:
    st.session_state["mc_results"] = None

# ---------- helpers ----------
def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")

def plot_balance(df: pd.DataFrame, title: str):
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=df["Day"], y=df["FundBalance"], mode="lines", name="Fund balance", line=dict(width=3)))
    g = df[df["GovernanceAction"] != ""]
    if not g.empty:
        fig.add_trace(go.Scatter(x=g["Day"], y=g["FundBalance"], mode="markers", name="Governance action",
                                 text=g["GovernanceAction"], marker=dict(symbol="triangle-up", size=11)))
    fig.add_hline(y=0, line_dash="dot", line_color="grey")
    fig.update_layout(template="plotly_white", height=380, margin=dict(l=10,r=10,t=60,b=10),
                      title=title, legend=dict(orientation="h", y=1.08))
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})

def plot_flows(df: pd.DataFrame, title: str):
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df["Day"], y=df["FundContributions"], name="Contributions", opacity=0.6))
    fig.add_trace(go.Bar(x=df["Day"], y=df["DeliveryPayments"], name="Delivery payments", opacity=0.6))
    fig.update_layout(template="plotly_white", barmode="group", height=320,
                      margin=dict(l=10,r=10,t=60,b=10), title=title, legend=dict(orientation="h", y=1.08))
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})

def kpi_strip(m: dict, final_balance: float):
    metrics = [
        ("Final Balance", f"{final_balance:,.0f}"),
        ("Net Balance", f"{m['netBalance']:,.0f}"),
        ("Average ROI", f"{m['averageROI']:.1f}%"),
        ("Break-even Day", str(m["breakEvenDay"] or "n/a")),
        ("Peak Deficit", f"{m['peakDeficit']:,.0f}"),
    ]
    cols = st.columns(len(metrics))
    for col, (label, value) in zip(cols, metrics):
        with col:
            st.markdown(f'<div class="card kpi"><div class="label">{label}</div>'
                        f'<div class="value">{value}</div></div>', unsafe_allow_html=True)

# ---------- header ----------
st.markdown('<div class="hero"><h1>Solidarity Fund Simulator</h1>'
            '<p>Day-by-day projection of the delivery fund with automatic fee governance.</p></div>', unsafe_allow_html=True)

# ---------- SIDEBAR (inputs) ----------
with st.sidebar:
    st.header("Inputs")
    preset_name = st.selectbox("Start from preset", list(SCENARIO_REGISTRY.keys()), index=1)
    preset = SCENARIO_REGISTRY[preset_name]

    daily_orders = st.number_input("Daily orders", min_value=1, value=int(preset["dailyOrders"]), step=50)
    aov = st.number_input("Average order value ($)", min_value=0.0, value=float(preset["averageOrderValue"]), step=1.0)
    commission = st.number_input("Marketplace commission (%)", min_value=0.0, max_value=100.0,
                                 value=float(preset["marketplaceCommissionRate"]), step=0.5)
    logistic_fee = st.number_input("Logistic fee per order ($)", min_value=0.0,
                                   value=float(preset["logisticFeeBase"]), step=0.05)
    drivers = st.number_input("Active drivers", min_value=0, value=int(preset["activeDeliverys"]), step=5)
    per_driver = st.number_input("Deliveries per driver", min_value=1, value=int(preset["deliveriesPerDriver"]), step=1)
    days = st.slider("Horizon (days)", min_value=1, max_value=365, value=int(preset["simulationDays"]), step=1)
    seed = st.number_input("Random seed", min_value=0, value=42, step=1)
    variation = st.checkbox("Daily demand noise", value=True)
    governance = st.checkbox("Automatic governance", value=True)

    run_base = st.button("Run Simulation")
    st.markdown("---")
    mc_runs = st.number_input("Monte Carlo runs", min_value=20, max_value=2000, value=200, step=20,
                              help="Number of seeded replications for risk stats.")
    run_mc = st.button("Run Monte Carlo")

params = SimulationParameters(
    daily_orders=int(daily_orders),
    average_order_value=float(aov),
    marketplace_commission_rate=float(commission),
    logistic_fee_base=float(logistic_fee),
    active_deliverys=int(drivers),
    deliveries_per_driver=int(per_driver),
    simulation_days=int(days),
)

# ---------- MAIN ----------
tabs = st.tabs(["Overview", "Daily Log", "Report", "Risk"])

if run_base:
    engine = SimulationEngine(params, seed=int(seed), variation=variation, governance=governance)
    try:
        engine.run()
    except (TypeError, ValueError) as exc:
        st.error(f"Invalid parameters: {exc}")
    else:
        st.session_state["engine"] = engine
        st.session_state["mc_results"] = None

engine = st.session_state["engine"]
if engine is not None:
    df = engine.results_frame()
    export = engine.export()

    with tabs[0]:
        kpi_strip(export["metrics"], engine.fund_balance)
        plot_balance(df, "Fund Balance & Governance Events")
        plot_flows(df, "Daily Contributions vs Delivery Payments")
        st.markdown("**Recommendations**")
        for rec in export["recommendations"] or ["No corrective action required."]:
            st.markdown(f"- {rec}")

    with tabs[1]:
        st.dataframe(df, use_container_width=True, height=420)
        st.download_button("Download Daily Log (CSV)", to_csv_bytes(df), "daily_log.csv", "text/csv")
        st.download_button("Download Export (JSON)", json.dumps(export, indent=2).encode("utf-8"),
                           "export.json", "application/json")

    with tabs[2]:
        st.markdown(engine.report().replace("$", "\\$"))
else:
    with tabs[0]:
        st.info("Set the inputs and press **Run Simulation**.")

if run_mc:
    with st.spinner("Running Monte Carlo simulations..."):
        runs_df, stats_df = run_monte_carlo(
            params,
            n_runs=int(mc_runs),
            base_seed=int(seed),
            variation=variation,
            governance=governance,
        )
        st.session_state["mc_results"] = {"runs": runs_df, "summary": stats_df}

mc = st.session_state["mc_results"]
with tabs[3]:
    if mc is None:
        st.caption("Run Monte Carlo to see the distribution of outcomes.")
    else:
        summary = mc["summary"].round(3)
        st.dataframe(summary, use_container_width=True)
        fig = px.histogram(mc["runs"], x="FinalBalance", nbins=40, title="Final Fund Balance Distribution")
        fig.update_layout(template="plotly_white", height=340)
        st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})
        st.download_button("Download MC Runs (CSV)", to_csv_bytes(mc["runs"]), "mc_runs.csv", "text/csv")
