# report.py
from __future__ import annotations
import os
from datetime import datetime
import pandas as pd

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle,
    Image, Flowable
)
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle

# ---------- helpers ----------
def _nice_float(x, n=2):
    try:
        return round(float(x), n)
    except (TypeError, ValueError):
        return x

def _money(x) -> str:
    try:
        return f"${float(x):,.2f}"
    except (TypeError, ValueError):
        return str(x)

def _headline_rows(export: dict) -> list[list[str]]:
    m = export.get("metrics", {})
    p = export.get("parameters", {})
    results = export.get("results", [])
    final_balance = results[-1]["fundBalance"] if results else 0.0
    break_even = m.get("breakEvenDay") or "not reached"
    return [
        ["Metric", "Value"],
        ["Simulated days", str(p.get("simulationDays", len(results)))],
        ["Daily orders (baseline)", str(p.get("dailyOrders", ""))],
        ["Final fund balance", _money(final_balance)],
        ["Total contributions", _money(m.get("totalContributions"))],
        ["Total payments", _money(m.get("totalPayments"))],
        ["Net balance", _money(m.get("netBalance"))],
        ["Average ROI", f"{_nice_float(m.get('averageROI', 0.0))}%"],
        ["Break-even day", str(break_even)],
        ["Peak deficit", _money(m.get("peakDeficit"))],
        ["Peak surplus", _money(m.get("peakSurplus"))],
    ]

def _daily_log(export: dict) -> pd.DataFrame:
    df = pd.DataFrame(export.get("results", []))
    if df.empty:
        return df
    keep = ["day", "orders", "fundContributions", "deliveryPayments", "fundBalance", "profitability", "governanceAction"]
    df = df[[c for c in keep if c in df.columns]].copy()
    nice = {
        "day": "Day",
        "orders": "Orders",
        "fundContributions": "Contributions $",
        "deliveryPayments": "Payments $",
        "fundBalance": "Balance $",
        "profitability": "Profitability %",
        "governanceAction": "Governance",
    }
    df.rename(columns=nice, inplace=True)
    for c in df.columns:
        if c in {"Day", "Orders", "Governance"}:
            continue
        df[c] = df[c].apply(lambda v: _nice_float(v, 2))
    if "Governance" in df.columns:
        df["Governance"] = df["Governance"].fillna("")
    return df

def _table_style(font_size: int) -> TableStyle:
    return TableStyle([
        ("BACKGROUND", (0,0), (-1,0), colors.whitesmoke),
        ("TEXTCOLOR", (0,0), (-1,0), colors.black),
        ("ALIGN", (0,0), (-1,-1), "CENTER"),
        ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
        ("FONTSIZE", (0,0), (-1,0), font_size + 1),
        ("BOTTOMPADDING", (0,0), (-1,0), 6),
        ("GRID", (0,0), (-1,-1), 0.25, colors.lightgrey),
        ("FONTSIZE", (0,1), (-1,-1), font_size),
    ])

# ---------- main API ----------
def make_pdf(export: dict, out_pdf: str, balance_png: str | None = None) -> str:
    """Render a simulation export (``SimulationEngine.export()``) to PDF."""
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="H0", parent=styles["Title"], fontSize=20, leading=24))
    styles.add(ParagraphStyle(name="H1", parent=styles["Heading2"], spaceBefore=10, spaceAfter=6))
    styles.add(ParagraphStyle(name="Small", parent=styles["BodyText"], fontSize=9, leading=12))
    styles.add(ParagraphStyle(name="Caption", parent=styles["BodyText"], fontSize=9, textColor=colors.grey))

    doc = SimpleDocTemplate(out_pdf, pagesize=landscape(A4), leftMargin=28, rightMargin=28, topMargin=24, bottomMargin=24)
    flow: list[Flowable] = []

    # ---- Title ----
    flow.append(Paragraph("Solidarity Fund: Financial Simulation Report", styles["H0"]))
    flow.append(Paragraph(datetime.now().strftime("%b %d, %Y %H:%M"), styles["Small"]))
    flow.append(Spacer(1, 8))

    # ---- Headline metrics ----
    flow.append(Paragraph("Executive Summary", styles["H1"]))
    t = Table(_headline_rows(export), repeatRows=1, hAlign="LEFT")
    t.setStyle(_table_style(9))
    flow.append(t)
    flow.append(Spacer(1, 10))

    # ---- Recommendations ----
    recs = export.get("recommendations", [])
    flow.append(Paragraph("Recommendations", styles["H1"]))
    if recs:
        for r in recs:
            flow.append(Paragraph(f"• {r}", styles["Small"]))
    else:
        flow.append(Paragraph("No corrective action required.", styles["Small"]))
    flow.append(Spacer(1, 10))

    # ---- Governance events ----
    events = [r for r in export.get("results", []) if r.get("governanceAction")]
    if events:
        flow.append(Paragraph("Governance Actions", styles["H1"]))
        data = [["Day", "Action", "Balance", "New logistic fee", "Reason"]]
        for r in events:
            adj = r.get("adjustments", {})
            data.append([
                r["day"],
                r["governanceAction"],
                _money(r["fundBalance"]),
                _nice_float(adj.get("logisticFee"), 4),
                adj.get("reason", ""),
            ])
        tbl = Table(data, repeatRows=1, hAlign="LEFT")
        tbl.setStyle(_table_style(8))
        flow.append(tbl)
        flow.append(Spacer(1, 10))

    # ---- Balance chart ----
    if balance_png and os.path.exists(balance_png):
        flow.append(Paragraph("Fund Balance", styles["H1"]))
        flow.append(Image(balance_png, width=9.5*inch, height=3.8*inch))
        flow.append(Paragraph(
            "Balance line after each day's contributions and payments. "
            "Triangles mark days on which governance raised the logistic fee.",
            styles["Caption"],
        ))
        flow.append(Spacer(1, 10))

    # ---- Daily log ----
    df = _daily_log(export)
    if not df.empty:
        flow.append(Paragraph("Daily Log", styles["H1"]))
        tbl = Table([list(df.columns)] + df.values.tolist(), repeatRows=1)
        tbl.setStyle(_table_style(8))
        flow.append(tbl)

    # ---- Build ----
    doc.build(flow)
    return out_pdf
