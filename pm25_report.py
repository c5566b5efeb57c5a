"""
Human-readable reporting for the PM2.5 analysis.

``format_text_report`` renders the console/text summary. ``build_pdf_report``
lays the same content out with reportlab and embeds the charts.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from pm25_config import AnalysisConfig
from pm25_stats import (
    MONTH_LABELS,
    AnalysisOutputs,
    guideline_exceedances,
    peak_and_lowest,
)

logger = logging.getLogger(__name__)

RULE = "=" * 40


def _fmt(value: float, spec: str = "6.2f") -> str:
    if math.isnan(value):
        return f"{'NA':>6}"
    return format(value, spec)


def _coord(value: float, pos: str, neg: str) -> str:
    return f"{abs(value):.6f}°{pos if value >= 0 else neg}"


def coverage(outputs: AnalysisOutputs) -> Dict[str, object]:
    """Date range and span (days) covered by the hourly series."""
    ts = outputs.hourly["hour_timestamp"]
    start, end = ts.min(), ts.max()
    return {
        "hours": int(len(outputs.hourly)),
        "start": start,
        "end": end,
        "duration_days": (end - start) / pd.Timedelta(days=1),
    }


def top_extreme_events(outputs: AnalysisOutputs, n: int) -> pd.DataFrame:
    cols = ["hour_timestamp", "concentration", "hour_of_day", "month"]
    return outputs.extreme_events[cols].head(n).reset_index(drop=True).copy()


def format_text_report(outputs: AnalysisOutputs, config: Optional[AnalysisConfig] = None) -> str:
    config = config or AnalysisConfig()
    s = outputs.stats
    u = config.units
    cov = coverage(outputs)
    pct_tag = f"{outputs.percentile * 100:g}th %ile"

    extreme_n = outputs.extreme_count
    extreme_pct = 100.0 * outputs.extreme_fraction
    normal_n = len(outputs.hourly) - extreme_n
    max_extreme = float(outputs.extreme_events["concentration"].max())

    (peak_h, peak_h_val), (low_h, low_h_val) = peak_and_lowest(outputs.hourly_summary, "hour_of_day")
    (peak_m, peak_m_val), (low_m, low_m_val) = peak_and_lowest(outputs.monthly_summary, "month")
    exceed_n, exceed_pct = guideline_exceedances(outputs.hourly, config.guideline_24h)

    lines: List[str] = [
        RULE,
        "         FINAL SUMMARY REPORT          ",
        RULE,
        "",
        "DATASET INFORMATION:",
        "-------------------",
        f"Monitoring Station: {config.station_name} (ID: {config.station_id})",
        f"Location: {_coord(config.latitude, 'N', 'S')}, {_coord(config.longitude, 'E', 'W')}",
        f"Parameter: {config.parameter}",
        f"Total Observations: {cov['hours']} hours",
        f"Dropped Rows: {outputs.dropped_rows}",
        f"Date Range: {cov['start']:%Y-%m-%d} to {cov['end']:%Y-%m-%d}",
        f"Duration: {cov['duration_days']:.2f} days",
        "",
        f"{config.parameter} CONCENTRATION STATISTICS ({u}):",
        "---------------------------------------",
        f"Mean:         {_fmt(s.mean)}",
        f"Median:       {_fmt(s.median)}",
        f"Std Dev:      {_fmt(s.std)}",
        f"Minimum:      {_fmt(s.minimum)}",
        f"Maximum:      {_fmt(s.maximum)}",
        f"25th %ile:    {_fmt(s.p25)}",
        f"75th %ile:    {_fmt(s.p75)}",
        f"95th %ile:    {_fmt(s.p95)}",
        f"CV:           {_fmt(s.cv)}",
        "",
        "EXTREME EVENT SUMMARY:",
        "----------------------",
        f"Threshold ({pct_tag}): {outputs.threshold:.2f} {u}",
        f"Total Extreme Events:  {extreme_n} hours",
        f"Percentage:            {extreme_pct:.1f}%",
        f"Normal Hours:          {normal_n} ({100.0 - extreme_pct:.1f}%)",
        f"Max Concentration:     {max_extreme:.2f} {u}",
        "",
        "TEMPORAL PATTERNS:",
        "------------------",
        f"Peak Hour:     {peak_h:02d}:00 ({peak_h_val:.2f} {u})",
        f"Lowest Hour:   {low_h:02d}:00 ({low_h_val:.2f} {u})",
        f"Peak Month:    {MONTH_LABELS[peak_m - 1]} ({peak_m_val:.2f} {u})",
        f"Lowest Month:  {MONTH_LABELS[low_m - 1]} ({low_m_val:.2f} {u})",
        "",
        "GUIDELINE COMPARISON:",
        "--------------------",
        f"24-hour guideline:      {config.guideline_24h:5.1f} {u}",
        f"Annual guideline:       {config.guideline_annual:5.1f} {u}",
        f"Dataset Mean:           {s.mean:5.2f} {u}"
        + (" (above annual guideline)" if s.mean > config.guideline_annual else ""),
        f"Exceedances (>{config.guideline_24h:g} {u}): {exceed_n} hours ({exceed_pct:.1f}%)",
        "",
        f"TOP {config.top_n} EXTREME POLLUTION EVENTS:",
        "-------------------------------",
        top_extreme_events(outputs, config.top_n).to_string(index=False),
        "",
        "EXTREME EVENTS BY MONTH:",
        "------------------------",
        outputs.extreme_by_month.assign(
            month=outputs.extreme_by_month["month"].map(lambda m: MONTH_LABELS[int(m) - 1])
        ).to_string(index=False),
        "",
        "EXTREME EVENTS BY HOUR OF DAY (top 5):",
        "--------------------------------------",
        outputs.extreme_by_hour.head(5).to_string(index=False),
        "",
        RULE,
    ]
    return "\n".join(lines) + "\n"


def _df_table(df: pd.DataFrame, float_fmt: str = "{:.2f}") -> Table:
    rows = [list(map(str, df.columns))]
    for rec in df.itertuples(index=False):
        rows.append([float_fmt.format(v) if isinstance(v, float) else str(v) for v in rec])
    tbl = Table(rows, hAlign="LEFT")
    tbl.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
    ]))
    return tbl


def build_pdf_report(
    outputs: AnalysisOutputs,
    config: AnalysisConfig,
    chart_paths: Dict[str, str],
    pdf_path: str,
    report_title: Optional[str] = None,
) -> str:
    """Write a PDF with the headline numbers, summary tables and every chart."""
    s = outputs.stats
    # Paragraph text is reportlab markup
    u = escape(config.units)
    cov = coverage(outputs)
    exceed_n, exceed_pct = guideline_exceedances(outputs.hourly, config.guideline_24h)

    if not report_title:
        report_title = (
            f"{config.parameter} Extreme Pollution Analysis: {config.station_name} "
            f"({cov['start']:%Y-%m-%d} to {cov['end']:%Y-%m-%d})"
        )

    doc = SimpleDocTemplate(pdf_path, pagesize=letter)
    styles = getSampleStyleSheet()
    story: List = []
    story.append(Paragraph(f"<b>{escape(report_title)}</b>", styles["Title"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("<b>Dataset</b>", styles["Heading2"]))
    story.append(Paragraph(
        f"{cov['hours']} hourly records from station {escape(config.station_id)} "
        f"spanning {cov['duration_days']:.1f} days; {outputs.dropped_rows} raw rows were dropped during cleaning.",
        styles["BodyText"],
    ))

    story.append(Paragraph("<b>Extreme Events</b>", styles["Heading2"]))
    story.append(Paragraph(
        (
            f"• The {outputs.percentile * 100:g}th percentile threshold is <b>{outputs.threshold:.2f} {u}</b>. "
            f"{outputs.extreme_count} of {cov['hours']} hours (<b>{100.0 * outputs.extreme_fraction:.1f}%</b>) "
            f"reached or exceeded it."
        ),
        styles["BodyText"],
    ))
    story.append(Paragraph(
        (
            f"• The series mean is <b>{s.mean:.2f} {u}</b> against an annual guideline of "
            f"{config.guideline_annual:g} {u}; {exceed_n} hours ({exceed_pct:.1f}%) were above the "
            f"24-hour guideline of {config.guideline_24h:g} {u}."
        ),
        styles["BodyText"],
    ))
    story.append(Spacer(1, 12))

    story.append(Paragraph("<b>Descriptive Statistics</b>", styles["Heading2"]))
    stats_df = pd.DataFrame(
        [(k, float(v)) for k, v in s.as_dict().items() if k != "n"],
        columns=["statistic", f"value ({config.units})"],
    )
    story.append(_df_table(stats_df))
    story.append(Spacer(1, 12))

    story.append(Paragraph("<b>Monthly Summary</b>", styles["Heading2"]))
    story.append(_df_table(outputs.monthly_summary.drop(columns=["month"])))
    story.append(Spacer(1, 12))

    story.append(Paragraph(f"<b>Top {config.top_n} Extreme Hours</b>", styles["Heading2"]))
    top = top_extreme_events(outputs, config.top_n)
    top["hour_timestamp"] = top["hour_timestamp"].map(lambda t: f"{t:%Y-%m-%d %H:%M}")
    story.append(_df_table(top))
    story.append(Spacer(1, 12))

    for png in chart_paths.values():
        story.append(Image(png, width=460, height=250))
        story.append(Spacer(1, 8))

    doc.build(story)
    logger.info("[report] wrote %s", pdf_path)
    return pdf_path
