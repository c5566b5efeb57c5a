"""Charts for the extreme-pollution analysis (matplotlib, headless)."""

from __future__ import annotations

import os
from typing import Dict

import matplotlib

# Use non‑interactive backend for headless environments
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

from pm25_stats import EXTREME, NORMAL, AnalysisOutputs  # noqa: E402

CHART_FILES = {
    "time_series": "PM25_TimeSeries.png",
    "histogram": "PM25_Histogram.png",
    "hourly_pattern": "PM25_HourlyPattern.png",
    "monthly_pattern": "PM25_MonthlyPattern.png",
    "monthly_boxplot": "PM25_MonthlyBoxplot.png",
    "extreme_by_month": "PM25_ExtremeByMonth.png",
}

DPI = 300


def _naive_utc(ts: pd.Series) -> pd.Series:
    ts = pd.to_datetime(ts, utc=True)
    return ts.dt.tz_convert(None)


def _save(path: str) -> str:
    plt.tight_layout()
    plt.savefig(path, dpi=DPI)
    plt.close()
    return path


def plot_time_series(hourly: pd.DataFrame, threshold: float, out_png: str,
                     title: str | None = None, units: str = "µg/m³", parameter: str = "PM2.5") -> str:
    title = title or f"{parameter} Hourly Concentrations"
    x = _naive_utc(hourly["hour_timestamp"])
    y = hourly["concentration"]
    extreme = (hourly["classification"] == EXTREME).to_numpy()

    plt.figure(figsize=(12, 6))
    plt.plot(x, y, color="steelblue", linewidth=0.5, alpha=0.7, label="Hourly mean")
    plt.scatter(x[extreme], y[extreme], color="red", s=6, alpha=0.8, zorder=3, label="Extreme hour")
    plt.axhline(threshold, color="red", linestyle="--", linewidth=1, label=f"Threshold ({threshold:.2f})")
    plt.axhline(float(y.mean()), color="darkgreen", linestyle=":", linewidth=1, label="Mean")
    plt.title(title)
    plt.xlabel("Date")
    plt.ylabel(f"{parameter} Concentration ({units})")
    plt.legend()
    plt.grid(True, alpha=0.3)
    return _save(out_png)


def plot_histogram(hourly: pd.DataFrame, threshold: float, out_png: str,
                   title: str | None = None, units: str = "µg/m³", parameter: str = "PM2.5") -> str:
    title = title or f"{parameter} Concentration Distribution"
    values = hourly["concentration"].to_numpy(float)

    plt.figure(figsize=(10, 6))
    plt.hist(values, bins=50, color="coral", edgecolor="white", alpha=0.8)
    plt.axvline(threshold, color="darkred", linestyle="--", linewidth=1.2, label="Threshold")
    plt.axvline(float(np.mean(values)), color="darkgreen", linestyle=":", linewidth=1.2, label="Mean")
    plt.title(title)
    plt.xlabel(f"{parameter} Concentration ({units})")
    plt.ylabel("Frequency (hours)")
    plt.legend()
    return _save(out_png)


def plot_hourly_pattern(hourly_summary: pd.DataFrame, out_png: str,
                        title: str | None = None, units: str = "µg/m³", parameter: str = "PM2.5") -> str:
    """Mean per hour of day with a ±1 standard error band."""
    title = title or f"Diurnal Pattern of {parameter} Concentrations"
    x = hourly_summary["hour_of_day"].to_numpy(float)
    y = hourly_summary["mean"].to_numpy(float)
    se = hourly_summary["std_error"].to_numpy(float)

    plt.figure(figsize=(10, 6))
    plt.fill_between(x, y - se, y + se, alpha=0.2, color="darkblue", label="±1 Std Error")
    plt.plot(x, y, color="darkblue", linewidth=1.2, marker="o", label="Mean")
    plt.xticks(range(0, 24, 3))
    plt.title(title)
    plt.xlabel("Hour of Day (UTC)")
    plt.ylabel(f"Mean {parameter} ({units})")
    plt.legend()
    plt.grid(True, alpha=0.3)
    return _save(out_png)


def plot_monthly_pattern(monthly_summary: pd.DataFrame, overall_mean: float, out_png: str,
                         title: str | None = None, units: str = "µg/m³", parameter: str = "PM2.5") -> str:
    title = title or f"Seasonal Pattern of {parameter} Concentrations"
    pos = np.arange(len(monthly_summary))

    plt.figure(figsize=(10, 6))
    plt.bar(pos, monthly_summary["mean"].to_numpy(float), color="skyblue", edgecolor="white", width=0.8)
    plt.axhline(overall_mean, color="red", linestyle="--", linewidth=1, label="Overall mean")
    plt.xticks(pos, list(monthly_summary["month_label"]))
    plt.title(title)
    plt.xlabel("Month")
    plt.ylabel(f"Mean {parameter} ({units})")
    plt.legend()
    return _save(out_png)


def plot_monthly_boxplot(hourly: pd.DataFrame, threshold: float, out_png: str,
                         title: str | None = None, units: str = "µg/m³", parameter: str = "PM2.5") -> str:
    title = title or f"{parameter} Distribution by Month"
    groups = [(int(m), g["concentration"].to_numpy(float)) for m, g in hourly.groupby("month", sort=True)]
    labels = [hourly.loc[hourly["month"] == m, "month_label"].iloc[0] for m, _ in groups]

    plt.figure(figsize=(12, 6))
    plt.boxplot(
        [vals for _, vals in groups],
        patch_artist=True,
        boxprops=dict(facecolor="lightblue"),
        flierprops=dict(markeredgecolor="red", alpha=0.5),
    )
    plt.axhline(threshold, color="red", linestyle="--", linewidth=1, label="Threshold")
    plt.xticks(range(1, len(groups) + 1), labels)
    plt.title(title)
    plt.xlabel("Month")
    plt.ylabel(f"{parameter} Concentration ({units})")
    plt.legend()
    return _save(out_png)


def plot_extreme_by_month(monthly_class_counts: pd.DataFrame, out_png: str,
                          title: str = "Distribution of Normal vs Extreme Events by Month") -> str:
    """Stacked bars of Normal and Extreme hours per month."""
    wide = (
        monthly_class_counts.pivot_table(
            index=["month", "month_label"], columns="classification", values="count",
            aggfunc="sum", fill_value=0,
        )
        .reset_index()
        .sort_values("month")
    )
    for cls in (NORMAL, EXTREME):
        if cls not in wide.columns:
            wide[cls] = 0
    pos = np.arange(len(wide))
    normal = wide[NORMAL].to_numpy(float)
    extreme = wide[EXTREME].to_numpy(float)

    plt.figure(figsize=(10, 6))
    plt.bar(pos, normal, color="lightgray", label=NORMAL)
    plt.bar(pos, extreme, bottom=normal, color="red", label=EXTREME)
    plt.xticks(pos, list(wide["month_label"]))
    plt.title(title)
    plt.xlabel("Month")
    plt.ylabel("Number of Hours")
    plt.legend(title="Event Type", loc="upper center", ncol=2)
    return _save(out_png)


def generate_all_charts(outputs: AnalysisOutputs, figures_dir: str, station: str = "",
                        units: str = "µg/m³", parameter: str = "PM2.5") -> Dict[str, str]:
    """Render every chart into ``figures_dir`` and return {chart name: path}."""
    os.makedirs(figures_dir, exist_ok=True)

    def path(name: str) -> str:
        return os.path.join(figures_dir, CHART_FILES[name])

    suffix = f" - {station}" if station else ""
    hourly = outputs.hourly
    pct_label = f"{outputs.percentile * 100:g}th percentile"

    return {
        "time_series": plot_time_series(
            hourly, outputs.threshold, path("time_series"),
            title=f"{parameter} Hourly Concentrations{suffix} (red: ≥ {pct_label})", units=units, parameter=parameter,
        ),
        "histogram": plot_histogram(hourly, outputs.threshold, path("histogram"), units=units, parameter=parameter),
        "hourly_pattern": plot_hourly_pattern(outputs.hourly_summary, path("hourly_pattern"), units=units, parameter=parameter),
        "monthly_pattern": plot_monthly_pattern(
            outputs.monthly_summary, outputs.stats.mean, path("monthly_pattern"), units=units, parameter=parameter,
        ),
        "monthly_boxplot": plot_monthly_boxplot(hourly, outputs.threshold, path("monthly_boxplot"), units=units, parameter=parameter),
        "extreme_by_month": plot_extreme_by_month(outputs.monthly_class_counts, path("extreme_by_month")),
    }
