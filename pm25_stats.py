"""
pm25_stats.py — Extreme PM2.5 Event Detection and Temporal Aggregation

Purpose
-------
Given:
  • raw air-quality readings with a timestamp column and a concentration column
    (source-specific names are mapped onto canonical ``timestamp``/``concentration``)
this module produces:
  • a cleaned, hourly-averaged series with calendar features (UTC)
  • descriptive statistics (mean, median, sample std, quartiles, p95, CV)
  • an Extreme/Normal label per hour against the series' own percentile threshold
  • grouped summaries by hour of day and by month, plus the ranked extreme table

Key definitions
---------------
Threshold: type‑7 quantile (linear interpolation between order statistics) of
           all hourly concentrations at ``percentile`` (default 0.95).
Extreme:   concentration >= threshold. Ties at the threshold are Extreme.

Everything here is a pure transform over pandas objects; reading CSVs, writing
files and drawing charts live in ``analyze_pm25``, ``pm25_plots`` and
``pm25_report``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from pm25_config import DEFAULT_COLUMN_MAP, AnalysisConfig

logger = logging.getLogger(__name__)

EXTREME = "Extreme"
NORMAL = "Normal"

# Fixed, locale-independent calendar labels
MONTH_LABELS: Tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
WEEKDAY_LABELS: Tuple[str, ...] = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

HOURLY_COLUMNS = [
    "hour_timestamp",
    "concentration",
    "hour_of_day",
    "month",
    "month_label",
    "weekday",
    "calendar_date",
]


class InsufficientDataError(ValueError):
    """Raised when no usable observations remain to compute statistics on."""


@dataclass(frozen=True)
class DescriptiveStats:
    n: int
    minimum: float
    maximum: float
    mean: float
    median: float
    std: float
    p25: float
    p75: float
    p95: float
    cv: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "n": self.n,
            "minimum": self.minimum,
            "maximum": self.maximum,
            "mean": self.mean,
            "median": self.median,
            "std": self.std,
            "p25": self.p25,
            "p75": self.p75,
            "p95": self.p95,
            "cv": self.cv,
        }


@dataclass(frozen=True, eq=False)
class AnalysisOutputs:
    readings: pd.DataFrame
    hourly: pd.DataFrame
    stats: DescriptiveStats
    threshold: float
    percentile: float
    extreme_events: pd.DataFrame
    hourly_summary: pd.DataFrame
    monthly_summary: pd.DataFrame
    monthly_class_counts: pd.DataFrame
    extreme_by_month: pd.DataFrame
    extreme_by_hour: pd.DataFrame
    dropped_rows: int

    @property
    def extreme_count(self) -> int:
        return int(len(self.extreme_events))

    @property
    def extreme_fraction(self) -> float:
        return self.extreme_count / len(self.hourly)


# ---------------------------------------------------------------------------
# Loader / normalizer
# ---------------------------------------------------------------------------

def normalize_readings(
    df_raw: pd.DataFrame,
    column_map: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    Rename source columns to ``timestamp``/``concentration``, parse timestamps
    to UTC and drop rows whose timestamp or value cannot be used.

    Naive timestamps are taken as UTC. Row order is preserved. The number of
    dropped rows is stored in ``attrs["dropped_rows"]``.
    """
    column_map = DEFAULT_COLUMN_MAP if column_map is None else column_map

    df = df_raw.copy()
    df.columns = [str(c).strip() for c in df.columns]
    df = df.rename(columns=column_map)

    for col in ("timestamp", "concentration"):
        if col not in df.columns:
            raise ValueError(
                f"Input is missing required column '{col}' "
                f"(columns after renaming: {list(df.columns)})"
            )
        if isinstance(df[col], pd.DataFrame):
            raise ValueError(f"More than one input column maps to '{col}'")

    n_raw = len(df)
    ts = pd.to_datetime(df["timestamp"], utc=True, errors="coerce", format="mixed")
    values = pd.to_numeric(df["concentration"], errors="coerce").to_numpy(
        dtype="float64", na_value=np.nan
    )
    valid = ts.notna().to_numpy() & np.isfinite(values)

    out = pd.DataFrame({
        "timestamp": ts[valid].reset_index(drop=True),
        "concentration": values[valid],
    })
    dropped = n_raw - len(out)
    out.attrs["dropped_rows"] = dropped

    if dropped:
        logger.warning("[load] dropped %s of %s rows (unparseable timestamp or value)", dropped, n_raw)
    logger.info("[load] %s valid readings", len(out))
    return out


# ---------------------------------------------------------------------------
# Hourly aggregator
# ---------------------------------------------------------------------------

def aggregate_hourly(readings: pd.DataFrame) -> pd.DataFrame:
    """Average readings per UTC hour (floored) and attach calendar features."""
    if readings.empty:
        return pd.DataFrame(columns=HOURLY_COLUMNS)

    hourly = (
        readings.assign(hour_timestamp=readings["timestamp"].dt.floor("h"))
        .groupby("hour_timestamp", sort=True)["concentration"]
        .mean()
        .reset_index()
    )

    ts = hourly["hour_timestamp"]
    hourly["hour_of_day"] = ts.dt.hour.astype(int)
    hourly["month"] = ts.dt.month.astype(int)
    hourly["month_label"] = hourly["month"].map(lambda m: MONTH_LABELS[m - 1])
    # pandas dayofweek is Monday=0
    hourly["weekday"] = pd.Categorical(
        ts.dt.dayofweek.map(lambda d: WEEKDAY_LABELS[(d + 1) % 7]),
        categories=list(WEEKDAY_LABELS),
        ordered=True,
    )
    hourly["calendar_date"] = ts.dt.date

    logger.info("[aggregate] %s readings -> %s hourly records", len(readings), len(hourly))
    return hourly[HOURLY_COLUMNS]


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------

def type7_quantile(values: Iterable[float], q: float) -> float:
    """Quantile by linear interpolation between order statistics (R type 7)."""
    if not 0.0 <= float(q) <= 1.0:
        raise ValueError(f"quantile must be within [0, 1], got {q}")
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise InsufficientDataError("insufficient data: cannot take a quantile of an empty series")
    return float(np.quantile(arr, q, method="linear"))


def describe_concentrations(values: Iterable[float]) -> DescriptiveStats:
    """
    Summary statistics over the hourly concentrations.

    Standard deviation uses the n-1 denominator. With fewer than two values the
    standard deviation and CV are NaN; a zero mean also gives a NaN CV.
    """
    arr = np.asarray(values, dtype=float)
    n = int(arr.size)
    if n == 0:
        raise InsufficientDataError("insufficient data: no hourly concentrations to describe")

    mean = float(np.mean(arr))
    std = float(np.std(arr, ddof=1)) if n >= 2 else float("nan")
    cv = std / mean if (n >= 2 and mean != 0) else float("nan")
    p25, median, p75, p95 = (float(v) for v in np.quantile(arr, [0.25, 0.5, 0.75, 0.95], method="linear"))

    return DescriptiveStats(
        n=n,
        minimum=float(np.min(arr)),
        maximum=float(np.max(arr)),
        mean=mean,
        median=median,
        std=std,
        p25=p25,
        p75=p75,
        p95=p95,
        cv=cv,
    )


# ---------------------------------------------------------------------------
# Extreme event classifier
# ---------------------------------------------------------------------------

def classify_extremes(hourly: pd.DataFrame, percentile: float = 0.95) -> Tuple[pd.DataFrame, float]:
    """Label each hour Extreme/Normal against the series' own percentile threshold."""
    if hourly.empty:
        raise InsufficientDataError("insufficient data: no hourly records to classify")

    threshold = type7_quantile(hourly["concentration"], percentile)
    classified = hourly.copy()
    classified["classification"] = np.where(
        classified["concentration"] >= threshold, EXTREME, NORMAL
    )

    n_extreme = int((classified["classification"] == EXTREME).sum())
    logger.info(
        "[classify] threshold p%g=%.2f -> %s extreme of %s hours",
        percentile * 100, threshold, n_extreme, len(classified),
    )
    return classified, threshold


def guideline_exceedances(hourly: pd.DataFrame, limit: float) -> Tuple[int, float]:
    """Count and percentage of hours strictly above ``limit``."""
    if hourly.empty:
        return 0, float("nan")
    above = hourly["concentration"] > limit
    return int(above.sum()), 100.0 * float(above.mean())


# ---------------------------------------------------------------------------
# Temporal summaries
# ---------------------------------------------------------------------------

def summarize_by_hour(classified: pd.DataFrame) -> pd.DataFrame:
    """Diurnal profile: mean and standard error per hour of day present in the data."""
    summary = (
        classified.groupby("hour_of_day", sort=True)["concentration"]
        .agg(mean="mean", std="std", count="count")
        .reset_index()
    )
    summary["std_error"] = summary["std"] / np.sqrt(summary["count"])
    return summary[["hour_of_day", "mean", "std_error", "count"]]


def summarize_by_month(classified: pd.DataFrame) -> pd.DataFrame:
    summary = (
        classified.groupby("month", sort=True)["concentration"]
        .agg(mean="mean", median="median", std="std", count="count")
        .reset_index()
    )
    summary["month_label"] = summary["month"].map(lambda m: MONTH_LABELS[int(m) - 1])
    return summary[["month", "month_label", "mean", "median", "std", "count"]]


def count_by_month_and_class(classified: pd.DataFrame) -> pd.DataFrame:
    """Hours per (month, classification); only combinations present in the data."""
    counts = (
        classified.groupby(["month", "classification"], sort=True)
        .size()
        .reset_index(name="count")
    )
    counts["month_label"] = counts["month"].map(lambda m: MONTH_LABELS[int(m) - 1])
    return counts[["month", "month_label", "classification", "count"]]


def extreme_event_table(classified: pd.DataFrame) -> pd.DataFrame:
    """Extreme hours, most severe first; equal concentrations stay in time order."""
    extremes = classified[classified["classification"] == EXTREME]
    return extremes.sort_values("concentration", ascending=False, kind="mergesort").reset_index(drop=True)


def rank_extreme_counts(extremes: pd.DataFrame, key: str) -> pd.DataFrame:
    """Extreme hours per ``key``, by descending count then ascending key."""
    if key not in ("month", "hour_of_day"):
        raise ValueError(f"key must be 'month' or 'hour_of_day', got {key!r}")
    counts = extremes.groupby(key, sort=True).size().reset_index(name="count")
    return counts.sort_values(
        ["count", key], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)


def peak_and_lowest(summary: pd.DataFrame, key: str, value: str = "mean") -> Tuple[Tuple[int, float], Tuple[int, float]]:
    """Return ((key, value) at the maximum, (key, value) at the minimum) of a grouped summary."""
    if summary.empty:
        raise InsufficientDataError("insufficient data: empty summary")
    hi = summary.loc[summary[value].idxmax()]
    lo = summary.loc[summary[value].idxmin()]
    return (int(hi[key]), float(hi[value])), (int(lo[key]), float(lo[value]))


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def run_analysis(raw: pd.DataFrame, config: Optional[AnalysisConfig] = None) -> AnalysisOutputs:
    """
    Run the full batch: normalize -> hourly -> statistics + classification -> summaries.

    Parameters
    ----------
    raw : raw rows as read from the source CSV
    config : analysis options (percentile, column mapping, ...)

    Returns
    -------
    AnalysisOutputs : every derived table plus the threshold and drop count.

    Raises
    ------
    InsufficientDataError : when no valid readings remain after cleaning.
    """
    config = config or AnalysisConfig()

    readings = normalize_readings(raw, config.column_map)
    dropped = int(readings.attrs.get("dropped_rows", 0))
    if readings.empty:
        raise InsufficientDataError(
            f"insufficient data: no valid readings remain after cleaning ({dropped} rows dropped)"
        )

    hourly = aggregate_hourly(readings)
    stats = describe_concentrations(hourly["concentration"])
    classified, threshold = classify_extremes(hourly, config.percentile)

    extremes = extreme_event_table(classified)

    return AnalysisOutputs(
        readings=readings,
        hourly=classified,
        stats=stats,
        threshold=threshold,
        percentile=float(config.percentile),
        extreme_events=extremes,
        hourly_summary=summarize_by_hour(classified),
        monthly_summary=summarize_by_month(classified),
        monthly_class_counts=count_by_month_and_class(classified),
        extreme_by_month=rank_extreme_counts(extremes, "month"),
        extreme_by_hour=rank_extreme_counts(extremes, "hour_of_day"),
        dropped_rows=dropped,
    )
