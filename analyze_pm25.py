"""
analyze_pm25.py — PM2.5 Extreme Pollution Analysis (batch CLI)

Reads an hourly air-quality CSV, runs the extreme-event pipeline from
``pm25_stats`` and writes:
  • processed CSVs (hourly series, extreme events, monthly and hourly summaries)
  • six PNG charts
  • a text report and a PDF report

Usage (CLI)
-----------
python analyze_pm25.py \
  --data data/data.csv \
  --processed-dir data/processed \
  --figures-dir figures \
  --report-dir outputs \
  --percentile 0.95

Source column names default to the OpenAQ export (``datetimeUtc``, ``value``);
override them with ``--timestamp-col`` and ``--value-col``.
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

import pandas as pd

from pm25_config import DEFAULT_COLUMN_MAP, AnalysisConfig
from pm25_plots import generate_all_charts
from pm25_report import build_pdf_report, format_text_report
from pm25_stats import WEEKDAY_LABELS, AnalysisOutputs, InsufficientDataError, run_analysis

logger = logging.getLogger(__name__)


@dataclass
class AnalysisArtifacts:
    processed_csv: str
    extreme_events_csv: str
    monthly_summary_csv: str
    hourly_summary_csv: str
    charts: Dict[str, str]
    text_report: str
    pdf_report: str | None
    report_text: str
    outputs: AnalysisOutputs


def read_readings_csv(path: str) -> pd.DataFrame:
    df = pd.read_csv(path, low_memory=False)
    logger.info("[io] loaded %s raw rows from %s", len(df), path)
    return df


def read_processed_csv(path: str) -> pd.DataFrame:
    """Re-import ``pm25_processed.csv`` with timestamp, date and weekday types restored."""
    df = pd.read_csv(path, low_memory=False)
    df["hour_timestamp"] = pd.to_datetime(df["hour_timestamp"], utc=True)
    df["calendar_date"] = pd.to_datetime(df["calendar_date"]).dt.date
    df["weekday"] = pd.Categorical(df["weekday"], categories=list(WEEKDAY_LABELS), ordered=True)
    return df


def write_processed_outputs(outputs: AnalysisOutputs, config: AnalysisConfig) -> Dict[str, str]:
    os.makedirs(config.processed_path(), exist_ok=True)
    paths = {
        "processed": str(config.processed_csv_path()),
        "extreme_events": str(config.extreme_events_csv_path()),
        "monthly_summary": str(config.monthly_summary_csv_path()),
        "hourly_summary": str(config.hourly_summary_csv_path()),
    }
    outputs.hourly.to_csv(paths["processed"], index=False)
    outputs.extreme_events.to_csv(paths["extreme_events"], index=False)
    outputs.monthly_summary.to_csv(paths["monthly_summary"], index=False)
    outputs.hourly_summary.to_csv(paths["hourly_summary"], index=False)
    return paths


def generate_analysis(
    *,
    data_file: str,
    config: Optional[AnalysisConfig] = None,
    write_pdf: bool = True,
    report_title: str | None = None,
) -> AnalysisArtifacts:
    """
    Run the batch end to end and write every artifact.

    Parameters
    ----------
    data_file : path to the raw readings CSV
    config : analysis options and output directories
    write_pdf : also build the reportlab PDF
    report_title : custom PDF title (optional)

    Returns
    -------
    AnalysisArtifacts : output paths, the rendered text report and the in-memory outputs.
    """
    config = config or AnalysisConfig()

    raw = read_readings_csv(data_file)
    outputs = run_analysis(raw, config)

    csvs = write_processed_outputs(outputs, config)
    charts = generate_all_charts(
        outputs, str(config.figures_path()), station=config.station_name,
        units=config.units, parameter=config.parameter,
    )

    os.makedirs(config.report_path(), exist_ok=True)
    report_text = format_text_report(outputs, config)
    text_path = str(config.text_report_path())
    with open(text_path, "w", encoding="utf-8") as fh:
        fh.write(report_text)

    pdf_path: str | None = None
    if write_pdf:
        pdf_path = build_pdf_report(
            outputs, config, charts, str(config.pdf_report_path()), report_title=report_title
        )

    return AnalysisArtifacts(
        processed_csv=csvs["processed"],
        extreme_events_csv=csvs["extreme_events"],
        monthly_summary_csv=csvs["monthly_summary"],
        hourly_summary_csv=csvs["hourly_summary"],
        charts=charts,
        text_report=text_path,
        pdf_report=pdf_path,
        report_text=report_text,
        outputs=outputs,
    )


def build_parser() -> argparse.ArgumentParser:
    defaults = AnalysisConfig()
    parser = argparse.ArgumentParser(description="Detect and summarize extreme PM2.5 pollution hours.")
    parser.add_argument("--data", required=True, help="Path to raw readings CSV")
    parser.add_argument("--processed-dir", default=defaults.processed_dir, help="Directory for processed CSVs")
    parser.add_argument("--figures-dir", default=defaults.figures_dir, help="Directory for PNG charts")
    parser.add_argument("--report-dir", default=defaults.report_dir, help="Directory for text/PDF reports")
    parser.add_argument(
        "--percentile", type=float, default=defaults.percentile,
        help="Percentile (0-1) used as the extreme threshold",
    )
    parser.add_argument(
        "--guideline-24h", type=float, default=defaults.guideline_24h, dest="guideline_24h",
        help="24-hour guideline value for the comparison section",
    )
    parser.add_argument(
        "--guideline-annual", type=float, default=defaults.guideline_annual, dest="guideline_annual",
        help="Annual-mean guideline value for the comparison section",
    )
    source_cols = {canonical: source for source, canonical in DEFAULT_COLUMN_MAP.items()}
    parser.add_argument(
        "--timestamp-col", default=source_cols["timestamp"], help="Source timestamp column name"
    )
    parser.add_argument(
        "--value-col", default=source_cols["concentration"], help="Source concentration column name"
    )
    parser.add_argument("--parameter", default=defaults.parameter, help="Pollutant label for report and charts")
    parser.add_argument("--units", default=defaults.units, help="Concentration units for report and charts")
    parser.add_argument("--station-name", default=defaults.station_name)
    parser.add_argument("--station-id", default=defaults.station_id)
    parser.add_argument("--latitude", type=float, default=defaults.latitude)
    parser.add_argument("--longitude", type=float, default=defaults.longitude)
    parser.add_argument("--top-n", type=int, default=defaults.top_n, help="Number of extreme hours to list")
    parser.add_argument("--title", default=None, help="Custom PDF report title (optional)")
    parser.add_argument("--no-pdf", action="store_true", help="Skip the PDF report")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser


def main() -> None:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    try:
        config = AnalysisConfig(
            percentile=args.percentile,
            guideline_24h=args.guideline_24h,
            guideline_annual=args.guideline_annual,
            column_map={args.timestamp_col: "timestamp", args.value_col: "concentration"},
            station_name=args.station_name,
            station_id=args.station_id,
            latitude=args.latitude,
            longitude=args.longitude,
            parameter=args.parameter,
            units=args.units,
            top_n=args.top_n,
            processed_dir=args.processed_dir,
            figures_dir=args.figures_dir,
            report_dir=args.report_dir,
        )
        artifacts = generate_analysis(
            data_file=args.data,
            config=config,
            write_pdf=not args.no_pdf,
            report_title=args.title,
        )
    except InsufficientDataError as e:
        raise SystemExit(f"[ERROR] {e}")
    except ValueError as e:
        raise SystemExit(f"[ERROR] Invalid input or configuration: {e}")

    print(artifacts.report_text)
    print("=== Generated Artifacts ===")
    print("Processed CSV:", artifacts.processed_csv)
    print("Extreme events CSV:", artifacts.extreme_events_csv)
    print("Monthly summary CSV:", artifacts.monthly_summary_csv)
    print("Hourly summary CSV:", artifacts.hourly_summary_csv)
    for name, path in artifacts.charts.items():
        print(f"Chart ({name}):", path)
    print("Text report:", artifacts.text_report)
    print("PDF report:", artifacts.pdf_report)


if __name__ == "__main__":
    main()
