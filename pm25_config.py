from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

# OpenAQ export names -> canonical columns
DEFAULT_COLUMN_MAP: Dict[str, str] = {
    "datetimeUtc": "timestamp",
    "value": "concentration",
}


@dataclass(frozen=True)
class AnalysisConfig:
    # Extreme classification
    percentile: float = 0.95

    # Guideline comparison (WHO 2021 PM2.5, µg/m³)
    guideline_24h: float = 15.0
    guideline_annual: float = 5.0

    # Ingestion
    column_map: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_COLUMN_MAP))

    # Station metadata (report labelling only)
    station_name: str = "Sheffield Devonshire Green"
    station_id: str = "2508"
    latitude: float = 53.378622
    longitude: float = -1.478096
    parameter: str = "PM2.5"
    units: str = "µg/m³"

    # Reporting
    top_n: int = 10

    # IO
    processed_dir: str = "data/processed"
    figures_dir: str = "figures"
    report_dir: str = "outputs"

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.percentile) <= 1.0:
            raise ValueError(f"percentile must be within [0, 1], got {self.percentile}")
        if int(self.top_n) < 1:
            raise ValueError(f"top_n must be >= 1, got {self.top_n}")

    def processed_path(self) -> Path:
        return Path(self.processed_dir)

    def figures_path(self) -> Path:
        return Path(self.figures_dir)

    def report_path(self) -> Path:
        return Path(self.report_dir)

    def processed_csv_path(self) -> Path:
        return self.processed_path() / "pm25_processed.csv"

    def extreme_events_csv_path(self) -> Path:
        return self.processed_path() / "extreme_events.csv"

    def monthly_summary_csv_path(self) -> Path:
        return self.processed_path() / "monthly_summary.csv"

    def hourly_summary_csv_path(self) -> Path:
        return self.processed_path() / "hourly_summary.csv"

    def text_report_path(self) -> Path:
        return self.report_path() / "pm25_report.txt"

    def pdf_report_path(self) -> Path:
        return self.report_path() / "pm25_report.pdf"
