from pathlib import Path
import sys

import numpy as np
import pandas as pd
import pytest

# Ensure repository root on sys.path for direct module imports
sys.path.append(str(Path(__file__).resolve().parents[1]))

import analyze_pm25 as ap
import pm25_stats as ps
from pm25_config import DEFAULT_COLUMN_MAP, AnalysisConfig


def make_sample_csv(tmp_path, n_hours=24 * 45):
    idx = pd.date_range("2024-01-01", periods=n_hours, freq="h")
    rng = np.random.default_rng(11)
    values = rng.gamma(2.0, 4.0, size=n_hours).round(2).astype(object)
    values[5] = None
    values[6] = "n/a"
    stamps = list(idx.strftime("%Y-%m-%dT%H:%M:%SZ"))
    # duplicate reading within the first hour
    stamps.append("2024-01-01T00:30:00Z")
    values = list(values) + [99.0]
    df = pd.DataFrame({
        "location_id": 2508,
        "datetimeUtc": stamps,
        "parameter": "pm25",
        "value": values,
    })
    csv_path = tmp_path / "data.csv"
    df.to_csv(csv_path, index=False)
    return csv_path


def make_config(tmp_path, **kwargs):
    return AnalysisConfig(
        processed_dir=str(tmp_path / "processed"),
        figures_dir=str(tmp_path / "figures"),
        report_dir=str(tmp_path / "outputs"),
        **kwargs,
    )


def test_generate_analysis(tmp_path):
    csv_path = make_sample_csv(tmp_path)
    artifacts = ap.generate_analysis(data_file=str(csv_path), config=make_config(tmp_path))

    for p in (
        artifacts.processed_csv,
        artifacts.extreme_events_csv,
        artifacts.monthly_summary_csv,
        artifacts.hourly_summary_csv,
        artifacts.text_report,
        artifacts.pdf_report,
    ):
        assert Path(p).exists()
    assert len(artifacts.charts) == 6

    out = artifacts.outputs
    assert out.dropped_rows == 2
    assert len(out.hourly) == 24 * 45 - 2
    assert "FINAL SUMMARY REPORT" in Path(artifacts.text_report).read_text(encoding="utf-8")

    monthly = pd.read_csv(artifacts.monthly_summary_csv)
    assert list(monthly.columns) == ["month", "month_label", "mean", "median", "std", "count"]
    assert list(monthly["month"]) == [1, 2]
    hourly = pd.read_csv(artifacts.hourly_summary_csv)
    assert list(hourly["hour_of_day"]) == list(range(24))


def test_generate_analysis_without_pdf(tmp_path):
    csv_path = make_sample_csv(tmp_path, n_hours=48)
    artifacts = ap.generate_analysis(data_file=str(csv_path), config=make_config(tmp_path), write_pdf=False)
    assert artifacts.pdf_report is None
    assert not (tmp_path / "outputs" / "pm25_report.pdf").exists()


def test_processed_csv_round_trip_keeps_extremes(tmp_path):
    csv_path = make_sample_csv(tmp_path, n_hours=24 * 10)
    artifacts = ap.generate_analysis(data_file=str(csv_path), config=make_config(tmp_path), write_pdf=False)

    reloaded = ap.read_processed_csv(artifacts.processed_csv)
    assert len(reloaded) == len(artifacts.outputs.hourly)
    again = ps.extreme_event_table(reloaded)
    expected = artifacts.outputs.extreme_events
    assert list(again["hour_timestamp"]) == list(expected["hour_timestamp"])
    assert np.allclose(again["concentration"], expected["concentration"])


def test_main_writes_outputs(tmp_path, monkeypatch, capsys):
    csv_path = tmp_path / "custom.csv"
    pd.DataFrame({
        "time": pd.date_range("2024-07-01", periods=30, freq="h").strftime("%Y-%m-%d %H:%M"),
        "pm25": np.arange(30, dtype=float),
    }).to_csv(csv_path, index=False)

    monkeypatch.setattr(sys, "argv", [
        "analyze_pm25.py",
        "--data", str(csv_path),
        "--timestamp-col", "time",
        "--value-col", "pm25",
        "--processed-dir", str(tmp_path / "processed"),
        "--figures-dir", str(tmp_path / "figures"),
        "--report-dir", str(tmp_path / "outputs"),
        "--percentile", "0.9",
        "--no-pdf",
    ])
    ap.main()
    printed = capsys.readouterr().out
    assert "Threshold (90th %ile)" in printed
    assert (tmp_path / "processed" / "pm25_processed.csv").exists()
    assert (tmp_path / "figures" / "PM25_TimeSeries.png").exists()


def test_main_exits_on_empty_data(tmp_path, monkeypatch):
    csv_path = tmp_path / "empty.csv"
    pd.DataFrame({"datetimeUtc": ["bad"], "value": ["x"]}).to_csv(csv_path, index=False)
    monkeypatch.setattr(sys, "argv", [
        "analyze_pm25.py", "--data", str(csv_path),
        "--processed-dir", str(tmp_path / "processed"),
        "--figures-dir", str(tmp_path / "figures"),
        "--report-dir", str(tmp_path / "outputs"),
    ])
    with pytest.raises(SystemExit) as exc:
        ap.main()
    assert "insufficient data" in str(exc.value)


def test_config_rejects_bad_percentile():
    with pytest.raises(ValueError):
        AnalysisConfig(percentile=1.5)
    with pytest.raises(ValueError):
        AnalysisConfig(top_n=0)


def test_parser_source_column_defaults_follow_column_map():
    args = ap.build_parser().parse_args(["--data", "x.csv"])
    assert DEFAULT_COLUMN_MAP[args.timestamp_col] == "timestamp"
    assert DEFAULT_COLUMN_MAP[args.value_col] == "concentration"
    defaults = AnalysisConfig()
    assert args.parameter == defaults.parameter
    assert args.units == defaults.units


def test_main_accepts_parameter_and_units(tmp_path, monkeypatch, capsys):
    csv_path = tmp_path / "no2.csv"
    pd.DataFrame({
        "datetimeUtc": pd.date_range("2024-03-01", periods=24, freq="h").strftime("%Y-%m-%dT%H:%M:%SZ"),
        "value": np.linspace(1.0, 24.0, 24),
    }).to_csv(csv_path, index=False)

    monkeypatch.setattr(sys, "argv", [
        "analyze_pm25.py",
        "--data", str(csv_path),
        "--parameter", "NO2",
        "--units", "ppb",
        "--processed-dir", str(tmp_path / "processed"),
        "--figures-dir", str(tmp_path / "figures"),
        "--report-dir", str(tmp_path / "outputs"),
        "--no-pdf",
    ])
    ap.main()
    printed = capsys.readouterr().out
    assert "Parameter: NO2" in printed
    assert "NO2 CONCENTRATION STATISTICS (ppb):" in printed
    assert "PM2.5" not in printed
