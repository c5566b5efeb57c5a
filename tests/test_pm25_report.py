from pathlib import Path
import sys

import numpy as np
import pandas as pd

# Ensure repository root on sys.path for direct module imports
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pm25_report as pr
import pm25_stats as ps
from pm25_config import AnalysisConfig


def make_outputs():
    # 10 hours at 1..9 and 100 -> one extreme hour (09:00)
    idx = pd.date_range("2024-02-01", periods=10, freq="h")
    raw = pd.DataFrame({
        "datetimeUtc": idx.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "value": [1, 2, 3, 4, 5, 6, 7, 8, 9, 100],
    })
    return ps.run_analysis(raw)


def test_coverage():
    cov = pr.coverage(make_outputs())
    assert cov["hours"] == 10
    assert np.isclose(cov["duration_days"], 9 / 24)


def test_format_text_report_contents():
    cfg = AnalysisConfig(top_n=3)
    text = pr.format_text_report(make_outputs(), cfg)
    assert "FINAL SUMMARY REPORT" in text
    assert "Sheffield Devonshire Green (ID: 2508)" in text
    assert "53.378622°N, 1.478096°W" in text
    assert "Threshold (95th %ile): 59.05" in text
    assert "Total Extreme Events:  1 hours" in text
    assert "Percentage:            10.0%" in text
    assert "Peak Hour:     09:00 (100.00" in text
    assert "Lowest Hour:   00:00 (1.00" in text
    assert "Peak Month:    Feb" in text
    # 100 is the only hour above 15
    assert "1 hours (10.0%)" in text
    assert "TOP 3 EXTREME POLLUTION EVENTS" in text


def test_format_text_report_single_hour_shows_na():
    raw = pd.DataFrame({"datetimeUtc": ["2024-01-01T00:00:00Z"], "value": [3.0]})
    text = pr.format_text_report(ps.run_analysis(raw))
    assert "Std Dev:          NA" in text
    assert "CV:               NA" in text


def test_top_extreme_events_limit():
    top = pr.top_extreme_events(make_outputs(), 5)
    assert list(top.columns) == ["hour_timestamp", "concentration", "hour_of_day", "month"]
    assert len(top) == 1


def test_build_pdf_report(tmp_path):
    import pm25_plots as pp

    outputs = make_outputs()
    charts = pp.generate_all_charts(outputs, str(tmp_path / "figures"))
    pdf = tmp_path / "report.pdf"
    pr.build_pdf_report(outputs, AnalysisConfig(), charts, str(pdf))
    assert pdf.exists()
    assert pdf.read_bytes()[:4] == b"%PDF"


def test_build_pdf_report_escapes_markup_in_labels(tmp_path, monkeypatch):
    import pm25_plots as pp

    texts = []
    real_paragraph = pr.Paragraph

    def recording_paragraph(text, *args, **kwargs):
        texts.append(text)
        return real_paragraph(text, *args, **kwargs)

    monkeypatch.setattr(pr, "Paragraph", recording_paragraph)
    outputs = make_outputs()
    charts = pp.generate_all_charts(outputs, str(tmp_path / "figures"))
    cfg = AnalysisConfig(station_name="A & B <North>", station_id="<2508>", units="ug/m3 <avg>")

    pdf = tmp_path / "report.pdf"
    pr.build_pdf_report(outputs, cfg, charts, str(pdf))
    assert pdf.read_bytes()[:4] == b"%PDF"
    joined = "\n".join(texts)
    assert "A &amp; B &lt;North&gt;" in joined
    assert "station &lt;2508&gt;" in joined
    assert "ug/m3 &lt;avg&gt;" in joined

    titled = tmp_path / "titled.pdf"
    pr.build_pdf_report(outputs, cfg, charts, str(titled), report_title="Smoke & Haze <2024>")
    assert titled.read_bytes()[:4] == b"%PDF"
    assert "<b>Smoke &amp; Haze &lt;2024&gt;</b>" in texts
