"""
Unit tests for AlertReportGenerator.
"""

from dataclasses import replace

import pandas as pd
import pytest

from analysis.engine import AnalysisResult
from analysis.summary_builder import Summary
from analysis.insight_context import build_insight_context
from analysis.variance_classifier import CompanyBreakdown, Severity
from reports.alert_report import AlertReportGenerator, alerts_to_frame, ALERT_COLUMNS
from utils.periods import Period
from ledger_fixtures import make_alert


@pytest.fixture
def result():
    alerts = (
        replace(
            make_alert("Despesa Administrativa", Severity.CRITICAL, variation=20),
            company_breakdown=(
                CompanyBreakdown("Loja A", 70.0, -30.0),
                CompanyBreakdown("Loja B", 50.0, -50.0),
            ),
        ),
        make_alert("Receita Bruta", Severity.OK, variation=-1),
    )
    summary = Summary(critical_count=1, ok_count=1, total_accounts=2, overall_health=Severity.CRITICAL)
    return AnalysisResult(
        summary=summary,
        alerts=alerts,
        top_critical=alerts[:1],
        error="ledger: timeout fetching MARÇO/2023",
        ai_context=build_insight_context(Period(2024, "MARÇO"), summary, alerts),
    )


class TestAlertReportGenerator:
    """Test cases for AlertReportGenerator."""

    def test_excel_report_sheets(self, settings, result, tmp_path):
        output = tmp_path / "nested" / "alerts.xlsx"

        AlertReportGenerator(settings).generate_report(result, str(output))

        sheets = pd.read_excel(output, sheet_name=None, engine='openpyxl')
        assert set(sheets) == {"Summary", "Alerts", "Company Breakdown"}

        summary = sheets["Summary"].iloc[0]
        assert summary["Period"] == "MARÇO/2024"
        assert summary["Overall Health"] == "critical"
        assert summary["Errors"] == "ledger: timeout fetching MARÇO/2023"

        alerts = sheets["Alerts"]
        assert list(alerts.columns) == ALERT_COLUMNS
        assert list(alerts["Account"]) == ["Despesa Administrativa", "Receita Bruta"]
        # Percent cells are stored as fractions with a percent format
        assert alerts["Var vs Budget %"].iloc[0] == pytest.approx(0.2)

        breakdown = sheets["Company Breakdown"]
        assert list(breakdown["Company"]) == ["Loja A", "Loja B"]
        assert breakdown["Value"].sum() == pytest.approx(120)

    def test_empty_result_still_writes_workbook(self, settings, tmp_path):
        output = tmp_path / "empty.xlsx"

        AlertReportGenerator(settings).generate_report(AnalysisResult(), str(output))

        sheets = pd.read_excel(output, sheet_name=None, engine='openpyxl')
        assert sheets["Alerts"].empty
        assert sheets["Summary"].iloc[0]["Total Accounts"] == 0

    def test_csv_export(self, settings, result, tmp_path):
        output = tmp_path / "alerts.csv"

        AlertReportGenerator(settings).export_csv(result.alerts, str(output))

        frame = pd.read_csv(output, encoding='utf-8-sig')
        assert list(frame["Severity"]) == ["critical", "ok"]
        assert frame["Var vs Budget %"].iloc[0] == pytest.approx(20)

    def test_frame_keeps_ranking_order(self, result):
        frame = alerts_to_frame(result.alerts)
        assert list(frame["Severity"]) == ["critical", "ok"]
        assert frame["Benchmark"].isna().all()
