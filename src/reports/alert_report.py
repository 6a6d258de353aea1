"""
Excel and CSV export of controller analysis results.
"""

import logging
import pandas as pd
from pathlib import Path
from typing import Sequence

from config.settings import Settings
from analysis.engine import AnalysisResult
from analysis.variance_classifier import Alert
from reports.formatter import ExcelFormatter

ALERT_COLUMNS = [
    'Account', 'Account Code', 'Department', 'Severity', 'Trend',
    'Real', 'Budget', 'Previous Period', 'Same Month Last Year', 'Benchmark',
    'Var vs Budget %', 'Var vs Previous %', 'Var vs Last Year %', 'Var vs Benchmark %',
]
CURRENCY_COLUMNS = ['Real', 'Budget', 'Previous Period', 'Same Month Last Year', 'Benchmark', 'Value']
PERCENT_COLUMNS = [
    'Var vs Budget %', 'Var vs Previous %', 'Var vs Last Year %', 'Var vs Benchmark %',
    'Revenue vs Budget %', 'Margin vs Budget %', 'Expenses vs Budget %',
]
BREAKDOWN_COLUMNS = ['Account', 'Department', 'Company', 'Value', 'Var vs Previous %']


def alerts_to_frame(alerts: Sequence[Alert]) -> pd.DataFrame:
    """One row per alert, in ranking order."""
    return pd.DataFrame([
        {
            'Account': a.account_name,
            'Account Code': a.account_code,
            'Department': a.department,
            'Severity': a.severity.value,
            'Trend': a.trend.value,
            'Real': a.real_value,
            'Budget': a.budget_value,
            'Previous Period': a.previous_period_value,
            'Same Month Last Year': a.same_month_last_year_value,
            'Benchmark': a.benchmark_value,
            'Var vs Budget %': a.variation_vs_budget,
            'Var vs Previous %': a.variation_vs_previous_period,
            'Var vs Last Year %': a.variation_vs_same_month_last_year,
            'Var vs Benchmark %': a.variation_vs_benchmark,
        }
        for a in alerts
    ], columns=ALERT_COLUMNS)


def breakdown_to_frame(alerts: Sequence[Alert]) -> pd.DataFrame:
    """One row per (alert, company) contribution."""
    return pd.DataFrame([
        {
            'Account': a.account_name,
            'Department': a.department,
            'Company': b.company_name,
            'Value': b.value,
            'Var vs Previous %': b.variation_vs_previous_period,
        }
        for a in alerts
        for b in a.company_breakdown
    ], columns=BREAKDOWN_COLUMNS)


def summary_to_frame(result: AnalysisResult) -> pd.DataFrame:
    summary = result.summary
    period = result.ai_context.period if result.ai_context else ''
    return pd.DataFrame([{
        'Period': period,
        'Overall Health': summary.overall_health.value,
        'Critical': summary.critical_count,
        'Warning': summary.warning_count,
        'OK': summary.ok_count,
        'Total Accounts': summary.total_accounts,
        'Revenue vs Budget %': summary.revenue_vs_budget,
        'Margin vs Budget %': summary.margin_vs_budget,
        'Expenses vs Budget %': summary.expenses_vs_budget,
        'Errors': result.error or '',
    }])


class AlertReportGenerator:
    """Writes analysis results to formatted workbooks or plain CSV."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.formatter = ExcelFormatter()
        self.logger = logging.getLogger(__name__)

    def generate_report(self, result: AnalysisResult, output_file: str) -> str:
        """
        Write Summary, Alerts and Company Breakdown sheets.

        Args:
            result: Analysis snapshot
            output_file: Target .xlsx path, parent folders are created

        Returns:
            Path of the written workbook
        """
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        sheets = {
            'Summary': summary_to_frame(result),
            'Alerts': alerts_to_frame(result.alerts),
            'Company Breakdown': breakdown_to_frame(result.alerts),
        }

        with pd.ExcelWriter(output_file, engine='xlsxwriter') as writer:
            self.formatter.add_formats(writer.book)
            for sheet_name, df in sheets.items():
                df.to_excel(writer, sheet_name=sheet_name, index=False)
                worksheet = writer.sheets[sheet_name]
                self.formatter.write_header(worksheet, df.columns)
                self.formatter.apply_alert_formatting(worksheet, df, CURRENCY_COLUMNS, PERCENT_COLUMNS)
                self.formatter.adjust_column_widths(worksheet, df)
                worksheet.freeze_panes(1, 0)

        self.logger.info(f"Alert report written to {output_file} ({len(result.alerts)} alerts)")
        return output_file

    def export_csv(self, alerts: Sequence[Alert], output_file: str) -> str:
        """Write the alert table as CSV readable by spreadsheet tools."""
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        alerts_to_frame(alerts).to_csv(output_file, index=False, encoding='utf-8-sig')
        self.logger.info(f"Alert CSV written to {output_file} ({len(alerts)} alerts)")
        return output_file
