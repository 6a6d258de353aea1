"""
Excel formatting utilities for alert reports.
"""

import xlsxwriter
import pandas as pd
from typing import Dict, Iterable


class ExcelFormatter:
    """Cell formats and severity row styling for alert workbooks."""

    SEVERITY_COLORS = {
        'critical': {'bg_color': '#ff4d4d', 'font_color': 'white', 'bold': True},
        'warning': {'bg_color': '#ffff99'},
        'ok': {'bg_color': '#ccffcc'},
    }

    def __init__(self):
        self.formats: Dict[str, xlsxwriter.format.Format] = {}

    def add_formats(self, workbook: xlsxwriter.Workbook) -> None:
        """Add standard formats to workbook."""
        self.formats = {
            'header': workbook.add_format({
                'bold': True,
                'bg_color': '#4472c4',
                'font_color': 'white',
                'align': 'center',
                'valign': 'vcenter',
                'border': 1
            }),
            'normal': workbook.add_format({'border': 1}),
            'currency': workbook.add_format({'num_format': '#,##0.00', 'border': 1}),
            'percentage': workbook.add_format({'num_format': '0.0%', 'border': 1}),
        }
        for severity, style in self.SEVERITY_COLORS.items():
            self.formats[severity] = workbook.add_format({**style, 'border': 1})

    def write_header(self, worksheet: xlsxwriter.worksheet.Worksheet, columns: Iterable[str]) -> None:
        for col, name in enumerate(columns):
            worksheet.write(0, col, name, self.formats['header'])

    def apply_alert_formatting(self, worksheet: xlsxwriter.worksheet.Worksheet,
                               df: pd.DataFrame, currency_columns: Iterable[str],
                               percent_columns: Iterable[str], start_row: int = 1) -> None:
        """Colour the severity column and format money/percent cells of each alert row."""
        if len(df) == 0:
            return

        currency_columns = set(currency_columns)
        percent_columns = set(percent_columns)

        for i, (_, row) in enumerate(df.iterrows()):
            row_num = start_row + i
            severity_format = self.formats.get(str(row.get('Severity', '')).lower(), self.formats['normal'])

            for col, column in enumerate(df.columns):
                value = row.iloc[col]
                if pd.isna(value):
                    worksheet.write_blank(row_num, col, None, self.formats['normal'])
                elif column in currency_columns:
                    worksheet.write_number(row_num, col, float(value), self.formats['currency'])
                elif column in percent_columns:
                    worksheet.write_number(row_num, col, float(value) / 100, self.formats['percentage'])
                elif column == 'Severity':
                    worksheet.write(row_num, col, value, severity_format)
                else:
                    worksheet.write(row_num, col, value, self.formats['normal'])

    def adjust_column_widths(self, worksheet: xlsxwriter.worksheet.Worksheet,
                             df: pd.DataFrame) -> None:
        """Adjust column widths based on content."""
        for i, column in enumerate(df.columns):
            max_length = len(str(column))
            for value in df.iloc[:, i]:
                if pd.notna(value):
                    max_length = max(max_length, len(str(value)))
            worksheet.set_column(i, i, min(max_length + 2, 50))
