"""
Report Generator Module - TrailTag

This module exports check-in records for a date range as CSV or Excel
files, using pandas for tabulation.

Features:
- Check-in export for a date range
- Excel workbook with per-program and per-day summary sheets
- CSV export
- Cleanup of old export files before each export
"""

import pandas as pd
from datetime import datetime, timedelta
from typing import Dict, Any
import logging
import os

EXPORT_COLUMNS = {
    'id': 'Check-in ID',
    'check_in_time': 'Check-in Time',
    'student_username': 'Username',
    'student_name': 'Student',
    'program_name': 'Program',
    'location': 'Location',
    'qr_location': 'QR Location'
}


class ReportGenerator:
    """
    Check-in export in CSV and Excel formats.
    """

    def __init__(self, checkin_manager, output_dir: str = 'exports', max_records: int = 10000,
                 retention_days: int = 7):
        """
        Initialize the report generator.

        Args:
            checkin_manager: Check-in manager providing the records
            output_dir (str): Directory export files are written to
            max_records (int): Maximum number of records per export
            retention_days (int): Age in days after which export files are removed
        """
        self.checkins = checkin_manager
        self.logger = logging.getLogger(__name__)

        self.output_dir = output_dir
        self.supported_formats = ['excel', 'csv']
        self.max_records_per_report = max_records
        self.retention_days = retention_days

        os.makedirs(self.output_dir, exist_ok=True)

    def export_check_ins(self, start_date: str, end_date: str,
                         output_format: str = 'csv') -> Dict[str, Any]:
        """
        Export check-ins whose date falls in [start_date, end_date].

        Args:
            start_date (str): Start date (YYYY-MM-DD)
            end_date (str): End date (YYYY-MM-DD)
            output_format (str): Output format (excel, csv)

        Returns:
            Dict[str, Any]: filename, filepath, format, size and record count
        """
        if output_format not in self.supported_formats:
            return {
                'success': False,
                'error': f'Unsupported output format: {output_format}',
                'error_type': 'validation_error'
            }

        try:
            start = datetime.strptime(start_date, '%Y-%m-%d')
            end = datetime.strptime(end_date, '%Y-%m-%d')
        except (TypeError, ValueError):
            return {
                'success': False,
                'error': 'Dates must use the YYYY-MM-DD format',
                'error_type': 'validation_error'
            }

        if start > end:
            return {
                'success': False,
                'error': 'Start date must not be after end date',
                'error_type': 'validation_error'
            }

        records = self.checkins.get_check_ins_between(start_date, end_date, self.max_records_per_report)
        if not records:
            return {
                'success': False,
                'error': 'No data found for the specified criteria',
                'error_type': 'not_found'
            }

        self.delete_old_reports(self.retention_days)

        df = pd.DataFrame(records)
        df = df[list(EXPORT_COLUMNS)].rename(columns=EXPORT_COLUMNS)

        basename = f"checkins_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        try:
            if output_format == 'excel':
                result = self._generate_excel_report(basename, df)
            else:
                result = self._generate_csv_report(basename, df)
        except Exception as e:
            self.logger.error(f"Check-in export failed: {str(e)}")
            return {
                'success': False,
                'error': 'Failed to generate export',
                'error_type': 'system_error'
            }

        result['records'] = len(df)
        self.logger.info(f"Check-in export generated: {result['filename']} ({len(df)} records)")
        return result

    def _generate_excel_report(self, basename: str, df: pd.DataFrame) -> Dict[str, Any]:
        """
        Write the records plus per-program and per-day summaries to a workbook.

        Args:
            basename (str): File name without extension
            df (pd.DataFrame): Export records

        Returns:
            Dict[str, Any]: File details
        """
        filename = f"{basename}.xlsx"
        filepath = os.path.join(self.output_dir, filename)

        by_program = (
            df.groupby('Program')
            .agg(**{'Check-ins': ('Check-in ID', 'count'), 'Students': ('Username', 'nunique')})
            .reset_index()
            .sort_values('Check-ins', ascending=False)
        )
        by_day = (
            df.assign(Date=df['Check-in Time'].str.slice(0, 10))
            .groupby('Date')
            .size()
            .reset_index(name='Check-ins')
        )

        with pd.ExcelWriter(filepath, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name='Check-ins', index=False)
            by_program.to_excel(writer, sheet_name='By Program', index=False)
            by_day.to_excel(writer, sheet_name='By Day', index=False)

        return {
            'success': True,
            'filename': filename,
            'filepath': filepath,
            'format': 'excel',
            'size': os.path.getsize(filepath)
        }

    def _generate_csv_report(self, basename: str, df: pd.DataFrame) -> Dict[str, Any]:
        filename = f"{basename}.csv"
        filepath = os.path.join(self.output_dir, filename)
        df.to_csv(filepath, index=False, encoding='utf-8')

        return {
            'success': True,
            'filename': filename,
            'filepath': filepath,
            'format': 'csv',
            'size': os.path.getsize(filepath)
        }

    def delete_old_reports(self, days_old: int = 30) -> Dict[str, Any]:
        """
        Delete export files older than specified days.

        Args:
            days_old (int): Number of days old for deletion threshold

        Returns:
            Dict[str, Any]: Cleanup result
        """
        cutoff_date = datetime.now() - timedelta(days=days_old)
        deleted_files = []

        for filename in os.listdir(self.output_dir):
            filepath = os.path.join(self.output_dir, filename)
            if not os.path.isfile(filepath):
                continue

            if datetime.fromtimestamp(os.path.getmtime(filepath)) < cutoff_date:
                try:
                    os.remove(filepath)
                    deleted_files.append(filename)
                    self.logger.info(f"Deleted old export file: {filename}")
                except OSError as e:
                    self.logger.error(f"Failed to delete file {filename}: {str(e)}")

        return {
            'success': True,
            'deleted_count': len(deleted_files),
            'deleted_files': deleted_files
        }
