"""
Excel infrastructure package.

Provides the openpyxl-backed tabular store.
"""

from sheetsync.infrastructure.excel.table import WorksheetTable, TrackingColors

__all__ = ["WorksheetTable", "TrackingColors"]
