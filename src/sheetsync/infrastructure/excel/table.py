"""
Worksheet Table - openpyxl adapter for the tabular store.

Exposes a worksheet as a 1-based grid with the handful of operations the
engine needs: cell/row access, header notes, the status validation list,
and the tracking column styling. Styling is deliberately minimal; only
fills created here are recognized (and removed) as tracking formatting.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from openpyxl import Workbook, load_workbook
from openpyxl.comments import Comment
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.cell_range import MultiCellRange
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from sheetsync.domain.sync_status import STATUS_LITERALS

logger = logging.getLogger(__name__)

NOTE_AUTHOR = "SheetSync"


class TrackingColors:
    """Tracking column palette (hex codes without #)."""

    HEADER_BG = "E8F0FE"
    COLUMN_BG = "F8F9FA"

    ALL = (HEADER_BG, COLUMN_BG)


def _fill(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


def _fill_color(cell) -> str:
    """Return the RGB of a solid fill without alpha, or ''."""
    fill = cell.fill
    if fill is None or fill.fill_type != "solid":
        return ""
    rgb = fill.fgColor.rgb if fill.fgColor is not None else None
    if not isinstance(rgb, str):
        return ""
    return rgb[-6:].upper()


class WorksheetTable:
    """
    Tabular store backed by an openpyxl worksheet.

    Usage:
        table = WorksheetTable.open("output/mirror.xlsx", "Persons")
        table.set_cell(2, 3, "a@example.com")
        table.save()
    """

    def __init__(self, worksheet: Worksheet, path: Path | None = None) -> None:
        self.ws = worksheet
        self.path = path

    @classmethod
    def open(cls, path: Path | str, sheet_name: str) -> WorksheetTable:
        """
        Open (or create) a workbook and select the named sheet.

        Args:
            path: Workbook path; created on save if missing
            sheet_name: Worksheet to mirror into (created if missing)
        """
        path = Path(path)
        if path.exists():
            wb = load_workbook(path)
        else:
            wb = Workbook()
            wb.active.title = sheet_name
            logger.info("Creating new workbook: %s", path)

        if sheet_name in wb.sheetnames:
            ws = wb[sheet_name]
        else:
            ws = wb.create_sheet(sheet_name)
        return cls(ws, path)

    @classmethod
    def in_memory(cls, sheet_name: str = "Sheet1") -> WorksheetTable:
        wb = Workbook()
        wb.active.title = sheet_name
        return cls(wb.active)

    def save(self, path: Path | str | None = None) -> None:
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("No path to save workbook to")
        target.parent.mkdir(parents=True, exist_ok=True)
        self.ws.parent.save(target)
        logger.debug("Saved workbook: %s", target)

    # ========================================================================
    # Grid Access
    # ========================================================================

    @property
    def name(self) -> str:
        return self.ws.title

    def max_row(self) -> int:
        return self.ws.max_row

    def max_column(self) -> int:
        return self.ws.max_column

    def header_row(self) -> list[Any]:
        return self.get_row(1)

    def get_cell(self, row: int, column: int) -> Any:
        return self.ws.cell(row=row, column=column).value

    def set_cell(self, row: int, column: int, value: Any) -> None:
        if isinstance(value, str) and value == "":
            value = None
        self.ws.cell(row=row, column=column).value = value

    def get_row(self, row: int) -> list[Any]:
        return [self.ws.cell(row=row, column=c).value for c in range(1, self.ws.max_column + 1)]

    def set_row(self, row: int, values: list[Any]) -> None:
        for column, value in enumerate(values, start=1):
            self.set_cell(row, column, value)

    def clear_rows(self, start_row: int) -> None:
        """Delete every row from start_row down."""
        count = self.ws.max_row - start_row + 1
        if count > 0:
            self.ws.delete_rows(start_row, count)

    # ========================================================================
    # Notes
    # ========================================================================

    def get_note(self, row: int, column: int) -> str:
        comment = self.ws.cell(row=row, column=column).comment
        return comment.text if comment is not None else ""

    def set_note(self, row: int, column: int, text: str | None) -> None:
        cell = self.ws.cell(row=row, column=column)
        cell.comment = Comment(text, NOTE_AUTHOR) if text else None

    # ========================================================================
    # Validation
    # ========================================================================

    def set_validation(self, column: int, allowed: Iterable[str], start_row: int = 2) -> None:
        """Attach a dropdown list to the column's data rows."""
        options = list(allowed)
        letter = get_column_letter(column)
        end_row = max(self.ws.max_row, start_row)

        self.clear_validation(column)

        dv = DataValidation(
            type="list",
            formula1='"' + ",".join(options) + '"',
            showDropDown=False,  # False = show dropdown arrow
            allow_blank=True,
        )
        dv.error = f"Please select from: {', '.join(options)}"
        dv.errorTitle = "Invalid Value"
        self.ws.add_data_validation(dv)
        dv.add(f"{letter}{start_row}:{letter}{end_row}")

    def _status_validations(self) -> list[DataValidation]:
        found = []
        for dv in self.ws.data_validations.dataValidation:
            formula = dv.formula1 or ""
            if dv.type == "list" and all(literal in formula for literal in STATUS_LITERALS):
                found.append(dv)
        return found

    @staticmethod
    def _covers(dv: DataValidation, column: int) -> bool:
        return any(r.min_col <= column <= r.max_col for r in dv.sqref.ranges)

    def has_status_validation(self, column: int) -> bool:
        return any(self._covers(dv, column) for dv in self._status_validations())

    def clear_validation(self, column: int) -> None:
        """Remove the status dropdown from one column; other validations are kept."""
        for dv in self._status_validations():
            if not self._covers(dv, column):
                continue
            remaining = [
                r.coord for r in dv.sqref.ranges if not (r.min_col <= column <= r.max_col)
            ]
            if remaining:
                dv.sqref = MultiCellRange(" ".join(remaining))
            else:
                self.ws.data_validations.dataValidation.remove(dv)

    # ========================================================================
    # Formatting
    # ========================================================================

    def apply_status_formatting(self, column: int) -> None:
        header = self.ws.cell(row=1, column=column)
        header.fill = _fill(TrackingColors.HEADER_BG)
        header.font = Font(bold=True)
        for row in range(2, self.ws.max_row + 1):
            self.ws.cell(row=row, column=column).fill = _fill(TrackingColors.COLUMN_BG)

    def clear_formatting(self, column: int) -> None:
        """Remove tracking fills from a column; fills chosen by users stay."""
        for row in range(1, self.ws.max_row + 1):
            cell = self.ws.cell(row=row, column=column)
            if _fill_color(cell) in TrackingColors.ALL:
                cell.fill = PatternFill()
                if row == 1:
                    cell.font = Font()
