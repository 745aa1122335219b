"""Flatten every sheet of a workbook into one list of CSV rows."""

from __future__ import annotations

from typing import Any

from xlsx_csv_converter.csv_document import CsvMatrix
from xlsx_csv_converter.services.cell_formatter import CellFormatter
from xlsx_csv_converter.services.workbook_accessor import WorkbookAccessor
from xlsx_csv_converter.utils.logging import ProgressTracker, get_logger

logger = get_logger(__name__)


class SheetFlattener:
    """Build a CsvMatrix from all sheets, in workbook order.

    Every row index from 0 through the sheet's last row produces one CSV
    row; indexes with no physical row produce a row with no fields. Sheets
    without physical rows produce nothing.

    With ``legacy_cell_bounds`` (the default) each present row visits one
    cell past its last cell number, so matrix rows carry one extra trailing
    field. The width only ever grows to the last cell number itself, which
    is why the serialized output is the same in both modes.
    """

    def __init__(
        self, formatter: CellFormatter, legacy_cell_bounds: bool = True
    ) -> None:
        self._formatter = formatter
        self._legacy_cell_bounds = legacy_cell_bounds

    def flatten(self, workbook: WorkbookAccessor) -> CsvMatrix:
        rows: list[list[str]] = []
        max_row_width = 0
        sheet_count = workbook.sheet_count()
        tracker = ProgressTracker(logger, "Flattening sheets", total=sheet_count)

        for index in range(sheet_count):
            sheet = workbook.sheet(index)
            sheet_rows, sheet_width = self._flatten_sheet(workbook, sheet)
            rows.extend(sheet_rows)
            max_row_width = max(max_row_width, sheet_width)
            logger.debug(
                "Sheet flattened",
                sheet_index=index,
                rows=len(sheet_rows),
                width=sheet_width,
            )
            tracker.update(details=getattr(sheet, "title", None))

        if sheet_count:
            tracker.complete()
        return CsvMatrix(rows=rows, max_row_width=max_row_width)

    def _flatten_sheet(
        self, workbook: WorkbookAccessor, sheet: Any
    ) -> tuple[list[list[str]], int]:
        if workbook.physical_row_count(sheet) == 0:
            return [], 0

        rows: list[list[str]] = []
        width = 0
        for row_index in range(workbook.last_row_index(sheet) + 1):
            row = workbook.row(sheet, row_index)
            if row is None:
                rows.append([])
                continue

            last_cell = workbook.last_cell_num(row)
            bound = last_cell + 1 if self._legacy_cell_bounds else last_cell
            rows.append([self._format_cell(workbook, row, i) for i in range(bound)])
            width = max(width, last_cell)
        return rows, width

    def _format_cell(self, workbook: WorkbookAccessor, row: Any, index: int) -> str:
        cell = workbook.cell(row, index)
        if cell is None:
            return ""
        return self._formatter.format(cell)
