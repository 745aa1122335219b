"""Formula result lookup and recalculation for workbook cells."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, Protocol

from openpyxl.cell import Cell
from openpyxl.workbook.workbook import Workbook
from pycel import ExcelCompiler

from xlsx_csv_converter.utils.exceptions import EvaluationError
from xlsx_csv_converter.utils.logging import get_logger

logger = get_logger(__name__)


class FormulaEvaluator(Protocol):
    """Produces the result value of a formula cell."""

    def evaluate(self, cell: Any) -> Any:
        """Return the formula result, or raise ``EvaluationError``."""
        ...


def _cell_address(cell: Cell) -> str:
    """Sheet-qualified A1 address, quoting titles that are not plain words."""
    title = cell.parent.title
    if not title.replace("_", "").isalnum():
        title = "'" + title.replace("'", "''") + "'"
    return f"{title}!{cell.coordinate}"


class PycelEvaluator:
    """Recalculate formula cells with pycel.

    The compiler is built from the raw workbook bytes on the first call and
    reused afterwards. Results that are Excel error values, such as
    ``#DIV/0!``, come back as text. Unsupported functions, circular
    references and any other failure inside pycel raise ``EvaluationError``.
    """

    def __init__(self, payload: bytes) -> None:
        self._payload = payload
        self._compiler: ExcelCompiler | None = None

    def _get_compiler(self) -> ExcelCompiler:
        if self._compiler is None:
            # pycel loads workbooks by file name only
            with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as handle:
                handle.write(self._payload)
                path = Path(handle.name)
            try:
                self._compiler = ExcelCompiler(filename=str(path))
            finally:
                path.unlink(missing_ok=True)
            logger.debug("Formula compiler created", size_bytes=len(self._payload))
        return self._compiler

    def evaluate(self, cell: Cell) -> Any:
        try:
            value = self._get_compiler().evaluate(_cell_address(cell))
        except Exception as e:
            raise EvaluationError(
                f"Formula could not be evaluated: {e}",
                sheet=cell.parent.title,
                coordinate=cell.coordinate,
                details={"formula": str(cell.value), "reason": type(e).__name__},
            ) from e
        return "" if value is None else value


class CachedValueEvaluator:
    """Evaluate formula cells from the results the workbook stores.

    Spreadsheet applications save the last computed result of every formula
    next to the formula itself; openpyxl exposes those results when a
    workbook is loaded with ``data_only=True``. Stored errors such as
    ``#DIV/0!`` are returned as they are.

    Files written by libraries rather than by a spreadsheet application
    usually store no results. When a formula has no stored result it is
    handed to ``fallback``; without one the missing result is an
    evaluation error.
    """

    def __init__(
        self, values_workbook: Workbook, fallback: FormulaEvaluator | None = None
    ) -> None:
        self._workbook = values_workbook
        self._fallback = fallback

    def evaluate(self, cell: Cell) -> Any:
        sheet_title = cell.parent.title
        if sheet_title not in self._workbook.sheetnames:
            raise EvaluationError(
                "Sheet is missing from the computed workbook",
                sheet=sheet_title,
                coordinate=cell.coordinate,
            )

        value = self._workbook[sheet_title].cell(row=cell.row, column=cell.column).value
        if value is not None:
            return value
        if self._fallback is None:
            raise EvaluationError(
                "Formula has no stored result",
                sheet=sheet_title,
                coordinate=cell.coordinate,
                details={"formula": str(cell.value)},
            )
        return self._fallback.evaluate(cell)
