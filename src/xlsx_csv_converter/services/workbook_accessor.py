"""Read-only access to the sheets, rows and cells of an XLSX workbook.

Rows and cells are addressed the way the file stores them: only physically
present rows exist, and a row only knows the cells written for it. Indexes
are zero-based throughout.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Protocol

from openpyxl import load_workbook
from openpyxl.cell import Cell
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from xlsx_csv_converter.services.formula_evaluator import (
    CachedValueEvaluator,
    FormulaEvaluator,
    PycelEvaluator,
)
from xlsx_csv_converter.utils.exceptions import OpenError
from xlsx_csv_converter.utils.logging import get_logger

logger = get_logger(__name__)

FORMULA_DATA_TYPE = "f"


def is_formula(cell: Any) -> bool:
    """Check whether a cell holds a formula."""
    return getattr(cell, "data_type", None) == FORMULA_DATA_TYPE


@dataclass
class PhysicalRow:
    """A row present in the sheet file, with its cells keyed by column."""

    index: int
    cells: dict[int, Cell] = field(default_factory=dict)

    @property
    def last_cell_num(self) -> int:
        """One past the right-most cell index, or -1 for a row with no cells."""
        if not self.cells:
            return -1
        return max(self.cells) + 1


@dataclass
class SheetView:
    """A worksheet together with its physical row index."""

    worksheet: Worksheet
    rows: dict[int, PhysicalRow]

    @property
    def title(self) -> str:
        return self.worksheet.title

    @property
    def last_row_index(self) -> int:
        return max(self.rows) if self.rows else -1


class WorkbookAccessor(Protocol):
    """Structural queries the flattener needs from a workbook."""

    @property
    def evaluator(self) -> FormulaEvaluator: ...

    def sheet_count(self) -> int: ...

    def sheet(self, index: int) -> Any: ...

    def physical_row_count(self, sheet: Any) -> int: ...

    def last_row_index(self, sheet: Any) -> int: ...

    def row(self, sheet: Any, index: int) -> Any | None: ...

    def last_cell_num(self, row: Any) -> int: ...

    def cell(self, row: Any, index: int) -> Any | None: ...

    def is_formula(self, cell: Any) -> bool: ...


class OpenpyxlWorkbook:
    """WorkbookAccessor backed by an openpyxl workbook.

    Worksheets (hidden ones included) are visited in workbook order;
    chartsheets hold no cells and are not listed.
    """

    def __init__(
        self, workbook: Workbook, evaluator: FormulaEvaluator | None = None
    ) -> None:
        self._workbook = workbook
        self._evaluator = evaluator
        self._sheets: dict[int, SheetView] = {}

    @property
    def evaluator(self) -> FormulaEvaluator:
        if self._evaluator is None:
            raise RuntimeError("Workbook was opened without a formula evaluator")
        return self._evaluator

    @property
    def sheet_names(self) -> list[str]:
        return [ws.title for ws in self._workbook.worksheets]

    def sheet_count(self) -> int:
        return len(self._workbook.worksheets)

    def sheet(self, index: int) -> SheetView:
        if index not in self._sheets:
            worksheet = self._workbook.worksheets[index]
            self._sheets[index] = SheetView(worksheet, _index_rows(worksheet))
        return self._sheets[index]

    def physical_row_count(self, sheet: SheetView) -> int:
        return len(sheet.rows)

    def last_row_index(self, sheet: SheetView) -> int:
        return sheet.last_row_index

    def row(self, sheet: SheetView, index: int) -> PhysicalRow | None:
        return sheet.rows.get(index)

    def last_cell_num(self, row: PhysicalRow) -> int:
        return row.last_cell_num

    def cell(self, row: PhysicalRow, index: int) -> Cell | None:
        return row.cells.get(index)

    def is_formula(self, cell: Any) -> bool:
        return is_formula(cell)


def _index_rows(worksheet: Worksheet) -> dict[int, PhysicalRow]:
    """Group the worksheet's stored cells and row records into physical rows."""
    rows: dict[int, PhysicalRow] = {}
    # _cells holds only cells read from the file, keyed by 1-based (row, column);
    # the public accessors would create missing cells on lookup
    for (row_idx, col_idx), cell in sorted(worksheet._cells.items()):
        row = rows.get(row_idx - 1)
        if row is None:
            row = rows[row_idx - 1] = PhysicalRow(index=row_idx - 1)
        row.cells[col_idx - 1] = cell
    # rows written without cells (custom height, row style) only have a dimension
    for row_idx in list(worksheet.row_dimensions.keys()):
        rows.setdefault(row_idx - 1, PhysicalRow(index=row_idx - 1))
    return rows


def _read_payload(stream: BinaryIO | bytes, source: str | None) -> bytes:
    """Read the whole input, closing the stream whatever happens."""
    if isinstance(stream, (bytes, bytearray, memoryview)):
        return bytes(stream)
    try:
        return stream.read()
    except (OSError, ValueError) as e:
        raise OpenError(
            "Failed to read workbook input",
            source=source,
            reason=str(e),
        ) from e
    finally:
        stream.close()


def open_workbook(
    stream: BinaryIO | bytes, source: str | None = None
) -> OpenpyxlWorkbook:
    """Open an XLSX workbook from a binary stream or raw bytes.

    The stream is read to the end and closed before this function returns,
    on success and on failure alike.

    Args:
        stream: Binary stream or bytes holding an XLSX file.
        source: Optional input name used in errors and logs.

    Returns:
        Workbook accessor whose evaluator reads stored formula results and
        recalculates formulas that have none.

    Raises:
        OpenError: If the input cannot be read or is not a valid workbook.
    """
    payload = _read_payload(stream, source)
    try:
        # Load twice: once for structure and formulas, once for stored results
        workbook = load_workbook(io.BytesIO(payload), data_only=False)
        computed_wb = load_workbook(io.BytesIO(payload), data_only=True)
    except Exception as e:
        logger.warning(
            "Workbook could not be opened",
            source=source,
            error_type=type(e).__name__,
            size_bytes=len(payload),
        )
        raise OpenError(
            f"Input is not a readable XLSX workbook: {e}",
            source=source,
            reason=type(e).__name__,
        ) from e

    logger.debug(
        "Workbook opened",
        source=source,
        sheets=len(workbook.worksheets),
        size_bytes=len(payload),
    )
    evaluator = CachedValueEvaluator(computed_wb, fallback=PycelEvaluator(payload))
    return OpenpyxlWorkbook(workbook, evaluator)
