"""Helpers that build small XLSX workbooks in memory for tests.

openpyxl never stores formula results when it writes a workbook, so
workbooks with cached results are produced by replacing a generated sheet
part with hand-written XML.

Example usage:
    from tests.fixtures import build_workbook, replace_sheet_xml

    payload = build_workbook({"Data": [["a", "b,c"], ["x"]]})
    payload = replace_sheet_xml(payload, '<row r="1"><c r="A1"><v>1</v></c></row>')
"""

import io
import zipfile
from typing import Any

from openpyxl import Workbook

SHEET_XML_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<worksheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main">'
    "<sheetData>{rows}</sheetData>"
    "</worksheet>"
)


def save_workbook(workbook: Workbook) -> bytes:
    """Serialize an openpyxl workbook to XLSX bytes."""
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def make_workbook(sheets: dict[str, list[list[Any]]]) -> Workbook:
    """Create a workbook with one worksheet per entry, in insertion order.

    ``None`` values are skipped so the cell is physically absent, and an
    empty list leaves the row absent.
    """
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        worksheet = workbook.create_sheet(title)
        for row_idx, row in enumerate(rows, start=1):
            for col_idx, value in enumerate(row, start=1):
                if value is not None:
                    worksheet.cell(row=row_idx, column=col_idx, value=value)
    return workbook


def build_workbook(sheets: dict[str, list[list[Any]]]) -> bytes:
    """Build XLSX bytes from sheet titles mapped to row values."""
    return save_workbook(make_workbook(sheets))


def replace_sheet_xml(payload: bytes, rows_xml: str, sheet_number: int = 1) -> bytes:
    """Swap the ``sheetData`` of one worksheet part for hand-written rows.

    Args:
        payload: XLSX bytes produced by openpyxl.
        rows_xml: ``<row>`` elements to place inside ``sheetData``.
        sheet_number: 1-based worksheet part number.

    Returns:
        New XLSX bytes.
    """
    target = f"xl/worksheets/sheet{sheet_number}.xml"
    source = zipfile.ZipFile(io.BytesIO(payload))
    output = io.BytesIO()
    with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as archive:
        for item in source.infolist():
            data = source.read(item.filename)
            if item.filename == target:
                data = SHEET_XML_TEMPLATE.format(rows=rows_xml).encode("utf-8")
            archive.writestr(item, data)
    source.close()
    return output.getvalue()


def inline_string_cell(ref: str, text: str) -> str:
    """XML for a literal text cell."""
    return f'<c r="{ref}" t="inlineStr"><is><t>{text}</t></is></c>'


def number_cell(ref: str, value: float | int) -> str:
    """XML for a literal number cell."""
    return f'<c r="{ref}"><v>{value}</v></c>'


def formula_cell(
    ref: str, formula: str, cached: str | None = None, cell_type: str | None = None
) -> str:
    """XML for a formula cell, optionally with a stored result.

    ``cell_type`` is ``"str"`` for text results and ``"e"`` for errors.
    """
    type_attr = f' t="{cell_type}"' if cell_type else ""
    value = f"<v>{cached}</v>" if cached is not None else ""
    return f'<c r="{ref}"{type_attr}><f>{formula}</f>{value}</c>'


def row_xml(index: int, *cells: str) -> str:
    """XML for a 1-based row holding the given cells."""
    return f'<row r="{index}">{"".join(cells)}</row>'
