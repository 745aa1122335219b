"""XLSX to CSV conversion pipeline.

Each call runs open, flatten and serialize to completion, in that order:

    from xlsx_csv_converter.services.converter import convert_to_csv

    with open("book.xlsx", "rb") as f:
        csv_bytes = convert_to_csv(f)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from xlsx_csv_converter.config import Settings
from xlsx_csv_converter.config import settings as default_settings
from xlsx_csv_converter.csv_document import CsvMatrix
from xlsx_csv_converter.services.cell_formatter import CellFormatter
from xlsx_csv_converter.services.csv_serializer import CsvSerializer
from xlsx_csv_converter.services.number_formats import DisplayRules
from xlsx_csv_converter.services.sheet_flattener import SheetFlattener
from xlsx_csv_converter.services.workbook_accessor import open_workbook
from xlsx_csv_converter.utils.logging import LogContext, get_logger, timed_operation

logger = get_logger(__name__)


@dataclass
class ConversionResult:
    """CSV output together with the shape of the flattened data."""

    content: bytes
    row_count: int
    column_count: int
    sheet_count: int
    evaluation_errors: int = 0


class CsvConverter:
    """Convert XLSX workbooks to flat CSV according to ``Settings``.

    The converter holds only its settings, so one instance can serve
    concurrent calls on independent inputs.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or default_settings

    def convert_to_csv(
        self, stream: BinaryIO | bytes, source: str | None = None
    ) -> bytes:
        """Convert a workbook to CSV bytes.

        Args:
            stream: XLSX content; a stream is read fully and closed.
            source: Optional input name for logs and errors.

        Raises:
            OpenError: If the input is not a readable workbook.
        """
        return self.convert(stream, source=source).content

    def convert(
        self, stream: BinaryIO | bytes, source: str | None = None
    ) -> ConversionResult:
        """Convert a workbook and report the shape of the output."""
        context = {"source": source} if source else {}
        with LogContext(**context):
            with timed_operation(logger, "xlsx_to_csv") as metrics:
                matrix, sheet_count, errors = self._build_matrix(stream, source)
                content = self._serializer().to_bytes(matrix)

                metrics.sheets_processed = sheet_count
                metrics.rows_written = matrix.row_count
                metrics.columns = matrix.max_row_width
                metrics.evaluation_errors = errors

        return ConversionResult(
            content=content,
            row_count=matrix.row_count,
            column_count=matrix.max_row_width,
            sheet_count=sheet_count,
            evaluation_errors=errors,
        )

    def convert_to_sink(
        self, stream: BinaryIO | bytes, sink: BinaryIO, source: str | None = None
    ) -> int:
        """Convert a workbook and write the CSV to a binary sink.

        Returns:
            Number of bytes written.

        Raises:
            OpenError: If the input is not a readable workbook.
            SerializationError: If the sink cannot be written.
        """
        matrix, _, _ = self._build_matrix(stream, source)
        return self._serializer().write(matrix, sink)

    def _build_matrix(
        self, stream: BinaryIO | bytes, source: str | None
    ) -> tuple[CsvMatrix, int, int]:
        workbook = open_workbook(stream, source=source)
        sheet_count = workbook.sheet_count()
        logger.info("Converting workbook", sheets=sheet_count)

        formatter = CellFormatter(
            workbook.evaluator,
            rules=DisplayRules(
                decimal_separator=self.settings.decimal_separator,
                thousands_separator=self.settings.thousands_separator,
            ),
            error_text=self.settings.evaluation_error_text,
        )
        flattener = SheetFlattener(
            formatter, legacy_cell_bounds=self.settings.legacy_cell_bounds
        )
        matrix = flattener.flatten(workbook)
        if formatter.evaluation_errors:
            logger.warning(
                "Formula cells rendered as placeholders",
                count=formatter.evaluation_errors,
                placeholder=self.settings.evaluation_error_text,
            )
        return matrix, sheet_count, formatter.evaluation_errors

    def _serializer(self) -> CsvSerializer:
        return CsvSerializer(
            separator=self.settings.separator,
            escaping_style=self.settings.escaping_style,
            line_terminator=self.settings.line_terminator,
        )


def convert_to_csv(stream: BinaryIO | bytes) -> bytes:
    """Convert a workbook to CSV bytes using the configured settings."""
    return CsvConverter().convert_to_csv(stream)
