"""Rectangularize a CsvMatrix and serialize it as escaped CSV bytes."""

from __future__ import annotations

import io
from typing import BinaryIO

from xlsx_csv_converter.csv_document import CsvMatrix
from xlsx_csv_converter.models import EscapingStyle
from xlsx_csv_converter.utils.exceptions import SerializationError
from xlsx_csv_converter.utils.logging import get_logger

logger = get_logger(__name__)

ENCODING = "utf-8"
# Control characters and the ASCII space; other Unicode whitespace is content
TRIM_CHARS = "".join(map(chr, range(0x21)))


def escape_field(field: str, style: EscapingStyle, separator: str = ",") -> str:
    """Escape one field for the given escaping style.

    ``BACKSLASH`` prefixes every separator and newline with two literal
    backslashes. ``QUOTE`` doubles embedded quotes and wraps the field in
    quotes when it holds a quote, the separator or a newline.
    """
    if style is EscapingStyle.QUOTE:
        if '"' in field:
            field = '"' + field.replace('"', '""') + '"'
        elif separator in field or "\n" in field:
            field = f'"{field}"'
        return field.strip(TRIM_CHARS)

    if separator in field:
        field = field.replace(separator, "\\\\" + separator)
    if "\n" in field:
        field = field.replace("\n", "\\\\\n")
    return field


class CsvSerializer:
    """Pad or truncate every row to the matrix width and join the lines."""

    def __init__(
        self,
        separator: str = ",",
        escaping_style: EscapingStyle = EscapingStyle.BACKSLASH,
        line_terminator: str = "\n",
    ) -> None:
        self.separator = separator
        self.escaping_style = escaping_style
        self.line_terminator = line_terminator

    def render_line(self, row: list[str], width: int) -> str:
        """Build one output line of exactly ``width`` fields."""
        fields = [
            escape_field(row[j], self.escaping_style, self.separator)
            if j < len(row)
            else ""
            for j in range(width)
        ]
        return self.separator.join(fields).strip(TRIM_CHARS)

    def render(self, matrix: CsvMatrix) -> str:
        """Render the whole matrix; no terminator follows the final row."""
        return self.line_terminator.join(
            self.render_line(row, matrix.max_row_width) for row in matrix.rows
        )

    def write(self, matrix: CsvMatrix, sink: BinaryIO) -> int:
        """Encode the matrix and write it to a binary sink.

        Returns:
            Number of bytes written.

        Raises:
            SerializationError: If encoding fails or the sink rejects the write.
        """
        try:
            payload = self.render(matrix).encode(ENCODING)
            sink.write(payload)
            sink.flush()
        except (OSError, ValueError) as e:
            # UnicodeEncodeError (lone surrogates) is a ValueError too
            logger.error(
                "Failed to write CSV output",
                rows_buffered=matrix.row_count,
                error=str(e),
            )
            raise SerializationError(
                f"Failed to write CSV output: {e}",
                rows_buffered=matrix.row_count,
            ) from e
        return len(payload)

    def to_bytes(self, matrix: CsvMatrix) -> bytes:
        buffer = io.BytesIO()
        self.write(matrix, buffer)
        return buffer.getvalue()
