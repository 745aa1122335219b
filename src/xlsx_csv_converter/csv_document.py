"""Dataclasses representing the flattened, not yet rectangular, CSV data."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CsvMatrix:
    """Rows of formatted fields in workbook order.

    Rows keep the length the flattener produced; padding to
    ``max_row_width`` happens only when the matrix is serialized.
    """

    rows: list[list[str]] = field(default_factory=list)
    max_row_width: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows
