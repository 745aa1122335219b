"""Convert workbook cells into their display strings."""

from __future__ import annotations

from typing import Any

from xlsx_csv_converter.services.formula_evaluator import FormulaEvaluator
from xlsx_csv_converter.services.number_formats import (
    DEFAULT_RULES,
    GENERAL,
    DisplayRules,
    format_value,
)
from xlsx_csv_converter.services.workbook_accessor import is_formula
from xlsx_csv_converter.utils.exceptions import EvaluationError
from xlsx_csv_converter.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ERROR_TEXT = "#N/A"


class CellFormatter:
    """Render literal and formula cells as displayed text.

    Formula cells are evaluated through the injected evaluator and the
    result is rendered with the cell's own number format. An evaluation
    failure never escapes ``format``: the field gets ``error_text`` instead
    and the failure is counted.
    """

    def __init__(
        self,
        evaluator: FormulaEvaluator,
        rules: DisplayRules = DEFAULT_RULES,
        error_text: str = DEFAULT_ERROR_TEXT,
    ) -> None:
        self._evaluator = evaluator
        self._rules = rules
        self._error_text = error_text
        self._evaluation_errors = 0

    @property
    def evaluation_errors(self) -> int:
        """Number of formula cells rendered as the error placeholder."""
        return self._evaluation_errors

    def format(self, cell: Any) -> str:
        """Return the display string for a present cell."""
        number_format = getattr(cell, "number_format", None) or GENERAL

        if not is_formula(cell):
            return format_value(cell.value, number_format, self._rules)

        try:
            value = self._evaluator.evaluate(cell)
        except EvaluationError as e:
            self._evaluation_errors += 1
            logger.warning(
                "Formula evaluation failed",
                sheet=e.sheet,
                coordinate=e.coordinate,
                error=e.message,
            )
            return self._error_text
        return format_value(value, number_format, self._rules)
