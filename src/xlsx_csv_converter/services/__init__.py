"""Conversion services: workbook access, cell formatting, flattening, CSV output."""

from xlsx_csv_converter.services.converter import (
    ConversionResult,
    CsvConverter,
    convert_to_csv,
)

__all__ = ["ConversionResult", "CsvConverter", "convert_to_csv"]
