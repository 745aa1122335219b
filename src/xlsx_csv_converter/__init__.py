"""XLSX to CSV Converter - flatten multi-sheet workbooks into one CSV."""

__version__ = "0.1.0"

from xlsx_csv_converter.services.converter import (  # noqa: E402
    CsvConverter,
    convert_to_csv,
)

__all__ = ["CsvConverter", "convert_to_csv"]


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from xlsx_csv_converter.config import settings

    uvicorn.run(
        "xlsx_csv_converter.api:app",
        host=settings.server_host,
        port=settings.server_port,
    )
