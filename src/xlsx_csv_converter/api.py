"""FastAPI application exposing the XLSX to CSV conversion."""

import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from xlsx_csv_converter import __version__
from xlsx_csv_converter.config import settings, validate_settings_on_startup
from xlsx_csv_converter.models import ErrorDetail, HealthResponse
from xlsx_csv_converter.services.converter import CsvConverter
from xlsx_csv_converter.utils.exceptions import (
    ErrorCode,
    FileTooLargeError,
    ValidationError,
    XCCError,
)
from xlsx_csv_converter.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def _csv_filename(upload_name: str | None) -> str:
    stem = Path(upload_name).stem if upload_name else ""
    # header values must stay latin-1 safe
    stem = stem.encode("ascii", "ignore").decode().replace('"', "")
    return f"{stem or 'workbook'}.csv"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="XLSX to CSV Converter API",
        description=(
            "Converts multi-sheet XLSX workbooks into a single flat, "
            "rectangular CSV document."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-CSV-Rows", "X-CSV-Columns"],
    )

    validate_settings_on_startup(settings)
    converter = CsvConverter(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it to logs and echo it in the response."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(XCCError)
    async def xcc_exception_handler(request: Request, exc: XCCError) -> JSONResponse:
        """Return converter errors as structured error responses."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.error(
            f"Conversion error: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail.from_error_code(
                exc.error_code,
                exc.message,
                details=exc.details or None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler that hides internals unless debug is on."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail.from_error_code(
                ErrorCode.INTERNAL_ERROR,
                detail,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
        }

    @app.post(
        "/convert",
        response_class=Response,
        tags=["Conversion"],
        responses={
            200: {"content": {"text/csv": {}}, "description": "Converted CSV"},
            400: {"model": ErrorDetail, "description": "Missing or unreadable file"},
            413: {"model": ErrorDetail, "description": "File too large"},
        },
    )
    async def convert_workbook(
        request: Request,
        file: Annotated[
            UploadFile | None, File(description="XLSX workbook to convert")
        ] = None,
    ) -> Response:
        """Convert an uploaded XLSX workbook to CSV.

        All sheets are concatenated in workbook order and every row is padded
        to the widest row. Formula cells carry their computed results.

        Raises:
            ValidationError: 400 if no file was uploaded.
            FileTooLargeError: 413 if the file exceeds the size limit.
            OpenError: 400 if the file is not a readable XLSX workbook.
        """
        request_id = getattr(request.state, "request_id", None)

        if file is None or not file.filename:
            logger.warning("Convert request missing file", request_id=request_id)
            raise ValidationError(
                message="An XLSX file must be provided",
                field="file",
            )

        content = await file.read()
        await file.close()
        if len(content) > settings.max_file_size_bytes:
            logger.warning(
                "File too large",
                file_size=len(content),
                max_size=settings.max_file_size_bytes,
                request_id=request_id,
            )
            raise FileTooLargeError(
                file_size=len(content),
                max_size=settings.max_file_size_bytes,
                source=file.filename,
            )

        result = await run_in_threadpool(
            converter.convert, content, source=file.filename
        )

        logger.info(
            "Workbook converted",
            filename=file.filename,
            rows=result.row_count,
            columns=result.column_count,
            request_id=request_id,
        )
        filename = _csv_filename(file.filename)
        return Response(
            content=result.content,
            media_type=CSV_MEDIA_TYPE,
            headers={
                "Content-Disposition": f'attachment; filename="{filename}"',
                "X-CSV-Rows": str(result.row_count),
                "X-CSV-Columns": str(result.column_count),
            },
        )

    logger.info("FastAPI application created successfully")
    return app


app = create_app()
