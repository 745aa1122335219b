"""Tests for the FastAPI application."""

from collections.abc import AsyncIterator
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest
from fastapi import status

from xlsx_csv_converter.api import _csv_filename, create_app

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
async def client() -> AsyncIterator[httpx.AsyncClient]:
    """Create an async test client for the FastAPI application."""
    app = create_app()
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    async def test_health_check_returns_200(self, client: httpx.AsyncClient) -> None:
        """Test that health check returns 200 status code."""
        response = await client.get("/health")
        assert response.status_code == status.HTTP_200_OK

    async def test_health_check_response_structure(
        self, client: httpx.AsyncClient
    ) -> None:
        """Test that health check returns expected response structure."""
        data = (await client.get("/health")).json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert isinstance(datetime.fromisoformat(data["timestamp"]), datetime)


class TestOpenAPIDocumentation:
    """Tests for OpenAPI documentation availability."""

    async def test_openapi_lists_convert(self, client: httpx.AsyncClient) -> None:
        """Test that the OpenAPI schema includes the convert endpoint."""
        response = await client.get("/openapi.json")

        assert response.status_code == status.HTTP_200_OK
        assert "/convert" in response.json()["paths"]


class TestConvertEndpoint:
    """Tests for POST /convert."""

    async def test_convert_returns_csv(
        self, client: httpx.AsyncClient, scenario_workbook: bytes
    ) -> None:
        """Test a workbook upload is answered with its CSV rendering."""
        response = await client.post(
            "/convert",
            files={"file": ("report.xlsx", scenario_workbook, XLSX_MIME)},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.content == b"a,b\\\\,c\nx,"
        assert response.headers["content-type"].startswith("text/csv")
        assert (
            response.headers["content-disposition"]
            == 'attachment; filename="report.csv"'
        )
        assert response.headers["x-csv-rows"] == "2"
        assert response.headers["x-csv-columns"] == "2"

    async def test_convert_multi_sheet(
        self, client: httpx.AsyncClient, multi_sheet_workbook: bytes
    ) -> None:
        """Test all sheets end up in one rectangular document."""
        response = await client.post(
            "/convert",
            files={"file": ("book.xlsx", multi_sheet_workbook, XLSX_MIME)},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.text.split("\n") == [
            "id,name,",
            "1,Alice,",
            "only,,",
            ",,",
            ",,wide",
        ]

    async def test_missing_file_returns_400(self, client: httpx.AsyncClient) -> None:
        """Test that a request without a file is rejected."""
        response = await client.post("/convert")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["error_code"] == "E1003"
        assert data["details"]["field"] == "file"

    async def test_non_workbook_returns_400(self, client: httpx.AsyncClient) -> None:
        """Test that content which is not an XLSX workbook is rejected."""
        response = await client.post(
            "/convert",
            files={"file": ("notes.txt", b"id,name\n1,Alice", "text/plain")},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["error_code"] == "E1001"
        assert data["details"]["source"] == "notes.txt"
        assert "reason" in data["details"]

    async def test_file_too_large_returns_413(
        self, client: httpx.AsyncClient, scenario_workbook: bytes
    ) -> None:
        """Test that 413 is returned when file exceeds size limit."""
        mock_settings = type(
            "MockSettings",
            (),
            {"max_file_size_bytes": 100, "max_file_size_mb": 0, "debug": False},
        )()

        with patch("xlsx_csv_converter.api.settings", mock_settings):
            response = await client.post(
                "/convert",
                files={"file": ("big.xlsx", scenario_workbook, XLSX_MIME)},
            )

        assert response.status_code == 413
        data = response.json()
        assert data["error_code"] == "E1002"
        assert "size" in data["detail"].lower()

    async def test_request_id_is_echoed(
        self, client: httpx.AsyncClient, scenario_workbook: bytes
    ) -> None:
        """Test that a caller-supplied request ID comes back unchanged."""
        response = await client.post(
            "/convert",
            files={"file": ("report.xlsx", scenario_workbook, XLSX_MIME)},
            headers={"X-Request-ID": "req-abc"},
        )

        assert response.headers["x-request-id"] == "req-abc"

    async def test_error_response_carries_request_id(
        self, client: httpx.AsyncClient
    ) -> None:
        """Test error bodies include the request ID."""
        response = await client.post(
            "/convert",
            files={"file": ("notes.txt", b"plain text", "text/plain")},
            headers={"X-Request-ID": "req-err"},
        )

        assert response.json()["request_id"] == "req-err"

    async def test_request_id_generated_when_missing(
        self, client: httpx.AsyncClient
    ) -> None:
        """Test a request ID is generated when none is supplied."""
        response = await client.get("/health")

        assert response.headers["x-request-id"]


class TestCsvFilename:
    """Tests for the download file name helper."""

    @pytest.mark.parametrize(
        ("upload_name", "expected"),
        [
            ("report.xlsx", "report.csv"),
            ("dir/Q1 figures.xlsx", "Q1 figures.csv"),
            ("Übersicht.xlsx", "bersicht.csv"),
            ('"quoted".xlsx', "quoted.csv"),
            (None, "workbook.csv"),
            ("日本.xlsx", "workbook.csv"),
        ],
    )
    def test_csv_filename(self, upload_name: str | None, expected: str) -> None:
        assert _csv_filename(upload_name) == expected
