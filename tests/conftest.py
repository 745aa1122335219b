from __future__ import annotations

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

from tests.fixtures import build_workbook
from xlsx_csv_converter.config import Settings
from xlsx_csv_converter.utils.logging import clear_context


@pytest.fixture(autouse=True)
def _reset_log_context() -> Iterator[None]:
    clear_context()
    yield
    clear_context()


@pytest.fixture
def default_settings() -> Settings:
    """Settings built from defaults only, ignoring the environment."""
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None)


@pytest.fixture
def scenario_workbook() -> bytes:
    """One sheet: ["a", "b,c"] then ["x"]."""
    return build_workbook({"Data": [["a", "b,c"], ["x"]]})


@pytest.fixture
def multi_sheet_workbook() -> bytes:
    """Three sheets; the middle one holds no rows."""
    return build_workbook(
        {
            "First": [["id", "name"], [1, "Alice"]],
            "Empty": [],
            "Third": [["only"], [], [None, None, "wide"]],
        }
    )
