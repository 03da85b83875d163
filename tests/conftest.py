"""
Shared fixtures and pytest configuration for the dashboard tests.
"""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.dataset import TabularDataset  # noqa: E402
from core.sources import DEMO_SALES_ID, SampleSheetSource  # noqa: E402


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "api: mark test as exercising the HTTP API")
    config.addinivalue_line("markers", "unit: mark test as a pure unit test")


def pytest_collection_modifyitems(config, items):
    """Mark tests in test_api.py with 'api', everything else with 'unit'."""
    for item in items:
        if "test_api" in str(item.fspath):
            item.add_marker(pytest.mark.api)
        else:
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def make_dataset():
    def _make(headers, rows):
        return TabularDataset.from_records(headers, [dict(zip(headers, row)) for row in rows])

    return _make


@pytest.fixture
def sales_dataset():
    return SampleSheetSource().fetch(DEMO_SALES_ID)


@pytest.fixture
def monthly_dataset(make_dataset):
    return make_dataset(
        ["Month", "Sales"],
        [("Jan", "10"), ("Feb", "20"), ("Jan", "5"), ("Mar", "7")],
    )
