"""
Shared pytest fixtures.

Points the application at an in-memory database before settings load.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402

from poi_export.export.coordinator import ExportGate  # noqa: E402


def build_records(count, start=0):
    """Complete POI records named POI-0000, POI-0001, ..."""
    return [
        {
            "_id": i,
            "name": f"POI-{i:04d}",
            "lat": 40.0 + i / 1000,
            "long": -3.5 - i / 1000,
        }
        for i in range(start, start + count)
    ]


@pytest.fixture
def make_records():
    """Factory for complete POI records."""
    return build_records


@pytest.fixture
def gate():
    """Fresh single-flight gate."""
    return ExportGate()
