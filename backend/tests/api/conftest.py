"""
Pytest fixtures for API integration tests.

Provides FastAPI test client and database session fixtures.
"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from poi_export.adapters import SQLAlchemyPageFetcher
from poi_export.api.deps import get_authorizer, get_page_fetcher
from poi_export.core.database import Base, get_db
from poi_export.export.coordinator import ExportGate
from poi_export.main import app
from poi_export.models import PointOfInterest


# Test database setup (in-memory SQLite for fast tests)
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.

    Creates all tables, yields session, then drops all tables.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    FastAPI test client with database, fetcher and auth overrides.

    Each test gets a fresh single-flight gate and no API-key check.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_page_fetcher] = lambda: SQLAlchemyPageFetcher(TestingSessionLocal)
    app.dependency_overrides[get_authorizer] = lambda: None
    app.state.export_gate = ExportGate()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_pois(db_session):
    """
    Three exportable POIs and one without a name.

    Returns: List of PointOfInterest instances, oldest first
    """
    start = datetime(2023, 5, 1, 8, 0)
    pois = [
        PointOfInterest(name="Alpine Spring", lat=47.2692, long=11.4041, type="spring",
                        sea_level=1620.5, description="Fresh water & shade", created_at=start),
        PointOfInterest(name="Summit Hut", lat=47.3, long=11.45, type="hut",
                        symbol="Lodge", created_at=start + timedelta(days=1)),
        PointOfInterest(name="Lake View", lat=47.25, long=11.38, type="viewpoint",
                        created_at=start + timedelta(days=2)),
        PointOfInterest(name=None, lat=47.0, long=11.0, type="spring",
                        created_at=start + timedelta(days=3)),
    ]
    db_session.add_all(pois)
    db_session.commit()
    return pois


@pytest.fixture
def many_pois(db_session):
    """250 exportable POIs, more than two export pages."""
    start = datetime(2023, 1, 1)
    db_session.add_all([
        PointOfInterest(
            name=f"POI {i:03d}",
            lat=45.0 + i / 1000,
            long=9.0 + i / 1000,
            created_at=start + timedelta(minutes=i),
        )
        for i in range(250)
    ])
    db_session.commit()
