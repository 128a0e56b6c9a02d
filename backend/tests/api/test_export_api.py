"""
API Integration Tests for the POI export endpoint.

Tests GET /api/v1/poi-export against an in-memory database.
"""
import json
import xml.etree.ElementTree as ET

import pytest
from fastapi import status

from poi_export.adapters import ApiKeyAuthorizer
from poi_export.api.deps import get_authorizer
from poi_export.api.exports import export_filename
from poi_export.core.config import settings
from poi_export.main import app

EXPORT_URL = f"{settings.API_V1_PREFIX}{settings.EXPORT_ROUTE}"
GPX_NS = {"g": "http://www.topografix.com/GPX/1/1"}


def export(client, format="gpx", query=None, **params):
    """GET the export endpoint with a JSON-encoded query object."""
    params = {"format": format, "query": json.dumps(query or {}), **params}
    return client.get(EXPORT_URL, params=params)


@pytest.mark.api
class TestExportAPI:
    """Test suite for the export endpoint."""

    def test_export_gpx(self, client, sample_pois):
        """Test a gpx download with headers and newest-first order."""
        response = export(client, "gpx")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "text/gpx; charset=utf-8"
        assert response.headers["content-disposition"] == (
            f"attachment; filename={export_filename('gpx')}"
        )

        root = ET.fromstring(response.text)
        waypoints = root.findall("g:wpt", GPX_NS)
        assert [w.find("g:name", GPX_NS).text for w in waypoints] == [
            "Lake View",
            "Summit Hut",
            "Alpine Spring",
        ]
        spring = waypoints[2]
        assert spring.get("lat") == "47.2692"
        assert spring.find("g:ele", GPX_NS).text == "1620.5"
        assert spring.find("g:desc", GPX_NS).text == "Fresh water & shade"
        assert spring.find("g:time", GPX_NS).text == "2023-05-01T08:00:00.000Z"

    def test_filter_and_sort(self, client, sample_pois):
        response = export(client, "csv", {
            "query": {"type": {"$in": ["spring", "hut"]}},
            "sort": {"name": 1},
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.text == (
            "Latitude,Longitude,Elevation\n"
            "47.2692,11.4041,1620.5\n"
            "47.3,11.45,0.0\n"
        )

    def test_format_is_case_insensitive(self, client, sample_pois):
        response = export(client, "CSV")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-disposition"].endswith(".csv")

    def test_kml_custom_icon(self, client, sample_pois):
        """Test the customicon parameter adds the icon style to kml."""
        response = export(
            client,
            "kml",
            customicon=json.dumps({"kml": "http://example.com/pin.png"}),
        )

        assert response.status_code == status.HTTP_200_OK
        assert "<href>http://example.com/pin.png</href>" in response.text
        assert response.text.count("<styleUrl>#kmlCustomIcon</styleUrl>") == 3

    def test_json_export(self, client, sample_pois):
        response = export(client, "json", {"projection": {"name": 1, "lat": 1, "long": 1}})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [d["name"] for d in data] == ["Lake View", "Summit Hut", "Alpine Spring"]
        assert set(data[0]) == {"_id", "name", "lat", "long"}

    def test_limit_and_page_are_ignored(self, client, many_pois):
        """Test the export always runs to exhaustion across pages."""
        response = export(client, "asc", {"limit": 10, "page": 3})

        assert response.status_code == status.HTTP_200_OK
        lines = response.text.splitlines()
        assert len(lines) == 250
        assert lines[0].endswith('"POI 249"')
        assert lines[-1].endswith('"POI 000"')

    def test_projection_dropping_required_field(self, client, sample_pois):
        """Test records without a name are not exported."""
        response = export(client, "csv", {"projection": {"name": 0}})

        assert response.status_code == status.HTTP_200_OK
        assert response.text == "Latitude,Longitude,Elevation\n"

    def test_empty_result(self, client):
        response = export(client, "loc")

        assert response.status_code == status.HTTP_200_OK
        root = ET.fromstring(response.text)
        assert root.findall("waypoint") == []

    def test_missing_format(self, client):
        response = client.get(EXPORT_URL, params={"query": "{}"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "no format and/or query given"

    def test_missing_query(self, client):
        response = client.get(EXPORT_URL, params={"format": "gpx"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unparseable_query(self, client):
        response = client.get(EXPORT_URL, params={"format": "gpx", "query": "{oops"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "failed to parse json"

    def test_invalid_format(self, client):
        response = export(client, "shp")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        detail = response.json()["detail"]
        assert detail.startswith('invalid format "shp"')
        assert "gpx, asc, kml, loc, xml, csv, json" in detail

    def test_unsupported_operator(self, client):
        response = export(client, "gpx", {"query": {"$where": "sleep(1)"}})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_sort_field(self, client, sample_pois):
        """Test a misspelled sort field fails before any output is streamed."""
        response = export(client, "gpx", {"sort": {"nmae": 1}})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "'nmae'" in response.json()["detail"]
        assert not app.state.export_gate.busy

    def test_unknown_filter_field(self, client, sample_pois):
        response = export(client, "csv", {"query": {"$or": [{"colour": "red"}, {"type": "hut"}]}})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "'colour'" in response.json()["detail"]

    def test_busy(self, client, sample_pois):
        """Test a running export rejects new requests with 503."""
        gate = app.state.export_gate
        assert gate.try_acquire()

        try:
            response = export(client, "gpx")
        finally:
            gate.release()

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["detail"] == (
            "Busy exporting. Please try again in a couple of minutes."
        )

    def test_gate_released_after_export(self, client, sample_pois):
        first = export(client, "gpx")
        second = export(client, "kml")

        assert first.status_code == status.HTTP_200_OK
        assert second.status_code == status.HTTP_200_OK
        assert not app.state.export_gate.busy

    def test_gate_released_after_rejected_request(self, client):
        export(client, "shp")

        assert not app.state.export_gate.busy

    def test_access_denied(self, client, sample_pois):
        app.dependency_overrides[get_authorizer] = lambda: ApiKeyAuthorizer(["s3cret"])

        response = export(client, "gpx")
        wrong = client.get(
            EXPORT_URL,
            params={"format": "gpx", "query": "{}"},
            headers={"X-API-Key": "nope"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "access denied"
        assert wrong.status_code == status.HTTP_401_UNAUTHORIZED
        assert not app.state.export_gate.busy

    def test_access_granted_with_api_key(self, client, sample_pois):
        app.dependency_overrides[get_authorizer] = lambda: ApiKeyAuthorizer(["s3cret"])

        response = client.get(
            EXPORT_URL,
            params={"format": "gpx", "query": "{}"},
            headers={"X-API-Key": "s3cret"},
        )

        assert response.status_code == status.HTTP_200_OK

    def test_access_checked_before_custom_icon_parse(self, client, sample_pois):
        """Test callers without a key learn nothing about their other parameters."""
        app.dependency_overrides[get_authorizer] = lambda: ApiKeyAuthorizer(["s3cret"])
        params = {"format": "gpx", "query": "{}", "customicon": "{oops"}

        anonymous = client.get(EXPORT_URL, params=params)
        authorized = client.get(EXPORT_URL, params=params, headers={"X-API-Key": "s3cret"})

        assert anonymous.status_code == status.HTTP_401_UNAUTHORIZED
        assert anonymous.json()["detail"] == "access denied"
        assert authorized.status_code == status.HTTP_400_BAD_REQUEST
        assert authorized.json()["detail"] == "failed to parse json"


@pytest.mark.api
class TestHealthAPI:
    """Test suite for the health endpoint."""

    def test_health(self, client):
        response = client.get(f"{settings.API_V1_PREFIX}/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["export_running"] is False

    def test_health_reports_running_export(self, client):
        app.state.export_gate.try_acquire()
        try:
            response = client.get(f"{settings.API_V1_PREFIX}/health")
        finally:
            app.state.export_gate.release()

        assert response.json()["export_running"] is True
