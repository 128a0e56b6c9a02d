"""
Tests for the document-style query language and the in-memory page fetcher.
"""
import asyncio
from datetime import datetime

import pytest
from poi_export.adapters.fetchers_memory import InMemoryPageFetcher
from poi_export.core.errors import InvalidRequestError, UpstreamQueryError
from poi_export.export.query import (
    normalize_sort,
    project_record,
    record_matches,
    sort_records,
    validate_filter,
    validate_projection,
)


RECORDS = [
    {"_id": 1, "name": "Spring", "type": "water", "lat": 47.1, "long": 10.0},
    {"_id": 2, "name": "Hut", "type": "shelter", "lat": 46.5, "long": 11.0},
    {"_id": 3, "name": "Peak", "type": None, "lat": 47.9, "long": 10.5},
    {"_id": 4, "name": "Lake", "type": "water", "lat": 45.0, "long": 9.0},
]


def names(records):
    return [r["name"] for r in records]


@pytest.mark.parametrize("query,expected", [
    ({}, ["Spring", "Hut", "Peak", "Lake"]),
    ({"type": "water"}, ["Spring", "Lake"]),
    ({"lat": {"$gt": 47}}, ["Spring", "Peak"]),
    ({"lat": {"$gte": 45, "$lt": 47}}, ["Hut", "Lake"]),
    ({"type": {"$in": ["shelter", "water"]}}, ["Spring", "Hut", "Lake"]),
    ({"type": {"$nin": ["water"]}}, ["Hut", "Peak"]),
    ({"type": {"$ne": "water"}}, ["Hut", "Peak"]),
    ({"type": {"$exists": False}}, ["Peak"]),
    ({"$or": [{"name": "Hut"}, {"lat": {"$lt": 46}}]}, ["Hut", "Lake"]),
    ({"$and": [{"type": "water"}, {"long": {"$lte": 9.5}}]}, ["Lake"]),
    ({"missing": "x"}, []),
])
def test_record_matches(query, expected):
    validate_filter(query)
    assert names([r for r in RECORDS if record_matches(r, query)]) == expected


def test_record_matches_timestamp_string():
    """Test ISO strings compare against stored datetimes."""
    record = {"createdAt": datetime(2021, 6, 1, 12, 0)}

    assert record_matches(record, {"createdAt": {"$gte": "2021-01-01T00:00:00Z"}})
    assert not record_matches(record, {"createdAt": {"$lt": "2021-01-01"}})


def test_record_matches_alias():
    record = {"createdAt": 5}

    assert record_matches(record, {"_createdAt": 5})


@pytest.mark.parametrize("query", [
    {"$where": "1 == 1"},
    {"name": {"$regex": "^S"}},
    {"$or": []},
    {"$and": {"name": "x"}},
    {"type": {"$in": "water"}},
    ["not", "an", "object"],
])
def test_validate_filter_rejects(query):
    with pytest.raises(InvalidRequestError):
        validate_filter(query)


@pytest.mark.parametrize("sort,expected", [
    ({"name": 1}, [("name", 1)]),
    ({"_createdAt": -1}, [("createdAt", -1)]),
    ({"type": "asc", "name": "DESC"}, [("type", 1), ("name", -1)]),
    ([["name", -1], ["lat", 1]], [("name", -1), ("lat", 1)]),
    ([{"field": "lat", "direction": "descending"}], [("lat", -1)]),
    (None, []),
])
def test_normalize_sort(sort, expected):
    assert normalize_sort(sort) == expected


@pytest.mark.parametrize("sort", [{"name": 2}, {"name": True}, "name", [["name"]], {"": 1}])
def test_normalize_sort_rejects(sort):
    with pytest.raises(InvalidRequestError):
        normalize_sort(sort)


def test_sort_records_multi_key_stable():
    ordered = sort_records(RECORDS, [("type", 1), ("lat", -1)])

    # None sorts lowest
    assert names(ordered) == ["Peak", "Hut", "Spring", "Lake"]


def test_project_record_inclusion_keeps_id():
    record = RECORDS[0]

    assert project_record(record, {"name": 1, "lat": 1}) == {"_id": 1, "name": "Spring", "lat": 47.1}
    assert project_record(record, ["name"]) == {"_id": 1, "name": "Spring"}
    assert project_record(record, {"name": 1, "_id": 0}) == {"name": "Spring"}


def test_project_record_exclusion():
    projected = project_record(RECORDS[0], {"type": 0, "long": False})

    assert projected == {"_id": 1, "name": "Spring", "lat": 47.1}


def test_validate_projection():
    assert validate_projection(None) is None
    assert validate_projection({}) is None
    with pytest.raises(InvalidRequestError):
        validate_projection({"name": 1, "lat": 0})
    with pytest.raises(InvalidRequestError):
        validate_projection("name")


def test_memory_fetcher_pages():
    """Test skip/limit pages are stable and non-overlapping."""
    fetcher = InMemoryPageFetcher(RECORDS)

    async def fetch_all():
        first = await fetcher.fetch_page({}, [("lat", 1)], limit=3, skip=0)
        second = await fetcher.fetch_page({}, [("lat", 1)], limit=3, skip=3)
        third = await fetcher.fetch_page({}, [("lat", 1)], limit=3, skip=6)
        return first, second, third

    first, second, third = asyncio.run(fetch_all())

    assert names(first) == ["Lake", "Hut", "Spring"]
    assert names(second) == ["Peak"]
    assert third == []
    assert fetcher.calls == [
        {"limit": 3, "skip": 0},
        {"limit": 3, "skip": 3},
        {"limit": 3, "skip": 6},
    ]


def test_memory_fetcher_filter_and_projection():
    fetcher = InMemoryPageFetcher(RECORDS)

    page = asyncio.run(
        fetcher.fetch_page({"type": "water"}, [("name", 1)], limit=10, skip=0, projection=["name"])
    )

    assert page == [{"_id": 4, "name": "Lake"}, {"_id": 1, "name": "Spring"}]


def test_memory_fetcher_incomparable_sort():
    fetcher = InMemoryPageFetcher([{"name": "a", "lat": 1}, {"name": "b", "lat": "x"}])

    with pytest.raises(UpstreamQueryError):
        asyncio.run(fetcher.fetch_page({}, [("lat", 1)], limit=10, skip=0))
