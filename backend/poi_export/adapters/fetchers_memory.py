"""
In-memory implementation of the PageFetcher port.

Serves pages from a list of record dicts using the same query semantics as
the SQL adapter. Used for embedding and tests.
"""
from typing import Any, Dict, List, Optional, Sequence

from poi_export.core.errors import UpstreamQueryError
from poi_export.export.query import (
    Projection,
    SortSpec,
    project_record,
    record_matches,
    sort_records,
)
from poi_export.ports.repositories import PageFetcher


class InMemoryPageFetcher(PageFetcher):
    """Pages over a fixed list of records."""

    def __init__(self, records: Sequence[Dict[str, Any]]):
        self.records = list(records)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def fetch_page(
        self,
        filter_query: Dict[str, Any],
        sort: SortSpec,
        limit: int,
        skip: int,
        projection: Optional[Projection] = None,
    ) -> List[Dict[str, Any]]:
        self.calls.append({"limit": limit, "skip": skip})

        matching = [r for r in self.records if record_matches(r, filter_query)]
        try:
            ordered = sort_records(matching, sort)
        except TypeError as e:
            raise UpstreamQueryError(f"cannot sort records: {e}") from e

        return [project_record(r, projection) for r in ordered[skip:skip + limit]]

    def close(self) -> None:
        self.closed = True
