"""
Repository interfaces for data access.

Ports (interfaces) for the export engine:
- Current: SQLAlchemy (SQLite/Postgres) and in-memory record lists
- Future: document store with native cursors

Easy to swap implementations without changing the export loop.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from poi_export.export.query import Projection, SortSpec


class PageFetcher(ABC):
    """
    Fetches one bounded, sorted page of raw records.

    Repeated calls with increasing skip over an unmodified data set must
    return a stable, non-overlapping, order-consistent sequence of pages.
    """

    @abstractmethod
    async def fetch_page(
        self,
        filter_query: Dict[str, Any],
        sort: SortSpec,
        limit: int,
        skip: int,
        projection: Optional[Projection] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch a single page.

        Args:
            filter_query: Validated document-style filter
            sort: Ordered (field, direction) pairs
            limit: Maximum number of records to return
            skip: Number of matching records to skip
            projection: Optional field selection

        Returns:
            Ordered list of raw records (0..limit)

        Raises:
            UpstreamQueryError: If the data source fails
        """
        pass

    def validate(self, filter_query: Dict[str, Any], sort: SortSpec) -> None:
        """
        Check that the data source can serve a filter and sort.

        Called once at admission, before any output is written.

        Raises:
            InvalidRequestError: If a field cannot be queried
        """
        pass

    def close(self) -> None:
        """Release data-source resources held for the export."""
        pass
