"""
SQLAlchemy implementation of the PageFetcher port.

Translates document-style filters into SQL clauses and pages with
OFFSET/LIMIT. Each export opens its own session, so the fetcher outlives the
request handler that created it while the response streams.
"""
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import DateTime, and_, or_, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from poi_export.core.errors import InvalidRequestError, UpstreamQueryError
from poi_export.export.query import (
    Projection,
    SortSpec,
    is_operator_expression,
    project_record,
    resolve_field,
)
from poi_export.export.values import parse_timestamp
from poi_export.models import PointOfInterest
from poi_export.ports.repositories import PageFetcher

logger = logging.getLogger(__name__)


def _column(model, field: str):
    attr = model.RECORD_FIELDS.get(resolve_field(field))
    if attr is None:
        raise UpstreamQueryError(f"unknown field '{field}'")
    return getattr(model, attr)


def _filter_fields(filter_query: Dict[str, Any]) -> Iterator[str]:
    for key, condition in filter_query.items():
        if key in ("$and", "$or"):
            for sub_query in condition:
                yield from _filter_fields(sub_query)
        else:
            yield key


def unknown_fields(model, filter_query: Dict[str, Any], sort: SortSpec) -> List[str]:
    """Filter and sort fields that have no column on the model, in request order."""
    fields = list(_filter_fields(filter_query)) + [field for field, _ in sort]
    unknown: List[str] = []
    for field in fields:
        if resolve_field(field) not in model.RECORD_FIELDS and field not in unknown:
            unknown.append(field)
    return unknown


def _coerce(column, operand: Any) -> Any:
    if isinstance(column.type, DateTime) and isinstance(operand, str):
        parsed = parse_timestamp(operand)
        if parsed is not None:
            # Stored naive in UTC
            return parsed.replace(tzinfo=None)
    return operand


def _comparison(column, op: str, operand: Any):
    if op == "$exists":
        return column.isnot(None) if operand else column.is_(None)
    if op in ("$in", "$nin"):
        values = [_coerce(column, v) for v in operand if v is not None]
        clause = column.in_(values)
        if op == "$in":
            return or_(clause, column.is_(None)) if None in operand else clause
        if None in operand:
            return and_(~clause, column.isnot(None))
        return or_(~clause, column.is_(None))

    value = _coerce(column, operand)
    if op == "$eq":
        return column.is_(None) if value is None else column == value
    if op == "$ne":
        return column.isnot(None) if value is None else or_(column != value, column.is_(None))
    if op == "$gt":
        return column > value
    if op == "$gte":
        return column >= value
    if op == "$lt":
        return column < value
    if op == "$lte":
        return column <= value
    raise UpstreamQueryError(f"unsupported query operator {op}")


def build_filter_clause(model, filter_query: Dict[str, Any]):
    """Translate a validated document-style filter into a SQL clause."""
    clauses = []
    for key, condition in filter_query.items():
        if key == "$and":
            clauses.append(and_(*[build_filter_clause(model, q) for q in condition]))
        elif key == "$or":
            clauses.append(or_(*[build_filter_clause(model, q) for q in condition]))
        else:
            column = _column(model, key)
            if is_operator_expression(condition):
                for op, operand in condition.items():
                    clauses.append(_comparison(column, op, operand))
            else:
                clauses.append(_comparison(column, "$eq", condition))
    return and_(true(), *clauses)


def build_order_by(model, sort: SortSpec) -> list:
    """ORDER BY per sort spec, with the primary key as a stable tiebreak."""
    order = []
    for field, direction in sort:
        column = _column(model, field)
        order.append(column.desc() if direction < 0 else column.asc())
    order.append(model.id.asc())
    return order


class SQLAlchemyPageFetcher(PageFetcher):
    """Fetches POI pages from a SQL database."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        model=PointOfInterest,
    ):
        """
        Initialize fetcher.

        Args:
            session_factory: Callable returning a new SQLAlchemy session
            model: Mapped class exposing RECORD_FIELDS and to_record()
        """
        self.session_factory = session_factory
        self.model = model
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def validate(self, filter_query: Dict[str, Any], sort: SortSpec) -> None:
        unknown = unknown_fields(self.model, filter_query, sort)
        if unknown:
            raise InvalidRequestError(
                f"unknown field(s) {', '.join(repr(f) for f in unknown)}. "
                f"Valid fields are: {', '.join(self.model.RECORD_FIELDS)}"
            )

    async def fetch_page(
        self,
        filter_query: Dict[str, Any],
        sort: SortSpec,
        limit: int,
        skip: int,
        projection: Optional[Projection] = None,
    ) -> List[Dict[str, Any]]:
        return await run_in_threadpool(
            self._fetch_page_sync, filter_query, sort, limit, skip, projection
        )

    def _fetch_page_sync(
        self,
        filter_query: Dict[str, Any],
        sort: SortSpec,
        limit: int,
        skip: int,
        projection: Optional[Projection],
    ) -> List[Dict[str, Any]]:
        db = self._get_session()
        try:
            rows = (
                db.query(self.model)
                .filter(build_filter_clause(self.model, filter_query))
                .order_by(*build_order_by(self.model, sort))
                .offset(skip)
                .limit(limit)
                .all()
            )
            records = [project_record(row.to_record(), projection) for row in rows]
        except SQLAlchemyError as e:
            logger.error("POI query failed (skip=%d, limit=%d): %s", skip, limit, e)
            raise UpstreamQueryError(f"query failed: {e}") from e

        # Keep only one page of ORM objects alive
        db.expunge_all()
        return records

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
