"""
Document-style query language used by export requests.

Filters are Mongo-style objects: implicit equality, the comparison operators
in COMPARISON_OPERATORS and the logical $and/$or. Sort specs normalize to an
ordered list of (field, direction) pairs with direction 1 or -1.
Projections are inclusion ({field: 1}), exclusion ({field: 0}) or a list of
included field names.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from poi_export.core.errors import InvalidRequestError
from poi_export.export.values import parse_timestamp

SortSpec = List[Tuple[str, int]]
Projection = Union[Dict[str, Any], List[str]]

COMPARISON_OPERATORS = {"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$exists"}
LOGICAL_OPERATORS = {"$and", "$or"}

# Legacy field names still sent by older clients
FIELD_ALIASES = {"_createdAt": "createdAt"}

_DIRECTIONS = {
    "1": 1,
    "asc": 1,
    "ascending": 1,
    "-1": -1,
    "desc": -1,
    "descending": -1,
}


def resolve_field(name: str) -> str:
    return FIELD_ALIASES.get(name, name)


def is_operator_expression(value: Any) -> bool:
    """True when value is a non-empty dict whose keys are all $-operators."""
    return isinstance(value, dict) and bool(value) and all(
        isinstance(k, str) and k.startswith("$") for k in value
    )


def validate_filter(query: Any) -> Dict[str, Any]:
    """
    Check that a filter only uses supported operators.

    Raises:
        InvalidRequestError: On a non-object filter or an unsupported operator
    """
    if not isinstance(query, dict):
        raise InvalidRequestError("query must be a JSON object")

    for key, condition in query.items():
        if key in LOGICAL_OPERATORS:
            if not isinstance(condition, list) or not condition:
                raise InvalidRequestError(f"{key} expects a non-empty list of queries")
            for sub_query in condition:
                validate_filter(sub_query)
        elif key.startswith("$"):
            raise InvalidRequestError(f"unsupported query operator {key}")
        elif isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            for op, operand in condition.items():
                if op not in COMPARISON_OPERATORS:
                    raise InvalidRequestError(f"unsupported query operator {op} on field {key}")
                if op in ("$in", "$nin") and not isinstance(operand, list):
                    raise InvalidRequestError(f"{op} on field {key} expects a list")

    return query


def _coerce_operand(value: Any, operand: Any) -> Any:
    # Timestamps arrive as ISO strings in JSON queries
    if isinstance(value, datetime) and isinstance(operand, str):
        parsed = parse_timestamp(operand)
        if parsed is not None:
            return parsed.replace(tzinfo=None) if value.tzinfo is None else parsed
    return operand


def _compare(op: str, value: Any, exists: bool, operand: Any) -> bool:
    if op == "$exists":
        return exists == bool(operand)
    if op == "$in":
        return value in [_coerce_operand(value, o) for o in operand]
    if op == "$nin":
        return value not in [_coerce_operand(value, o) for o in operand]

    operand = _coerce_operand(value, operand)
    if op == "$eq":
        return value == operand
    if op == "$ne":
        return value != operand

    if value is None or operand is None:
        return False
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        if op == "$lte":
            return value <= operand
    except TypeError:
        return False
    raise InvalidRequestError(f"unsupported query operator {op}")


def record_matches(record: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Evaluate a validated filter against a single record."""
    for key, condition in query.items():
        if key == "$and":
            if not all(record_matches(record, q) for q in condition):
                return False
        elif key == "$or":
            if not any(record_matches(record, q) for q in condition):
                return False
        else:
            field = resolve_field(key)
            value = record.get(field)
            if is_operator_expression(condition):
                # $exists means present and not null, as for SQL columns
                for op, operand in condition.items():
                    if not _compare(op, value, value is not None, operand):
                        return False
            elif value != _coerce_operand(value, condition):
                return False
    return True


def _parse_direction(field: str, direction: Any) -> int:
    if isinstance(direction, bool):
        raise InvalidRequestError(f"invalid sort direction for {field}")
    if isinstance(direction, (int, float)) and direction in (1, -1):
        return int(direction)
    if isinstance(direction, str) and direction.strip().lower() in _DIRECTIONS:
        return _DIRECTIONS[direction.strip().lower()]
    raise InvalidRequestError(f"invalid sort direction {direction!r} for {field}")


def normalize_sort(sort: Any) -> SortSpec:
    """
    Normalize a sort spec to [(field, direction), ...].

    Accepts {field: dir}, [[field, dir], ...] or [{"field": f, "direction": d}, ...].
    """
    if sort is None:
        return []

    pairs: List[Tuple[Any, Any]] = []
    if isinstance(sort, dict):
        pairs = list(sort.items())
    elif isinstance(sort, (list, tuple)):
        for item in sort:
            if isinstance(item, dict) and "field" in item:
                pairs.append((item["field"], item.get("direction", 1)))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                pairs.append((item[0], item[1]))
            else:
                raise InvalidRequestError(f"invalid sort entry {item!r}")
    else:
        raise InvalidRequestError("sort must be an object or a list")

    normalized: SortSpec = []
    for field, direction in pairs:
        if not isinstance(field, str) or not field:
            raise InvalidRequestError(f"invalid sort field {field!r}")
        normalized.append((resolve_field(field), _parse_direction(field, direction)))
    return normalized


def _is_included(flag: Any) -> bool:
    return flag not in (0, False, "0", None)


def validate_projection(projection: Any) -> Optional[Projection]:
    """
    Check a projection spec. Inclusion and exclusion cannot be mixed
    (except for _id).
    """
    if projection is None or projection == {} or projection == []:
        return None
    if isinstance(projection, list):
        if not all(isinstance(f, str) and f for f in projection):
            raise InvalidRequestError("projection list must contain field names")
        return projection
    if not isinstance(projection, dict):
        raise InvalidRequestError("projection must be an object or a list")

    flags = {_is_included(v) for k, v in projection.items() if k != "_id"}
    if len(flags) > 1:
        raise InvalidRequestError("projection cannot mix inclusion and exclusion")
    return projection


def project_record(record: Dict[str, Any], projection: Optional[Projection]) -> Dict[str, Any]:
    """Apply an inclusion or exclusion projection to a record."""
    if not projection:
        return record

    if isinstance(projection, list):
        spec = {resolve_field(f): 1 for f in projection}
    else:
        spec = {resolve_field(k): v for k, v in projection.items()}

    included = {k for k, v in spec.items() if _is_included(v) and k != "_id"}
    if included:
        keep_id = _is_included(spec.get("_id", 1))
        return {
            k: v for k, v in record.items()
            if k in included or (k == "_id" and keep_id)
        }

    excluded = {k for k, v in spec.items() if not _is_included(v)}
    return {k: v for k, v in record.items() if k not in excluded}


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # None sorts lowest, as in the document store
    return (value is not None, value)


def sort_records(records: Sequence[Dict[str, Any]], sort: SortSpec) -> List[Dict[str, Any]]:
    """Stable multi-key sort. Raises TypeError on incomparable values."""
    result = list(records)
    for field, direction in reversed(sort):
        result.sort(key=lambda r: _sort_key(r.get(field)), reverse=direction < 0)
    return result
