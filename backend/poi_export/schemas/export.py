"""
Pydantic schemas for the export API.
"""
import json
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from poi_export.core.errors import InvalidRequestError
from poi_export.export.formats import ExportFormat, parse_format
from poi_export.export.query import (
    normalize_sort,
    validate_filter,
    validate_projection,
)

DEFAULT_SORT: List[Tuple[str, int]] = [("createdAt", -1)]


def parse_json_param(raw: str) -> Any:
    """
    Decode a URL-encoded JSON query parameter.

    Raises:
        InvalidRequestError: If the value is not valid JSON
    """
    try:
        return json.loads(unquote(raw))
    except ValueError:
        raise InvalidRequestError("failed to parse json")


class ExportQuery(BaseModel):
    """Serialized query object sent by clients in the `query` parameter."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    query: Optional[Dict[str, Any]] = None
    sort: Any = None
    projection: Any = None
    # Accepted for compatibility, the export always runs to exhaustion
    limit: Optional[int] = None
    page: Optional[int] = None
    custom_icon: Optional[Dict[str, Any]] = Field(default=None, alias="customIcon")


class ExportRequest(BaseModel):
    """Validated, immutable export request."""

    model_config = ConfigDict(frozen=True)

    format: ExportFormat
    filter_query: Dict[str, Any] = Field(default_factory=dict)
    sort: List[Tuple[str, int]] = Field(default_factory=lambda: list(DEFAULT_SORT))
    projection: Optional[Union[Dict[str, Any], List[str]]] = None
    custom_icons: Dict[str, str] = Field(default_factory=dict)

    @field_validator("format", mode="before")
    @classmethod
    def check_format(cls, v: Any) -> ExportFormat:
        return parse_format(v)

    @field_validator("filter_query", mode="before")
    @classmethod
    def check_filter(cls, v: Any) -> Dict[str, Any]:
        if v is None:
            return {}
        return validate_filter(v)

    @field_validator("sort", mode="before")
    @classmethod
    def check_sort(cls, v: Any) -> List[Tuple[str, int]]:
        if v is None:
            return list(DEFAULT_SORT)
        return normalize_sort(v)

    @field_validator("projection", mode="before")
    @classmethod
    def check_projection(cls, v: Any) -> Any:
        return validate_projection(v)

    @field_validator("custom_icons", mode="before")
    @classmethod
    def check_custom_icons(cls, v: Any) -> Dict[str, str]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise InvalidRequestError("customIcon must be an object")
        return {str(k).lower(): str(url) for k, url in v.items() if url}

    @classmethod
    def from_query(
        cls,
        format: str,
        query: ExportQuery,
        custom_icons: Optional[Dict[str, Any]] = None,
    ) -> "ExportRequest":
        """
        Build a request from the decoded HTTP parameters.

        The `customicon` parameter takes precedence over query.customIcon.

        Raises:
            InvalidFormatError: If the format is not supported
            InvalidRequestError: If the query object is malformed
        """
        try:
            return cls(
                format=format,
                filter_query=query.query,
                sort=query.sort,
                projection=query.projection,
                custom_icons=custom_icons if custom_icons is not None else query.custom_icon,
            )
        except ValidationError as e:
            raise InvalidRequestError(str(e))


def parse_export_query(raw: Any) -> ExportQuery:
    """
    Validate the decoded `query` parameter object.

    Raises:
        InvalidRequestError: If it is not a JSON object of the expected shape
    """
    if not isinstance(raw, dict):
        raise InvalidRequestError("query must be a JSON object")
    try:
        return ExportQuery.model_validate(raw)
    except ValidationError as e:
        raise InvalidRequestError(str(e))
