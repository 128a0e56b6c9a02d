"""
FastAPI dependencies for the export API.
"""
from typing import Optional

from fastapi import Request

from poi_export.adapters import ApiKeyAuthorizer, SQLAlchemyPageFetcher
from poi_export.core.config import settings
from poi_export.core.database import SessionLocal
from poi_export.export.coordinator import ExportGate
from poi_export.ports import Authorizer, PageFetcher


def get_export_gate(request: Request) -> ExportGate:
    """Application-wide single-flight gate."""
    return request.app.state.export_gate


def get_page_fetcher() -> PageFetcher:
    # Own session: the response body streams after the handler returns
    return SQLAlchemyPageFetcher(SessionLocal)


def get_authorizer() -> Optional[Authorizer]:
    """Authorizer, or None to skip permission checks."""
    if not settings.EXPORT_API_KEYS:
        return None
    return ApiKeyAuthorizer(settings.EXPORT_API_KEYS)
