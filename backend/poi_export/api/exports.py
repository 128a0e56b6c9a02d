"""
Export API endpoint streaming POIs as a downloadable waypoint file.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from poi_export.api.deps import get_authorizer, get_export_gate, get_page_fetcher
from poi_export.core.config import settings
from poi_export.core.errors import (
    ExportBusyError,
    InvalidRequestError,
    UnauthorizedError,
)
from poi_export.core.logging_config import setup_logger
from poi_export.export.cancellation import RequestDisconnectToken
from poi_export.export.coordinator import ExportCoordinator, ExportGate
from poi_export.ports import Authorizer, PageFetcher
from poi_export.schemas.export import ExportRequest, parse_export_query, parse_json_param

logger = setup_logger(__name__)
router = APIRouter()

EXPORT_RESOURCE = "pois"


def export_filename(extension: str, today: Optional[date] = None) -> str:
    """POI-EXPORT_<DD.MM.YYYY>.<ext>"""
    today = today or date.today()
    return f"{settings.EXPORT_FILENAME_PREFIX}_{today.strftime('%d.%m.%Y')}.{extension}"


@router.get(settings.EXPORT_ROUTE)
async def export_pois(
    request: Request,
    format: Optional[str] = Query(None, description="gpx, asc, kml, loc, xml, csv or json"),
    query: Optional[str] = Query(None, description="URL-encoded JSON query object"),
    customicon: Optional[str] = Query(None, description="URL-encoded JSON map of icon URLs"),
    x_api_key: Optional[str] = Header(None),
    gate: ExportGate = Depends(get_export_gate),
    fetcher: PageFetcher = Depends(get_page_fetcher),
    authorizer: Optional[Authorizer] = Depends(get_authorizer),
):
    """
    Stream the POIs matching a query as a single downloadable file.

    The `query` parameter is a JSON object:
    - query: document-style filter ({"type": "spring", "lat": {"$gt": 40}})
    - sort: {field: 1|-1} (default {"createdAt": -1})
    - projection: {field: 1} / {field: 0} / [fields]
    - customIcon: {"gpx": url, "kml": url}
    - limit, page: accepted but ignored, the export always runs to the end

    Responses:
    - 200: streamed file with Content-Disposition attachment
    - 400: missing/unparseable parameters, invalid format or query
    - 401: access denied
    - 503: another export is running

    Failures after streaming has started truncate the file (no footer).
    """
    if gate.busy:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(ExportBusyError()),
        )

    try:
        if not format or not query:
            raise InvalidRequestError("no format and/or query given")

        export_query = parse_export_query(parse_json_param(query))

        if authorizer is not None and not authorizer.is_authorized(
            x_api_key, EXPORT_RESOURCE, "find"
        ):
            raise UnauthorizedError("access denied")

        custom_icons = parse_json_param(customicon) if customicon else None

        export_request = ExportRequest.from_query(format, export_query, custom_icons)
        if export_query.limit is not None or export_query.page is not None:
            logger.debug(
                "Ignoring limit=%s page=%s, exporting all matching POIs",
                export_query.limit,
                export_query.page,
            )

        session = ExportCoordinator(fetcher, gate).open_session(export_request)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UnauthorizedError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except ExportBusyError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.exception("Export setup failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Export failed: {str(e)}",
        )

    return StreamingResponse(
        session.stream(RequestDisconnectToken(request)),
        media_type=session.content_type,
        headers={
            "Content-Disposition": f"attachment; filename={export_filename(session.extension)}"
        },
        # No-op after a normal run; frees the gate if the body never started
        background=BackgroundTask(session.release),
    )
