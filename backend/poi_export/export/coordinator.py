"""
Export coordinator - paginated streaming export loop.

Loop (one page per iteration, strictly in order):
1. Check cancellation -> stop without footer
2. Fetch page p (limit=page_size, skip=page_size*p)
3. Validate records, dropping incomplete ones
4. Encode and emit each waypoint in fetch order
5. Fewer raw records than page_size -> source exhausted, emit footer

Only one export runs per ExportGate. The gate is taken at admission and
released on every exit path (completion, disconnect, failure).
"""
import asyncio
import threading
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from poi_export.core.config import settings
from poi_export.core.errors import ExportBusyError, UpstreamQueryError
from poi_export.core.logging_config import setup_logger
from poi_export.export.cancellation import CancellationToken, NeverCancelled
from poi_export.export.formats import EncoderOptions, WaypointEncoder, get_encoder
from poi_export.export.waypoints import validate_records
from poi_export.ports.repositories import PageFetcher
from poi_export.ports.transport import OutputSink
from poi_export.schemas.export import ExportRequest

logger = setup_logger(__name__)


class ExportStatus(str, Enum):
    """Export session status."""

    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class ExportOutcome:
    """Terminal result of one export session."""

    status: ExportStatus = ExportStatus.RUNNING
    pages_fetched: int = 0
    records_fetched: int = 0
    waypoints_written: int = 0
    error: Optional[str] = None


class ExportGate:
    """
    Single-flight arbiter: at most one export holds the gate at a time.

    One gate is shared by every coordinator of an application instance.
    """

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        """Take the gate without waiting. Returns False if already held."""
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()


class ExportSession:
    """
    State of one in-flight export.

    Created by ExportCoordinator.open_session() with the gate already held.
    """

    def __init__(
        self,
        request: ExportRequest,
        encoder: WaypointEncoder,
        fetcher: PageFetcher,
        gate: ExportGate,
        page_size: int,
        page_timeout: Optional[float] = None,
        options: Optional[EncoderOptions] = None,
    ):
        self.request = request
        self.encoder = encoder
        self.fetcher = fetcher
        self.gate = gate
        self.page_size = page_size
        self.page_timeout = page_timeout
        self.options = options or EncoderOptions(custom_icons=request.custom_icons)
        self.page_index = 0
        self.aborted = False
        self.outcome = ExportOutcome()
        self._released = False

    @property
    def content_type(self) -> str:
        return self.encoder.content_type

    @property
    def extension(self) -> str:
        return self.encoder.extension

    def release(self) -> None:
        """Release the gate and fetcher resources. Safe to call repeatedly."""
        if self._released:
            return
        self._released = True
        self.gate.release()
        self.fetcher.close()

    async def _fetch_page(self):
        fetch = self.fetcher.fetch_page(
            self.request.filter_query,
            self.request.sort,
            limit=self.page_size,
            skip=self.page_size * self.page_index,
            projection=self.request.projection,
        )
        if self.page_timeout is None:
            return await fetch
        try:
            return await asyncio.wait_for(fetch, timeout=self.page_timeout)
        except asyncio.TimeoutError:
            raise UpstreamQueryError(
                f"page {self.page_index} not returned within {self.page_timeout}s"
            )

    async def stream(self, cancel: Optional[CancellationToken] = None) -> AsyncIterator[str]:
        """
        Yield the export document fragment by fragment.

        A failure after the header has been yielded is re-raised so the
        transport can drop the connection; the document stays truncated.
        """
        cancel = cancel or NeverCancelled()
        fmt = self.request.format.value
        try:
            header = self.encoder.header(self.options)
            if header:
                yield header

            logger.info("Export started (format=%s, page_size=%d)", fmt, self.page_size)
            while True:
                if await cancel.is_cancelled():
                    self.aborted = True
                    self.outcome.status = ExportStatus.ABORTED
                    logger.info("Connection aborted before page %d", self.page_index)
                    return

                records = await self._fetch_page()
                self.outcome.pages_fetched += 1
                self.outcome.records_fetched += len(records)

                for waypoint in validate_records(records):
                    if self.outcome.waypoints_written and self.encoder.separator:
                        yield self.encoder.separator
                    yield self.encoder.encode(waypoint, self.options)
                    self.outcome.waypoints_written += 1

                if len(records) < self.page_size:
                    break

                logger.debug("Exported page %d", self.page_index)
                self.page_index += 1

            footer = self.encoder.footer(self.options)
            if footer:
                yield footer
            self.outcome.status = ExportStatus.COMPLETED
            logger.info(
                "Export finished with page %d (%d records, %d waypoints)",
                self.page_index,
                self.outcome.records_fetched,
                self.outcome.waypoints_written,
            )
        except (GeneratorExit, asyncio.CancelledError):
            # Consumer stopped reading: the client went away mid-page
            if self.outcome.status == ExportStatus.RUNNING:
                self.aborted = True
                self.outcome.status = ExportStatus.ABORTED
                logger.info("Connection aborted during page %d", self.page_index)
            raise
        except Exception as e:
            self.outcome.status = ExportStatus.FAILED
            self.outcome.error = str(e)
            logger.exception("Export failed on page %d: %s", self.page_index, e)
            raise
        finally:
            self.release()


class ExportCoordinator:
    """
    Runs exports against a page fetcher under a shared single-flight gate.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        gate: ExportGate,
        page_size: Optional[int] = None,
        page_timeout: Optional[float] = None,
        title: Optional[str] = None,
    ):
        """
        Initialize export coordinator.

        Args:
            fetcher: Page fetcher for the POI data source
            gate: Application-wide single-flight gate
            page_size: Records per page (default EXPORT_PAGE_SIZE)
            page_timeout: Per-page fetch timeout in seconds (default none)
            title: Document title/creator (default PROJECT_NAME)
        """
        self.fetcher = fetcher
        self.gate = gate
        self.page_size = page_size if page_size is not None else settings.EXPORT_PAGE_SIZE
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        self.page_timeout = (
            page_timeout if page_timeout is not None else settings.EXPORT_PAGE_TIMEOUT_SECONDS
        )
        self.title = title or settings.PROJECT_NAME

    def open_session(self, request: ExportRequest) -> ExportSession:
        """
        Admit an export and take the gate.

        Nothing is written yet, so callers can still report errors cleanly.

        Raises:
            ExportBusyError: If another export holds the gate
            InvalidFormatError: If the request format has no encoder
            InvalidRequestError: If the data source cannot filter or sort on a field
        """
        if self.gate.busy:
            raise ExportBusyError()

        encoder = get_encoder(request.format)
        self.fetcher.validate(request.filter_query, request.sort)

        if not self.gate.try_acquire():
            raise ExportBusyError()

        options = EncoderOptions(custom_icons=request.custom_icons, title=self.title)
        return ExportSession(
            request,
            encoder,
            self.fetcher,
            self.gate,
            self.page_size,
            page_timeout=self.page_timeout,
            options=options,
        )

    async def run_export(
        self,
        request: ExportRequest,
        sink: OutputSink,
        cancel: Optional[CancellationToken] = None,
    ) -> ExportOutcome:
        """
        Export into an output sink.

        Busy and invalid-format errors are raised before the sink is touched.
        Later failures are reported through the returned outcome and an
        aborted sink.

        Returns:
            ExportOutcome with the terminal status and counters
        """
        session = self.open_session(request)
        stream = session.stream(cancel)
        try:
            async for fragment in stream:
                await sink.write(fragment)
        except Exception as e:
            if session.outcome.status == ExportStatus.RUNNING:
                # The sink failed while the stream was still healthy
                session.outcome.status = ExportStatus.FAILED
                session.outcome.error = str(e)
                logger.exception("Output sink failed: %s", e)
            await sink.abort()
            return session.outcome
        finally:
            await stream.aclose()
            session.release()

        # Completed, or cancelled between pages (ended without footer)
        await sink.close()
        return session.outcome
