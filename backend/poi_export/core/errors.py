"""
Export error taxonomy.

Request-shape, authorization and admission errors are raised before any
bytes are written and map to clean HTTP responses. UpstreamQueryError can
surface mid-stream, where the only remaining signal is a truncated file.
"""
from typing import Sequence


class ExportError(Exception):
    """Base class for export errors."""


class InvalidRequestError(ExportError):
    """Missing, unparseable or malformed export request (400)."""


class InvalidFormatError(InvalidRequestError):
    """Requested format is not one of the supported formats."""

    def __init__(self, format: str, valid_formats: Sequence[str]):
        self.format = format
        self.valid_formats = list(valid_formats)
        super().__init__(
            f'invalid format "{format}". Valid formats are: {", ".join(self.valid_formats)}'
        )


class UnauthorizedError(ExportError):
    """Principal may not read the exported resource (401)."""


class ExportBusyError(ExportError):
    """Another export is already running (503)."""

    def __init__(self, message: str = "Busy exporting. Please try again in a couple of minutes."):
        super().__init__(message)


class UpstreamQueryError(ExportError):
    """The data source failed to return a page."""
