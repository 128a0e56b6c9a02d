"""
Export module for streaming waypoint file generation.
"""
from poi_export.export.waypoints import Waypoint, validate_records, missing_required_field
from poi_export.export.formats import (
    ExportFormat,
    EncoderOptions,
    VALID_FORMATS,
    get_encoder,
    header,
    encode_waypoint,
    footer,
)
from poi_export.export.cancellation import (
    CancellationToken,
    ManualCancellationToken,
    RequestDisconnectToken,
)

__all__ = [
    "Waypoint",
    "validate_records",
    "missing_required_field",
    "ExportFormat",
    "EncoderOptions",
    "VALID_FORMATS",
    "get_encoder",
    "header",
    "encode_waypoint",
    "footer",
    "CancellationToken",
    "ManualCancellationToken",
    "RequestDisconnectToken",
]
