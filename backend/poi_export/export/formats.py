"""
Waypoint format encoders.

Each encoder turns a validated Waypoint into one text fragment and supplies
the file header and footer for its format. Encoders are stateless: the same
waypoint and options always produce byte-identical output.

Defaults for absent optional fields are part of the wire format:
- elevation -> "0.0000000" ("0.0" in csv)
- symbol -> "0"
- type / description / timestamp -> element omitted
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from poi_export.core.errors import InvalidFormatError
from poi_export.export.markup import MarkupBuilder, XML_DECLARATION
from poi_export.export.values import format_number, format_timestamp, is_blank
from poi_export.export.waypoints import Waypoint


class ExportFormat(str, Enum):
    """Supported export formats."""

    GPX = "gpx"
    ASC = "asc"
    KML = "kml"
    LOC = "loc"
    XML = "xml"
    CSV = "csv"
    JSON = "json"


VALID_FORMATS = [f.value for f in ExportFormat]

DEFAULT_TITLE = "POI Export"
DEFAULT_ELEVATION = "0.0000000"
DEFAULT_CSV_ELEVATION = "0.0"
DEFAULT_SYMBOL = "0"
KML_ICON_STYLE_ID = "kmlCustomIcon"


@dataclass(frozen=True)
class EncoderOptions:
    """Per-export encoder options."""

    custom_icons: Dict[str, str] = field(default_factory=dict)
    title: str = DEFAULT_TITLE

    def icon_for(self, format: "ExportFormat") -> Optional[str]:
        icon = self.custom_icons.get(format.value)
        return None if is_blank(icon) else icon


def _elevation(waypoint: Waypoint, default: str = DEFAULT_ELEVATION) -> str:
    if waypoint.elevation is None:
        return default
    return format_number(waypoint.elevation)


def _symbol(waypoint: Waypoint) -> str:
    return DEFAULT_SYMBOL if waypoint.symbol is None else str(waypoint.symbol)


class WaypointEncoder(ABC):
    """Base class for format encoders."""

    format: ExportFormat
    content_type: str
    # Written between two consecutive fragments
    separator: str = ""

    @property
    def extension(self) -> str:
        return self.format.value

    def header(self, options: EncoderOptions) -> str:
        return ""

    @abstractmethod
    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        """Encode one waypoint as a fragment."""
        pass

    def footer(self, options: EncoderOptions) -> str:
        return ""


class GpxEncoder(WaypointEncoder):
    format = ExportFormat.GPX
    content_type = "text/gpx; charset=utf-8"

    def header(self, options: EncoderOptions) -> str:
        builder = MarkupBuilder()
        builder.raw(XML_DECLARATION)
        builder.open("gpx", {
            "xmlns": "http://www.topografix.com/GPX/1/1",
            "creator": options.title,
            "version": "1.1",
            "xmlns:xsi": "http://www.w3.org/2001/XMLSchema-instance",
            "xsi:schemaLocation": "http://www.topografix.com/GPX/1/1 http://www.topografix.com/GPX/1/1/gpx.xsd",
        })
        builder.open("metadata").open("author")
        builder.element("name", options.title)
        builder.close("author").close("metadata")
        return builder.render()

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        # Child order follows the GPX 1.1 wptType sequence
        builder = MarkupBuilder(level=1)
        builder.open("wpt", {
            "lat": format_number(waypoint.latitude),
            "lon": format_number(waypoint.longitude),
        })
        builder.element("ele", _elevation(waypoint))
        timestamp = format_timestamp(waypoint.created_at)
        if timestamp:
            builder.element("time", timestamp)
        builder.element("name", waypoint.name)
        if waypoint.description is not None:
            builder.element("desc", waypoint.description)
        icon = options.icon_for(self.format)
        if icon:
            builder.element("link", attrs={"href": icon})
        builder.element("sym", _symbol(waypoint))
        if waypoint.type is not None:
            builder.element("type", waypoint.type)
        builder.close("wpt")
        return builder.render()

    def footer(self, options: EncoderOptions) -> str:
        return "</gpx>\n"


class RssEncoder(WaypointEncoder):
    """RSS 2.0 feed with GeoRSS points."""

    format = ExportFormat.XML
    content_type = "text/xml; charset=utf-8"

    def header(self, options: EncoderOptions) -> str:
        builder = MarkupBuilder()
        builder.raw(XML_DECLARATION)
        builder.open("rss", {
            "version": "2.0",
            "xmlns:georss": "http://www.georss.org/georss",
            "xmlns:gml": "http://www.opengis.net/gml",
            "xmlns:geo": "http://www.w3.org/2003/01/geo/wgs84_pos#",
            "xmlns:kml": "http://www.opengis.net/kml/2.2",
            "xmlns:dc": "http://purl.org/dc/elements/1.1/",
        })
        builder.open("channel")
        builder.element("title", options.title)
        return builder.render()

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        builder = MarkupBuilder(level=2)
        builder.open("item")
        timestamp = format_timestamp(waypoint.created_at)
        if timestamp:
            builder.element("pubDate", timestamp)
        builder.element("title", waypoint.name)
        if waypoint.description is not None:
            builder.element("description", waypoint.description)
        builder.element(
            "georss:point",
            f"{format_number(waypoint.latitude)} {format_number(waypoint.longitude)}",
        )
        builder.close("item")
        return builder.render()

    def footer(self, options: EncoderOptions) -> str:
        return "    </channel>\n</rss>\n"


class LocEncoder(WaypointEncoder):
    format = ExportFormat.LOC
    content_type = "text/loc; charset=utf-8"

    def header(self, options: EncoderOptions) -> str:
        builder = MarkupBuilder()
        builder.raw(XML_DECLARATION)
        builder.open("loc", {"version": "1.0", "src": options.title})
        return builder.render()

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        builder = MarkupBuilder(level=1)
        builder.open("waypoint")
        builder.element("coord", attrs={
            "lat": format_number(waypoint.latitude),
            "lon": format_number(waypoint.longitude),
        })
        if waypoint.type is not None:
            builder.element("type", waypoint.type)
        builder.element("sym", _symbol(waypoint))
        builder.element("ele", _elevation(waypoint))
        builder.element("name", waypoint.name, {"id": waypoint.name})
        builder.close("waypoint")
        return builder.render()

    def footer(self, options: EncoderOptions) -> str:
        return "</loc>\n"


class KmlEncoder(WaypointEncoder):
    format = ExportFormat.KML
    content_type = "text/kml; charset=utf-8"

    def header(self, options: EncoderOptions) -> str:
        builder = MarkupBuilder()
        builder.raw(XML_DECLARATION)
        builder.open("kml", {
            "xmlns": "http://www.opengis.net/kml/2.2",
            "xmlns:xsi": "http://www.w3.org/2001/XMLSchema-instance",
            "xsi:schemaLocation": "http://www.opengis.net/kml/2.2 http://schemas.opengis.net/kml/2.2.0/ogckml22.xsd",
        })
        builder.open("Document")
        builder.element("name", options.title)
        builder.element("description", options.title)
        icon = options.icon_for(self.format)
        if icon:
            builder.open("Style", {"id": KML_ICON_STYLE_ID})
            builder.open("IconStyle").open("Icon")
            builder.element("href", icon)
            builder.close("Icon").close("IconStyle")
            builder.close("Style")
        return builder.render()

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        builder = MarkupBuilder(level=2)
        builder.open("Placemark")
        builder.element("name", waypoint.name)
        if options.icon_for(self.format):
            builder.element("styleUrl", f"#{KML_ICON_STYLE_ID}")
        builder.open("Point")
        builder.element(
            "coordinates",
            f"{format_number(waypoint.longitude)},{format_number(waypoint.latitude)},{_elevation(waypoint)}",
        )
        builder.close("Point")
        builder.close("Placemark")
        return builder.render()

    def footer(self, options: EncoderOptions) -> str:
        return "    </Document>\n</kml>\n"


class CsvEncoder(WaypointEncoder):
    format = ExportFormat.CSV
    content_type = "text/csv; charset=utf-8"

    def header(self, options: EncoderOptions) -> str:
        return "Latitude,Longitude,Elevation\n"

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        return (
            f"{format_number(waypoint.latitude)},"
            f"{format_number(waypoint.longitude)},"
            f"{_elevation(waypoint, DEFAULT_CSV_ELEVATION)}\n"
        )


class AscEncoder(WaypointEncoder):
    format = ExportFormat.ASC
    content_type = "text/asc; charset=utf-8"

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        name = waypoint.name.replace('"', '""')
        return f'{format_number(waypoint.longitude)},{format_number(waypoint.latitude)},"{name}"\n'


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


class JsonEncoder(WaypointEncoder):
    """Streams the validated source records as one JSON array."""

    format = ExportFormat.JSON
    content_type = "application/json; charset=utf-8"
    separator = ","

    def header(self, options: EncoderOptions) -> str:
        return "["

    def encode(self, waypoint: Waypoint, options: EncoderOptions) -> str:
        return json.dumps(waypoint.record, default=_json_default, ensure_ascii=False)

    def footer(self, options: EncoderOptions) -> str:
        return "]"


ENCODERS: Dict[ExportFormat, WaypointEncoder] = {
    encoder.format: encoder
    for encoder in (
        GpxEncoder(),
        AscEncoder(),
        KmlEncoder(),
        LocEncoder(),
        RssEncoder(),
        CsvEncoder(),
        JsonEncoder(),
    )
}


def parse_format(value: Union[str, ExportFormat, None]) -> ExportFormat:
    """
    Resolve a case-insensitive format name.

    Raises:
        InvalidFormatError: If the format is not supported
    """
    if isinstance(value, ExportFormat):
        return value
    name = (value or "").strip().lower()
    try:
        return ExportFormat(name)
    except ValueError:
        raise InvalidFormatError(name, VALID_FORMATS)


def get_encoder(format: Union[str, ExportFormat]) -> WaypointEncoder:
    return ENCODERS[parse_format(format)]


def header(format: Union[str, ExportFormat], options: Optional[EncoderOptions] = None) -> str:
    return get_encoder(format).header(options or EncoderOptions())


def encode_waypoint(
    format: Union[str, ExportFormat],
    waypoint: Waypoint,
    options: Optional[EncoderOptions] = None,
) -> str:
    return get_encoder(format).encode(waypoint, options or EncoderOptions())


def footer(format: Union[str, ExportFormat], options: Optional[EncoderOptions] = None) -> str:
    return get_encoder(format).footer(options or EncoderOptions())
