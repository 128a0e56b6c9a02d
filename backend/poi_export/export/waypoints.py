"""
Record validator - gate between raw store records and encodable waypoints.

A record is exported only when lat, long and name are all present. Missing
required fields drop the record silently (absent geodata is expected);
missing optional fields are left as None and defaulted by each encoder.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from poi_export.export.values import is_blank

logger = logging.getLogger(__name__)

# Checked in this order, first missing field short-circuits
REQUIRED_FIELDS = ("lat", "long", "name")


@dataclass(frozen=True)
class Waypoint:
    """Validated point of interest."""

    latitude: Any
    longitude: Any
    name: str
    description: Optional[str] = None
    type: Optional[str] = None
    elevation: Any = None  # meters, None -> format default
    symbol: Optional[str] = None
    created_at: Any = None
    record: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Waypoint":
        """
        Build a waypoint from a raw record.

        Raises:
            ValueError: If a required field is missing
        """
        missing = missing_required_field(record)
        if missing is not None:
            raise ValueError(f"record is missing required field '{missing}'")

        return cls(
            latitude=record["lat"],
            longitude=record["long"],
            name=str(record["name"]),
            description=_optional(record.get("description")),
            type=_optional(record.get("type")),
            elevation=_optional(record.get("seaLevel")),
            symbol=_optional(record.get("symbol")),
            created_at=_optional(record.get("createdAt")),
            record=record,
        )


def _optional(value: Any) -> Any:
    return None if is_blank(value) else value


def missing_required_field(record: Dict[str, Any]) -> Optional[str]:
    """Return the first missing required field name, or None if complete."""
    for name in REQUIRED_FIELDS:
        if is_blank(record.get(name)):
            return name
    return None


def validate_records(records: Iterable[Dict[str, Any]]) -> List[Waypoint]:
    """
    Filter raw records down to waypoints, preserving order.

    Records missing a required field are dropped and never reported.
    """
    waypoints: List[Waypoint] = []
    for record in records:
        missing = missing_required_field(record)
        if missing is not None:
            logger.debug("Dropping record %s: missing %s", record.get("_id"), missing)
            continue
        waypoints.append(Waypoint.from_record(record))
    return waypoints
