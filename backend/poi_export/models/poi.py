from datetime import datetime
from typing import Any, Dict
from sqlalchemy import Column, Integer, String, Float, DateTime, Text
from poi_export.core.database import Base


class PointOfInterest(Base):
    __tablename__ = "pois"

    id = Column(Integer, primary_key=True, index=True)
    # Required for export, but the store keeps incomplete POIs as well
    name = Column(String, nullable=True, index=True)
    lat = Column(Float, nullable=True)
    long = Column(Float, nullable=True)

    description = Column(Text, nullable=True)
    type = Column(String, nullable=True, index=True)
    sea_level = Column(Float, nullable=True)  # meters
    symbol = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Document field name -> column attribute, used for filtering and sorting
    RECORD_FIELDS = {
        "_id": "id",
        "name": "name",
        "lat": "lat",
        "long": "long",
        "description": "description",
        "type": "type",
        "seaLevel": "sea_level",
        "symbol": "symbol",
        "createdAt": "created_at",
        "_createdAt": "created_at",
    }

    def to_record(self) -> Dict[str, Any]:
        """Return the document-store shaped record consumed by the exporter."""
        return {
            "_id": self.id,
            "name": self.name,
            "lat": self.lat,
            "long": self.long,
            "description": self.description,
            "type": self.type,
            "seaLevel": self.sea_level,
            "symbol": self.symbol,
            "createdAt": self.created_at,
        }
