from poi_export.models.poi import PointOfInterest

__all__ = [
    "PointOfInterest",
]
