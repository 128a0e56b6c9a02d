"""POI export service - streams stored points of interest as waypoint files."""
__version__ = "0.1.0"
