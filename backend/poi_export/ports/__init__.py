"""
Ports - interface definitions for external dependencies.

Follows hexagonal architecture pattern (ports & adapters).
Ports define interfaces, adapters provide concrete implementations.
"""
from poi_export.ports.repositories import PageFetcher
from poi_export.ports.transport import OutputSink
from poi_export.ports.auth import Authorizer

__all__ = ["PageFetcher", "OutputSink", "Authorizer"]
