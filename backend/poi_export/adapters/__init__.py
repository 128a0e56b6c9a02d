"""
Adapters - concrete implementations of ports.

Follows hexagonal architecture pattern (ports & adapters).
Current implementations use the lean stack (SQLAlchemy, in-memory lists).
"""
from poi_export.adapters.fetchers_sqlalchemy import SQLAlchemyPageFetcher
from poi_export.adapters.fetchers_memory import InMemoryPageFetcher
from poi_export.adapters.sinks import MemorySink
from poi_export.adapters.auth import ApiKeyAuthorizer

__all__ = ["SQLAlchemyPageFetcher", "InMemoryPageFetcher", "MemorySink", "ApiKeyAuthorizer"]
