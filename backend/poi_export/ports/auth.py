"""
Authorization interface.

When no authorizer is configured, permission checks are skipped entirely.
"""
from abc import ABC, abstractmethod
from typing import Optional


class Authorizer(ABC):
    """Decides whether a principal may perform an action on a resource."""

    @abstractmethod
    def is_authorized(self, principal: Optional[str], resource: str, action: str) -> bool:
        """
        Check permission.

        Args:
            principal: Caller identity (None when anonymous)
            resource: Resource name (e.g., "pois")
            action: Action name (e.g., "find")

        Returns:
            True if allowed
        """
        pass
