"""
API-key implementation of the Authorizer port.
"""
import hmac
from typing import Iterable, Optional

from poi_export.ports.auth import Authorizer


class ApiKeyAuthorizer(Authorizer):
    """
    Grants every action to callers presenting a configured API key.

    Keys are not scoped per resource or action.
    """

    def __init__(self, api_keys: Iterable[str]):
        self.api_keys = [k for k in api_keys if k]

    def is_authorized(self, principal: Optional[str], resource: str, action: str) -> bool:
        if not principal:
            return False
        candidate = principal.encode("utf-8")
        return any(hmac.compare_digest(candidate, key.encode("utf-8")) for key in self.api_keys)
