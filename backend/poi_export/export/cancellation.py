"""
Cancellation tokens sampled by the export loop between pages.

Cancellation is cooperative: a signalled token stops the export at the next
page boundary, never in the middle of a page write.
"""
from abc import ABC, abstractmethod

from starlette.requests import Request


class CancellationToken(ABC):
    """Signals that the export consumer has gone away."""

    @abstractmethod
    async def is_cancelled(self) -> bool:
        pass


class ManualCancellationToken(CancellationToken):
    """Token cancelled programmatically."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def is_cancelled(self) -> bool:
        return self._cancelled


class RequestDisconnectToken(CancellationToken):
    """Latches once the HTTP client has disconnected."""

    def __init__(self, request: Request):
        self.request = request
        self._disconnected = False

    async def is_cancelled(self) -> bool:
        if not self._disconnected:
            self._disconnected = await self.request.is_disconnected()
        return self._disconnected


class NeverCancelled(CancellationToken):
    async def is_cancelled(self) -> bool:
        return False
