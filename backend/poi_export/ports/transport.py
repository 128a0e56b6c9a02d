"""
Output transport interface.

A write-append sink for export fragments. close() signals a complete
document; abort() ends the stream abruptly after a failure or disconnect.
"""
from abc import ABC, abstractmethod


class OutputSink(ABC):
    """Destination of an export stream."""

    @abstractmethod
    async def write(self, fragment: str) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def abort(self) -> None:
        pass
