"""
Output sink implementations.

HTTP exports stream through StreamingResponse directly; MemorySink collects
a whole document for embedding callers and tests.
"""
from typing import List, Optional

from poi_export.ports.transport import OutputSink


class MemorySink(OutputSink):
    """Collects fragments in memory and records how the stream ended."""

    def __init__(self):
        self.fragments: List[str] = []
        self.ended: Optional[str] = None  # "closed" or "aborted"

    async def write(self, fragment: str) -> None:
        if self.ended:
            raise RuntimeError(f"write after sink was {self.ended}")
        self.fragments.append(fragment)

    async def close(self) -> None:
        self.ended = "closed"

    async def abort(self) -> None:
        self.ended = "aborted"

    def getvalue(self) -> str:
        return "".join(self.fragments)
