"""
Cancellation token shared by one run and all of its node executions.
"""

from typing import Optional
import asyncio


class CancellationToken:
    """
    Cooperative cancellation signal.

    The engine checks it before every level and every node, and waits on it
    while a level is in flight so that running provider calls can be
    interrupted.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Run cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
