"""
Abort Signal - Advisory Cancellation for Query Functions.

Every fetch attempt is handed a fresh AbortSignal. The client itself never
aborts an attempt; the signal exists so that callers who hold a reference
can ask a long-running query function to stop early.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional


class AbortSignal:
    """Cooperative cancellation token passed to query functions."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[Any] = None

    @property
    def aborted(self) -> bool:
        """Check if abort has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[Any]:
        """Reason passed to abort(), if any."""
        return self._reason

    def abort(self, reason: Optional[Any] = None) -> None:
        """Request cancellation. Repeated calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Suspend until abort() is called."""
        await self._event.wait()

    def throw_if_aborted(self) -> None:
        """Raise asyncio.CancelledError if abort has been requested."""
        if self.aborted:
            raise asyncio.CancelledError(self._reason)
