"""Explicit cancellation token passed down to every network call of a pipeline run."""

from __future__ import annotations

import asyncio


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early (and raising) on cancellation."""
        self.raise_if_cancelled()
        if delay > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()
