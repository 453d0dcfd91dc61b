"""Countdown barrier signalling that every worker has exited."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CompletionBarrier:
    """Counts outstanding parties down to zero, then releases every waiter.

    Each worker calls ``arrive()`` exactly once when it exits. The supervisor
    awaits ``wait()`` and only then closes the failure queue.
    """

    def __init__(self, parties: int):
        """Initialize the barrier.

        Args:
            parties: Number of arrivals required before the barrier opens
        """
        if parties < 0:
            raise ValueError(f"parties must be non-negative, got {parties}")

        self.parties = parties
        self._remaining = parties
        self._event = asyncio.Event()

        if parties == 0:
            self._event.set()

    @property
    def remaining(self) -> int:
        """Number of parties that have not arrived yet."""
        return self._remaining

    def done(self) -> bool:
        """Return True once every party has arrived."""
        return self._event.is_set()

    def arrive(self) -> None:
        """Record one party as finished."""
        if self._remaining == 0:
            raise RuntimeError("CompletionBarrier arrived more times than its party count")

        self._remaining -= 1
        logger.debug(f"Barrier arrival, {self._remaining}/{self.parties} outstanding")

        if self._remaining == 0:
            self._event.set()

    async def wait(self) -> None:
        """Block until all parties have arrived."""
        await self._event.wait()
