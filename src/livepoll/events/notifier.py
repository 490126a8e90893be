"""Broadcast signal connecting directory watchers to waiting requests."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Edge-triggered "something changed" pulse with many waiters.

    Every call to :meth:`wait` registers a future; :meth:`signal` resolves all
    futures registered at that moment and forgets them. Nothing is latched: a
    signal fired while nobody waits is lost, and a waiter that registers after
    a signal is only released by the next one.

    Must be used from the event loop thread that owns the waiters.
    """

    def __init__(self) -> None:
        self._waiters: set[asyncio.Future[None]] = set()

    async def wait(self) -> None:
        """Suspend until the next call to :meth:`signal`."""
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.add(waiter)
        try:
            await waiter
        finally:
            self._waiters.discard(waiter)

    def signal(self) -> int:
        """Release every currently pending waiter.

        Returns:
            Number of waiters released.
        """
        waiters, self._waiters = self._waiters, set()
        released = 0
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
                released += 1
        logger.debug(f"Change signalled, released {released} waiter(s)")
        return released

    @property
    def waiter_count(self) -> int:
        """Get the number of pending waiters."""
        return len(self._waiters)
