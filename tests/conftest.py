"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path

import pytest
from watchfiles import Change

from livepoll.config import WatchConfiguration
from livepoll.events import ChangeNotifier


class QueueSource:
    """Scripted stand-in for the filesystem watch source.

    Each root gets a queue; tests push change batches, exceptions (raised by
    the source) or None (the source ends).
    """

    def __init__(self) -> None:
        self.queues: dict[Path, asyncio.Queue] = {}
        self.calls: list[Path] = []

    def queue(self, root: str | Path) -> asyncio.Queue:
        return self.queues.setdefault(Path(root), asyncio.Queue())

    async def push(self, root: str | Path, path: str | None, change: Change = Change.modified) -> None:
        await self.queue(root).put({(change, path)})

    async def fail(self, root: str | Path, exc: BaseException) -> None:
        await self.queue(root).put(exc)

    async def end(self, root: str | Path) -> None:
        await self.queue(root).put(None)

    def __call__(
        self,
        root: Path,
        stop_event: asyncio.Event,
        config: WatchConfiguration,
    ) -> AsyncIterator[set[tuple[Change, str]]]:
        self.calls.append(root)
        return self._iterate(self.queue(root))

    async def _iterate(self, queue: asyncio.Queue) -> AsyncIterator[set[tuple[Change, str]]]:
        while True:
            item = await queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.fixture
def notifier() -> ChangeNotifier:
    """Create a fresh notifier for each test."""
    return ChangeNotifier()


@pytest.fixture
def queue_source() -> QueueSource:
    """Scripted watch source."""
    return QueueSource()


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll a condition until it holds, failing after a timeout."""
    return _wait_until
