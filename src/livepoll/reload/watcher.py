"""Recursive directory watching for live reload.

One DirectoryWatchWorker runs per configured root. Each consumes the
filesystem events for its root, runs the configured change filter and pulses
the shared ChangeNotifier when the filter accepts a change.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from watchfiles import Change, awatch

from livepoll.config import WatchConfiguration
from livepoll.events import ChangeNotifier

logger = logging.getLogger(__name__)

# watchfiles batching window; kept at the step size so changes are not held back
_BATCH_MS = 50

WatchSource = Callable[
    [Path, asyncio.Event, WatchConfiguration],
    AsyncIterator[set[tuple[Change, str]]],
]


@dataclass
class FileChange:
    """Represents a detected file change."""

    path: Path | None
    change_type: str  # "added", "modified", "deleted"
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_watchfiles(cls, change: Change, path: str | None) -> "FileChange":
        return cls(path=Path(path) if path else None, change_type=change.name)


def watch_directory(
    root: Path,
    stop_event: asyncio.Event,
    config: WatchConfiguration,
) -> AsyncIterator[set[tuple[Change, str]]]:
    """Recursive watchfiles source for one root.

    No path filter is applied here; deciding which changes matter is left to
    the configured ``check`` function.
    """
    return awatch(
        root,
        watch_filter=None,
        debounce=_BATCH_MS,
        step=_BATCH_MS,
        stop_event=stop_event,
        recursive=True,
        force_polling=config.force_polling,
    )


class DirectoryWatchWorker:
    """Watches one directory tree and signals changes.

    Failures are kept inside the worker:
    - a change filter that raises is logged and that change is dropped
    - a watch source that raises is logged and restarted with exponential
      backoff (or the worker ends, when ``restart_delay`` is None)
    """

    def __init__(
        self,
        root: str | Path,
        notifier: ChangeNotifier,
        config: WatchConfiguration,
        source: WatchSource = watch_directory,
    ):
        self.root = Path(root)
        self.notifier = notifier
        self.config = config
        self.source = source
        self.last_change: FileChange | None = None

        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the watch task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the watch task on the running loop. Idempotent."""
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=f"livepoll-watch:{self.root}")

    async def stop(self) -> None:
        """Stop watching and wait for the task to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        delay = self.config.restart_delay
        logger.info(f"Watching {self.root} for changes")

        while not self._stop_event.is_set():
            try:
                async for changes in self.source(self.root, self._stop_event, self.config):
                    for change_type, path in changes:
                        await self._handle(FileChange.from_watchfiles(change_type, path))
                    delay = self.config.restart_delay
            except Exception as e:
                if delay is None:
                    logger.warning(f"Stopped watching {self.root}: {type(e).__name__}: {e}")
                    return
                logger.warning(
                    f"Watching {self.root} failed ({type(e).__name__}: {e}), "
                    f"restarting in {delay:.1f}s"
                )
                await self._sleep_unless_stopped(delay)
                delay = min(delay * 2, self.config.max_restart_delay)
                continue
            break

        logger.info(f"Stopped watching {self.root}")

    async def _handle(self, change: FileChange) -> None:
        self.last_change = change
        changed_path = str(change.path) if change.path else None

        try:
            result = self.config.check(changed_path)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.exception(f"Change filter failed for {changed_path}, ignoring change")
            return

        if result:
            logger.debug(f"File {change.change_type}: {changed_path}")
            self.notifier.signal()
        else:
            logger.debug(f"Ignored {change.change_type}: {changed_path}")

    async def _sleep_unless_stopped(self, seconds: float) -> None:
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
