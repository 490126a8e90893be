"""ASGI middleware wiring directory watchers to the reload protocol.

Example::

    from fastapi import FastAPI
    from fastapi.responses import HTMLResponse

    from livepoll import FileWatcherMiddleware

    app = FastAPI()
    app.add_middleware(FileWatcherMiddleware, target_dirs=["."])

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return "<h1>Hello World</h1>"
"""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from livepoll.client import render_client_script
from livepoll.config import CheckFn, WatchConfiguration
from livepoll.events import ChangeNotifier
from livepoll.injector import HTMLInjectingSend
from livepoll.protocol import ProtocolState, ReloadProtocolHandler, classify
from livepoll.reload import DirectoryWatchWorker, watch_directory
from livepoll.reload.watcher import WatchSource

logger = logging.getLogger(__name__)


class FileWatcherMiddleware:
    """Live reload for everything behind it.

    One watcher per directory in ``target_dirs`` is started on the first ASGI
    scope seen (lifespan startup, or the first request when the server sends
    no lifespan events) and stopped on lifespan shutdown or :meth:`aclose`.

    Args:
        app: The wrapped ASGI application.
        target_dirs: Directories watched recursively.
        check: Optional filter called with each changed path; return (or
            resolve to) False to ignore the change.
        enabled: When False the middleware only forwards requests.
        config: A ready-made configuration, used instead of the arguments
            above.
        source: Filesystem event source, one iterator per directory.
        **options: Other WatchConfiguration fields (``poll_timeout``,
            ``retry_interval``, ``restart_delay``, ...).
    """

    def __init__(
        self,
        app: ASGIApp,
        target_dirs: Sequence[str | Path] = (),
        check: CheckFn | None = None,
        enabled: bool = True,
        *,
        config: WatchConfiguration | None = None,
        source: WatchSource = watch_directory,
        **options: Any,
    ):
        self.app = app
        if config is None and not enabled:
            # Disabled: the remaining arguments are neither validated nor used
            config = WatchConfiguration.model_construct(target_dirs=(), enabled=False)
        elif config is None:
            fields: dict[str, Any] = {"target_dirs": tuple(target_dirs), "enabled": enabled, **options}
            if check is not None:
                fields["check"] = check
            config = WatchConfiguration(**fields)
        self.config = config

        self.notifier = ChangeNotifier()
        self.protocol = ReloadProtocolHandler(self.notifier)
        self.workers: list[DirectoryWatchWorker] = []
        self._started = False

        if not config.enabled:
            logger.info("File watching disabled, passing requests through")
            return

        self.protocol.poll_timeout = config.poll_timeout
        self.workers = [
            DirectoryWatchWorker(root, self.notifier, config, source) for root in config.target_dirs
        ]

    def start(self) -> None:
        """Start the directory watchers. Idempotent, and a no-op after :meth:`aclose`."""
        if self._started or self.protocol.closed or not self.config.enabled:
            return
        self._started = True
        for worker in self.workers:
            worker.start()
        logger.info(f"Live reload watching {len(self.workers)} director(ies)")

    async def aclose(self) -> None:
        """Answer held reload-waits and stop all directory watchers."""
        self.protocol.close()
        if not self._started:
            return
        self._started = False
        await asyncio.gather(*(worker.stop() for worker in self.workers))
        logger.info("Live reload watchers stopped")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self.config.enabled:
            await self.app(scope, receive, send)
            return

        if scope["type"] == "lifespan":
            await self.app(scope, self._lifespan_receive(receive), send)
            return

        self.start()
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = classify(Headers(scope=scope))
        if state is not ProtocolState.PASS_THROUGH:
            await self.protocol(state, scope, receive, send)
            return

        if scope["method"] == "HEAD":
            await self.app(scope, receive, send)
            return

        trailer = render_client_script(scope["path"], self.config.retry_interval).encode()
        await self.app(scope, receive, HTMLInjectingSend(send, trailer))

    def _lifespan_receive(self, receive: Receive) -> Receive:
        async def wrapped() -> Message:
            message = await receive()
            if message["type"] == "lifespan.startup":
                self.start()
            elif message["type"] == "lifespan.shutdown":
                await self.aclose()
            return message

        return wrapped
