"""Long-poll protocol spoken between the reload client and the middleware.

A single sentinel header carries the whole protocol. Incoming values:

- ``to-reload``: hold the request until a change is signalled, then answer
  ``reload``
- ``state``: answer ``ok`` immediately, so a client can tell when the server
  is back up after a change

Once the handler is closed for shutdown, held and new reload-waits are
answered ``shutdown`` instead of being kept open.

Protocol answers carry the sentinel header set to ``true``; the client uses
its presence to tell a real answer from an error page or a proxy response.
Any other value, or no header at all, is ordinary traffic.
"""

import asyncio
import contextlib
import logging
from enum import Enum

from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse, Response
from starlette.types import Receive, Scope, Send

from livepoll.events import ChangeNotifier

logger = logging.getLogger(__name__)

WATCHER_HEADER = "X-HONO-FILE-WATCHER"
REQUEST_RELOAD_WAIT = "to-reload"
REQUEST_STATE = "state"
RESPONSE_MARKER = "true"

BODY_RELOAD = "reload"
BODY_OK = "ok"
BODY_TIMEOUT = "timeout"
BODY_SHUTDOWN = "shutdown"


class ProtocolState(str, Enum):
    """How a request is handled, decided from the sentinel header."""

    RELOAD_WAIT = "reload_wait"
    STATE_PROBE = "state_probe"
    PASS_THROUGH = "pass_through"


def classify(headers: Headers) -> ProtocolState:
    """Decide the protocol state of a request from its headers."""
    value = headers.get(WATCHER_HEADER)
    if value == REQUEST_RELOAD_WAIT:
        return ProtocolState.RELOAD_WAIT
    if value == REQUEST_STATE:
        return ProtocolState.STATE_PROBE
    return ProtocolState.PASS_THROUGH


def protocol_response(body: str) -> Response:
    """Build a protocol answer marked with the sentinel header."""
    return PlainTextResponse(
        body,
        headers={WATCHER_HEADER: RESPONSE_MARKER, "Cache-Control": "no-store"},
    )


async def _wait_for_disconnect(receive: Receive) -> None:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


class ReloadProtocolHandler:
    """Answers reload-wait and state-probe requests without going downstream."""

    def __init__(self, notifier: ChangeNotifier, poll_timeout: float | None = None):
        self.notifier = notifier
        self.poll_timeout = poll_timeout
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Answer every held reload-wait with ``shutdown`` and stop holding new ones."""
        self._closed.set()

    async def __call__(self, state: ProtocolState, scope: Scope, receive: Receive, send: Send) -> None:
        if state is ProtocolState.RELOAD_WAIT:
            response = await self.reload_wait(receive)
            if response is None:
                return
        elif state is ProtocolState.STATE_PROBE:
            response = self.state_probe()
        else:
            raise ValueError(f"Not a protocol request: {state.value}")

        await response(scope, receive, send)

    def state_probe(self) -> Response:
        """Answer a state probe."""
        return protocol_response(BODY_OK)

    async def reload_wait(self, receive: Receive) -> Response | None:
        """Hold a reload-wait request until something changes.

        Returns:
            The ``reload`` answer; the ``shutdown`` answer once the handler
            is closed; the ``timeout`` answer when ``poll_timeout`` elapsed
            first; or None when the client went away.
        """
        if self.closed:
            return protocol_response(BODY_SHUTDOWN)

        change = asyncio.create_task(self.notifier.wait())
        closed = asyncio.create_task(self._closed.wait())
        disconnect = asyncio.create_task(_wait_for_disconnect(receive))

        try:
            done, _ = await asyncio.wait(
                {change, closed, disconnect},
                timeout=self.poll_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (change, closed, disconnect):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if change in done:
            return protocol_response(BODY_RELOAD)
        if closed in done:
            logger.debug("Releasing held reload client for shutdown")
            return protocol_response(BODY_SHUTDOWN)
        if disconnect in done:
            logger.debug("Reload client disconnected while waiting")
            return None
        logger.debug(f"Reload wait timed out after {self.poll_timeout}s")
        return protocol_response(BODY_TIMEOUT)
