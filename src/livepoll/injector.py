"""Append the reload client to HTML response bodies while they stream.

StreamingInjector does the chunk forwarding and knows nothing about ASGI;
HTMLInjectingSend applies it to the messages of one ASGI response.
"""

import logging
from collections.abc import AsyncIterable, AsyncIterator

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import Message, Send

logger = logging.getLogger(__name__)


def is_html(headers: Headers) -> bool:
    """Check whether a response declares an HTML body."""
    return headers.get("content-type", "").startswith("text/html")


class StreamingInjector:
    """Forwards body chunks unchanged, then emits one trailing chunk.

    Nothing is buffered: every chunk fed in comes straight back out, and the
    trailer follows the chunk that completes the body.
    """

    def __init__(self, trailer: bytes):
        self.trailer = trailer
        self.finished = False

    def feed(self, chunk: bytes, more_body: bool = True) -> list[bytes]:
        """Push one chunk of the original body.

        Args:
            chunk: Bytes received from the original body (may be empty).
            more_body: False when ``chunk`` is the last one.

        Returns:
            The chunks to emit, in order.
        """
        if self.finished:
            raise RuntimeError("Body already completed")

        out = [chunk] if chunk else []
        if not more_body:
            out.append(self.trailer)
            self.finished = True
        return out

    async def wrap(self, body: AsyncIterable[bytes] | None) -> AsyncIterator[bytes]:
        """Pull-style variant over an async iterable body.

        The source iterator is closed on every exit path, including when the
        consumer abandons this generator early. A None body yields only the
        trailer.
        """
        if body is not None:
            source = aiter(body)
            try:
                async for chunk in source:
                    for out in self.feed(chunk):
                        yield out
            finally:
                aclose = getattr(source, "aclose", None)
                if aclose is not None:
                    await aclose()

        for out in self.feed(b"", more_body=False):
            yield out


class HTMLInjectingSend:
    """ASGI ``send`` wrapper appending a trailer to HTML responses.

    Non-HTML and encoded (e.g. gzip) responses pass through untouched, as do
    statuses that carry no body (1xx, 204, 304). For HTML,
    ``Content-Length`` is dropped because the body grows.
    """

    def __init__(self, send: Send, trailer: bytes):
        self._send = send
        self._trailer = trailer
        self._injector: StreamingInjector | None = None

    @property
    def injecting(self) -> bool:
        return self._injector is not None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            await self._send(self._start(message))
            return

        if message["type"] != "http.response.body" or self._injector is None:
            await self._send(message)
            return

        more_body = message.get("more_body", False)
        chunks = self._injector.feed(message.get("body", b""), more_body)
        for i, chunk in enumerate(chunks):
            last = i == len(chunks) - 1
            await self._send(
                {
                    "type": "http.response.body",
                    "body": chunk,
                    "more_body": more_body if last else True,
                }
            )

    def _start(self, message: Message) -> Message:
        status = message.get("status", 200)
        if status < 200 or status in (204, 304):
            return message

        headers = MutableHeaders(raw=list(message.get("headers", [])))
        if not is_html(headers) or "content-encoding" in headers:
            return message

        del headers["content-length"]
        self._injector = StreamingInjector(self._trailer)
        logger.debug("Injecting reload client into HTML response")
        return {**message, "headers": headers.raw}
