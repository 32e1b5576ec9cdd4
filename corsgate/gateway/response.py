"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Writable response handle over an ASGI send channel.

Every pipeline step and the forwarding engine write through a
ResponseHandle. It stages headers until write_head() commits them and
tracks whether the response has started or finished, which is the state
the upstream-failure sanitizer inspects.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from corsgate.exceptions import HeadersAlreadySentError, ResponseFinishedError

HeaderValue = Union[str, Iterable[str]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]

BODYLESS_STATUS_CODES = frozenset({204, 304})


class ResponseHandle:
    """
    Node-style response over ASGI.

    Attributes:
        status_code: Staged status code (200 until write_head)
        reason: Requested reason phrase; ASGI servers emit the standard
            phrase for the status code
        headers_sent: True once write_head() has committed the headers
        finished: True once end() has completed
    """

    def __init__(self, send: Send):
        self._send = send
        self._headers: Dict[str, Tuple[str, List[str]]] = {}
        self._started = False
        self.status_code = 200
        self.reason: Optional[str] = None
        self.headers_sent = False
        self.finished = False

    def set_header(self, name: str, value: HeaderValue) -> None:
        self._ensure_headers_mutable(name)
        values = [value] if isinstance(value, str) else [str(v) for v in value]
        self._headers[name.lower()] = (name, values)

    def get_header(self, name: str) -> Optional[str]:
        entry = self._headers.get(name.lower())
        if entry is None:
            return None
        return ", ".join(entry[1])

    def has_header(self, name: str) -> bool:
        return name.lower() in self._headers

    def remove_header(self, name: str) -> None:
        self._ensure_headers_mutable(name)
        self._headers.pop(name.lower(), None)

    def get_header_names(self) -> List[str]:
        """Return staged header names, lower-cased."""
        return list(self._headers)

    def write_head(
        self,
        status_code: int,
        headers: Optional[Mapping[str, HeaderValue]] = None,
        reason: Optional[str] = None,
    ) -> None:
        """
        Commit the status line and headers.

        Headers passed here are merged over any staged headers. After this
        call headers are immutable; they go out on the first write() or end().
        """
        if self.headers_sent:
            raise HeadersAlreadySentError("write_head called after headers were sent")
        for name, value in (headers or {}).items():
            self.set_header(name, value)
        self.status_code = int(status_code)
        self.reason = reason
        self.headers_sent = True

    async def write(self, data: bytes) -> None:
        """Stream a body chunk, committing headers first if needed."""
        if self.finished:
            raise ResponseFinishedError("write called after the response ended")
        if not self.headers_sent:
            self.write_head(self.status_code)
        await self._start()
        if data:
            await self._send({"type": "http.response.body", "body": bytes(data), "more_body": True})

    async def end(self, data: Union[bytes, str] = b"") -> None:
        """
        Finish the response, optionally with a final body chunk.

        A response ended without any streamed body gets a Content-Length
        for its single chunk. Ending twice is a no-op.
        """
        if self.finished:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not self.headers_sent:
            self.write_head(self.status_code)
        if (
            not self._started
            and self.status_code not in BODYLESS_STATUS_CODES
            and not self.has_header("content-length")
        ):
            self._headers["content-length"] = ("Content-Length", [str(len(data))])
        await self._start()
        self.finished = True
        await self._send({"type": "http.response.body", "body": bytes(data), "more_body": False})

    def raw_headers(self) -> List[Tuple[bytes, bytes]]:
        return [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, values in self._headers.values()
            for value in values
        ]

    async def _start(self) -> None:
        if self._started:
            return
        self._started = True
        await self._send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self.raw_headers(),
        })

    def _ensure_headers_mutable(self, name: str) -> None:
        if self.headers_sent:
            raise HeadersAlreadySentError(
                f"Cannot modify header '{name}' after headers were sent"
            )
