"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Forwarding engine for Corsgate.

Streams an admitted request to its upstream target with httpx and writes
the upstream response through the request's ResponseHandle. Failures are
not raised to the caller; they are emitted on an error channel so a
single long-lived listener can sanitize them.
"""

import inspect
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import urlsplit

import httpx
from starlette.requests import Request

from corsgate.exceptions import InvalidConfigurationError, UnresolvableTargetError
from corsgate.gateway.response import ResponseHandle
from corsgate.logging_config import get_logger

logger = get_logger(__name__)

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

TLS_REJECT_UNAUTHORIZED_ENV = "CORSGATE_TLS_REJECT_UNAUTHORIZED"

ErrorListener = Callable[[BaseException, Request, ResponseHandle], Union[None, Awaitable[None]]]


def default_forwarding_options() -> Dict[str, Any]:
    """
    Default forwarding options.

    Upstream certificate verification stays on unless
    CORSGATE_TLS_REJECT_UNAUTHORIZED is set to "0".
    """
    return {
        "xfwd": True,
        "secure": os.environ.get(TLS_REJECT_UNAUTHORIZED_ENV) != "0",
        "target": None,
        "timeout": 30.0,
        "follow_redirects": False,
    }


def build_forwarding_options(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Merge option overrides over the defaults.

    Raises:
        InvalidConfigurationError: If an override names an unknown option
    """
    options = default_forwarding_options()
    for name, value in (overrides or {}).items():
        if name not in options:
            raise InvalidConfigurationError(f"Unknown forwarding option '{name}'")
        options[name] = value
    return options


class ForwardingEngine:
    """
    httpx-backed reverse proxy with an error channel.

    Args:
        options: Option overrides merged over default_forwarding_options()
        transport: Optional httpx transport (used to plug in test upstreams)
    """

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.options = build_forwarding_options(options)
        self._error_listeners: List[ErrorListener] = []
        self.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.options["timeout"]),
            verify=bool(self.options["secure"]),
            follow_redirects=bool(self.options["follow_redirects"]),
            transport=transport,
        )

        logger.info(
            f"Initialized ForwardingEngine with target={self.options['target']}, "
            f"xfwd={self.options['xfwd']}, secure={self.options['secure']}"
        )

    def on_error(self, listener: ErrorListener) -> None:
        """Register a listener invoked as listener(error, request, response)."""
        self._error_listeners.append(listener)

    async def forward(self, request: Request, response: ResponseHandle) -> None:
        """
        Forward a request upstream and stream the reply into response.

        Any failure is emitted to the error listeners instead of raised.
        """
        try:
            target_url = self.resolve_target(request)
            headers = self.prepare_headers(request)
            body = await request.body()

            logger.debug(f"Forwarding request: method={request.method}, url={target_url}")

            async with self.http_client.stream(
                method=request.method,
                url=target_url,
                headers=headers,
                content=body,
            ) as upstream:
                for name, values in _group_headers(upstream.headers).items():
                    if name.lower() in HOP_BY_HOP_HEADERS:
                        continue
                    response.set_header(name, values)
                response.write_head(upstream.status_code)

                if upstream.is_stream_consumed:
                    await response.write(upstream.content)
                else:
                    async for chunk in upstream.aiter_raw():
                        await response.write(chunk)
                await response.end()

                logger.debug(
                    f"Forwarded response: status={upstream.status_code}, url={target_url}"
                )
        except Exception as e:
            await self._emit_error(e, request, response)

    def resolve_target(self, request: Request) -> str:
        """
        Derive the upstream URL for a request.

        With a configured target the raw request path and query are appended
        to it; percent-escapes are forwarded untouched. Otherwise the path itself must carry an absolute URL, as in
        "/https://api.example.com/v1/items?page=2".

        Raises:
            UnresolvableTargetError: If no http(s) target can be derived
        """
        path = raw_request_path(request)
        query = request.url.query

        target = self.options["target"]
        if target:
            url = str(target).rstrip("/") + path
        else:
            url = path[1:]
            parts = urlsplit(url)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise UnresolvableTargetError(
                    f"Cannot resolve an upstream target from path '{path}'"
                )
        return f"{url}?{query}" if query else url

    def prepare_headers(self, request: Request) -> Dict[str, str]:
        """Copy inbound headers minus hop-by-hop headers and Host, adding X-Forwarded-*."""
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != "host"
        }

        if self.options["xfwd"]:
            scheme = request.url.scheme or "http"
            port = request.url.port or (443 if scheme in ("https", "wss") else 80)
            forwarded = {
                "x-forwarded-for": request.client.host if request.client else "",
                "x-forwarded-port": str(port),
                "x-forwarded-proto": scheme,
            }
            for name, value in forwarded.items():
                existing = headers.get(name)
                headers[name] = f"{existing},{value}" if existing else value

        return headers

    async def _emit_error(
        self, error: BaseException, request: Request, response: ResponseHandle
    ) -> None:
        if not self._error_listeners:
            raise error
        for listener in self._error_listeners:
            result = listener(error, request, response)
            if inspect.isawaitable(result):
                await result

    async def aclose(self) -> None:
        """Close the pooled upstream client."""
        await self.http_client.aclose()


def _group_headers(headers: httpx.Headers) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for name, value in headers.multi_items():
        grouped.setdefault(name, []).append(value)
    return grouped


def raw_request_path(request: Request) -> str:
    """Request path as received, with percent-escapes left intact."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path
