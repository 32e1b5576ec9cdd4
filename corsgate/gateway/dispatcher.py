"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Gateway dispatcher for Corsgate.

The per-request control flow. Each request runs an ordered pipeline:
1. Reserved routes (dashboard, stats), answered before any policy
2. Origin access policy (403 on rejection, without CORS headers)
3. CORS negotiation (preflight answered with 204)
4. Request accounting
5. Forwarding to the upstream engine

Every step returns CONTINUE or TERMINATED. Upstream failures surface on
the forwarding engine's error channel and are sanitized by a single
listener registered when the dispatcher is built.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

from starlette.requests import Request

from corsgate.core.access_policy import OriginPolicyConfig, is_allowed
from corsgate.core.cors import CorsNegotiator
from corsgate.core.stats import StatsRegistry
from corsgate.gateway.forwarding import ForwardingEngine
from corsgate.gateway.response import ResponseHandle
from corsgate.gateway.special_routes import SpecialRouteResolver
from corsgate.logging_config import (
    clear_correlation_id,
    get_logger,
    log_origin_rejection,
    log_proxy_error,
    set_correlation_id,
)

logger = get_logger(__name__)

PROXY_ERROR_PREFIX = "Not found because of proxy error: "


class StepResult(str, Enum):
    """Outcome of a pipeline step."""
    CONTINUE = "continue"
    TERMINATED = "terminated"


@dataclass
class RequestContext:
    """
    Per-request state, discarded once the response completes.

    Attributes:
        request: Inbound Starlette request
        response: Writable response handle carrying headers_sent/finished state
        origin: Origin header value, "" when absent
        path: URL path without the query string
        method: HTTP method
    """
    request: Request
    response: ResponseHandle
    origin: str
    path: str
    method: str

    @classmethod
    def from_request(cls, request: Request, response: ResponseHandle) -> "RequestContext":
        return cls(
            request=request,
            response=response,
            origin=request.headers.get("origin", ""),
            path=request.url.path,
            method=request.method,
        )


Step = Callable[[RequestContext], Awaitable[StepResult]]


def rejection_message(origin: str) -> str:
    return f'The origin "{origin}" was blacklisted by the operator of this proxy.'


def format_proxy_error(error: BaseException) -> str:
    detail = str(error)
    name = type(error).__name__
    return f"{PROXY_ERROR_PREFIX}{name}: {detail}" if detail else f"{PROXY_ERROR_PREFIX}{name}"


class GatewayDispatcher:
    """
    Composition root for admission control.

    The dispatcher is an ASGI application; mount it to serve requests.

    Args:
        policy: Immutable origin policy
        stats: Request accounting registry
        special_routes: Reserved route resolver
        forwarding_engine: Upstream forwarding engine
        cors: CORS negotiator (defaults to the standard header set)
    """

    def __init__(
        self,
        policy: OriginPolicyConfig,
        stats: StatsRegistry,
        special_routes: SpecialRouteResolver,
        forwarding_engine: ForwardingEngine,
        cors: Optional[CorsNegotiator] = None,
    ):
        self.policy = policy
        self.stats = stats
        self.special_routes = special_routes
        self.forwarding_engine = forwarding_engine
        self.cors = cors or CorsNegotiator()

        self.steps: Tuple[Step, ...] = (
            self.resolve_special_route,
            self.enforce_origin_policy,
            self.negotiate_cors,
            self.record_request,
            self.forward,
        )

        forwarding_engine.on_error(self.sanitize_upstream_failure)

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "websocket":
            await send({"type": "websocket.close", "code": 1003})
            return
        if scope["type"] != "http":
            return

        request = Request(scope, receive)
        response = ResponseHandle(send)
        set_correlation_id(request.headers.get("x-request-id"))
        try:
            await self.handle(request, response)
        finally:
            clear_correlation_id()

    async def handle(self, request: Request, response: ResponseHandle) -> StepResult:
        """Run the pipeline for one request."""
        ctx = RequestContext.from_request(request, response)
        for step in self.steps:
            if await step(ctx) is StepResult.TERMINATED:
                return StepResult.TERMINATED
        return StepResult.CONTINUE

    async def resolve_special_route(self, ctx: RequestContext) -> StepResult:
        try:
            action = await self.special_routes.try_handle(ctx.path)
            if action is None:
                return StepResult.CONTINUE
            logger.debug(f"Serving reserved route {ctx.path}")
            await action.send(ctx.response)
        except Exception as e:
            logger.error(f"Failed to serve reserved route {ctx.path}: {e}", exc_info=True)
            if not ctx.response.headers_sent:
                ctx.response.write_head(500)
                await ctx.response.end(b"Internal server error.")
            elif not ctx.response.finished:
                await ctx.response.end()
        return StepResult.TERMINATED

    async def enforce_origin_policy(self, ctx: RequestContext) -> StepResult:
        if is_allowed(ctx.origin, self.policy):
            return StepResult.CONTINUE

        log_origin_rejection(logger, origin=ctx.origin, path=ctx.path, method=ctx.method)
        ctx.response.write_head(403, reason="Forbidden")
        await ctx.response.end(rejection_message(ctx.origin))
        return StepResult.TERMINATED

    async def negotiate_cors(self, ctx: RequestContext) -> StepResult:
        if await self.cors.apply(ctx.method, ctx.response):
            return StepResult.TERMINATED
        return StepResult.CONTINUE

    async def record_request(self, ctx: RequestContext) -> StepResult:
        self.stats.increment()
        return StepResult.CONTINUE

    async def forward(self, ctx: RequestContext) -> StepResult:
        await self.forwarding_engine.forward(ctx.request, ctx.response)
        return StepResult.TERMINATED

    async def sanitize_upstream_failure(
        self, error: BaseException, request: Request, response: ResponseHandle
    ) -> None:
        """
        Turn an upstream failure into a terminal response.

        A response that has already started can only be closed. Otherwise
        staged headers are dropped and a 404 readable by any origin is sent.
        """
        log_proxy_error(
            logger,
            error,
            method=request.method,
            path=request.url.path,
            headers_sent=response.headers_sent,
        )
        try:
            if response.headers_sent:
                if not response.finished:
                    await response.end()
                return

            for name in response.get_header_names():
                response.remove_header(name)

            response.write_head(404, {"Access-Control-Allow-Origin": "*"})
            await response.end(format_proxy_error(error))
        except Exception as e:
            logger.warning(f"Could not finalize response after proxy error: {e}")
