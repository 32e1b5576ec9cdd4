"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Gateway module for Corsgate.

This module provides the request-facing side of the gateway:
- Writable response handle with observable headers-sent state
- Reserved dashboard and stats routes
- httpx forwarding engine with an error channel
- Admission-control dispatcher and upstream-failure sanitizer
- Server assembly over FastAPI and uvicorn
"""

from corsgate.gateway.dispatcher import GatewayDispatcher, RequestContext, StepResult
from corsgate.gateway.forwarding import ForwardingEngine, build_forwarding_options
from corsgate.gateway.response import ResponseHandle
from corsgate.gateway.server import GatewayServer, create_server
from corsgate.gateway.special_routes import ResponseAction, SpecialRouteResolver

__all__ = [
    "GatewayDispatcher",
    "RequestContext",
    "StepResult",
    "ForwardingEngine",
    "build_forwarding_options",
    "ResponseHandle",
    "GatewayServer",
    "create_server",
    "ResponseAction",
    "SpecialRouteResolver",
]
