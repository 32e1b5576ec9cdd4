"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Gateway server for Corsgate.

Wires the origin policy, stats registry, reserved routes, forwarding
engine and dispatcher together, and serves them over HTTP or HTTPS with
uvicorn.
"""

import ssl
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from corsgate._version import __version__
from corsgate.config.settings import GatewayConfig, parse_listen_address
from corsgate.core.access_policy import OriginPolicyConfig
from corsgate.core.stats import StatsRegistry
from corsgate.gateway.dispatcher import GatewayDispatcher
from corsgate.gateway.forwarding import ForwardingEngine
from corsgate.gateway.special_routes import SpecialRouteResolver
from corsgate.logging_config import get_logger

logger = get_logger(__name__)


class GatewayServer:
    """
    Corsgate gateway server.

    Args:
        config: GatewayConfig with listener, policy and forwarding settings
        forwarding_engine: Optional pre-built engine; built from
            config.forwarding when omitted
        stats: Optional stats registry; a fresh one is created when omitted
    """

    def __init__(
        self,
        config: GatewayConfig,
        forwarding_engine: Optional[ForwardingEngine] = None,
        stats: Optional[StatsRegistry] = None,
    ):
        self.config = config
        self.policy = OriginPolicyConfig.from_lists(
            config.origin_whitelist, config.origin_blacklist
        )
        self.stats = stats or StatsRegistry()
        self.forwarding_engine = forwarding_engine or ForwardingEngine(config.forwarding)
        self.special_routes = SpecialRouteResolver(
            self.stats, dashboard_path=config.dashboard_path or None
        )
        self.dispatcher = GatewayDispatcher(
            policy=self.policy,
            stats=self.stats,
            special_routes=self.special_routes,
            forwarding_engine=self.forwarding_engine,
        )

        self.app = FastAPI(
            title="Corsgate",
            description="Origin-gated CORS proxy gateway",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan,
        )
        self.app.mount("/", self.dispatcher)

        logger.info(
            f"Initialized GatewayServer with whitelist={sorted(self.policy.whitelist)}, "
            f"blacklist={sorted(self.policy.blacklist)}"
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await self.shutdown()

    async def start(self):
        """
        Start the gateway server.

        Configures TLS if enabled and serves the app with uvicorn.
        """
        import uvicorn

        host, port = parse_listen_address(self.config.listen_address)
        tls = self.config.tls

        ssl_kwargs = {}
        if tls.enabled:
            ssl_kwargs = {
                "ssl_certfile": tls.cert_file,
                "ssl_keyfile": tls.key_file,
            }
            # Require client certificates when a CA is configured
            if tls.ca_file:
                ssl_kwargs["ssl_ca_certs"] = tls.ca_file
                ssl_kwargs["ssl_cert_reqs"] = ssl.CERT_REQUIRED

            logger.info(
                f"Starting Corsgate with TLS on {host}:{port}, "
                f"client_certs={bool(tls.ca_file)}"
            )
        else:
            logger.info(f"Starting Corsgate on {host}:{port}")

        config = uvicorn.Config(
            app=self.app,
            host=host,
            port=port,
            log_level="info",
            **ssl_kwargs,
        )

        server = uvicorn.Server(config)
        await server.serve()

    async def shutdown(self):
        """Release upstream connections."""
        logger.info("Shutting down Corsgate")
        await self.forwarding_engine.aclose()
        logger.info("Corsgate shutdown complete")


def create_server(
    config: Optional[GatewayConfig] = None,
    forwarding_engine: Optional[ForwardingEngine] = None,
) -> GatewayServer:
    """Build a gateway server from configuration (defaults when omitted)."""
    return GatewayServer(config or GatewayConfig(), forwarding_engine=forwarding_engine)
