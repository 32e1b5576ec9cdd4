"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Reserved operator routes.

The dashboard and stats endpoints are observability surfaces rather than
proxy targets, so they are answered before any origin policy runs.
"""

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from corsgate.core.stats import StatsRegistry
from corsgate.logging_config import get_logger

logger = get_logger(__name__)

DASHBOARD_ROUTES = frozenset({"/proxy", "/proxy/"})
STATS_ROUTE = "/api/stats"

DEFAULT_DASHBOARD_PATH = Path(__file__).resolve().parent.parent / "static" / "proxy.html"
DASHBOARD_MISSING_MESSAGE = b"Dashboard file missing."


@dataclass(frozen=True)
class ResponseAction:
    """A complete response produced by a reserved route."""

    status_code: int
    body: bytes
    content_type: Optional[str] = None

    async def send(self, response) -> None:
        headers = {"Content-Type": self.content_type} if self.content_type else None
        response.write_head(self.status_code, headers)
        await response.end(self.body)


class SpecialRouteResolver:
    """
    Resolves the dashboard and stats routes.

    Args:
        stats: Registry whose snapshot the stats route serves
        dashboard_path: Dashboard asset location; defaults to the packaged asset
    """

    def __init__(
        self,
        stats: StatsRegistry,
        dashboard_path: Optional[Union[str, Path]] = None,
    ):
        self.stats = stats
        self.dashboard_path = Path(dashboard_path) if dashboard_path else DEFAULT_DASHBOARD_PATH

    async def try_handle(self, path: str) -> Optional[ResponseAction]:
        """
        Produce a response for a reserved path.

        Matching uses the URL path only; query strings are ignored, so
        "/api/stats?refresh=1" is the stats route and is never forwarded.

        Returns:
            ResponseAction for reserved paths, None for everything else
        """
        if path in DASHBOARD_ROUTES:
            return await self.dashboard()
        if path == STATS_ROUTE:
            return self.stats_report()
        return None

    async def dashboard(self) -> ResponseAction:
        """Serve the dashboard asset, or a 500 when it cannot be read."""
        try:
            content = await asyncio.to_thread(self.dashboard_path.read_bytes)
        except OSError as e:
            logger.error(f"Failed to read dashboard asset {self.dashboard_path}: {e}")
            return ResponseAction(500, DASHBOARD_MISSING_MESSAGE)
        return ResponseAction(200, content, "text/html")

    def stats_report(self) -> ResponseAction:
        snapshot = self.stats.snapshot()
        body = json.dumps(snapshot.to_dict(), separators=(",", ":")).encode("utf-8")
        return ResponseAction(200, body, "application/json")
