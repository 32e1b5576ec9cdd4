"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Request accounting for Corsgate.

StatsRegistry holds the process-lifetime request counter and start time.
It is created once by the server and injected into the dispatcher.
"""

import os
import socket
import sys
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time view served by the stats route."""

    requests: int
    uptime: str
    memory: str
    host: str

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def format_uptime(elapsed_seconds: float) -> str:
    """Format elapsed seconds as "{hours}h {minutes}m", truncating."""
    total = int(max(elapsed_seconds, 0))
    hours = total // 3600
    minutes = (total % 3600) // 60
    return f"{hours}h {minutes}m"


def resident_memory_bytes() -> int:
    """
    Current resident set size of this process.

    Reads /proc/self/statm where available; otherwise falls back to the
    peak RSS reported by getrusage.
    """
    try:
        with open("/proc/self/statm") as f:
            resident_pages = int(f.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError):
        try:
            import resource
        except ImportError:
            # Windows has neither /proc nor getrusage
            return 0

        max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        # ru_maxrss is bytes on macOS, kilobytes elsewhere
        return max_rss if sys.platform == "darwin" else max_rss * 1024


def format_memory(rss_bytes: int) -> str:
    """Format a byte count as whole megabytes, rounding half up."""
    return f"{int(rss_bytes / 1024 / 1024 + 0.5)} MB"


class StatsRegistry:
    """
    Process-wide request counter and uptime.

    The counter is guarded by a lock so the registry stays correct when the
    gateway runs under a multi-threaded server.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        hostname: Optional[str] = None,
        memory_probe: Callable[[], int] = resident_memory_bytes,
    ):
        self._clock = clock
        self._hostname = hostname
        self._memory_probe = memory_probe
        self._lock = threading.Lock()
        self._total_requests = 0
        self.start_time = clock()

    @property
    def total_requests(self) -> int:
        return self._total_requests

    def increment(self) -> int:
        """Count one admitted request and return the new total."""
        with self._lock:
            self._total_requests += 1
            return self._total_requests

    def uptime(self) -> str:
        return format_uptime(self._clock() - self.start_time)

    def snapshot(self) -> StatsSnapshot:
        """Collect the stats route payload."""
        return StatsSnapshot(
            requests=self._total_requests,
            uptime=self.uptime(),
            memory=format_memory(self._memory_probe()),
            host=self._hostname or socket.gethostname(),
        )
