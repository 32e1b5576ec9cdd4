"""
Pytest configuration and shared fixtures for Corsgate tests.
"""

import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest
from starlette.requests import Request


class RecordingSend:
    """ASGI send callable that records every message."""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    async def __call__(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def start_messages(self) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m["type"] == "http.response.start"]

    @property
    def status(self) -> int:
        return self.start_messages[0]["status"]

    @property
    def headers(self) -> Dict[str, str]:
        return {
            name.decode("latin-1"): value.decode("latin-1")
            for name, value in self.start_messages[0]["headers"]
        }

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        )

    @property
    def completed(self) -> bool:
        return any(
            m["type"] == "http.response.body" and not m.get("more_body", False)
            for m in self.messages
        )


def build_request(
    path: str = "/",
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    query_string: bytes = b"",
    body: bytes = b"",
    scheme: str = "http",
    server: tuple = ("gateway.local", 8080),
    client: Optional[tuple] = ("203.0.113.7", 50000),
    raw_path: Optional[bytes] = None,
) -> Request:
    """
    Build a Starlette request from a minimal ASGI scope.

    raw_path defaults to the encoded path; pass it to model a request whose
    decoded path differs from what was sent on the wire.
    """
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": raw_path if raw_path is not None else path.encode("latin-1"),
        "root_path": "",
        "query_string": query_string,
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
        "server": server,
        "client": client,
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def recording_send() -> RecordingSend:
    """ASGI send callable that records messages."""
    return RecordingSend()


@pytest.fixture
def request_factory():
    """Factory for Starlette requests built from ASGI scopes."""
    return build_request


@pytest.fixture
def sample_config_path(temp_dir: Path) -> Path:
    """
    Create a sample configuration file for testing.

    Args:
        temp_dir: Temporary directory fixture.

    Returns:
        Path to sample config file.
    """
    config_path = temp_dir / "config.yaml"
    config_path.write_text(f"""
gateway:
  listen_address: "127.0.0.1:9090"
  origin_whitelist: []
  origin_blacklist:
    - "http://bad.com"
  dashboard_path: {temp_dir}/proxy.html
  forwarding:
    target: "http://upstream.internal"
    timeout: 5

logging:
  level: DEBUG
  file: {temp_dir}/corsgate.log
  format: json
""")
    return config_path
