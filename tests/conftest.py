"""
Pytest configuration and fixtures for fetchgate tests.

This module provides shared fixtures used across unit and integration tests.
"""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import httpx
import pytest

from fetchgate.policy import Policy
from fetchgate.schema import RequestContext

PolicyDirFactory = Callable[..., Path]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_policy_dir(temp_dir: Path) -> PolicyDirFactory:
    """
    Return a factory writing a policy directory.

    Usage:
        directory = make_policy_dir(
            {"a.yaml": "title: ...", "b.json": {...}},
            order=["a.yaml", "b.json"],
        )

    Dict contents are written as JSON. ``order`` defaults to the dict order.
    """

    def factory(
        files: dict[str, str | dict[str, Any]],
        order: list[str] | None = None,
        name: str = "policies",
    ) -> Path:
        directory = temp_dir / name
        directory.mkdir(parents=True, exist_ok=True)
        for filename, content in files.items():
            text = json.dumps(content) if isinstance(content, dict) else content
            (directory / filename).write_text(text)
        manifest = {"middlewares": order if order is not None else list(files)}
        (directory / "manifest.json").write_text(json.dumps(manifest))
        return directory

    return factory


@pytest.fixture
def httpbin_policy_yaml() -> str:
    """Return the httpbin example policy."""
    return """
title: HTTPBin Test API
description: Allows GET, POST, and PATCH requests to httpbin.org for testing.
pattern: "https://httpbin.org/**"
allow_methods: [GET, POST, PATCH]
set_headers:
  User-Agent: SecureFetch/1.0
"""


def make_policy(
    title: str = "Example API",
    pattern: str = "https://api.example.com/**",
    handler: Callable[[RequestContext], Any] | None = None,
) -> Policy:
    """Build a Policy with an always-allow handler by default."""
    return Policy(
        title=title,
        description=f"{title} policy",
        pattern=pattern,
        handler=handler or (lambda context: True),
    )


def echo_transport(status_code: int = 200) -> httpx.MockTransport:
    """
    A transport that echoes the request it receives as JSON.

    The echoed document has method, url, headers and body (text).
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code,
            json={
                "method": request.method,
                "url": str(request.url),
                "headers": dict(request.headers.items()),
                "body": request.content.decode(),
            },
        )

    return httpx.MockTransport(handler)
