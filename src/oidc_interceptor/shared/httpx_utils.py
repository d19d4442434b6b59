"""Utilities for creating standardized httpx AsyncClient instances."""

from typing import Any, Protocol

import httpx

__all__ = ["HttpClientFactory", "create_http_client"]


class HttpClientFactory(Protocol):
    def __call__(self, **kwargs: Any) -> httpx.AsyncClient: ...


def create_http_client(**kwargs: Any) -> httpx.AsyncClient:
    """Create the httpx AsyncClient used for OAuth wire calls.

    Defaults:
    - follow_redirects=True
    - a 30 second timeout unless ``timeout`` is passed

    Any other keyword argument accepted by httpx.AsyncClient is forwarded.

    Note:
        The returned AsyncClient must be used as a context manager to ensure
        proper cleanup of connections.

    Examples:
        async with create_http_client() as client:
            response = await client.get("https://as.example/.well-known/openid-configuration")

        async with create_http_client(timeout=httpx.Timeout(60.0)) as client:
            response = await client.post("https://as.example/token", data=form)
    """
    kwargs.setdefault("timeout", httpx.Timeout(30.0))
    kwargs["follow_redirects"] = True
    return httpx.AsyncClient(**kwargs)
