"""Utilities for protected-resource identity and discovery document fix-ups."""

from typing import Any
from urllib.parse import urlparse

import httpx


def resource_from_url(url: str | httpx.URL) -> str:
    """Return the protected-resource identity of a request URL.

    The identity is ``scheme://host[:port]/path``: query string and fragment
    are dropped and default ports are omitted, so every request to the same
    endpoint shares one token and one in-flight acquisition.

    Args:
        url: Absolute request URL

    Returns:
        Canonical resource identity string
    """
    url = httpx.URL(url)
    # httpx lowercases the host and normalizes default ports away
    netloc = url.netloc.decode("ascii")
    return f"{url.scheme}://{netloc}{url.path or '/'}"


def check_resource_allowed(requested_resource: str, configured_resource: str) -> bool:
    """Check if a requested resource URL falls under a configured resource URL.

    A requested resource matches if it has the same scheme, host and port,
    and its path starts with the configured resource's path. This allows
    hierarchical matching where metadata published for a parent resource
    covers its child resources.

    Args:
        requested_resource: The resource URL being requested
        configured_resource: The resource URL that has been configured

    Returns:
        True if the requested resource matches the configured resource
    """
    requested = urlparse(requested_resource)
    configured = urlparse(configured_resource)

    if requested.scheme.lower() != configured.scheme.lower() or requested.netloc.lower() != configured.netloc.lower():
        return False

    requested_path = requested.path
    configured_path = configured.path

    if len(requested_path) < len(configured_path):
        return False

    # trailing slashes keep "/api123" from matching "/api"
    if not requested_path.endswith("/"):
        requested_path += "/"
    if not configured_path.endswith("/"):
        configured_path += "/"

    return requested_path.startswith(configured_path)


def fix_protocol(document: dict[str, Any], issuer: str | None = None) -> dict[str, Any]:
    """Rewrite ``http://`` URLs in a discovery document to ``https://``.

    Authorization servers running behind a TLS-terminating proxy often
    advertise their endpoints with the scheme they see internally. When the
    issuer is ``https``, every string value (nested objects included) that is
    an ``http://`` URL is upgraded.

    Args:
        document: Raw discovery document
        issuer: Issuer to take the scheme from; defaults to ``document["issuer"]``

    Returns:
        A new document with fixed URLs
    """
    if issuer is None:
        issuer = str(document.get("issuer") or "")
    if not issuer.startswith("https://"):
        return dict(document)
    return {key: _fix_value(value) for key, value in document.items()}


def _fix_value(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("http://"):
        return "https://" + value.removeprefix("http://")
    if isinstance(value, dict):
        return {key: _fix_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_fix_value(item) for item in value]
    return value
