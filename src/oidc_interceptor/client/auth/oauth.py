"""
OAuth 2.0 wire operations.

Discovery, dynamic client registration, the client-credentials grant and the
registration management probe. Each call opens its own short-lived
AsyncClient through the supplied factory so OAuth traffic never passes
through the interceptor that triggered it.
"""

import base64
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote

import httpx
import jwt
from pydantic import ValidationError

from oidc_interceptor.client.auth.exceptions import (
    OAuthDiscoveryError,
    OAuthRegistrationError,
    OAuthTokenError,
    ResourceMetadataError,
)
from oidc_interceptor.shared.auth import (
    ClientRegistration,
    OAuthClientMetadata,
    OAuthMetadata,
    OAuthToken,
    ProtectedResourceMetadata,
)
from oidc_interceptor.shared.auth_utils import fix_protocol
from oidc_interceptor.shared.httpx_utils import HttpClientFactory, create_http_client

logger = logging.getLogger(__name__)

ClientAuthMethod = Literal["client_secret_basic", "client_secret_jwt"]

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
CLIENT_ASSERTION_LIFETIME = 60


@dataclass
class TokenGrantResult:
    """Outcome of a token request: the HTTP status and, on success, the token."""

    status_code: int
    token: OAuthToken | None = None


def build_discovery_url(issuer: str) -> str:
    """OpenID Connect Discovery 1.0 location: the well-known suffix is appended to the issuer path."""
    return issuer.rstrip("/") + "/.well-known/openid-configuration"


async def fetch_resource_metadata(
    url: str,
    http_client_factory: HttpClientFactory = create_http_client,
) -> ProtectedResourceMetadata:
    """Fetch an RFC 9728 protected resource metadata document."""
    async with http_client_factory() as client:
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            return ProtectedResourceMetadata.model_validate_json(response.content)
        except httpx.HTTPStatusError as e:
            raise ResourceMetadataError(f"Resource metadata request failed: {e.response.status_code}") from e
        except ValidationError as e:
            raise ResourceMetadataError(f"Invalid resource metadata at {url}: {e}") from e


async def discover(
    issuer: str,
    http_client_factory: HttpClientFactory = create_http_client,
) -> OAuthMetadata:
    """
    Discover authorization server metadata for an issuer.

    Endpoint URLs are upgraded to https when the issuer is https, and the
    document must name the issuer it was fetched for.

    Raises:
        OAuthDiscoveryError: If the document cannot be fetched or does not validate
    """
    url = build_discovery_url(issuer)
    async with http_client_factory() as client:
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            document = response.json()
        except httpx.HTTPStatusError as e:
            raise OAuthDiscoveryError(f"Discovery failed for {issuer}: {e.response.status_code}") from e
        except ValueError as e:
            raise OAuthDiscoveryError(f"Discovery document for {issuer} is not JSON") from e

    if not isinstance(document, dict):
        raise OAuthDiscoveryError(f"Discovery document for {issuer} is not a JSON object")

    try:
        metadata = OAuthMetadata.model_validate(fix_protocol(document, issuer))
    except ValidationError as e:
        raise OAuthDiscoveryError(f"Invalid discovery document for {issuer}: {e}") from e

    if metadata.issuer != issuer:
        raise OAuthDiscoveryError(f"Discovery document issuer {metadata.issuer!r} does not match {issuer!r}")

    logger.debug(f"Discovered authorization server metadata for {issuer}")
    return metadata


async def register_client(
    metadata: OAuthMetadata,
    client_metadata: OAuthClientMetadata,
    initial_access_token: str | None = None,
    http_client_factory: HttpClientFactory = create_http_client,
) -> ClientRegistration:
    """
    Register a client with RFC 7591 dynamic client registration.

    Args:
        metadata: Discovered authorization server metadata
        client_metadata: Metadata to register
        initial_access_token: Bearer token for registration endpoints that are not open

    Raises:
        OAuthRegistrationError: If the server has no registration endpoint or rejects the request
    """
    if metadata.registration_endpoint is None:
        raise OAuthRegistrationError(f"Authorization server {metadata.issuer} does not support dynamic registration")

    registration_data = client_metadata.model_dump(by_alias=True, mode="json", exclude_none=True)
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if initial_access_token:
        headers["Authorization"] = f"Bearer {initial_access_token}"

    async with http_client_factory() as client:
        response = await client.post(str(metadata.registration_endpoint), json=registration_data, headers=headers)

    if response.status_code not in (200, 201):
        raise OAuthRegistrationError(f"Registration failed: {response.status_code} {response.text}")

    try:
        registration = ClientRegistration.model_validate_json(response.content)
    except ValidationError as e:
        raise OAuthRegistrationError(f"Invalid registration response: {e}") from e

    # the record is keyed by issuer and name, whatever the server echoes back
    return registration.model_copy(update={"issuer": metadata.issuer, "client_name": client_metadata.client_name})


def _basic_auth_header(client_id: str, client_secret: str) -> str:
    # RFC 6749 section 2.3.1: both parts are form-urlencoded before base64
    credentials = f"{quote(client_id, safe='')}:{quote(client_secret, safe='')}"
    return "Basic " + base64.b64encode(credentials.encode()).decode()


def create_client_assertion(client_id: str, client_secret: str, audience: str) -> str:
    """Build an RFC 7523 ``client_secret_jwt`` assertion signed with the client secret."""
    now = int(time.time())
    payload = {
        "iss": client_id,
        "sub": client_id,
        "aud": audience,
        "jti": secrets.token_urlsafe(32),
        "iat": now,
        "nbf": now,
        "exp": now + CLIENT_ASSERTION_LIFETIME,
    }
    return jwt.encode(payload, client_secret, algorithm="HS256")


async def client_credentials_grant(
    metadata: OAuthMetadata,
    registration: ClientRegistration,
    auth_method: ClientAuthMethod,
    resource: str,
    http_client_factory: HttpClientFactory = create_http_client,
) -> TokenGrantResult:
    """
    Request a client-credentials token scoped to ``resource`` (RFC 8707).

    The token is parsed only for successful responses; for any other status
    the caller decides what the status means.

    Raises:
        OAuthTokenError: If a successful response does not carry a valid token
    """
    data = {"grant_type": "client_credentials", "resource": resource}
    headers = {"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"}
    client_secret = registration.client_secret or ""

    if auth_method == "client_secret_basic":
        headers["Authorization"] = _basic_auth_header(registration.client_id, client_secret)
    else:
        data["client_id"] = registration.client_id
        data["client_assertion_type"] = CLIENT_ASSERTION_TYPE
        data["client_assertion"] = create_client_assertion(registration.client_id, client_secret, metadata.issuer)

    async with http_client_factory() as client:
        response = await client.post(str(metadata.token_endpoint), data=data, headers=headers)

    if not response.is_success:
        return TokenGrantResult(status_code=response.status_code)

    try:
        token = OAuthToken.model_validate_json(response.content)
    except ValidationError as e:
        raise OAuthTokenError(f"Invalid token response: {e}") from e
    return TokenGrantResult(status_code=response.status_code, token=token)


async def probe_registration(
    registration: ClientRegistration,
    http_client_factory: HttpClientFactory = create_http_client,
) -> bool:
    """
    Check an RFC 7592 registration through its management endpoint.

    Returns True only for a success status; network errors count as not registered.
    """
    if registration.registration_client_uri is None:
        raise ValueError(f"Client {registration.client_id} has no registration management URI")
    headers = {"Accept": "application/json"}
    if registration.registration_access_token:
        headers["Authorization"] = f"Bearer {registration.registration_access_token}"

    async with http_client_factory() as client:
        try:
            response = await client.get(registration.registration_client_uri, headers=headers)
        except httpx.HTTPError as e:
            logger.debug(f"Registration probe for {registration.client_id} failed: {e}")
            return False
    return response.is_success
