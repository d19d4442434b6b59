"""
OAuth2 resource authentication for HTTPX.

Discovers authorization servers from resource challenges, registers clients
dynamically and obtains client-credentials tokens scoped to each resource.
"""

from oidc_interceptor.client.auth.authorization_server import AuthorizationServer
from oidc_interceptor.client.auth.exceptions import (
    OAuthDiscoveryError,
    OAuthFlowError,
    OAuthRegistrationError,
    OAuthTokenError,
    ResourceMetadataError,
)
from oidc_interceptor.client.auth.interceptor import (
    AuthorizationServerSelector,
    OidcInterceptor,
    install_oidc_interceptor,
    select_random,
)
from oidc_interceptor.client.auth.registered_client import RegisteredClient
from oidc_interceptor.client.auth.settings import InterceptorSettings

__all__ = [
    "AuthorizationServer",
    "AuthorizationServerSelector",
    "InterceptorSettings",
    "OAuthDiscoveryError",
    "OAuthFlowError",
    "OAuthRegistrationError",
    "OAuthTokenError",
    "OidcInterceptor",
    "RegisteredClient",
    "ResourceMetadataError",
    "install_oidc_interceptor",
    "select_random",
]
