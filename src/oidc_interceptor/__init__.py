from oidc_interceptor.client.auth import (
    AuthorizationServer,
    InterceptorSettings,
    OAuthFlowError,
    OidcInterceptor,
    RegisteredClient,
    install_oidc_interceptor,
)
from oidc_interceptor.client.repository import (
    ClientRepository,
    InMemoryClientRepository,
    YamlClientRepository,
    client_id_for,
)
from oidc_interceptor.shared.auth import ClientRegistration, OAuthToken

__all__ = [
    "AuthorizationServer",
    "ClientRegistration",
    "ClientRepository",
    "InMemoryClientRepository",
    "InterceptorSettings",
    "OAuthFlowError",
    "OAuthToken",
    "OidcInterceptor",
    "RegisteredClient",
    "YamlClientRepository",
    "client_id_for",
    "install_oidc_interceptor",
]
