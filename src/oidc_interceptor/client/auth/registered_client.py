import logging
from typing import TYPE_CHECKING

from oidc_interceptor.client.auth.exceptions import OAuthTokenError
from oidc_interceptor.client.auth.oauth import ClientAuthMethod, client_credentials_grant, probe_registration
from oidc_interceptor.shared.auth import ClientRegistration, OAuthToken

if TYPE_CHECKING:
    from oidc_interceptor.client.auth.authorization_server import AuthorizationServer

logger = logging.getLogger(__name__)

# tried in order; the next method is used only when the previous one got a 401
TOKEN_AUTH_METHODS: tuple[ClientAuthMethod, ...] = ("client_secret_basic", "client_secret_jwt")


class RegisteredClient:
    """A client registration bound to the authorization server that issued it."""

    def __init__(self, registration: ClientRegistration, server: "AuthorizationServer"):
        self.registration = registration
        self.server = server

    @property
    def client_id(self) -> str:
        return self.registration.client_id

    async def get_resource_access_token(self, resource: str) -> OAuthToken | None:
        """
        Obtain a client-credentials access token scoped to ``resource``.

        Authenticates with client_secret_basic first and falls back to
        client_secret_jwt when the token endpoint answers 401.

        Returns:
            The token, or None when the token endpoint rejected both methods

        Raises:
            OAuthTokenError: On any other unsuccessful token response
        """
        metadata = await self.server.get_metadata()

        for auth_method in TOKEN_AUTH_METHODS:
            result = await client_credentials_grant(
                metadata,
                self.registration,
                auth_method,
                resource,
                http_client_factory=self.server.http_client_factory,
            )
            if result.status_code == 401:
                logger.debug(f"Token endpoint rejected {auth_method} for client {self.client_id}")
                continue
            if result.token is None:
                raise OAuthTokenError(f"Token request failed: {result.status_code}")
            logger.info(f"Obtained access token for {resource} from {self.server.issuer}")
            return result.token

        return None

    async def is_registered(self) -> bool:
        """Whether the authorization server still knows this client."""
        if self.registration.registration_client_uri is None:
            # nothing to probe; trust the stored record
            return True
        return await probe_registration(self.registration, http_client_factory=self.server.http_client_factory)
