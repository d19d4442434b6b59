import logging

from oidc_interceptor.client.auth.oauth import discover, register_client
from oidc_interceptor.client.auth.registered_client import RegisteredClient
from oidc_interceptor.client.repository import ClientRepository
from oidc_interceptor.shared.auth import OAuthClientMetadata, OAuthMetadata
from oidc_interceptor.shared.httpx_utils import HttpClientFactory, create_http_client
from oidc_interceptor.shared.pending import Deferred

logger = logging.getLogger(__name__)

# Some registration endpoints insist on a redirect URI even though the
# authorization code flow is never run.
DEFAULT_REDIRECT_URI = "https://example.org/nonexistent"


class AuthorizationServer:
    """
    One authorization server, identified by its issuer.

    Discovery runs once, on first use; every public method waits for it, so
    calls made while it is in flight share that attempt. Client registrations
    live in the repository, this object keeps no copy of them.
    """

    def __init__(
        self,
        issuer: str,
        repository: ClientRepository,
        *,
        http_client_factory: HttpClientFactory = create_http_client,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
    ):
        self.issuer = str(issuer)
        self.repository = repository
        self.http_client_factory = http_client_factory
        self.redirect_uri = redirect_uri
        self._ready: Deferred[OAuthMetadata] = Deferred(self._discover)

    def __repr__(self) -> str:
        return f"AuthorizationServer(issuer={self.issuer!r})"

    async def get_metadata(self) -> OAuthMetadata:
        """The discovered server metadata."""
        return await self._ready.get()

    async def ensure_client_registered(
        self,
        client_name: str,
        initial_access_token: str | None = None,
    ) -> RegisteredClient:
        """
        Return a live registration for ``client_name``, registering one if needed.

        A stored registration is probed first. When the server no longer knows
        it, the stale record is deleted and a fresh registration takes its place.

        Args:
            client_name: Name the client registers under
            initial_access_token: Bearer token for protected registration endpoints
        """
        await self._ready.get()

        client = await self._get_saved_client(client_name)
        if client is not None:
            if await client.is_registered():
                logger.debug(f"Reusing client {client.client_id} at {self.issuer}")
                return client
            logger.warning(f"Client {client.client_id} is no longer registered at {self.issuer}, re-registering")
            await self.repository.delete_by_name(self.issuer, client_name)

        return await self._register(client_name, initial_access_token)

    async def _get_saved_client(self, client_name: str) -> RegisteredClient | None:
        registration = await self.repository.get_by_name(self.issuer, client_name)
        if registration is None:
            return None
        return RegisteredClient(registration, self)

    async def _register(self, client_name: str, initial_access_token: str | None) -> RegisteredClient:
        metadata = await self._ready.get()
        client_metadata = OAuthClientMetadata(
            client_name=client_name,
            grant_types=["authorization_code", "client_credentials"],
            redirect_uris=[self.redirect_uri],  # type: ignore[list-item]
        )
        registration = await register_client(
            metadata,
            client_metadata,
            initial_access_token,
            http_client_factory=self.http_client_factory,
        )
        await self.repository.create(registration)
        logger.info(f"Registered client {registration.client_id} at {self.issuer}")
        return RegisteredClient(registration, self)

    async def _discover(self) -> OAuthMetadata:
        return await discover(self.issuer, http_client_factory=self.http_client_factory)
