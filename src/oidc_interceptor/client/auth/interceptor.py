"""
OAuth2 resource authentication for HTTPX.

OidcInterceptor is an ``httpx.Auth`` that authenticates requests to protected
resources without pre-provisioned client credentials. On a 401 carrying an
RFC 9728 ``resource_metadata`` challenge it discovers the resource's
authorization server, registers a client there when none is registered,
obtains a resource-scoped client-credentials token, caches it and retries the
request once.
"""

import functools
import logging
import random
from collections.abc import AsyncGenerator, Callable, Generator, Iterable, Iterator, Sequence

import httpx

from oidc_interceptor.client.auth.authorization_server import DEFAULT_REDIRECT_URI, AuthorizationServer
from oidc_interceptor.client.auth.oauth import fetch_resource_metadata
from oidc_interceptor.client.auth.settings import InterceptorSettings
from oidc_interceptor.client.auth.utils import extract_resource_metadata_from_www_auth
from oidc_interceptor.client.repository import ClientRepository, YamlClientRepository
from oidc_interceptor.shared.auth import OAuthToken
from oidc_interceptor.shared.auth_utils import check_resource_allowed, resource_from_url
from oidc_interceptor.shared.httpx_utils import HttpClientFactory, create_http_client
from oidc_interceptor.shared.pending import PendingAcquisition

logger = logging.getLogger(__name__)

AuthorizationServerSelector = Callable[[Sequence[AuthorizationServer]], AuthorizationServer]


def select_random(servers: Sequence[AuthorizationServer]) -> AuthorizationServer:
    """Pick one of several authorization servers uniformly at random."""
    return random.choice(servers)


class OidcInterceptor(httpx.Auth):
    """
    Authentication for httpx.AsyncClient against OAuth2/OIDC protected resources.

    Tokens are cached per protected resource (``scheme://host/path``) for the
    lifetime of the interceptor. Concurrent requests that hit the same
    unauthenticated resource share a single discovery, registration and token
    request.
    """

    def __init__(
        self,
        client_name: str,
        repository: ClientRepository,
        *,
        initial_access_token: str | None = None,
        http_client_factory: HttpClientFactory = create_http_client,
        select_authorization_server: AuthorizationServerSelector = select_random,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
    ):
        """
        Initialize the interceptor.

        Args:
            client_name: Name the client registers under at authorization servers
            repository: Store for client registrations
            initial_access_token: Bearer token for protected registration endpoints
            http_client_factory: Builds the AsyncClients used for OAuth requests
            select_authorization_server: Picks a server when a resource names several
            redirect_uri: Redirect URI declared at registration; never used
        """
        self.client_name = client_name
        self.repository = repository
        self.initial_access_token = initial_access_token
        self.http_client_factory = http_client_factory
        self.select_authorization_server = select_authorization_server
        self.redirect_uri = redirect_uri

        # issuer reference -> server; entries are never invalidated
        self._authorization_servers: dict[str, AuthorizationServer] = {}
        # resource -> token; no expiry, a new 401 replaces the entry
        self._tokens: dict[str, OAuthToken] = {}
        self._pending: dict[str, PendingAcquisition[OAuthToken]] = {}

        self._client: httpx.AsyncClient | None = None
        self._previous_auth: httpx.Auth | None = None

    @classmethod
    def from_settings(cls, settings: InterceptorSettings | None = None, **kwargs) -> "OidcInterceptor":
        """Build an interceptor backed by a YAML registry, configured from settings or the environment."""
        settings = settings or InterceptorSettings()
        kwargs.setdefault("initial_access_token", settings.initial_access_token)
        kwargs.setdefault("redirect_uri", settings.redirect_uri)
        kwargs.setdefault(
            "http_client_factory",
            functools.partial(create_http_client, timeout=httpx.Timeout(settings.http_timeout)),
        )
        repository = kwargs.pop("repository", None) or YamlClientRepository(settings.registry_path)
        return cls(settings.client_name, repository, **kwargs)

    def install(self, client: httpx.AsyncClient) -> "OidcInterceptor":
        """Make this interceptor the auth of ``client``."""
        if self._client is not None:
            raise RuntimeError("Interceptor is already installed")
        self._previous_auth = client.auth
        client.auth = self
        self._client = client
        return self

    def uninstall(self) -> None:
        """Restore the auth the client had before ``install``."""
        if self._client is None:
            return
        self._client.auth = self._previous_auth
        self._client = None
        self._previous_auth = None

    def get_cached_token(self, resource: str) -> OAuthToken | None:
        return self._tokens.get(resource)

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("OidcInterceptor requires httpx.AsyncClient")
        yield request  # pragma: no cover

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        """
        Attach cached tokens and recover from 401 challenges.

        Requests that already carry an Authorization header, and their
        responses, are passed through untouched.
        """
        if "Authorization" in request.headers:
            yield request
            return

        # the body has to be replayable for the retry
        await request.aread()

        resource = resource_from_url(request.url)
        sent_token = await self._get_token_for_request(resource)
        if sent_token is not None:
            self._authorize(request, sent_token)

        response = yield request

        resource_metadata_url = extract_resource_metadata_from_www_auth(response)
        if resource_metadata_url is None:
            return

        token = await self._handle_unauthorized(resource, resource_metadata_url, sent_token)
        if token is None:
            # the caller gets the original 401
            return

        self._authorize(request, token)
        yield request

    def _authorize(self, request: httpx.Request, token: OAuthToken) -> None:
        request.headers["Authorization"] = f"Bearer {token.access_token}"

    async def _get_token_for_request(self, resource: str) -> OAuthToken | None:
        token = self._tokens.get(resource)
        if token is not None:
            return token
        pending = self._pending.get(resource)
        if pending is not None:
            logger.debug(f"Waiting for the in-flight token acquisition for {resource}")
            return await pending.wait()
        return None

    async def _handle_unauthorized(
        self,
        resource: str,
        resource_metadata_url: str,
        sent_token: OAuthToken | None,
    ) -> OAuthToken | None:
        """Return the token to retry with, or None to surface the 401."""
        pending = self._pending.get(resource)
        if pending is not None:
            await pending.wait()
            # a failed acquisition leaves the rejected token in the cache
            return self._fresh_token(resource, sent_token)

        cached = self._fresh_token(resource, sent_token)
        if cached is not None:
            # acquired by another request while this one was in flight
            return cached

        # registered before the first await so concurrent 401s coalesce onto it
        pending = PendingAcquisition[OAuthToken]()
        self._pending[resource] = pending
        try:
            token = await self._acquire_token(resource, resource_metadata_url)
        except Exception:
            logger.exception(f"Token acquisition for {resource} failed")
            pending.fail()
            raise
        else:
            if token is None:
                logger.warning(f"Authorization server rejected the client for {resource}")
                pending.fail()
            else:
                self._tokens[resource] = token
                pending.resolve(token)
            return token
        finally:
            if not pending.done:
                pending.fail()
            if self._pending.get(resource) is pending:
                del self._pending[resource]

    def _fresh_token(self, resource: str, sent_token: OAuthToken | None) -> OAuthToken | None:
        """The cached token for ``resource`` unless it is the one that was just rejected."""
        token = self._tokens.get(resource)
        if token is None or (sent_token is not None and token.access_token == sent_token.access_token):
            return None
        return token

    async def _acquire_token(self, resource: str, resource_metadata_url: str) -> OAuthToken | None:
        """Resource metadata -> authorization server -> client registration -> token."""
        logger.debug(f"Starting token acquisition for {resource}")

        resource_metadata = await fetch_resource_metadata(resource_metadata_url, self.http_client_factory)
        if not check_resource_allowed(resource, resource_metadata.resource):
            logger.warning(
                f"Resource metadata at {resource_metadata_url} describes {resource_metadata.resource}, not {resource}"
            )

        servers = list(self._discover_authorization_servers(resource_metadata.authorization_servers))
        server = servers[0] if len(servers) == 1 else self.select_authorization_server(servers)
        logger.debug(f"Using authorization server {server.issuer} for {resource}")

        client = await server.ensure_client_registered(self.client_name, self.initial_access_token)
        return await client.get_resource_access_token(resource)

    def _discover_authorization_servers(self, issuers: Iterable[str]) -> Iterator[AuthorizationServer]:
        for issuer in issuers:
            server = self._authorization_servers.get(issuer)
            if server is None:
                server = AuthorizationServer(
                    issuer,
                    self.repository,
                    http_client_factory=self.http_client_factory,
                    redirect_uri=self.redirect_uri,
                )
                self._authorization_servers[issuer] = server
            yield server


def install_oidc_interceptor(
    client: httpx.AsyncClient,
    settings: InterceptorSettings | None = None,
    **kwargs,
) -> OidcInterceptor:
    """Create an interceptor from settings and install it on ``client``."""
    return OidcInterceptor.from_settings(settings, **kwargs).install(client)
