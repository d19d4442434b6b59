import base64
import itertools
import json
import secrets
from collections import Counter
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, unquote

import anyio.lowlevel
import httpx
import jwt
import pytest

from oidc_interceptor.client.auth import OidcInterceptor
from oidc_interceptor.client.repository import YamlClientRepository
from oidc_interceptor.shared.auth_utils import resource_from_url

RS_URL = "https://rs.example"
AS_ISSUER = "https://as.example"
RESOURCE_METADATA_URL = f"{RS_URL}/.well-known/oauth-protected-resource"


@dataclass
class RecordedRequest:
    """Copy of a request as it was sent; the interceptor mutates and resends the original."""

    method: str
    url: httpx.URL
    headers: httpx.Headers
    content: bytes

    @classmethod
    def capture(cls, request: httpx.Request) -> "RecordedRequest":
        return cls(request.method, request.url, httpx.Headers(request.headers), request.content)


class FakeOAuthServer:
    """A protected resource plus any number of authorization servers behind one MockTransport.

    Hosts starting with ``as`` are authorization servers whose issuer is
    ``https://<host>``; ``rs.example`` is the protected resource.
    """

    def __init__(self) -> None:
        self.authorization_servers = [AS_ISSUER]
        self.calls: Counter[str] = Counter()
        self.requests: list[RecordedRequest] = []
        # client_id -> registration response
        self.clients: dict[str, dict[str, Any]] = {}
        self.registration_requests: list[tuple[RecordedRequest, dict[str, Any]]] = []
        # access token -> resource it was issued for
        self.tokens: dict[str, str] = {}
        self.token_requests: list[dict[str, str]] = []
        self.auth_methods_seen: list[str] = []

        self.rejected_auth_methods: set[str] = set()
        self.token_error_status: int | None = None
        self.discovery_error_status: int | None = None
        self.discovery_overrides: dict[str, Any] = {}
        self.required_initial_access_token: str | None = None
        self._counter = itertools.count(1)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        # give other tasks a chance to run, like a real network round trip
        await anyio.lowlevel.checkpoint()
        self.requests.append(RecordedRequest.capture(request))
        if request.url.host == "rs.example":
            return self._resource(request)
        if request.url.host.startswith("as"):
            return self._authorization_server(request)
        return httpx.Response(404)

    def client_factory(self, **kwargs: Any) -> httpx.AsyncClient:
        """HttpClientFactory for the interceptor's OAuth calls."""
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), **kwargs)

    def issuer_of(self, request: httpx.Request) -> str:
        return f"https://{request.url.host}"

    def _resource(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/.well-known/oauth-protected-resource":
            self.calls["resource_metadata"] += 1
            return httpx.Response(
                200,
                json={
                    "resource": RS_URL,
                    "authorization_servers": self.authorization_servers,
                    "bearer_methods_supported": ["header"],
                },
            )
        if path.startswith("/public"):
            return httpx.Response(200, text="Public route")
        if path.startswith("/basic"):
            return httpx.Response(401, headers={"WWW-Authenticate": 'Basic realm="rs"'})
        if path.startswith("/no-challenge"):
            return httpx.Response(401)

        authorization = request.headers.get("Authorization", "")
        token = authorization.removeprefix("Bearer ")
        if authorization.startswith("Bearer ") and self.tokens.get(token) == resource_from_url(request.url):
            return httpx.Response(200, text=f"Protected route {path}")
        return httpx.Response(
            401,
            headers={"WWW-Authenticate": f'Bearer error="invalid_token", resource_metadata="{RESOURCE_METADATA_URL}"'},
        )

    def _authorization_server(self, request: httpx.Request) -> httpx.Response:
        issuer = self.issuer_of(request)
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            self.calls["discovery"] += 1
            self.calls[f"discovery:{issuer}"] += 1
            if self.discovery_error_status is not None:
                return httpx.Response(self.discovery_error_status)
            document = {
                "issuer": issuer,
                "authorization_endpoint": f"{issuer}/authorize",
                "token_endpoint": f"{issuer}/token",
                "registration_endpoint": f"{issuer}/register",
                "grant_types_supported": ["authorization_code", "client_credentials"],
                "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_jwt"],
            }
            document.update(self.discovery_overrides)
            return httpx.Response(200, json=document)
        if path == "/register" and request.method == "POST":
            return self._register(request, issuer)
        if path.startswith("/register/") and request.method == "GET":
            return self._read_registration(request, path.removeprefix("/register/"))
        if path == "/token" and request.method == "POST":
            return self._token(request, issuer)
        return httpx.Response(404)

    def _register(self, request: httpx.Request, issuer: str) -> httpx.Response:
        self.calls["registration"] += 1
        body = json.loads(request.content)
        self.registration_requests.append((RecordedRequest.capture(request), body))
        if self.required_initial_access_token is not None:
            if request.headers.get("Authorization") != f"Bearer {self.required_initial_access_token}":
                return httpx.Response(401, json={"error": "invalid_token"})

        n = next(self._counter)
        client_id = f"client-{n}"
        registration = {
            **body,
            "client_id": client_id,
            "client_secret": secrets.token_hex(32),
            "client_id_issued_at": 1700000000,
            "client_secret_expires_at": 0,
            "registration_client_uri": f"{issuer}/register/{client_id}",
            "registration_access_token": f"rat-{n}",
        }
        self.clients[client_id] = registration
        return httpx.Response(201, json=registration)

    def _read_registration(self, request: httpx.Request, client_id: str) -> httpx.Response:
        self.calls["registration_probe"] += 1
        registration = self.clients.get(client_id)
        if registration is None:
            return httpx.Response(401, json={"error": "invalid_token"})
        if request.headers.get("Authorization") != f"Bearer {registration['registration_access_token']}":
            return httpx.Response(401, json={"error": "invalid_token"})
        return httpx.Response(200, json=registration)

    def _token(self, request: httpx.Request, issuer: str) -> httpx.Response:
        self.calls["token"] += 1
        form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        self.token_requests.append(form)

        auth_method, client_id = self._authenticate(request, form, issuer)
        self.auth_methods_seen.append(auth_method)
        if client_id is None or auth_method in self.rejected_auth_methods:
            return httpx.Response(401, json={"error": "invalid_client"})
        if self.token_error_status is not None:
            return httpx.Response(self.token_error_status, json={"error": "server_error"})

        access_token = f"token-{next(self._counter)}"
        self.tokens[access_token] = form["resource"]
        return httpx.Response(200, json={"access_token": access_token, "token_type": "bearer", "expires_in": 3600})

    def _authenticate(self, request: httpx.Request, form: dict[str, str], issuer: str) -> tuple[str, str | None]:
        authorization = request.headers.get("Authorization", "")
        if authorization.startswith("Basic "):
            decoded = base64.b64decode(authorization.removeprefix("Basic ")).decode()
            client_id, _, client_secret = (unquote(part) for part in decoded.partition(":"))
            registration = self.clients.get(client_id)
            if registration is None or registration["client_secret"] != client_secret:
                return "client_secret_basic", None
            return "client_secret_basic", client_id

        client_id = form.get("client_id", "")
        registration = self.clients.get(client_id)
        if registration is None or "client_assertion" not in form:
            return "none", None
        try:
            claims = jwt.decode(
                form["client_assertion"],
                registration["client_secret"],
                algorithms=["HS256"],
                audience=issuer,
            )
        except jwt.InvalidTokenError:
            return "client_secret_jwt", None
        if claims["iss"] != client_id or claims["sub"] != client_id:
            return "client_secret_jwt", None
        return "client_secret_jwt", client_id


@pytest.fixture
def fake_server() -> FakeOAuthServer:
    return FakeOAuthServer()


@pytest.fixture
def registry_path(tmp_path):
    return tmp_path / "data" / "clients.yaml"


@pytest.fixture
def repository(registry_path) -> YamlClientRepository:
    return YamlClientRepository(registry_path)


@pytest.fixture
def interceptor(repository, fake_server) -> OidcInterceptor:
    return OidcInterceptor("test", repository, http_client_factory=fake_server.client_factory)


@pytest.fixture
def http_client(interceptor, fake_server) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(fake_server.handler),
        base_url=RS_URL,
        auth=interceptor,
    )
