"""
In-memory implementation of ClientRepository.

Registrations are lost when the process exits, so every process registers
its clients again. Useful for tests and short-lived tools.
"""

import anyio

from oidc_interceptor.client.repository.base import ClientRepository, is_same_client, matches_name
from oidc_interceptor.shared.auth import ClientRegistration


class InMemoryClientRepository(ClientRepository):
    def __init__(self) -> None:
        self._clients: list[ClientRegistration] = []
        self._lock = anyio.Lock()

    async def get_by_name(self, issuer: str, client_name: str) -> ClientRegistration | None:
        async with self._lock:
            return next((c for c in self._clients if matches_name(c, issuer, client_name)), None)

    async def get(self, client_id: str) -> ClientRegistration | None:
        async with self._lock:
            return next((c for c in self._clients if c.client_id == client_id), None)

    async def create(self, registration: ClientRegistration) -> None:
        async with self._lock:
            self._clients = [c for c in self._clients if not is_same_client(c, registration)] + [registration]

    async def delete_by_name(self, issuer: str, client_name: str) -> None:
        async with self._lock:
            self._clients = [c for c in self._clients if not matches_name(c, issuer, client_name)]
