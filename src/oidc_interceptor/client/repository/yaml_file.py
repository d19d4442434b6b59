"""
YAML file implementation of ClientRepository.

The file holds the registrations as one YAML sequence. An empty collection is
represented by the absence of the file.
"""

import logging
from pathlib import Path

import anyio
import yaml

from oidc_interceptor.client.repository.base import ClientRepository, is_same_client, matches_name
from oidc_interceptor.shared.auth import ClientRegistration

logger = logging.getLogger(__name__)


class YamlClientRepository(ClientRepository):
    """
    Client registrations persisted in a YAML file.

    Every operation runs under one lock owned by the instance, so the
    read-modify-write halves of two writers never interleave and readers never
    see a partially written file. Several instances pointing at the same file
    are not coordinated.
    """

    def __init__(self, filename: str | Path) -> None:
        self.filename = Path(filename)
        self.filename.parent.mkdir(parents=True, exist_ok=True)
        self._path = anyio.Path(self.filename)
        self._lock = anyio.Lock()

    async def get_by_name(self, issuer: str, client_name: str) -> ClientRegistration | None:
        async with self._lock:
            clients = await self._read()
        return next((c for c in clients if matches_name(c, issuer, client_name)), None)

    async def get(self, client_id: str) -> ClientRegistration | None:
        async with self._lock:
            clients = await self._read()
        return next((c for c in clients if c.client_id == client_id), None)

    async def create(self, registration: ClientRegistration) -> None:
        async with self._lock:
            clients = await self._read()
            for i, existing in enumerate(clients):
                if is_same_client(existing, registration):
                    clients[i] = registration
                    break
            else:
                clients.append(registration)
            await self._save(clients)

    async def delete_by_name(self, issuer: str, client_name: str) -> None:
        async with self._lock:
            clients = await self._read()
            remaining = [c for c in clients if not matches_name(c, issuer, client_name)]
            if remaining:
                await self._save(remaining)
            else:
                await self._path.unlink(missing_ok=True)
                logger.debug(f"Removed empty client registry {self.filename}")

    async def _read(self) -> list[ClientRegistration]:
        if not await self._path.exists():
            return []
        text = await self._path.read_text(encoding="utf-8")
        data = yaml.safe_load(text) or []
        return [ClientRegistration.model_validate(item) for item in data]

    async def _save(self, clients: list[ClientRegistration]) -> None:
        data = [c.model_dump(mode="json", exclude_none=True) for c in clients]
        await self._path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
