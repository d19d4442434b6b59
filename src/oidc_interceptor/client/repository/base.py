"""ClientRepository - Abstract interface for client registration storage."""

import uuid
from abc import ABC, abstractmethod

from oidc_interceptor.shared.auth import ClientRegistration

CLIENT_ID_NAMESPACE = uuid.UUID("5ec17d33-2d73-4a1c-9bac-88a4e527f273")


def client_id_for(issuer: str, client_name: str) -> str:
    """Deterministic registry identity of the client ``client_name`` at ``issuer``.

    The name is hashed (UUIDv5) inside a namespace that is itself the UUIDv5 of
    the issuer, so the same pair always maps to the same id.
    """
    issuer_namespace = uuid.uuid5(CLIENT_ID_NAMESPACE, str(issuer))
    return f"{client_name}-{uuid.uuid5(issuer_namespace, client_name)}"


def matches_name(registration: ClientRegistration, issuer: str, client_name: str) -> bool:
    """True if ``registration`` is the record of ``client_name`` at ``issuer``.

    Servers that accept the proposed id store it as ``client_id``; servers that
    assign their own are matched through the stamped issuer and client name.
    """
    if registration.client_id == client_id_for(issuer, client_name):
        return True
    return registration.issuer == str(issuer) and registration.client_name == client_name


def is_same_client(a: ClientRegistration, b: ClientRegistration) -> bool:
    if a.client_id == b.client_id:
        return True
    if a.issuer is None or a.client_name is None:
        return False
    return matches_name(b, a.issuer, a.client_name)


class ClientRepository(ABC):
    """Abstract interface for persisted client registrations.

    Implementations hold at most one registration per client identity and
    serialize their operations so that concurrent callers never observe a
    half-written collection.
    """

    @abstractmethod
    async def get_by_name(self, issuer: str, client_name: str) -> ClientRegistration | None:
        """Get the registration of ``client_name`` at ``issuer``, or None."""

    @abstractmethod
    async def get(self, client_id: str) -> ClientRegistration | None:
        """Get a registration by client id, or None."""

    @abstractmethod
    async def create(self, registration: ClientRegistration) -> None:
        """Store a registration, replacing the existing record of the same client."""

    @abstractmethod
    async def delete_by_name(self, issuer: str, client_name: str) -> None:
        """Remove the registration of ``client_name`` at ``issuer`` if present."""
