from oidc_interceptor.client.repository.base import ClientRepository, client_id_for
from oidc_interceptor.client.repository.memory import InMemoryClientRepository
from oidc_interceptor.client.repository.yaml_file import YamlClientRepository

__all__ = [
    "ClientRepository",
    "InMemoryClientRepository",
    "YamlClientRepository",
    "client_id_for",
]
