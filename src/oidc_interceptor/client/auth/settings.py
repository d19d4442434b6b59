from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from oidc_interceptor.client.auth.authorization_server import DEFAULT_REDIRECT_URI


class InterceptorSettings(BaseSettings):
    """Interceptor settings.

    All settings can be configured via environment variables with the prefix
    OIDC_INTERCEPTOR_. For example, OIDC_INTERCEPTOR_CLIENT_NAME=billing-worker
    sets client_name="billing-worker".
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_INTERCEPTOR_",
        env_file=".env",
        extra="ignore",
    )

    client_name: str = "oidc-interceptor"
    """Name the client registers under at every authorization server."""

    registry_path: Path = Path("data/clients.yaml")
    """YAML file holding the client registrations."""

    initial_access_token: str | None = None
    """Bearer token presented to registration endpoints that are not open."""

    redirect_uri: str = DEFAULT_REDIRECT_URI
    """Redirect URI declared at registration; the authorization code flow is never run."""

    http_timeout: float = Field(default=30.0, gt=0)
    """Timeout in seconds for OAuth requests."""
