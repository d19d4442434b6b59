from typing import Any, Literal

from pydantic import AnyHttpUrl, AnyUrl, BaseModel, Field, field_validator


class OAuthToken(BaseModel):
    """See https://datatracker.ietf.org/doc/html/rfc6749#section-5.1"""

    access_token: str
    token_type: Literal["Bearer"] = "Bearer"
    expires_in: int | None = None
    scope: str | None = None
    refresh_token: str | None = None

    @field_validator("token_type", mode="before")
    @classmethod
    def normalize_token_type(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            # Bearer is title-cased in RFC 6750, so we normalize it
            # https://datatracker.ietf.org/doc/html/rfc6750#section-4
            return v.title()
        return v


class OAuthClientMetadata(BaseModel):
    """RFC 7591 OAuth 2.0 Dynamic Client Registration metadata.
    See https://datatracker.ietf.org/doc/html/rfc7591#section-2
    for the full list of fields.
    """

    redirect_uris: list[AnyUrl] | None = None
    token_endpoint_auth_method: (
        Literal["none", "client_secret_post", "client_secret_basic", "client_secret_jwt", "private_key_jwt"] | None
    ) = None
    # client_credentials is what we use; authorization_code is declared because
    # some registration endpoints refuse clients without it
    grant_types: list[Literal["authorization_code", "client_credentials", "refresh_token"] | str] = [
        "authorization_code",
        "client_credentials",
    ]
    response_types: list[str] | None = None
    scope: str | None = None

    client_name: str | None = None
    client_uri: AnyHttpUrl | None = None
    logo_uri: AnyHttpUrl | None = None
    contacts: list[str] | None = None
    software_id: str | None = None
    software_version: str | None = None


class ClientRegistration(OAuthClientMetadata):
    """RFC 7591 registration response plus the RFC 7592 management credentials.

    ``issuer`` is not part of the wire response; it is stamped on by the
    authorization server that performed the registration so the record can be
    looked up again by ``(issuer, client_name)``.
    """

    client_id: str
    client_secret: str | None = None
    client_id_issued_at: int | None = None
    client_secret_expires_at: int | None = None
    registration_client_uri: str | None = None
    registration_access_token: str | None = None
    issuer: str | None = None


class OAuthMetadata(BaseModel):
    """RFC 8414 / OpenID Connect Discovery authorization server metadata.
    See https://datatracker.ietf.org/doc/html/rfc8414#section-2

    ``issuer`` is kept as the literal string the server returned, since it has
    to compare equal to the issuer reference it was discovered from.
    """

    issuer: str
    token_endpoint: AnyHttpUrl
    authorization_endpoint: AnyHttpUrl | None = None
    registration_endpoint: AnyHttpUrl | None = None
    jwks_uri: AnyHttpUrl | None = None
    scopes_supported: list[str] | None = None
    response_types_supported: list[str] | None = None
    grant_types_supported: list[str] | None = None
    token_endpoint_auth_methods_supported: list[str] | None = None
    token_endpoint_auth_signing_alg_values_supported: list[str] | None = None
    revocation_endpoint: AnyHttpUrl | None = None
    introspection_endpoint: AnyHttpUrl | None = None
    mtls_endpoint_aliases: dict[str, Any] | None = None


class ProtectedResourceMetadata(BaseModel):
    """RFC 9728 OAuth 2.0 Protected Resource Metadata.
    See https://datatracker.ietf.org/doc/html/rfc9728#section-2
    """

    resource: str
    # issuer references are matched verbatim against discovery documents,
    # so they are not normalized through AnyHttpUrl
    authorization_servers: list[str] = Field(..., min_length=1)
    bearer_methods_supported: list[str] | None = Field(default=["header"])
    scopes_supported: list[str] | None = None
    resource_name: str | None = None
