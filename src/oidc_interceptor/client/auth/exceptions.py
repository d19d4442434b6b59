class OAuthFlowError(Exception):
    """Base exception for OAuth flow errors."""


class ResourceMetadataError(OAuthFlowError):
    """Raised when protected resource metadata cannot be fetched or parsed."""


class OAuthDiscoveryError(OAuthFlowError):
    """Raised when authorization server discovery fails."""


class OAuthRegistrationError(OAuthFlowError):
    """Raised when dynamic client registration fails."""


class OAuthTokenError(OAuthFlowError):
    """Raised when the token endpoint fails for a reason other than rejecting the client."""
