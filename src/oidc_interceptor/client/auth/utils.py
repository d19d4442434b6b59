import re

import httpx

_AUTH_PARAM_TEMPLATE = r'(?:^|[\s,]){field}\s*=\s*(?:"([^"]*)"|([^\s,]+))'


def extract_field_from_www_auth(response: httpx.Response, field_name: str, auth_scheme: str = "Bearer") -> str | None:
    """
    Extract a parameter from the WWW-Authenticate header of a response.

    Only challenges of ``auth_scheme`` are considered; the scheme name is
    matched case-insensitively as per RFC 7235. Both quoted-string and token
    parameter values are accepted.

    Returns:
        The parameter value if found, None otherwise
    """
    www_auth_header = response.headers.get("WWW-Authenticate")
    if not www_auth_header:
        return None

    challenge = www_auth_header.strip()
    scheme, _, params = challenge.partition(" ")
    if scheme.lower() != auth_scheme.lower():
        return None

    match = re.search(_AUTH_PARAM_TEMPLATE.format(field=re.escape(field_name)), params, re.IGNORECASE)
    if not match:
        return None
    value = match.group(1) if match.group(1) is not None else match.group(2)
    return value or None


def extract_resource_metadata_from_www_auth(response: httpx.Response) -> str | None:
    """
    Extract the protected resource metadata URL from a 401 challenge.

    The header must look like ``Bearer ..., resource_metadata="<URI>"``; any
    other scheme, or a Bearer challenge without the parameter, yields None.
    See https://datatracker.ietf.org/doc/html/rfc9728#section-5.1
    """
    if response.status_code != 401:
        return None
    return extract_field_from_www_auth(response, "resource_metadata")
