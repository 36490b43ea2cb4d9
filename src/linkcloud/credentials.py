"""Credential extraction from HTTP Basic authorization headers.

The gateway keeps no identity store of its own: the username and password of
the Basic token are the storage account credentials and are forwarded
verbatim to the selected backend.
"""

import base64
from dataclasses import dataclass, field
from typing import Optional

from linkcloud.exceptions import MalformedAuthError, MissingAuthError

AUTH_SCHEME = "Basic"


@dataclass(frozen=True)
class Credentials:
    """Storage account credentials taken from one request.

    Both fields are non-empty once extraction succeeds. The password is kept
    out of repr() so credentials never end up in logs by accident.
    """

    username: str
    password: str = field(repr=False)


def extract_credentials(authorization: Optional[str]) -> Credentials:
    """Parse an ``Authorization`` header value into credentials.

    Args:
        authorization: Raw header value, or None if the header was absent

    Returns:
        Credentials with non-empty username and password

    Raises:
        MissingAuthError: If the header is absent
        MalformedAuthError: If the scheme is not ``Basic``, the payload is not
            base64, or the decoded text is not ``username:password`` with both
            parts non-empty
    """
    if authorization is None:
        raise MissingAuthError("Authorization header is required")

    scheme, _, payload = authorization.partition(" ")
    if scheme != AUTH_SCHEME:
        raise MalformedAuthError(f"Unsupported authorization scheme: {scheme!r}")

    try:
        decoded = base64.b64decode(payload, validate=True).decode("utf-8")
    except ValueError as e:
        raise MalformedAuthError("Authorization payload is not valid base64-encoded UTF-8") from e

    # Split on the first colon only; account keys may contain colons
    username, separator, password = decoded.partition(":")
    if not separator or not username or not password:
        raise MalformedAuthError("Authorization payload must be 'username:password'")

    return Credentials(username=username, password=password)


def encode_basic_auth(username: str, password: str) -> str:
    """Build a ``Basic`` header value for the given credentials."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"{AUTH_SCHEME} {token}"
