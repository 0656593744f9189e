from typing import Mapping

from jose import jwt
from jose.utils import base64url_encode

TOKEN_FIELDS = ("filetype", "key", "outputtype", "title", "url")


def b64url(data: bytes) -> str:
    """Unpadded URL-safe base64, as used by every segment of a signed token."""
    return base64url_encode(data).decode("ascii")


def sign_fields(fields: Mapping[str, str], secret: str) -> str | None:
    """Build an HS256 token over ``fields`` for the conversion engine.

    Returns None when no secret is configured; the caller then sends the
    request without a token. Only tokens are produced here, verification
    is the engine's job.
    """
    if not secret:
        return None
    # jose keeps the claim order, so sort for a stable payload
    claims = dict(sorted(fields.items()))
    return jwt.encode(claims, secret, algorithm="HS256")
