"""Identity token claims extraction.

Splits a compact three-segment token and decodes its header and payload.
The signature is NOT verified: a decoded token is a claims view used for
nonce replay detection, never a proof of authenticity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt

from storefront_auth.auth.models.errors import MalformedTokenError


@dataclass(frozen=True)
class DecodedToken:
    header: dict[str, Any]
    payload: dict[str, Any]
    signature: str

    @property
    def nonce(self) -> str | None:
        return self.payload.get("nonce")


def decode_id_token(token: str) -> DecodedToken:
    """Decode an identity token without verifying its signature.

    Args:
        token: Compact token ``header.payload.signature``

    Returns:
        DecodedToken with the parsed header and payload objects

    Raises:
        MalformedTokenError: If the token does not have exactly three non-empty
            segments, or a segment is not base64url-encoded JSON object text
    """
    if not isinstance(token, str):
        raise MalformedTokenError("Identity token must be a string")

    segments = token.split(".")
    if len(segments) != 3 or not all(segments):
        raise MalformedTokenError(
            f"Invalid token format: expected 3 non-empty segments, got {len(segments)}"
        )

    try:
        header = jwt.get_unverified_header(token)
        # Expiry, audience and issuer checks are skipped along with the signature.
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise MalformedTokenError(f"Invalid identity token: {e}") from e

    return DecodedToken(header=header, payload=payload, signature=segments[2])


def get_nonce(token: str) -> str | None:
    """Return the ``nonce`` claim of an identity token, if present."""
    return decode_id_token(token).nonce
