"""Token set and token endpoint models.

Contains the persisted token set, token endpoint request parameters and the
token response shape.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def calculate_expires_at(expires_in: int, now: int | None = None) -> int:
    """Convert a relative ``expires_in`` (seconds) to absolute epoch ms."""
    if now is None:
        now = now_ms()
    return now + int(expires_in) * 1000


def is_token_expired(expires_at: int, now: int | None = None) -> bool:
    """Check expiry with an inclusive boundary and no grace window."""
    if now is None:
        now = now_ms()
    return now >= expires_at


@dataclass(frozen=True)
class TokenSet:
    """Tokens held for an authenticated customer.

    ``expires_at`` is an absolute epoch-millisecond timestamp computed when
    the access token was issued.
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    id_token: str = field(repr=False)
    expires_at: int

    def is_expired(self, now: int | None = None) -> bool:
        return is_token_expired(self.expires_at, now)


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636).
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str = field(repr=False)

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).
        """
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code": self.code,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token request parameters (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str = field(repr=False)
    client_id: str

    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "refresh_token": self.refresh_token,
        }


class TokenResponse(BaseModel):
    """Successful token endpoint response.

    Refresh responses carry no ``id_token``; the provider only issues one on
    the authorization code exchange. Unknown fields are kept verbatim.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    id_token: str | None = None
    token_type: str | None = None
    scope: str | None = None

    def calculate_expires_at(self, now: int | None = None) -> int:
        return calculate_expires_at(self.expires_in, now)
