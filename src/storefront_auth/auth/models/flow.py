"""Authorization flow models.

Contains models for authorization requests, callback parsing and the
end-session (logout) redirect.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Minimum scope covering OpenID identity and full customer API access.
CUSTOMER_ACCOUNT_SCOPE = "openid email customer-account-api:full"


def _append_query(endpoint: str, params: list[tuple[str, str]]) -> str:
    parts = urlsplit(endpoint)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Invalid endpoint URL: {endpoint!r}")

    query = parse_qsl(parts.query, keep_blank_values=True) + params
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the code + PKCE flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    state: str
    code_challenge: str
    nonce: str | None = None
    locale: str | None = None
    prompt: str | None = None  # "none" requests silent authentication

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = [
            ("scope", CUSTOMER_ACCOUNT_SCOPE),
            ("client_id", self.client_id),
            ("response_type", "code"),
            ("redirect_uri", self.redirect_uri),
            ("state", self.state),
            ("code_challenge", self.code_challenge),
            ("code_challenge_method", "S256"),
        ]

        if self.nonce:
            params.append(("nonce", self.nonce))
        if self.locale:
            params.append(("locale", self.locale))
        if self.prompt:
            params.append(("prompt", self.prompt))

        return _append_query(self.authorization_endpoint, params)


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> AuthorizationResponse:
        """Build from callback query parameters; empty values count as absent."""
        return cls(
            code=query.get("code") or None,
            state=query.get("state") or None,
            error=query.get("error") or None,
            error_description=query.get("error_description") or None,
        )

    def is_error(self) -> bool:
        return self.error is not None

    def is_complete(self) -> bool:
        return self.code is not None and self.state is not None


@dataclass(frozen=True)
class LogoutRequest:
    """End-session redirect parameters (OpenID Connect RP-initiated logout)."""

    end_session_endpoint: str
    id_token: str
    post_logout_redirect_uri: str

    def build_logout_url(self) -> str:
        return _append_query(
            self.end_session_endpoint,
            [
                ("id_token_hint", self.id_token),
                ("post_logout_redirect_uri", self.post_logout_redirect_uri),
            ],
        )
