import base64
import json
from typing import Any

import httpx

from storefront_auth.config import CustomerAccountSettings

SHOP_DOMAIN = "mystore.myshopify.com"
CLIENT_ID = "shp_client-123"
REDIRECT_URI = "https://mystore.example.com/account/authorize/callback"
TOKEN_ENDPOINT = "https://shopify.com/authentication/1234/oauth/token"

OPENID_DOCUMENT = {
    "issuer": "https://shopify.com/authentication/1234",
    "authorization_endpoint": "https://shopify.com/authentication/1234/oauth/authorize",
    "token_endpoint": TOKEN_ENDPOINT,
    "end_session_endpoint": "https://shopify.com/authentication/1234/logout",
    "jwks_uri": "https://shopify.com/authentication/1234/.well-known/jwks.json",
}


def _segment(value: dict[str, Any]) -> str:
    raw = json.dumps(value).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def make_id_token(payload: dict[str, Any], header: dict[str, Any] | None = None) -> str:
    """Build an unsigned compact token with the given claims."""
    header = header or {"alg": "RS256", "typ": "JWT"}
    return f"{_segment(header)}.{_segment(payload)}.c2lnbmF0dXJl"


def json_response(status_code: int = 200, body: Any = None) -> httpx.Response:
    return httpx.Response(status_code, json=body if body is not None else {})


def text_response(status_code: int, text: str) -> httpx.Response:
    return httpx.Response(status_code, text=text)


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_settings(**overrides: Any) -> CustomerAccountSettings:
    values: dict[str, Any] = {
        "store_domain": SHOP_DOMAIN,
        "client_id": CLIENT_ID,
        "session_secret": "test-session-secret",
    }
    values.update(overrides)
    return CustomerAccountSettings(_env_file=None, **values)
