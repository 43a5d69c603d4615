"""Route guards built on the token session store.

Page handlers call these at the top of a request. A guard that decides the
request cannot continue raises ``AuthRedirect``; the web layer turns it into
an HTTP redirect.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from storefront_auth.auth.models.errors import StorefrontAuthError
from storefront_auth.auth.session import SessionStore

if TYPE_CHECKING:
    from storefront_auth.auth.client import CustomerAccountClient

logger = logging.getLogger(__name__)


class AuthRedirect(Exception):
    """Aborts the current request with a redirect to ``location``."""

    def __init__(self, location: str, status_code: int = 302) -> None:
        super().__init__(f"Redirect to {location}")
        self.location = location
        self.status_code = status_code


async def require_customer_auth(
    session: SessionStore, client: CustomerAccountClient
) -> str:
    """Return a valid access token or redirect to the login initiation route.

    Expired tokens are refreshed first; a failed refresh clears the session
    and redirects.

    Raises:
        AuthRedirect: If no valid token can be obtained
        ConfigurationError: If the client id or shop is not configured
    """
    access_token = await client.get_valid_access_token(session)
    if access_token is None:
        raise AuthRedirect(client.settings.authorize_path)
    return access_token


async def optional_customer_auth(
    session: SessionStore, client: CustomerAccountClient
) -> str | None:
    """Return a valid access token, or None for a logged-out experience.

    Never raises for authentication problems, including missing
    configuration.
    """
    try:
        return await client.get_valid_access_token(session)
    except StorefrontAuthError as e:
        logger.debug(f"Optional customer auth unavailable: {e}")
        return None


def redirect_if_authenticated(
    session: SessionStore,
    client: CustomerAccountClient,
    destination: str | None = None,
) -> None:
    """Redirect away from login-style pages when already authenticated.

    Raises:
        AuthRedirect: If the session holds an unexpired token set
    """
    if client.is_authenticated(session):
        raise AuthRedirect(destination or client.settings.account_path)
