"""Starlette routes for the customer account flow.

The handlers only translate between HTTP and the authentication client:
every protocol decision lives in ``storefront_auth.auth``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlencode

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from storefront_auth.auth.client import CustomerAccountClient
from storefront_auth.auth.models.discovery import build_shop_endpoints
from storefront_auth.auth.models.errors import (
    ConfigurationError,
    StorefrontAuthError,
)
from storefront_auth.auth.services.guards import (
    AuthRedirect,
    redirect_if_authenticated,
    require_customer_auth,
)
from storefront_auth.config import CustomerAccountSettings, get_settings
from storefront_auth.web.session import StarletteSession

logger = logging.getLogger(__name__)

LOGIN_ERROR_MESSAGES = {
    "invalid_callback": "Invalid authorization callback",
    "invalid_state": "Invalid state parameter (CSRF detected)",
    "missing_verifier": "Missing code verifier",
    "invalid_nonce": "Invalid nonce (possible replay attack)",
    "invalid_id_token": "Invalid identity token",
    "token_exchange_failed": "Failed to exchange authorization code",
    "token_refresh_failed": "Your session expired, please log in again",
    "discovery_failed": "Customer accounts are not available for this store",
    "configuration_error": "Customer accounts are not configured",
    "login_required": "Please log in to continue",
    "pkce_failed": "Could not start a secure login, please try again",
    "callback_failed": "Login could not be completed",
    "customer_api_failed": "Your account could not be loaded",
    # Provider error values (RFC 6749 Section 4.1.2.1)
    "access_denied": "Login was cancelled",
    "invalid_request": "The login request was rejected",
    "unauthorized_client": "This store is not allowed to request customer login",
    "invalid_scope": "The requested account access is not available",
    "server_error": "The login service had a problem, please try again",
    "temporarily_unavailable": "The login service is busy, please try again",
}
DEFAULT_LOGIN_ERROR_MESSAGE = "Something went wrong while logging in"

NOT_SET = "NOT SET"
PROVIDER_SETTINGS_URL = "https://partners.shopify.com/"

CUSTOMER_PROFILE_QUERY = """
  query GetCustomerProfile {
    customer {
      id
      firstName
      lastName
      displayName
      emailAddress {
        emailAddress
      }
    }
  }
"""


class CustomerAccountRoutes:
    """HTTP handlers bound to one ``CustomerAccountClient``."""

    def __init__(self, client: CustomerAccountClient) -> None:
        self.client = client
        self.settings = client.settings

    def routes(self) -> list[Route]:
        s = self.settings
        return [
            Route(s.authorize_path, self.authorize, methods=["GET"]),
            Route(s.callback_path, self.callback, methods=["GET"]),
            Route(s.logout_path, self.logout, methods=["GET", "POST"]),
            Route(s.login_path, self.login, methods=["GET"]),
            Route(s.account_path, self.account, methods=["GET"]),
            Route(s.debug_path, self.debug, methods=["GET"]),
        ]

    async def authorize(self, request: Request) -> Response:
        """Store PKCE, state and nonce, then send the customer to the provider."""
        session = StarletteSession(request)
        try:
            authorization_url = await self.client.start_login(
                session,
                self._redirect_uri(request),
                locale=request.query_params.get("locale"),
                prompt=request.query_params.get("prompt"),
            )
        except StorefrontAuthError as e:
            logger.error(f"Could not start customer login: {e}")
            return self._login_redirect(e.error_code)

        return RedirectResponse(authorization_url, status_code=302)

    async def callback(self, request: Request) -> Response:
        session = StarletteSession(request)
        try:
            await self.client.handle_callback(
                session, dict(request.query_params), self._redirect_uri(request)
            )
        except StorefrontAuthError as e:
            logger.error(f"Authorization callback failed: {e}")
            return self._login_redirect(e.error_code)

        return RedirectResponse(self.settings.account_path, status_code=302)

    async def logout(self, request: Request) -> Response:
        session = StarletteSession(request)
        post_logout_redirect_uri = self._absolute(
            request, self.settings.logout_redirect_path
        )

        logout_url = await self.client.logout(session, post_logout_redirect_uri)
        return RedirectResponse(
            logout_url or self.settings.logout_redirect_path, status_code=302
        )

    async def login(self, request: Request) -> Response:
        session = StarletteSession(request)
        redirect_if_authenticated(session, self.client)

        error = request.query_params.get("error")
        message = None
        if error:
            message = LOGIN_ERROR_MESSAGES.get(error, DEFAULT_LOGIN_ERROR_MESSAGE)
        return JSONResponse(
            {
                "error": error,
                "message": message,
                "login_url": self.settings.authorize_path,
            }
        )

    async def account(self, request: Request) -> Response:
        session = StarletteSession(request)
        try:
            await require_customer_auth(session, self.client)
        except StorefrontAuthError as e:
            logger.error(f"Customer account guard failed: {e}")
            return self._login_redirect(e.error_code)

        try:
            data = await self.client.query_customer_api(
                session, CUSTOMER_PROFILE_QUERY, operation_name="GetCustomerProfile"
            )
        except StorefrontAuthError as e:
            logger.error(f"Customer profile request failed: {e}")
            return JSONResponse({"error": e.error_code}, status_code=502)
        return JSONResponse(data)

    async def debug(self, request: Request) -> Response:
        """Report the resolved configuration for setting up the provider app.

        The callback URL shown is the exact value sent as ``redirect_uri``.
        """
        s = self.settings
        redirect_uri = self._redirect_uri(request)
        endpoints = build_shop_endpoints(s.shop_id) if s.shop_id else None

        return JSONResponse(
            {
                "configuration": {
                    "deployment_url": self._absolute(request, ""),
                    "shop_domain": s.store_domain,
                    "shop_id": s.shop_id,
                    "client_id": s.client_id,
                    "redirect_uri": redirect_uri,
                    "authorization_url": (
                        endpoints.authorization_endpoint if endpoints else None
                    ),
                    "token_endpoint": endpoints.token_endpoint if endpoints else None,
                },
                "instructions": {
                    "message": "Configure this exact callback URL in the "
                    "customer account API application settings:",
                    "callback_url": redirect_uri,
                    "provider_settings_url": PROVIDER_SETTINGS_URL,
                },
                "environment_variables": {
                    "PUBLIC_STORE_DOMAIN": s.store_domain or NOT_SET,
                    "SHOP_ID": s.shop_id or NOT_SET,
                    "PUBLIC_CUSTOMER_ACCOUNT_API_URL": (
                        s.customer_account_api_url or NOT_SET
                    ),
                    "PUBLIC_CUSTOMER_ACCOUNT_API_CLIENT_ID": s.client_id or NOT_SET,
                },
            }
        )

    def _redirect_uri(self, request: Request) -> str:
        return self._absolute(request, self.settings.callback_path)

    def _absolute(self, request: Request, path: str) -> str:
        origin = f"{request.url.scheme}://{request.url.netloc}"
        return f"{origin}{path}"

    def _login_redirect(self, error_code: str) -> RedirectResponse:
        query = urlencode({"error": error_code})
        return RedirectResponse(
            f"{self.settings.login_path}?{query}", status_code=302
        )


async def _handle_auth_redirect(request: Request, exc: AuthRedirect) -> Response:
    return RedirectResponse(exc.location, status_code=exc.status_code)


def create_app(
    settings: CustomerAccountSettings | None = None,
    client: CustomerAccountClient | None = None,
) -> Starlette:
    """Build the Starlette application.

    Raises:
        ConfigurationError: If no session secret is configured
    """
    settings = settings or (client.settings if client else get_settings())
    if not settings.session_secret:
        raise ConfigurationError("SESSION_SECRET must be set to sign session cookies")

    client = client or CustomerAccountClient(settings)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        await client.close()

    handlers = CustomerAccountRoutes(client)
    return Starlette(
        routes=handlers.routes(),
        middleware=[
            Middleware(
                SessionMiddleware,
                secret_key=settings.session_secret,
                same_site="lax",
            )
        ],
        exception_handlers={AuthRedirect: _handle_auth_redirect},
        lifespan=lifespan,
    )
