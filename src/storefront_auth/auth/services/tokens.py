"""Token endpoint client.

Implements RFC 6749 token endpoint interactions with PKCE (RFC 7636):
authorization code exchange and refresh token exchange. Neither operation
retries; callers decide the fallback.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from storefront_auth.auth.models.errors import (
    TokenError,
    TokenExchangeError,
    TokenRefreshError,
)
from storefront_auth.auth.models.tokens import (
    RefreshTokenRequest,
    TokenRequest,
    TokenResponse,
)
from storefront_auth.auth.primitives.discovery import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)


class TokenExchangeClient:
    """Exchanges authorization codes and refresh tokens at the token endpoint.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749
    and always identifies itself, since providers may reject anonymous
    clients with 403.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the token client.

        Args:
            user_agent: User-Agent header sent with every request
            timeout: HTTP request timeout in seconds
            http_client: Optional shared client; one is created otherwise
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for access, refresh and identity tokens.

        Implements RFC 6749 Section 4.1.3 - Access Token Request, including
        the PKCE code_verifier.

        Raises:
            TokenExchangeError: If the endpoint rejects the exchange, is
                unreachable, or returns an unusable body
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")
        form_data = token_request.to_form_data()
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        return await self._post_form(
            token_request.token_endpoint, form_data, TokenExchangeError
        )

    async def refresh_access_token(
        self, refresh_request: RefreshTokenRequest
    ) -> TokenResponse:
        """Refresh an access token using a refresh token.

        Implements RFC 6749 Section 6. The response carries no identity token.

        Raises:
            TokenRefreshError: If the endpoint rejects the refresh, is
                unreachable, or returns an unusable body
        """
        logger.debug(f"Refreshing access token at {refresh_request.token_endpoint}")

        return await self._post_form(
            refresh_request.token_endpoint,
            refresh_request.to_form_data(),
            TokenRefreshError,
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()

    async def _post_form(
        self,
        endpoint: str,
        form_data: dict[str, str],
        error_cls: type[TokenError],
    ) -> TokenResponse:
        operation = form_data["grant_type"]
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

        try:
            response = await self._http_client.post(
                endpoint, data=form_data, headers=headers
            )
        except httpx.HTTPError as e:
            raise error_cls(f"HTTP error during {operation} grant: {e}") from e

        if not response.is_success:
            logger.warning(
                f"Token endpoint rejected {operation} grant with "
                f"{response.status_code}: {response.text}"
            )
            raise error_cls(
                f"{operation} grant failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise error_cls(
                f"Invalid token response format: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info(f"Token endpoint accepted {operation} grant")
        return token_response
