"""Session-backed token storage with lazy refresh.

The store is a view over a host-owned ``SessionStore``. It moves between
three logical states:

- Unauthenticated: no complete token set in the session
- Authenticated: token set present and ``expires_at`` in the future
- Expired: token set present but ``expires_at`` has passed

Refresh only happens inside ``get_valid_access_token``, on access, within the
lifetime of the request that owns the session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from storefront_auth.auth.models.errors import StorefrontAuthError
from storefront_auth.auth.models.security import AuthorizationParameters
from storefront_auth.auth.models.tokens import (
    RefreshTokenRequest,
    TokenResponse,
    TokenSet,
    is_token_expired,
    now_ms,
)
from storefront_auth.auth.primitives.discovery import EndpointResolver
from storefront_auth.auth.services.tokens import TokenExchangeClient
from storefront_auth.auth.session import (
    AUTHORIZATION_KEYS,
    TOKEN_KEYS,
    SessionKey,
    SessionStore,
)

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Shares one in-flight refresh per refresh token.

    Concurrent requests for the same expired session carry the same refresh
    token; the first one performs the refresh and the others await its
    result. Entries are dropped as soon as the refresh settles.

    If the request performing the refresh is cancelled, waiting requests
    are not: one of them takes over and runs the refresh itself.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[TokenResponse]] = {}

    async def run(
        self,
        refresh_token: str,
        refresh: Callable[[], Awaitable[TokenResponse]],
    ) -> TokenResponse:
        while (future := self._in_flight.get(refresh_token)) is not None:
            logger.debug("Joining in-flight token refresh")
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                if not future.cancelled():
                    # This waiter itself was cancelled
                    raise
                logger.info("In-flight token refresh was cancelled, retrying")

        future = asyncio.get_running_loop().create_future()
        self._in_flight[refresh_token] = future
        try:
            result = await refresh()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited failure is not reported as lost.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._in_flight.pop(refresh_token, None)

    def pending(self) -> int:
        return len(self._in_flight)


class TokenSessionStore:
    """Persists customer tokens in the session and keeps them fresh."""

    def __init__(
        self,
        session: SessionStore,
        token_client: TokenExchangeClient,
        resolver: EndpointResolver,
        coordinator: RefreshCoordinator | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the token store.

        Args:
            session: Host session for the current request
            token_client: Token endpoint client used for refresh
            resolver: Resolves the token endpoint for a shop
            coordinator: Optional single-flight guard shared across requests
            clock: Returns the current time in epoch milliseconds
        """
        self.session = session
        self._token_client = token_client
        self._resolver = resolver
        self._coordinator = coordinator
        self._clock = clock

    def get_tokens(self) -> TokenSet | None:
        """Read the stored token set.

        Missing or malformed values are treated as Unauthenticated.
        """
        access_token = self.session.get(SessionKey.ACCESS_TOKEN)
        refresh_token = self.session.get(SessionKey.REFRESH_TOKEN)
        id_token = self.session.get(SessionKey.ID_TOKEN)
        expires_at = self.session.get(SessionKey.EXPIRES_AT)

        if not (access_token and refresh_token and id_token and expires_at):
            return None

        strings = (access_token, refresh_token, id_token)
        if not all(isinstance(value, str) for value in strings):
            logger.warning("Ignoring malformed token set in session")
            return None
        if isinstance(expires_at, bool):
            logger.warning("Ignoring malformed token expiry in session")
            return None
        try:
            expires_at = int(expires_at)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed token expiry in session")
            return None

        return TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            id_token=id_token,
            expires_at=expires_at,
        )

    def is_authenticated(self) -> bool:
        """True iff a token set is stored and has not expired.

        Never triggers a refresh.
        """
        tokens = self.get_tokens()
        if tokens is None:
            return False
        return not is_token_expired(tokens.expires_at, self._clock())

    def is_expired(self) -> bool:
        tokens = self.get_tokens()
        return tokens is not None and is_token_expired(tokens.expires_at, self._clock())

    def store_tokens(self, token_response: TokenResponse) -> TokenSet:
        """Persist a full token set issued by the authorization code exchange."""
        if not token_response.refresh_token or not token_response.id_token:
            raise ValueError("Token response must include refresh and identity tokens")

        tokens = TokenSet(
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token,
            id_token=token_response.id_token,
            expires_at=token_response.calculate_expires_at(self._clock()),
        )
        self.session.set(SessionKey.ACCESS_TOKEN, tokens.access_token)
        self.session.set(SessionKey.REFRESH_TOKEN, tokens.refresh_token)
        self.session.set(SessionKey.ID_TOKEN, tokens.id_token)
        self.session.set(SessionKey.EXPIRES_AT, tokens.expires_at)
        return tokens

    def apply_refresh(self, token_response: TokenResponse) -> None:
        """Overwrite the access token, refresh token and expiry.

        The identity token is kept until the next full authorization. A
        provider that omits a new refresh token leaves the old one in place.
        """
        self.session.set(SessionKey.ACCESS_TOKEN, token_response.access_token)
        if token_response.refresh_token:
            self.session.set(SessionKey.REFRESH_TOKEN, token_response.refresh_token)
        self.session.set(
            SessionKey.EXPIRES_AT, token_response.calculate_expires_at(self._clock())
        )

    async def get_valid_access_token(
        self, shop_domain: str | None, client_id: str
    ) -> str | None:
        """Return a usable access token, refreshing it if it has expired.

        Returns:
            The access token, or None when there is no session or the refresh
            failed (the token set is cleared in that case)
        """
        tokens = self.get_tokens()
        if tokens is None:
            return None

        if not is_token_expired(tokens.expires_at, self._clock()):
            return tokens.access_token

        logger.info("Access token expired, refreshing")
        try:
            token_response = await self._refresh(shop_domain, client_id, tokens)
        except StorefrontAuthError as e:
            logger.error(f"Failed to refresh access token: {e}")
            self.clear()
            return None

        self.apply_refresh(token_response)
        logger.info("Successfully refreshed access token")
        return token_response.access_token

    def store_authorization_parameters(self, params: AuthorizationParameters) -> None:
        self.session.set(SessionKey.CODE_VERIFIER, params.code_verifier)
        self.session.set(SessionKey.STATE, params.state)
        self.session.set(SessionKey.NONCE, params.nonce)

    def clear_authorization_parameters(self) -> None:
        for key in AUTHORIZATION_KEYS:
            self.session.unset(key)

    def clear_tokens(self) -> None:
        for key in TOKEN_KEYS:
            self.session.unset(key)

    def clear(self) -> None:
        """Remove the token set and any in-flight PKCE, state and nonce."""
        self.clear_tokens()
        self.clear_authorization_parameters()

    async def _refresh(
        self, shop_domain: str | None, client_id: str, tokens: TokenSet
    ) -> TokenResponse:
        async def refresh() -> TokenResponse:
            token_endpoint = await self._resolver.token_endpoint(shop_domain)
            return await self._token_client.refresh_access_token(
                RefreshTokenRequest(
                    token_endpoint=token_endpoint,
                    refresh_token=tokens.refresh_token,
                    client_id=client_id,
                )
            )

        if self._coordinator is None:
            return await refresh()
        return await self._coordinator.run(tokens.refresh_token, refresh)
