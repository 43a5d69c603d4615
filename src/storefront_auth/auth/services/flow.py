"""Customer authorization flow orchestration service.

Coordinates the complete authorization code flow including PKCE security,
state and nonce validation, and callback handling. All state lives in the
session passed to each call.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Mapping

from storefront_auth.auth.models.errors import (
    AuthorizationDeniedError,
    InvalidCallbackError,
    MalformedTokenError,
    MissingVerifierError,
    NonceMismatchError,
    OpenIDDiscoveryError,
    StateMismatchError,
    StorefrontAuthError,
)
from storefront_auth.auth.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    LogoutRequest,
)
from storefront_auth.auth.models.tokens import TokenRequest, TokenSet, now_ms
from storefront_auth.auth.primitives.discovery import EndpointResolver
from storefront_auth.auth.primitives.id_token import get_nonce
from storefront_auth.auth.primitives.pkce import PKCEManager
from storefront_auth.auth.services.session import TokenSessionStore
from storefront_auth.auth.services.tokens import TokenExchangeClient
from storefront_auth.auth.session import SessionKey, SessionStore

logger = logging.getLogger(__name__)


class AuthorizationFlow:
    """Orchestrates customer authorization code flows.

    Handles the complete authorization flow from initial request generation
    through callback processing, including:
    - PKCE, state and nonce generation and storage
    - Authorization URL construction
    - Callback validation (CSRF state, PKCE verifier, replay nonce)
    - Token persistence and end-session redirects
    """

    def __init__(
        self,
        token_client: TokenExchangeClient,
        resolver: EndpointResolver,
        pkce_manager: PKCEManager | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._token_client = token_client
        self._resolver = resolver
        self._pkce_manager = pkce_manager or PKCEManager()
        self._clock = clock

    def token_store(self, session: SessionStore) -> TokenSessionStore:
        return TokenSessionStore(
            session, self._token_client, self._resolver, clock=self._clock
        )

    async def start_login(
        self,
        session: SessionStore,
        *,
        client_id: str,
        shop_domain: str | None,
        redirect_uri: str,
        locale: str | None = None,
        prompt: str | None = None,
    ) -> str:
        """Start an authorization attempt.

        Generates the PKCE pair, state and nonce, stores them in the session
        and builds the authorization URL the customer is redirected to.

        Args:
            session: Session of the current request
            client_id: Public client identifier
            shop_domain: Storefront domain used when endpoints are discovered
            redirect_uri: Callback URI registered with the provider
            locale: Optional UI locale for the provider's login page
            prompt: Optional prompt value; "none" requests silent authentication

        Returns:
            Authorization URL for the browser redirect

        Raises:
            DiscoveryError: If the authorization endpoint cannot be resolved
        """
        config = await self._resolver.auth_endpoints(shop_domain)
        if not config.authorization_endpoint:
            raise OpenIDDiscoveryError(
                "OpenID configuration has no authorization_endpoint",
                url=config.issuer or "",
            )

        params = self._pkce_manager.generate_parameters()
        self.token_store(session).store_authorization_parameters(params)

        authorization_url = AuthorizationRequest(
            authorization_endpoint=config.authorization_endpoint,
            client_id=client_id,
            redirect_uri=redirect_uri,
            state=params.state,
            code_challenge=params.code_challenge,
            nonce=params.nonce,
            locale=locale,
            prompt=prompt,
        ).build_authorization_url()

        logger.info(f"Generated authorization URL for client {client_id}")
        return authorization_url

    async def handle_callback(
        self,
        session: SessionStore,
        query: Mapping[str, str],
        *,
        client_id: str,
        shop_domain: str | None,
        redirect_uri: str,
    ) -> TokenSet:
        """Complete an authorization attempt from the provider's callback.

        Validation strictly precedes the code exchange, and the exchange
        strictly precedes token persistence. Tokens are only written once
        every check has passed.

        Args:
            session: Session holding the in-flight PKCE, state and nonce
            query: Callback query parameters
            client_id: Public client identifier
            shop_domain: Storefront domain used when endpoints are discovered
            redirect_uri: The redirect URI sent in the authorization request

        Returns:
            The stored token set

        Raises:
            AuthorizationDeniedError: Provider returned an error
            InvalidCallbackError: Code or state missing
            StateMismatchError: State does not match the session
            MissingVerifierError: Session lost the PKCE verifier
            DiscoveryError: Token endpoint could not be resolved
            TokenExchangeError: Provider rejected the code exchange
            MalformedTokenError: Identity token missing or undecodable
            NonceMismatchError: Identity token nonce does not match the session
        """
        response = AuthorizationResponse.from_query(query)

        if response.is_error():
            logger.warning(
                f"Authorization callback contained error: {response.error} - "
                f"{response.error_description}"
            )
            raise AuthorizationDeniedError(response.error, response.error_description)

        if not response.is_complete():
            logger.warning("Authorization callback missing code or state parameter")
            raise InvalidCallbackError("Missing code or state parameter")

        store = self.token_store(session)
        try:
            return await self._complete(
                store, response, client_id, shop_domain, redirect_uri
            )
        except StorefrontAuthError:
            store.clear_authorization_parameters()
            raise

    async def logout(
        self,
        session: SessionStore,
        *,
        shop_domain: str | None,
        post_logout_redirect_uri: str,
    ) -> str | None:
        """Clear the customer session and build the provider logout URL.

        Returns:
            The end-session URL when an identity token was held and the
            endpoint resolved, otherwise None
        """
        store = self.token_store(session)
        id_token = session.get(SessionKey.ID_TOKEN)
        store.clear()

        if not id_token:
            return None

        try:
            config = await self._resolver.auth_endpoints(shop_domain)
        except StorefrontAuthError as e:
            logger.error(f"Logout endpoint resolution failed: {e}")
            return None

        if not config.end_session_endpoint:
            logger.warning("OpenID configuration has no end_session_endpoint")
            return None

        return LogoutRequest(
            end_session_endpoint=config.end_session_endpoint,
            id_token=id_token,
            post_logout_redirect_uri=post_logout_redirect_uri,
        ).build_logout_url()

    async def _complete(
        self,
        store: TokenSessionStore,
        response: AuthorizationResponse,
        client_id: str,
        shop_domain: str | None,
        redirect_uri: str,
    ) -> TokenSet:
        session = store.session

        if not _matches(session.get(SessionKey.STATE), response.state):
            logger.error("State mismatch - possible CSRF attack")
            raise StateMismatchError("State parameter mismatch")

        code_verifier = session.get(SessionKey.CODE_VERIFIER)
        if not code_verifier:
            logger.error("Missing code verifier in session")
            raise MissingVerifierError("Missing PKCE code verifier in session")

        token_endpoint = await self._resolver.token_endpoint(shop_domain)
        token_response = await self._token_client.exchange_code_for_token(
            TokenRequest(
                token_endpoint=token_endpoint,
                code=response.code,
                redirect_uri=redirect_uri,
                client_id=client_id,
                code_verifier=code_verifier,
            )
        )

        if not token_response.id_token or not token_response.refresh_token:
            raise MalformedTokenError(
                "Token response is missing id_token or refresh_token"
            )

        stored_nonce = session.get(SessionKey.NONCE)
        if stored_nonce:
            if not _matches(stored_nonce, get_nonce(token_response.id_token)):
                logger.error("Nonce mismatch - possible replay attack")
                raise NonceMismatchError("Identity token nonce mismatch")

        tokens = store.store_tokens(token_response)
        store.clear_authorization_parameters()

        logger.info("Authorization callback complete - customer tokens stored")
        return tokens


def _matches(expected: object, actual: object) -> bool:
    """Constant-time comparison of two session-bound strings."""
    if not isinstance(expected, str) or not isinstance(actual, str):
        return False
    return secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))
