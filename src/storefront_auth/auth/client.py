"""Customer account authentication client.

Coordinates discovery, PKCE, token exchange, session storage and the
customer API to provide the consumer-facing operations route handlers call:
initiate login, handle the callback, log out, get a valid access token and
query the customer API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from storefront_auth.auth.models.errors import APIDiscoveryError, LoginRequiredError
from storefront_auth.auth.models.tokens import TokenSet
from storefront_auth.auth.primitives.discovery import (
    EndpointResolver,
    StorefrontDiscovery,
)
from storefront_auth.auth.services.api import CustomerAPIClient
from storefront_auth.auth.services.flow import AuthorizationFlow
from storefront_auth.auth.services.session import (
    RefreshCoordinator,
    TokenSessionStore,
)
from storefront_auth.auth.services.tokens import TokenExchangeClient
from storefront_auth.auth.session import SessionStore
from storefront_auth.config import CustomerAccountSettings, get_settings

logger = logging.getLogger(__name__)


class CustomerAccountClient:
    """Complete customer account client for storefront authentication.

    One instance is shared by the application; every operation takes the
    session of the current request explicitly.
    """

    def __init__(
        self,
        settings: CustomerAccountSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            settings: Resolved settings; loaded from the environment if omitted
            http_client: Optional shared HTTP client for all services
        """
        self.settings = settings or get_settings()
        timeout = self.settings.http_timeout
        user_agent = self.settings.user_agent

        # Initialize service components
        self.discovery = StorefrontDiscovery(user_agent, timeout, http_client)
        self.token_client = TokenExchangeClient(user_agent, timeout, http_client)
        self.api_client = CustomerAPIClient(user_agent, timeout, http_client)
        self.resolver = EndpointResolver(self.discovery, self.settings.shop_id)
        self.refresh_coordinator = RefreshCoordinator()
        self.flow = AuthorizationFlow(self.token_client, self.resolver)

    def token_store(self, session: SessionStore) -> TokenSessionStore:
        return TokenSessionStore(
            session,
            self.token_client,
            self.resolver,
            coordinator=self.refresh_coordinator,
        )

    def is_authenticated(self, session: SessionStore) -> bool:
        return self.token_store(session).is_authenticated()

    async def start_login(
        self,
        session: SessionStore,
        redirect_uri: str,
        locale: str | None = None,
        prompt: str | None = None,
    ) -> str:
        """Store fresh PKCE, state and nonce and return the authorization URL.

        Raises:
            ConfigurationError: If the client id or endpoint source is missing
            DiscoveryError: If the authorization endpoint cannot be resolved
        """
        return await self.flow.start_login(
            session,
            client_id=self.settings.require_client_id(),
            shop_domain=self.settings.require_endpoint_source(),
            redirect_uri=redirect_uri,
            locale=locale,
            prompt=prompt,
        )

    async def handle_callback(
        self,
        session: SessionStore,
        query: dict[str, str],
        redirect_uri: str,
    ) -> TokenSet:
        """Validate the callback, exchange the code and persist the tokens."""
        return await self.flow.handle_callback(
            session,
            query,
            client_id=self.settings.require_client_id(),
            shop_domain=self.settings.require_endpoint_source(),
            redirect_uri=redirect_uri,
        )

    async def logout(
        self, session: SessionStore, post_logout_redirect_uri: str
    ) -> str | None:
        """Clear the session; return the provider end-session URL if any."""
        return await self.flow.logout(
            session,
            shop_domain=self.settings.store_domain,
            post_logout_redirect_uri=post_logout_redirect_uri,
        )

    async def get_valid_access_token(self, session: SessionStore) -> str | None:
        """Return a valid access token, refreshing it when expired.

        Raises:
            ConfigurationError: If the client id or endpoint source is missing
        """
        return await self.token_store(session).get_valid_access_token(
            self.settings.require_endpoint_source(),
            self.settings.require_client_id(),
        )

    async def graphql_endpoint(self) -> str:
        """Resolve the customer account GraphQL endpoint.

        Raises:
            APIDiscoveryError: If the endpoint cannot be discovered
        """
        api_config = await self.discovery.discover_api_endpoints(
            self.settings.require_store_domain()
        )
        if not api_config.graphql_api:
            raise APIDiscoveryError(
                "Customer account API configuration has no graphql_api", url=""
            )
        return api_config.graphql_api

    async def query_customer_api(
        self,
        session: SessionStore,
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Run a GraphQL operation with the customer's access token.

        Raises:
            LoginRequiredError: If the session holds no usable token
            DiscoveryError: If the API endpoint cannot be discovered
            CustomerAPIError: If the API rejects the request
        """
        access_token = await self.get_valid_access_token(session)
        if access_token is None:
            raise LoginRequiredError("Customer is not logged in")

        return await self.api_client.request(
            await self.graphql_endpoint(),
            access_token,
            query,
            variables=variables,
            operation_name=operation_name,
        )

    async def close(self) -> None:
        """Close all service connections."""
        await self.discovery.close()
        await self.token_client.close()
        await self.api_client.close()

    async def __aenter__(self) -> CustomerAccountClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
