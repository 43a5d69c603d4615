"""Tests for route guards and the customer account client."""

from unittest.mock import AsyncMock

import pytest

from storefront_auth.auth.client import CustomerAccountClient
from storefront_auth.auth.models.errors import (
    ConfigurationError,
    LoginRequiredError,
)
from storefront_auth.auth.models.tokens import now_ms
from storefront_auth.auth.services.guards import (
    AuthRedirect,
    optional_customer_auth,
    redirect_if_authenticated,
    require_customer_auth,
)
from storefront_auth.auth.session import MemorySession, SessionKey
from tests.auth.conftest import json_response, make_settings, text_response

GRAPHQL_ENDPOINT = "https://shopify.com/1234/account/customer/api/2025-01/graphql"


def _authenticated_session(expires_in_ms: int = 60_000) -> MemorySession:
    session = MemorySession()
    session.set(SessionKey.ACCESS_TOKEN, "access-token-xyz")
    session.set(SessionKey.REFRESH_TOKEN, "refresh-token-abc")
    session.set(SessionKey.ID_TOKEN, "id.token.sig")
    session.set(SessionKey.EXPIRES_AT, now_ms() + expires_in_ms)
    return session


class ClientTest:
    def setup_method(self):
        self.http_client = AsyncMock()
        self.client = CustomerAccountClient(
            make_settings(shop_id="1234"), http_client=self.http_client
        )


class TestRequireCustomerAuth(ClientTest):
    async def test_redirects_without_session(self):
        """Test anonymous requests are sent to login."""
        # Act & Assert
        with pytest.raises(AuthRedirect) as exc_info:
            await require_customer_auth(MemorySession(), self.client)

        assert exc_info.value.location == "/account/authorize"
        assert exc_info.value.status_code == 302

    async def test_returns_valid_token(self):
        token = await require_customer_auth(_authenticated_session(), self.client)

        assert token == "access-token-xyz"
        self.http_client.post.assert_not_called()

    async def test_failed_refresh_redirects_and_clears(self):
        """Test a failed refresh forces a new login."""
        # Arrange
        session = _authenticated_session(expires_in_ms=-10)
        self.http_client.post.return_value = text_response(400, "invalid_grant")

        # Act & Assert
        with pytest.raises(AuthRedirect):
            await require_customer_auth(session, self.client)

        assert session.to_dict() == {}

    async def test_missing_configuration_is_not_swallowed(self):
        """Test the required guard surfaces configuration problems."""
        client = CustomerAccountClient(
            make_settings(client_id=None), http_client=self.http_client
        )

        with pytest.raises(ConfigurationError):
            await require_customer_auth(MemorySession(), client)


class TestOptionalCustomerAuth(ClientTest):
    async def test_returns_none_without_session(self):
        assert await optional_customer_auth(MemorySession(), self.client) is None

    async def test_missing_configuration_returns_none(self):
        """Test the optional guard never raises for configuration."""
        client = CustomerAccountClient(
            make_settings(client_id=None, store_domain=None),
            http_client=self.http_client,
        )

        assert await optional_customer_auth(_authenticated_session(), client) is None

    async def test_repeated_calls_make_no_network_requests(self):
        """Test repeated optional auth reuses the unexpired token."""
        session = _authenticated_session()

        first = await optional_customer_auth(session, self.client)
        second = await optional_customer_auth(session, self.client)

        assert first == second == "access-token-xyz"
        self.http_client.post.assert_not_called()
        self.http_client.get.assert_not_called()


class TestRedirectIfAuthenticated(ClientTest):
    def test_authenticated_customer_is_redirected(self):
        """Test logged-in customers skip the login page."""
        with pytest.raises(AuthRedirect) as exc_info:
            redirect_if_authenticated(_authenticated_session(), self.client)

        assert exc_info.value.location == "/account"

    def test_custom_destination(self):
        with pytest.raises(AuthRedirect) as exc_info:
            redirect_if_authenticated(
                _authenticated_session(), self.client, destination="/orders"
            )

        assert exc_info.value.location == "/orders"

    def test_anonymous_customer_passes(self):
        redirect_if_authenticated(MemorySession(), self.client)

    def test_expired_session_passes(self):
        redirect_if_authenticated(_authenticated_session(-10), self.client)


class TestQueryCustomerAPI(ClientTest):
    async def test_requires_login(self):
        """Test API queries need a logged-in customer."""
        with pytest.raises(LoginRequiredError):
            await self.client.query_customer_api(MemorySession(), "{ customer { id } }")

    async def test_discovers_endpoint_and_sends_token(self):
        """Test the GraphQL endpoint is discovered and the token attached."""
        # Arrange
        self.http_client.get.return_value = json_response(
            200, {"graphql_api": GRAPHQL_ENDPOINT}
        )
        self.http_client.post.return_value = json_response(
            200, {"data": {"customer": {"id": "1"}}}
        )

        # Act
        result = await self.client.query_customer_api(
            _authenticated_session(), "{ customer { id } }"
        )

        # Assert
        assert result == {"data": {"customer": {"id": "1"}}}
        assert self.http_client.get.call_args[0][0] == (
            "https://mystore.myshopify.com/.well-known/customer-account-api"
        )
        call_args = self.http_client.post.call_args
        assert call_args[0][0] == GRAPHQL_ENDPOINT
        assert call_args[1]["headers"]["Authorization"] == "access-token-xyz"


async def test_client_closes_shared_http_client():
    """Test async context exit closes every service."""
    http_client = AsyncMock()
    client = CustomerAccountClient(make_settings(), http_client=http_client)

    async with client:
        pass

    assert http_client.aclose.await_count == 3
