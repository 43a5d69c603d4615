"""Tests for storefront endpoint discovery.

Covers both well-known documents, the error each one raises, and the
resolver's precedence between a configured shop id and discovery.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from storefront_auth.auth.models.errors import (
    APIDiscoveryError,
    ConfigurationError,
    OpenIDDiscoveryError,
)
from storefront_auth.auth.primitives.discovery import (
    DEFAULT_USER_AGENT,
    EndpointResolver,
    StorefrontDiscovery,
)
from tests.auth.conftest import (
    OPENID_DOCUMENT,
    SHOP_DOMAIN,
    TOKEN_ENDPOINT,
    json_response,
    text_response,
)


API_BASE = "https://shopify.com/1234/account/customer/api"


class TestStorefrontDiscovery:
    def setup_method(self):
        # Arrange
        self.discovery = StorefrontDiscovery()
        self.discovery._http_client = AsyncMock()

    async def test_discovers_auth_endpoints(self):
        """Test OpenID configuration discovery."""
        # Arrange
        self.discovery._http_client.get.return_value = json_response(
            200, OPENID_DOCUMENT
        )

        # Act
        config = await self.discovery.discover_auth_endpoints(SHOP_DOMAIN)

        # Assert
        assert config.authorization_endpoint == (
            OPENID_DOCUMENT["authorization_endpoint"]
        )
        assert config.token_endpoint == TOKEN_ENDPOINT
        assert config.end_session_endpoint == OPENID_DOCUMENT["end_session_endpoint"]

        call_args = self.discovery._http_client.get.call_args
        assert call_args[0][0] == (
            "https://mystore.myshopify.com/.well-known/openid-configuration"
        )
        headers = call_args[1]["headers"]
        assert headers["User-Agent"] == DEFAULT_USER_AGENT
        assert headers["Accept"] == "application/json"

    async def test_discovers_api_endpoints(self):
        """Test customer account API configuration discovery."""
        # Arrange
        self.discovery._http_client.get.return_value = json_response(
            200,
            {
                "graphql_api": f"{API_BASE}/2025-01/graphql",
                "mcp_api": f"{API_BASE}/mcp",
            },
        )

        # Act
        config = await self.discovery.discover_api_endpoints(SHOP_DOMAIN)

        # Assert
        assert config.graphql_api.endswith("/graphql")
        assert self.discovery._http_client.get.call_args[0][0] == (
            "https://mystore.myshopify.com/.well-known/customer-account-api"
        )

    async def test_unknown_fields_are_passed_through(self):
        document = {**OPENID_DOCUMENT, "scopes_supported": ["openid", "email"]}
        self.discovery._http_client.get.return_value = json_response(200, document)

        config = await self.discovery.discover_auth_endpoints(SHOP_DOMAIN)

        assert config.model_extra["scopes_supported"] == ["openid", "email"]

    async def test_auth_discovery_failure_carries_status(self):
        """Test HTTP failures keep status, reason and URL."""
        # Arrange
        self.discovery._http_client.get.return_value = text_response(404, "Not Found")

        # Act & Assert
        with pytest.raises(OpenIDDiscoveryError) as exc_info:
            await self.discovery.discover_auth_endpoints(SHOP_DOMAIN)

        error = exc_info.value
        assert error.status_code == 404
        assert error.status_text == "Not Found"
        assert error.url.endswith("/.well-known/openid-configuration")
        assert error.error_code == "discovery_failed"

    async def test_api_discovery_failure_is_distinguishable(self):
        """Test API discovery failures use their own error type."""
        self.discovery._http_client.get.return_value = text_response(404, "Not Found")

        with pytest.raises(APIDiscoveryError) as exc_info:
            await self.discovery.discover_api_endpoints(SHOP_DOMAIN)

        assert not isinstance(exc_info.value, OpenIDDiscoveryError)
        assert exc_info.value.url.endswith("/.well-known/customer-account-api")

    async def test_network_error_has_no_status(self):
        self.discovery._http_client.get.side_effect = httpx.ConnectError(
            "connection refused"
        )

        with pytest.raises(OpenIDDiscoveryError) as exc_info:
            await self.discovery.discover_auth_endpoints(SHOP_DOMAIN)

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.parametrize("body", ["not json", "[1, 2]"])
    async def test_unparseable_document(self, body):
        """Test non-JSON and non-object documents are rejected."""
        self.discovery._http_client.get.return_value = text_response(200, body)

        with pytest.raises(OpenIDDiscoveryError):
            await self.discovery.discover_auth_endpoints(SHOP_DOMAIN)

    async def test_close(self):
        await self.discovery.close()

        self.discovery._http_client.aclose.assert_awaited_once()


class TestEndpointResolver:
    def setup_method(self):
        self.discovery = StorefrontDiscovery()
        self.discovery._http_client = AsyncMock()

    async def test_shop_id_skips_discovery(self):
        """Test a configured shop id builds endpoints without a request."""
        # Arrange
        resolver = EndpointResolver(self.discovery, shop_id="1234")

        # Act
        token_endpoint = await resolver.token_endpoint(SHOP_DOMAIN)

        # Assert
        assert token_endpoint == TOKEN_ENDPOINT
        self.discovery._http_client.get.assert_not_called()

    async def test_discovers_without_shop_id(self):
        self.discovery._http_client.get.return_value = json_response(
            200, OPENID_DOCUMENT
        )
        resolver = EndpointResolver(self.discovery)

        token_endpoint = await resolver.token_endpoint(SHOP_DOMAIN)

        assert token_endpoint == TOKEN_ENDPOINT
        self.discovery._http_client.get.assert_awaited_once()

    async def test_no_endpoint_source_is_a_configuration_error(self):
        """Test missing shop id and domain is a configuration problem."""
        resolver = EndpointResolver(self.discovery)

        with pytest.raises(ConfigurationError):
            await resolver.auth_endpoints(None)

    async def test_document_without_token_endpoint(self):
        self.discovery._http_client.get.return_value = json_response(
            200, {"issuer": "https://shopify.com/authentication/1234"}
        )
        resolver = EndpointResolver(self.discovery)

        with pytest.raises(OpenIDDiscoveryError):
            await resolver.token_endpoint(SHOP_DOMAIN)
