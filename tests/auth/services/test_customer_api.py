from unittest.mock import AsyncMock

import httpx
import pytest

from storefront_auth.auth.models.errors import CustomerAPIError
from storefront_auth.auth.services.api import CustomerAPIClient
from tests.auth.conftest import json_response, text_response

GRAPHQL_ENDPOINT = "https://shopify.com/1234/account/customer/api/2025-01/graphql"


class TestCustomerAPIClient:
    def setup_method(self):
        # Arrange
        self.api_client = CustomerAPIClient(user_agent="Test Storefront")
        self.api_client._http_client = AsyncMock()

    async def test_sends_raw_access_token(self):
        """Test the access token is sent without a Bearer prefix."""
        # Arrange
        self.api_client._http_client.post.return_value = json_response(
            200, {"data": {"customer": {"id": "gid://shopify/Customer/1"}}}
        )

        # Act
        result = await self.api_client.request(
            GRAPHQL_ENDPOINT,
            "access-token-xyz",
            "query { customer { id } }",
            operation_name="Customer",
        )

        # Assert
        assert result["data"]["customer"]["id"] == "gid://shopify/Customer/1"

        call_args = self.api_client._http_client.post.call_args
        assert call_args[0][0] == GRAPHQL_ENDPOINT
        assert call_args[1]["json"] == {
            "query": "query { customer { id } }",
            "variables": {},
            "operationName": "Customer",
        }
        headers = call_args[1]["headers"]
        assert headers["Authorization"] == "access-token-xyz"
        assert headers["User-Agent"] == "Test Storefront"
        assert headers["Content-Type"] == "application/json"

    async def test_rejected_request(self):
        """Test API rejections keep status and body."""
        self.api_client._http_client.post.return_value = text_response(
            401, "Unauthorized"
        )

        with pytest.raises(CustomerAPIError) as exc_info:
            await self.api_client.request(GRAPHQL_ENDPOINT, "expired", "{ shop }")

        assert exc_info.value.status_code == 401
        assert exc_info.value.body == "Unauthorized"

    async def test_network_error(self):
        """Test network failures are wrapped."""
        self.api_client._http_client.post.side_effect = httpx.ConnectError("down")

        with pytest.raises(CustomerAPIError):
            await self.api_client.request(GRAPHQL_ENDPOINT, "token", "{ shop }")
