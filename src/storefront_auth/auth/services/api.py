"""Authenticated customer account API requests."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from storefront_auth.auth.models.errors import CustomerAPIError
from storefront_auth.auth.primitives.discovery import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)


class CustomerAPIClient:
    """Posts GraphQL operations to the customer account API.

    The access token is sent as-is in the ``Authorization`` header, which is
    what the customer account API expects (no ``Bearer`` prefix).
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def request(
        self,
        graphql_endpoint: str,
        access_token: str,
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Execute a GraphQL operation on behalf of the customer.

        Raises:
            CustomerAPIError: If the API rejects the request or is unreachable
        """
        body = {
            "query": query,
            "variables": variables or {},
            "operationName": operation_name,
        }

        try:
            response = await self._http_client.post(
                graphql_endpoint,
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "User-Agent": self.user_agent,
                    "Authorization": access_token,
                },
            )
        except httpx.HTTPError as e:
            raise CustomerAPIError(
                f"HTTP error during customer API request: {e}"
            ) from e

        if not response.is_success:
            logger.warning(
                f"Customer API request {operation_name or '<anonymous>'} failed "
                f"with {response.status_code}"
            )
            raise CustomerAPIError(
                f"Customer API request failed: {response.status_code} - "
                f"{response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CustomerAPIError(
                f"Invalid customer API response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def close(self) -> None:
        await self._http_client.aclose()
