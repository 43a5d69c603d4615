"""Identity provider and customer API endpoint discovery.

Fetches the two well-known documents a storefront domain publishes:
the OpenID configuration (OAuth endpoints) and the customer account API
configuration (GraphQL endpoint). Failures surface immediately; retry policy
belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from storefront_auth.auth.models.discovery import (
    CustomerAPIConfig,
    OpenIDConfiguration,
    build_shop_endpoints,
)
from storefront_auth.auth.models.errors import (
    APIDiscoveryError,
    ConfigurationError,
    DiscoveryError,
    OpenIDDiscoveryError,
)

logger = logging.getLogger(__name__)

OPENID_CONFIGURATION_PATH = "/.well-known/openid-configuration"
CUSTOMER_ACCOUNT_API_PATH = "/.well-known/customer-account-api"

DEFAULT_USER_AGENT = "Storefront Customer Accounts"

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class StorefrontDiscovery:
    """Resolves provider endpoints from a bare storefront domain.

    Each call performs a single GET with an explicit user agent; nothing is
    cached here.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize discovery.

        Args:
            user_agent: User-Agent header sent with every request
            timeout: HTTP request timeout in seconds
            http_client: Optional shared client; one is created otherwise
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def discover_auth_endpoints(self, shop_domain: str) -> OpenIDConfiguration:
        """Fetch the OpenID configuration for a storefront domain.

        Raises:
            OpenIDDiscoveryError: If the document cannot be fetched or parsed
        """
        url = f"https://{shop_domain}{OPENID_CONFIGURATION_PATH}"
        return await self._fetch(url, OpenIDConfiguration, OpenIDDiscoveryError)

    async def discover_api_endpoints(self, shop_domain: str) -> CustomerAPIConfig:
        """Fetch the customer account API configuration for a storefront domain.

        Raises:
            APIDiscoveryError: If the document cannot be fetched or parsed
        """
        url = f"https://{shop_domain}{CUSTOMER_ACCOUNT_API_PATH}"
        return await self._fetch(url, CustomerAPIConfig, APIDiscoveryError)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()

    async def _fetch(
        self,
        url: str,
        model: type[_ModelT],
        error_cls: type[DiscoveryError],
    ) -> _ModelT:
        document = error_cls.document
        logger.debug(f"Fetching {document} from: {url}")

        try:
            response = await self._http_client.get(
                url,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise error_cls(
                f"Failed to fetch {document} from {url}: {e}", url=url
            ) from e

        if not response.is_success:
            logger.error(
                f"Discovery of {document} failed: {response.status_code} "
                f"{response.reason_phrase} ({url}): {response.text}"
            )
            raise error_cls(
                f"Failed to discover {document}: {response.reason_phrase} "
                f"({response.status_code}) at {url}",
                url=url,
                status_code=response.status_code,
                status_text=response.reason_phrase,
            )

        try:
            return model.model_validate_json(response.text)
        except ValidationError as e:
            raise error_cls(f"Invalid {document} from {url}: {e}", url=url) from e


class EndpointResolver:
    """Picks the provider endpoints for a shop.

    Precedence: a configured shop id builds the endpoints directly; without
    one the OpenID configuration is discovered from the storefront domain.
    """

    def __init__(self, discovery: StorefrontDiscovery, shop_id: str | None = None):
        self.discovery = discovery
        self.shop_id = shop_id

    async def auth_endpoints(self, shop_domain: str | None) -> OpenIDConfiguration:
        """Resolve the OAuth endpoints for a shop.

        Raises:
            ConfigurationError: If neither a shop id nor a domain is configured
            OpenIDDiscoveryError: If discovery fails
        """
        if self.shop_id:
            return build_shop_endpoints(self.shop_id)
        if not shop_domain:
            raise ConfigurationError(
                "SHOP_ID or PUBLIC_STORE_DOMAIN must be set to resolve endpoints"
            )
        return await self.discovery.discover_auth_endpoints(shop_domain)

    async def token_endpoint(self, shop_domain: str | None) -> str:
        config = await self.auth_endpoints(shop_domain)
        if not config.token_endpoint:
            raise OpenIDDiscoveryError(
                "OpenID configuration has no token_endpoint",
                url=config.issuer or "",
            )
        return config.token_endpoint
