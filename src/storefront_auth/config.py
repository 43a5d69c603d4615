"""
Customer account settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
Settings are resolved once and passed explicitly; every value has a single
precedence order (explicit argument, then the listed environment variables,
then ``.env``, then the default).
"""

from __future__ import annotations

import re
from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront_auth.auth.models.errors import ConfigurationError
from storefront_auth.auth.primitives.discovery import DEFAULT_USER_AGENT

_SHOP_ID_PATTERN = re.compile(r"/(\d+)/?$")


class CustomerAccountSettings(BaseSettings):
    """
    Customer account configuration.

    All settings are loaded from environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Shop identity
    store_domain: str | None = Field(
        default=None,
        validation_alias=AliasChoices("PUBLIC_STORE_DOMAIN", "store_domain"),
        description="Storefront domain, e.g. mystore.myshopify.com",
    )
    client_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "PUBLIC_CUSTOMER_ACCOUNT_API_CLIENT_ID",
            "CUSTOMER_ACCOUNT_CLIENT_ID",
            "client_id",
        ),
        description="Customer account API public client id",
    )
    shop_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SHOP_ID", "shop_id"),
        description="Numeric shop id; builds provider endpoints without discovery",
    )
    customer_account_api_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "PUBLIC_CUSTOMER_ACCOUNT_API_URL", "customer_account_api_url"
        ),
        description="Customer account API URL ending in the shop id",
    )

    # HTTP
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        validation_alias=AliasChoices("CUSTOMER_ACCOUNT_USER_AGENT", "user_agent"),
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("CUSTOMER_ACCOUNT_HTTP_TIMEOUT", "http_timeout"),
    )

    # Web adapter
    session_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SESSION_SECRET", "session_secret"),
        description="Signing key for the session cookie",
    )
    authorize_path: str = "/account/authorize"
    callback_path: str = "/account/authorize/callback"
    login_path: str = "/account/login"
    logout_path: str = "/account/logout"
    account_path: str = "/account"
    logout_redirect_path: str = "/"
    debug_path: str = "/account/debug"

    host: str = Field(
        default="127.0.0.1", validation_alias=AliasChoices("HOST", "host")
    )
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "port"))
    log_level: str = Field(
        default="info", validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )

    @model_validator(mode="after")
    def derive_shop_id(self) -> CustomerAccountSettings:
        """Fill ``shop_id`` from the customer account API URL when unset."""
        if not self.shop_id and self.customer_account_api_url:
            match = _SHOP_ID_PATTERN.search(self.customer_account_api_url)
            if match:
                self.shop_id = match.group(1)
        return self

    def require_store_domain(self) -> str:
        if not self.store_domain:
            raise ConfigurationError("PUBLIC_STORE_DOMAIN must be set")
        return self.store_domain

    def require_client_id(self) -> str:
        if not self.client_id:
            raise ConfigurationError(
                "PUBLIC_CUSTOMER_ACCOUNT_API_CLIENT_ID or "
                "CUSTOMER_ACCOUNT_CLIENT_ID must be set"
            )
        return self.client_id

    def require_endpoint_source(self) -> str | None:
        """Check that provider endpoints can be resolved.

        Returns the store domain (None when the shop id alone suffices).
        """
        if self.shop_id:
            return self.store_domain
        return self.require_store_domain()


@lru_cache
def get_settings() -> CustomerAccountSettings:
    """Get cached settings instance."""
    return CustomerAccountSettings()
