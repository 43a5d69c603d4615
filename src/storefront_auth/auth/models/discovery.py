"""Discovery-related models for the identity provider and customer API.

Contains the OpenID configuration and customer account API documents, plus
the directly constructed endpoints used when the shop id is already known.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

SHOPIFY_AUTH_BASE = "https://shopify.com/authentication"


class OpenIDConfiguration(BaseModel):
    """OpenID Connect discovery document.

    Returned as-is from ``/.well-known/openid-configuration``. Fields are
    optional because the document is passed through without shape checks;
    unknown keys are kept.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    end_session_endpoint: str | None = None
    jwks_uri: str | None = None
    issuer: str | None = None


class CustomerAPIConfig(BaseModel):
    """Customer account API discovery document.

    Returned as-is from ``/.well-known/customer-account-api``. The endpoint
    URLs already carry the API version.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    graphql_api: str | None = None
    mcp_api: str | None = None


def build_shop_endpoints(shop_id: str) -> OpenIDConfiguration:
    """Construct provider endpoints directly from a numeric shop id.

    Skips the discovery round trip when the shop id is configured.
    """
    base = f"{SHOPIFY_AUTH_BASE}/{shop_id}"
    return OpenIDConfiguration(
        authorization_endpoint=f"{base}/oauth/authorize",
        token_endpoint=f"{base}/oauth/token",
        end_session_endpoint=f"{base}/logout",
        issuer=base,
    )
