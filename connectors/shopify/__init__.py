"""Shopify Connector Package.

Client, GraphQL documents, node models and OAuth install for the Shopify
Admin API.
"""

from connectors.shopify.shopify_client import (
    ShopifyGraphQLClient,
    ShopifyApiConfig,
    ShopifyApiError,
    TransportError,
    ShopifyAuthenticationError,
    ShopifyRateLimitError,
    Page,
    PageInfo,
)
from connectors.shopify.shopify_models import (
    ShopifyVariant,
    ShopifyInventoryItem,
    ShopifyUserError,
)
from connectors.shopify.shopify_oauth import (
    ShopifyOAuthConfig,
    ShopifyOAuthProvider,
    OAuthTokens,
    OAuthError,
)

__all__ = [
    # Client
    "ShopifyGraphQLClient",
    "ShopifyApiConfig",
    "ShopifyApiError",
    "TransportError",
    "ShopifyAuthenticationError",
    "ShopifyRateLimitError",
    "Page",
    "PageInfo",
    # Models
    "ShopifyVariant",
    "ShopifyInventoryItem",
    "ShopifyUserError",
    # OAuth
    "ShopifyOAuthConfig",
    "ShopifyOAuthProvider",
    "OAuthTokens",
    "OAuthError",
]
