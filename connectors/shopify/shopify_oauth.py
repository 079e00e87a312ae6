"""OAuth install flow for a single Shopify store.

Flow:
1. Merchant opens the app root; it redirects to the shop's authorize URL
2. Merchant approves the requested scopes
3. Shopify redirects to /auth/callback with an authorization code
4. complete_install() exchanges the code for an offline access token
5. The token is stored encrypted and read back on every API call
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from core.observability.logging import get_logger
from core.security.credentials import TokenStoreCredentials

logger = get_logger(__name__)


class OAuthError(Exception):
    """Authorization code exchange failed."""


@dataclass
class ShopifyOAuthConfig:
    """Configuration for the authorization code grant."""
    shop: str
    client_id: str
    client_secret: str
    scopes: str
    redirect_uri: str

    @property
    def authorize_endpoint(self) -> str:
        return f"https://{self.shop}/admin/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"https://{self.shop}/admin/oauth/access_token"


@dataclass
class OAuthTokens:
    """Offline access token issued for the shop."""
    access_token: str
    scope: str = ""

    @property
    def scope_list(self) -> List[str]:
        return [s for s in self.scope.split(",") if s]


class ShopifyOAuthProvider:
    """Builds the install URL and completes the code exchange.

    Usage:
        provider = ShopifyOAuthProvider(config, credentials)
        redirect_to = provider.authorization_url()
        ...
        tokens = await provider.complete_install(code)
    """

    def __init__(
        self,
        config: ShopifyOAuthConfig,
        credentials: TokenStoreCredentials,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.credentials = credentials
        self._session = session

    def authorization_url(self) -> str:
        """URL the merchant is redirected to for granting access."""
        params = {
            "client_id": self.config.client_id,
            "scope": self.config.scopes,
            "redirect_uri": self.config.redirect_uri,
        }
        return f"{self.config.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for an access token.

        Raises:
            OAuthError: If the platform rejects the exchange or returns no token
        """
        body = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
        }

        try:
            if self._session is not None:
                token_data = await self._post_token_request(self._session, body)
            else:
                async with aiohttp.ClientSession() as http:
                    token_data = await self._post_token_request(http, body)
        except aiohttp.ClientError as e:
            raise OAuthError(f"Token exchange request failed: {e}")

        access_token = token_data.get("access_token")
        if not access_token:
            raise OAuthError("No access token received")

        return OAuthTokens(access_token=access_token, scope=token_data.get("scope", ""))

    async def _post_token_request(self, http: aiohttp.ClientSession, body: Dict[str, Any]) -> Dict[str, Any]:
        async with http.post(
            self.config.token_endpoint,
            json=body,
            headers={"Content-Type": "application/json"},
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise OAuthError(f"Token exchange failed ({response.status}): {error_text}")
            return await response.json()

    async def complete_install(self, code: str) -> OAuthTokens:
        """Exchange the code and persist the resulting token."""
        tokens = await self.exchange_code(code)
        await self.credentials.save_access_token(tokens.access_token, tokens.scope_list)
        logger.info(f"Shopify access token saved for {self.config.shop}")
        return tokens
