"""Shopify Admin GraphQL Client.

Low-level HTTP client for Shopify Admin GraphQL calls.
Handles the access-token header, cursor pagination and error mapping.

There is deliberately no retry logic here: a failed call surfaces as a
TransportError and the next scheduled pass picks up the work again.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from core.observability.logging import get_logger
from core.security.credentials import CredentialProvider, CredentialsNotFoundError

logger = get_logger(__name__)


class ShopifyApiError(Exception):
    """Base exception for Shopify API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TransportError(ShopifyApiError):
    """The platform could not be reached or answered with an HTTP failure."""
    pass


class ShopifyAuthenticationError(TransportError):
    """Authentication failed (401/403) or no access token is stored."""
    pass


class ShopifyRateLimitError(TransportError):
    """Rate limit exceeded (429)."""
    def __init__(self, message: str, retry_after: float = 2.0, response_body: str = ""):
        super().__init__(message, 429, response_body)
        self.retry_after = retry_after


@dataclass
class ShopifyApiConfig:
    """Configuration for the Shopify API client."""
    shop: str
    api_version: str = "2025-01"
    timeout_seconds: int = 30

    @property
    def graphql_url(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"


@dataclass
class PageInfo:
    """Cursor state of one connection page."""
    has_next_page: bool = False
    end_cursor: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PageInfo":
        data = data or {}
        return cls(
            has_next_page=bool(data.get("hasNextPage")),
            end_cursor=data.get("endCursor"),
        )


@dataclass
class Page:
    """One page of a GraphQL connection."""
    nodes: List[Dict[str, Any]]
    page_info: PageInfo


class ShopifyGraphQLClient:
    """HTTP client for the Shopify Admin GraphQL API.

    Provides:
    - Authenticated GraphQL calls (token re-read from the credential provider
      on every call)
    - Cursor pagination over connections
    - Error mapping to TransportError

    Usage:
        async with ShopifyGraphQLClient(credentials, ShopifyApiConfig(shop)) as client:
            data = await client.execute("{ shop { id } }")
            async for node in client.paginate(query, {"query": q}, "productVariants"):
                ...
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        api_config: ShopifyApiConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize API client.

        Args:
            credentials: Provider for the shop's access token
            api_config: API configuration
            session: Existing HTTP session; the client does not close sessions it did not open
        """
        self.credentials = credentials
        self.api_config = api_config
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "ShopifyGraphQLClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Open the HTTP session if none was supplied."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
        self._owns_session = False

    async def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests, loading the access token fresh."""
        try:
            token = await self.credentials.get_access_token()
        except CredentialsNotFoundError as e:
            raise ShopifyAuthenticationError(str(e))

        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Shopify-Access-Token": token,
        }

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL query or mutation.

        Args:
            query: GraphQL document
            variables: Variables for the document

        Returns:
            The response `data` object. When the platform reports GraphQL
            errors they are logged and an empty dict is returned, so callers
            must check for the fields they expect.

        Raises:
            ShopifyAuthenticationError: Missing token or 401/403
            ShopifyRateLimitError: 429 from the platform
            TransportError: Network failure, timeout or other HTTP error
        """
        if self._session is None:
            raise TransportError("Not connected. Call connect() first.")

        headers = await self._get_headers()
        body = {"query": query, "variables": variables or {}}

        try:
            async with self._session.post(
                self.api_config.graphql_url,
                headers=headers,
                json=body,
            ) as response:
                status = response.status
                response_text = await response.text()
                retry_after = response.headers.get("Retry-After")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Request to {self.api_config.shop} failed: {type(e).__name__}: {e}")

        if status in (401, 403):
            raise ShopifyAuthenticationError(
                f"Authentication failed ({status}): {response_text}",
                status,
                response_text,
            )

        if status == 429:
            raise ShopifyRateLimitError(
                "Rate limit exceeded",
                retry_after=float(retry_after) if retry_after else 2.0,
                response_body=response_text,
            )

        if status >= 400:
            raise TransportError(
                f"Shopify API error ({status}): {response_text}",
                status,
                response_text,
            )

        try:
            payload = json.loads(response_text) if response_text else {}
        except json.JSONDecodeError:
            raise TransportError(
                f"Shopify API returned a non-JSON body ({status})",
                status,
                response_text,
            )

        if not isinstance(payload, dict):
            raise TransportError(f"Shopify API returned an unexpected body ({status})", status, response_text)

        if payload.get("errors"):
            logger.error(
                "GraphQL errors",
                extra_fields={"errors": payload["errors"]},
            )
            return {}

        return payload.get("data") or {}

    async def fetch_page(
        self,
        query: str,
        variables: Dict[str, Any],
        connection: str,
    ) -> Optional[Page]:
        """Fetch one page of a top-level connection.

        Args:
            query: GraphQL document selecting `nodes` and `pageInfo` on the connection
            variables: Variables including the `cursor` to resume from
            connection: Name of the top-level connection field

        Returns:
            Page, or None when the response does not contain the connection
        """
        data = await self.execute(query, variables)
        conn = data.get(connection)
        if not conn:
            return None

        return Page(
            nodes=[node for node in (conn.get("nodes") or []) if node],
            page_info=PageInfo.from_dict(conn.get("pageInfo")),
        )

    async def paginate(
        self,
        query: str,
        variables: Dict[str, Any],
        connection: str,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield every node of a connection, following cursors to exhaustion.

        The query must accept a `$cursor: String` variable passed as `after:`.
        """
        cursor: Optional[str] = None

        while True:
            page = await self.fetch_page(query, {**variables, "cursor": cursor}, connection)
            if page is None:
                return

            for node in page.nodes:
                yield node

            if not page.page_info.has_next_page or not page.page_info.end_cursor:
                return
            cursor = page.page_info.end_cursor
