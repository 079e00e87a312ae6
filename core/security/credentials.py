"""Credential providers.

A CredentialProvider is the capability the platform client receives for
obtaining the shop's access token. The stored-token provider re-reads and
decrypts the token on every call, so a revoked or replaced token takes
effect on the very next request.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.security.encryption import TokenEncryption
from core.security.token_store import StoredToken, TokenStore


class CredentialsNotFoundError(Exception):
    """No access token has been stored for the shop."""


class CredentialProvider(ABC):
    """Supplies the access token attached to each platform request."""

    @abstractmethod
    async def get_access_token(self) -> str:
        """Return the current access token.

        Raises:
            CredentialsNotFoundError: If no token is available
        """
        pass


class StaticCredentials(CredentialProvider):
    """Fixed token, for scripts and tests."""

    def __init__(self, access_token: str):
        self._access_token = access_token

    async def get_access_token(self) -> str:
        if not self._access_token:
            raise CredentialsNotFoundError("No access token configured")
        return self._access_token


class TokenStoreCredentials(CredentialProvider):
    """Reads the shop's encrypted access token from a TokenStore on each call."""

    def __init__(self, store: TokenStore, encryption: TokenEncryption, shop: str):
        self._store = store
        self._encryption = encryption
        self.shop = shop

    async def get_access_token(self) -> str:
        stored = await self._store.get(self.shop)
        if stored is None:
            raise CredentialsNotFoundError(
                f"No saved access token for {self.shop}. Run OAuth flow first."
            )

        try:
            data = self._encryption.decrypt(stored.encrypted_token)
        except ValueError as e:
            raise CredentialsNotFoundError(f"Stored access token is unreadable: {e}")

        access_token = data.get("access_token")
        if not access_token:
            raise CredentialsNotFoundError(
                f"No saved access token for {self.shop}. Run OAuth flow first."
            )
        return access_token

    async def save_access_token(self, access_token: str, scopes: Optional[List[str]] = None) -> None:
        """Encrypt and persist a freshly issued access token."""
        encrypted = self._encryption.encrypt({"access_token": access_token}, shop=self.shop)
        await self._store.store(StoredToken(
            shop=self.shop,
            encrypted_token=encrypted,
            scopes=scopes or [],
        ))

    async def has_token(self) -> bool:
        return await self._store.get(self.shop) is not None
