"""Secure token storage backends.

Provides storage backends for encrypted platform access tokens:
- InMemoryTokenStore: For development/testing
- FileTokenStore: For single-server deployments
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.observability.logging import get_logger
from core.security.encryption import EncryptedToken

logger = get_logger(__name__)


@dataclass
class StoredToken:
    """Token record with metadata."""
    shop: str
    encrypted_token: EncryptedToken
    scopes: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop": self.shop,
            "encrypted_token": self.encrypted_token.to_dict(),
            "scopes": self.scopes,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredToken":
        return cls(
            shop=data["shop"],
            encrypted_token=EncryptedToken.from_dict(data["encrypted_token"]),
            scopes=data.get("scopes", []),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.utcnow(),
        )


class TokenStore(ABC):
    """Abstract base class for token storage."""

    @abstractmethod
    async def store(self, token: StoredToken) -> None:
        """Store an encrypted token."""
        pass

    @abstractmethod
    async def get(self, shop: str) -> Optional[StoredToken]:
        """Retrieve a stored token."""
        pass


class InMemoryTokenStore(TokenStore):
    """In-memory token storage for development/testing.

    WARNING: Tokens are lost on restart. Use only for development.
    """

    def __init__(self):
        self._tokens: Dict[str, StoredToken] = {}
        self._lock = threading.Lock()

    async def store(self, token: StoredToken) -> None:
        with self._lock:
            self._tokens[token.shop] = token

    async def get(self, shop: str) -> Optional[StoredToken]:
        with self._lock:
            return self._tokens.get(shop)


class FileTokenStore(TokenStore):
    """File-based token storage.

    Stores encrypted tokens as JSON files, one per shop.
    Suitable for single-server deployments.

    Directory structure:
        {base_path}/
            {shop}.json
    """

    def __init__(self, base_path: str = ".tokens"):
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        # Restrictive permissions on the token directory
        try:
            os.chmod(self._base_path, 0o700)
        except OSError:
            pass  # Windows doesn't support chmod the same way

    def _token_path(self, shop: str) -> Path:
        safe_shop = "".join(c if c.isalnum() or c in "-_." else "_" for c in shop)
        return self._base_path / f"{safe_shop}.json"

    async def store(self, token: StoredToken) -> None:
        path = self._token_path(token.shop)

        with self._lock:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(token.to_dict(), f, indent=2)

            try:
                os.chmod(path, 0o600)
            except OSError:
                pass

    async def get(self, shop: str) -> Optional[StoredToken]:
        path = self._token_path(shop)

        if not path.exists():
            return None

        with self._lock:
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                return StoredToken.from_dict(data)
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.error(f"Error reading token file {path}: {e}")
                return None
