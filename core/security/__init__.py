"""Security module - encryption, token storage, credential providers."""

from core.security.encryption import (
    TokenEncryption,
    EncryptedToken,
    generate_encryption_key,
)
from core.security.token_store import (
    TokenStore,
    StoredToken,
    InMemoryTokenStore,
    FileTokenStore,
)
from core.security.credentials import (
    CredentialProvider,
    CredentialsNotFoundError,
    StaticCredentials,
    TokenStoreCredentials,
)

__all__ = [
    "TokenEncryption",
    "EncryptedToken",
    "generate_encryption_key",
    "TokenStore",
    "StoredToken",
    "InMemoryTokenStore",
    "FileTokenStore",
    "CredentialProvider",
    "CredentialsNotFoundError",
    "StaticCredentials",
    "TokenStoreCredentials",
]
