"""Service configuration.

Reads settings from environment variables, loading a `.env` file from the
repository root when one exists.

Environment variables:
- SHOP: Store domain (e.g., "my-shop.myshopify.com")
- API_VERSION: Admin API version (default "2025-01")
- LOCATION_ID: Location whose "available" quantities are synchronized
- CLIENT_ID / CLIENT_SECRET / SCOPES / APP_URL: OAuth install settings
- TOKEN_STORE_PATH / TOKEN_ENCRYPTION_KEY: Encrypted credential storage
- SYNC_INTERVAL_SECONDS: Seconds between reconciliation passes (default 30)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_API_VERSION = "2025-01"
DEFAULT_SYNC_INTERVAL_SECONDS = 30


class ConfigurationError(ValueError):
    """Required configuration is missing or invalid."""


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the sync service and its HTTP surface."""
    shop: str = ""
    api_version: str = DEFAULT_API_VERSION
    location_id: str = ""

    # OAuth install
    client_id: str = ""
    client_secret: str = ""
    scopes: str = "read_products,read_inventory,write_inventory"
    app_url: str = ""
    port: int = 3000

    # Reconciliation
    sync_interval_seconds: int = DEFAULT_SYNC_INTERVAL_SECONDS
    sync_enabled: bool = True
    metafield_namespace: str = "material_sync"
    metafield_key: str = "relations"
    dependent_search_marker: str = "color-run"
    dependent_title_marker: str = "Color Run"
    canonical_sku_prefix: str = "Color-"

    # Credentials
    token_store_path: str = ".tokens"
    token_encryption_key: str = field(default="", repr=False)

    # Transport / logging
    http_timeout_seconds: int = 30
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def redirect_uri(self) -> str:
        return f"{self.app_url.rstrip('/')}/auth/callback"

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def require(self, *names: str) -> None:
        """Raise ConfigurationError if any named setting is empty.

        Args:
            names: Attribute names (e.g. "shop", "location_id")
        """
        missing: List[str] = [name for name in names if not getattr(self, name)]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required configuration: {env_names}")


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        shop=os.getenv("SHOP", ""),
        api_version=os.getenv("API_VERSION", DEFAULT_API_VERSION),
        location_id=os.getenv("LOCATION_ID", ""),
        client_id=os.getenv("CLIENT_ID", ""),
        client_secret=os.getenv("CLIENT_SECRET", ""),
        scopes=os.getenv("SCOPES", Settings.scopes),
        app_url=os.getenv("APP_URL", ""),
        port=_env_int("PORT", 3000),
        sync_interval_seconds=_env_int("SYNC_INTERVAL_SECONDS", DEFAULT_SYNC_INTERVAL_SECONDS),
        sync_enabled=_env_bool("SYNC_ENABLED", True),
        metafield_namespace=os.getenv("METAFIELD_NAMESPACE", "material_sync"),
        metafield_key=os.getenv("METAFIELD_KEY", "relations"),
        dependent_search_marker=os.getenv("DEPENDENT_SEARCH_MARKER", "color-run"),
        dependent_title_marker=os.getenv("DEPENDENT_TITLE_MARKER", "Color Run"),
        canonical_sku_prefix=os.getenv("CANONICAL_SKU_PREFIX", "Color-"),
        token_store_path=os.getenv("TOKEN_STORE_PATH", ".tokens"),
        token_encryption_key=os.getenv("TOKEN_ENCRYPTION_KEY", ""),
        http_timeout_seconds=_env_int("HTTP_TIMEOUT_SECONDS", 30),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_bool("LOG_JSON", False),
    )
