"""Configuration check for the material sync service.

Prints which settings are present and whether a stored access token exists
for the configured shop.

Usage:
    python scripts/check_config.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import load_settings
from core.security import FileTokenStore


def check_config() -> bool:
    """Print configuration status; returns True when sync can run."""
    settings = load_settings()

    print("\n" + "=" * 70)
    print("MATERIAL SYNC CONFIGURATION CHECK")
    print("=" * 70 + "\n")

    status = {
        "SHOP": (bool(settings.shop), settings.shop or "NOT SET"),
        "LOCATION_ID": (bool(settings.location_id), settings.location_id or "NOT SET"),
        "TOKEN_ENCRYPTION_KEY": (bool(settings.token_encryption_key),
                                 "SET" if settings.token_encryption_key else "NOT SET"),
        "CLIENT_ID": (bool(settings.client_id), "SET" if settings.client_id else "NOT SET (install disabled)"),
        "APP_URL": (bool(settings.app_url), settings.app_url or "NOT SET (install disabled)"),
    }

    for var, (ok, val) in status.items():
        print(f"{'✓' if ok else '✗'} {var}")
        print(f"   Value: {val}")

    print(f"\n  API version:   {settings.api_version}")
    print(f"  Sync interval: {settings.sync_interval_seconds}s")
    print(f"  Metafield:     {settings.metafield_namespace}.{settings.metafield_key}")

    has_token = False
    if settings.shop:
        stored = asyncio.run(FileTokenStore(settings.token_store_path).get(settings.shop))
        has_token = stored is not None
        print(f"\n{'✓' if has_token else '✗'} Stored access token for {settings.shop}")
        if not has_token:
            print("   Open the app URL in a browser to run the install flow.")

    ready = bool(settings.shop and settings.location_id and settings.token_encryption_key and has_token)
    print("\nReady to sync." if ready else "\nNot ready to sync.")
    return ready


if __name__ == "__main__":
    sys.exit(0 if check_config() else 1)
