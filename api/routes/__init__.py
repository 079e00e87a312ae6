"""API Routes Package."""

from api.routes import auth, config, health, webhooks

__all__ = [
    "auth",
    "config",
    "health",
    "webhooks",
]
