"""API Services Package."""

from api.services.sync_services import SyncServices, build_services, get_services

__all__ = [
    "SyncServices",
    "build_services",
    "get_services",
]
