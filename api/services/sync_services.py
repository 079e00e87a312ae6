"""
Service wiring for the HTTP app and the standalone worker.

Builds one platform client and the reconciliation components on top of it.
The periodic pass and the order webhook share the client, the relation store
and the per-record lock registry.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from connectors.shopify.shopify_client import ShopifyApiConfig, ShopifyGraphQLClient
from connectors.shopify.shopify_oauth import ShopifyOAuthConfig, ShopifyOAuthProvider
from core.config import Settings
from core.observability.logging import get_logger
from core.security import FileTokenStore, TokenEncryption, TokenStoreCredentials
from reconciliation.adjuster import BatchAdjuster
from reconciliation.discovery import DependentDiscovery, DependentFamily
from reconciliation.engine import MaterialSyncEngine
from reconciliation.levels import InventoryLevelReader
from reconciliation.locks import RecordLocks
from reconciliation.models import LocationRef
from reconciliation.relations import RelationStore
from reconciliation.webhook import OrderDecrementHandler
from workers.scheduler import SyncScheduler

logger = get_logger(__name__)


@dataclass
class SyncServices:
    """Everything a request handler or the scheduler needs."""
    settings: Settings
    client: ShopifyGraphQLClient
    relation_store: RelationStore
    reader: InventoryLevelReader
    engine: MaterialSyncEngine
    webhook_handler: OrderDecrementHandler
    scheduler: SyncScheduler
    oauth: Optional[ShopifyOAuthProvider] = None

    async def startup(self, start_scheduler: bool = True) -> None:
        await self.client.connect()
        if start_scheduler:
            self.scheduler.start()

    async def shutdown(self) -> None:
        self.scheduler.shutdown()
        await self.client.disconnect()


def build_services(settings: Settings) -> SyncServices:
    """Wire the service graph from settings.

    Raises:
        ConfigurationError: If SHOP, LOCATION_ID or TOKEN_ENCRYPTION_KEY is missing
    """
    settings.require("shop", "location_id", "token_encryption_key")

    credentials = TokenStoreCredentials(
        store=FileTokenStore(settings.token_store_path),
        encryption=TokenEncryption(settings.token_encryption_key),
        shop=settings.shop,
    )

    client = ShopifyGraphQLClient(
        credentials,
        ShopifyApiConfig(
            shop=settings.shop,
            api_version=settings.api_version,
            timeout_seconds=settings.http_timeout_seconds,
        ),
    )

    location = LocationRef.parse(settings.location_id)
    family = DependentFamily(
        search_marker=settings.dependent_search_marker,
        title_marker=settings.dependent_title_marker,
        canonical_sku_prefix=settings.canonical_sku_prefix,
    )
    locks = RecordLocks()

    relation_store = RelationStore(client, settings.metafield_namespace, settings.metafield_key)
    reader = InventoryLevelReader(client)
    adjuster = BatchAdjuster(client)

    engine = MaterialSyncEngine(
        relation_store=relation_store,
        discovery=DependentDiscovery(client, family),
        reader=reader,
        adjuster=adjuster,
        location=location,
        family=family,
        locks=locks,
    )
    webhook_handler = OrderDecrementHandler(
        relation_store=relation_store,
        reader=reader,
        adjuster=adjuster,
        location=location,
        locks=locks,
    )

    oauth = None
    if settings.client_id and settings.client_secret and settings.app_url:
        oauth = ShopifyOAuthProvider(
            ShopifyOAuthConfig(
                shop=settings.shop,
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                scopes=settings.scopes,
                redirect_uri=settings.redirect_uri,
            ),
            credentials,
        )
    else:
        logger.warning("CLIENT_ID, CLIENT_SECRET or APP_URL not set; OAuth install routes are disabled")

    return SyncServices(
        settings=settings,
        client=client,
        relation_store=relation_store,
        reader=reader,
        engine=engine,
        webhook_handler=webhook_handler,
        scheduler=SyncScheduler(engine, settings.sync_interval_seconds),
        oauth=oauth,
    )


def get_services(request: Request) -> SyncServices:
    """FastAPI dependency returning the app's service graph."""
    return request.app.state.services
