"""
HTTP API tests.

Routes are exercised through FastAPI's TestClient against a service graph
backed by the in-memory shop.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from api.server import create_app
from api.services import SyncServices
from connectors.shopify.shopify_client import TransportError
from connectors.shopify.shopify_oauth import ShopifyOAuthConfig, ShopifyOAuthProvider
from connectors.shopify.shopify_queries import METAFIELDS_SET_MUTATION
from core.config import Settings
from core.security import InMemoryTokenStore, TokenEncryption, TokenStoreCredentials, generate_encryption_key
from reconciliation.adjuster import BatchAdjuster
from reconciliation.discovery import DependentDiscovery
from reconciliation.engine import MaterialSyncEngine
from reconciliation.levels import InventoryLevelReader
from reconciliation.locks import RecordLocks
from reconciliation.relations import RelationStore
from reconciliation.webhook import OrderDecrementHandler
from workers.scheduler import SyncScheduler
from conftest import TEST_LOCATION, TEST_SHOP, FakeShopify, FakeTokenResponse, FakeTokenSession


def make_services(shop: FakeShopify, oauth: ShopifyOAuthProvider = None) -> SyncServices:
    locks = RecordLocks()
    relation_store = RelationStore(shop)
    reader = InventoryLevelReader(shop)
    adjuster = BatchAdjuster(shop)
    engine = MaterialSyncEngine(relation_store, DependentDiscovery(shop), reader, adjuster, TEST_LOCATION, locks=locks)
    return SyncServices(
        settings=Settings(shop=TEST_SHOP, location_id="1"),
        client=shop,
        relation_store=relation_store,
        reader=reader,
        engine=engine,
        webhook_handler=OrderDecrementHandler(relation_store, reader, adjuster, TEST_LOCATION, locks),
        scheduler=SyncScheduler(engine, 30),
        oauth=oauth,
    )


@pytest.fixture
def shop():
    shop = FakeShopify()
    shop.canonical = shop.add_variant("Color-ALU", "Aluminium", available=50, title="Sheet")
    shop.holster = shop.add_variant("HOL-ALU", "Holster - Color Run", available=40)
    shop.metafield_value = json.dumps({"ALU": shop.canonical["id"]})
    return shop


@pytest.fixture
def client(shop):
    app = create_app(services=make_services(shop), start_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


class TestConfigRoutes:

    def test_get_config(self, client, shop):
        response = client.get("/app/config")

        assert response.status_code == 200
        assert response.json() == {"ALU": shop.canonical["id"]}

    def test_get_config_empty(self, client, shop):
        shop.metafield_value = None

        assert client.get("/app/config").json() == {}

    def test_post_config_persists(self, client, shop):
        mapping = {"ALU": "gid://shopify/ProductVariant/1", "B2S": "gid://shopify/ProductVariant/2"}

        response = client.post("/app/config", json=mapping)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert json.loads(shop.metafield_value) == mapping

    @pytest.mark.parametrize("mapping", [
        {"alu": "gid://shopify/ProductVariant/1"},
        {"ALUM": "gid://shopify/ProductVariant/1"},
        {"ALU": "gid://shopify/Product/1"},
        {"ALU": 5},
        ["ALU"],
    ])
    def test_post_config_invalid(self, client, shop, mapping):
        response = client.post("/app/config", json=mapping)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid mapping data"}
        assert shop.calls_for(METAFIELDS_SET_MUTATION) == []

    def test_post_config_user_errors(self, client, shop):
        shop.metafield_user_errors = [{"field": ["metafields", "0"], "message": "Owner not found"}]

        response = client.post("/app/config", json={"ALU": "gid://shopify/ProductVariant/1"})

        assert response.status_code == 400
        assert response.json()["error"][0]["message"] == "Owner not found"

    def test_variant_titles(self, client, shop):
        response = client.post("/app/variant-titles", json={
            "variants": [shop.canonical["id"], "gid://shopify/ProductVariant/404"],
        })

        assert response.status_code == 200
        assert response.json() == {shop.canonical["id"]: "Aluminium - Sheet"}

    def test_variant_titles_requires_list(self, client):
        response = client.post("/app/variant-titles", json={"variants": "nope"})

        assert response.status_code == 400

    def test_validate_variants(self, client, shop):
        response = client.post("/app/validate-variants", json={
            "variants": [shop.canonical["id"], "gid://shopify/ProductVariant/404"],
        })

        assert response.json() == {"invalid": ["gid://shopify/ProductVariant/404"]}


class TestWebhookRoute:

    def test_order_decrements_canonical(self, client, shop):
        response = client.post("/webhook/orders/create", json={
            "id": 1001,
            "line_items": [{"sku": "WIDGET-ALU-RED", "quantity": 2}],
        })

        assert response.status_code == 200
        assert response.text == "OK"
        assert shop.level_of(shop.canonical) == 48
        assert shop.level_of(shop.holster) == 40

    def test_no_matching_materials(self, client, shop):
        response = client.post("/webhook/orders/create", json={
            "id": 1002,
            "line_items": [{"sku": "GIFT-CARD", "quantity": 1}],
        })

        assert response.status_code == 200
        assert response.text == "No matching materials"
        assert shop.adjustments == []

    def test_failed_adjustment_is_500(self, client, shop):
        shop.adjust_user_errors = [{"message": "Inventory item not stocked"}]

        response = client.post("/webhook/orders/create", json={
            "id": 1003,
            "line_items": [{"sku": "HOL-ALU", "quantity": 1}],
        })

        assert response.status_code == 500
        assert response.text == "Error"

    def test_transport_failure_is_500(self, client, shop):
        def unreachable(query, variables):
            raise TransportError("connection reset")

        shop.respond = unreachable

        response = client.post("/webhook/orders/create", json={"id": 1004, "line_items": []})

        assert response.status_code == 500


class TestHealthRoutes:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["shop"] == TEST_SHOP
        assert data["scheduler"]["running"] is False

    def test_metrics(self, client):
        client.post("/webhook/orders/create", json={"id": 1, "line_items": [{"sku": "HOL-ALU", "quantity": 1}]})

        data = client.get("/metrics").json()

        assert data["webhooks"]["processed"] == 1
        assert data["webhooks"]["decrements"] == 1


class TestAuthRoutes:

    def _oauth(self, response):
        credentials = TokenStoreCredentials(InMemoryTokenStore(), TokenEncryption(generate_encryption_key()), TEST_SHOP)
        provider = ShopifyOAuthProvider(
            ShopifyOAuthConfig(
                shop=TEST_SHOP,
                client_id="client-id",
                client_secret="client-secret",
                scopes="read_products,read_inventory,write_inventory",
                redirect_uri="https://app.example.com/auth/callback",
            ),
            credentials,
            session=FakeTokenSession(response),
        )
        return provider, credentials

    def test_install_redirect(self, shop):
        provider, _ = self._oauth(None)
        app = create_app(services=make_services(shop, oauth=provider), start_scheduler=False)

        with TestClient(app) as client:
            response = client.get("/", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith(f"https://{TEST_SHOP}/admin/oauth/authorize?")

    def test_callback_saves_token(self, shop):
        provider, credentials = self._oauth(FakeTokenResponse(200, {"access_token": "shpat_new", "scope": "read_products"}))
        app = create_app(services=make_services(shop, oauth=provider), start_scheduler=False)

        with TestClient(app) as client:
            response = client.get("/auth/callback", params={"code": "auth-code"})

        assert response.status_code == 200
        assert "Installation complete" in response.text

        assert asyncio.run(credentials.get_access_token()) == "shpat_new"

    def test_callback_requires_code(self, client):
        response = client.get("/auth/callback")

        assert response.status_code == 400
        assert response.text == "Missing authorization code"

    def test_install_disabled_without_oauth(self, client):
        assert client.get("/", follow_redirects=False).status_code == 503
