from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from seohub.api.v1 import content_health as content_health_module
from seohub.db.session import get_db
from seohub.integrations.woocommerce.errors import UpstreamFetchError
from seohub.main import app


@pytest.fixture
def client(testing_session):
    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


PRODUCTS = [
    {
        "id": 1,
        "name": "Mug",
        "description": "",
        "short_description": "",
        "meta_data": [{"key": "_yoast_wpseo_title", "value": "Large Ceramic Coffee Mug For Every Morning"}],
    },
    {"id": 2, "name": "", "description": "", "short_description": ""},
]


def test_analyze_returns_results_and_summary(client):
    resp = client.post(
        "/api/v1/content-health/analyze",
        json={"products": PRODUCTS, "seo_plugin": "yoast"},
    )
    assert resp.status_code == 200
    data = resp.json()

    first = data["results"][0]
    assert first["product_id"] == 1
    assert first["checks"][0] == {"field": "meta_title", "status": "complete", "reason": None}
    assert "meta_title" in data["results"][1]["missing_fields"]

    summary = data["summary"]
    assert summary["total_products"] == 2
    assert summary["missing_one_plus"] + summary["complete_content"] == 2


def test_analyze_rejects_unknown_plugin(client):
    resp = client.post("/api/v1/content-health/analyze", json={"products": [], "seo_plugin": "wix"})
    assert resp.status_code == 422


def test_analyze_settings_override(client):
    product = {"id": 3, "name": "x", "short_description": "two words"}
    resp = client.post(
        "/api/v1/content-health/analyze",
        json={"products": [product], "settings": {"min_short_description_words": 2}},
    )
    checks = {c["field"]: c for c in resp.json()["results"][0]["checks"]}
    assert checks["short_description"]["status"] == "complete"


class _FakeWoo:
    def __init__(self, products=None, error=None):
        self.products = products or []
        self.error = error
        self.pages = []

    def list_products(self, page=1, per_page=None):
        self.pages.append((page, per_page))
        if self.error:
            raise self.error
        return self.products


def test_scan_store(client, store, monkeypatch):
    fake = _FakeWoo(products=PRODUCTS)
    monkeypatch.setattr(content_health_module.WooHttpClient, "from_store", classmethod(lambda cls, s: fake))

    resp = client.post(f"/api/v1/content-health/stores/{store.id}/scan?page=2&per_page=10")

    assert resp.status_code == 200
    assert resp.json()["summary"]["total_products"] == 2
    assert fake.pages == [(2, 10)]


def test_scan_store_upstream_failure_is_502(client, store, monkeypatch):
    fake = _FakeWoo(error=UpstreamFetchError("Failed to fetch product: Unauthorized", status_code=401))
    monkeypatch.setattr(content_health_module.WooHttpClient, "from_store", classmethod(lambda cls, s: fake))

    resp = client.post(f"/api/v1/content-health/stores/{store.id}/scan")
    assert resp.status_code == 502


def test_scan_unknown_store(client, testing_session):
    assert client.post("/api/v1/content-health/stores/missing/scan").status_code == 404


def test_analyze_accepts_string_ids_and_non_string_names(client):
    products = [
        {"id": "sku-1", "name": 12345, "description": "", "short_description": ""},
        {"name": "No id at all"},
    ]
    resp = client.post("/api/v1/content-health/analyze", json={"products": products})

    assert resp.status_code == 200
    first, second = resp.json()["results"]
    assert first["product_id"] == "sku-1"
    assert first["product_name"] == "12345"
    assert second["product_id"] is None


def test_analyze_rejects_non_object_products(client):
    resp = client.post("/api/v1/content-health/analyze", json={"products": ["not-a-product"]})
    assert resp.status_code == 422
