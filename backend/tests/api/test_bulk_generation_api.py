from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from seohub.db.session import get_db
from seohub.main import app


@pytest.fixture
def client(testing_session, dispatched):
    """整应用 + DB 依赖覆盖；Celery 投递被 dispatched 拦截。"""

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


def _body(store_id, **overrides):
    body = {
        "user_id": "user-1",
        "store_id": store_id,
        "product_ids": [1, 2, 3, 2, 4, 5, 6],
        "prompt_template": "Write SEO copy for {{name}}",
        "model": "gpt-4o-mini",
        "batch_size": 5,
    }
    body.update(overrides)
    return body


def test_create_job_starts_and_dispatches_first_batch(client, store, dispatched):
    resp = client.post("/api/v1/bulk-generation/jobs", json=_body(store.id))
    assert resp.status_code == 201, resp.text

    job = resp.json()
    assert job["status"] == "processing"
    assert job["total_products"] == 6           # 重复的 2 被去掉
    assert [b["batch_number"] for b in job["batches"]] == [1, 2]
    assert [len(b["product_ids"]) for b in job["batches"]] == [5, 1]
    assert len(dispatched) == 1
    assert dispatched[0]["args"] == [job["id"], job["batches"][0]["id"]]


def test_create_job_without_auto_start_then_start(client, store, dispatched):
    resp = client.post("/api/v1/bulk-generation/jobs", json=_body(store.id, auto_start=False))
    job_id = resp.json()["id"]
    assert resp.json()["status"] == "pending"
    assert dispatched == []

    started = client.post(f"/api/v1/bulk-generation/jobs/{job_id}/start")
    assert started.status_code == 200
    assert started.json() == {"job_id": job_id, "batches": 2}

    again = client.post(f"/api/v1/bulk-generation/jobs/{job_id}/start")
    assert again.status_code == 409


def test_create_job_unknown_store(client, store):
    resp = client.post("/api/v1/bulk-generation/jobs", json=_body("no-such-store"))
    assert resp.status_code == 404


def test_create_job_validation(client, store):
    assert client.post("/api/v1/bulk-generation/jobs", json=_body(store.id, product_ids=[])).status_code == 422
    assert client.post("/api/v1/bulk-generation/jobs", json=_body(store.id, batch_size=0)).status_code == 422


def test_get_job_and_results(client, store):
    job_id = client.post("/api/v1/bulk-generation/jobs", json=_body(store.id)).json()["id"]

    got = client.get(f"/api/v1/bulk-generation/jobs/{job_id}")
    assert got.status_code == 200
    assert got.json()["completed_products"] == 0

    results = client.get(f"/api/v1/bulk-generation/jobs/{job_id}/results")
    assert results.status_code == 200
    assert [r["product_id"] for r in results.json()] == [1, 2, 3, 4, 5, 6]
    assert {r["status"] for r in results.json()} == {"pending"}


def test_unknown_job_is_404(client, testing_session):
    assert client.get("/api/v1/bulk-generation/jobs/nope").status_code == 404
    assert client.get("/api/v1/bulk-generation/jobs/nope/results").status_code == 404
    assert client.post("/api/v1/bulk-generation/jobs/nope/start").status_code == 404


def test_health(client):
    assert client.get("/api/v1/health").json() == {"status": "ok"}


def test_create_job_insufficient_credits_is_402(client, store, dispatched):
    resp = client.post(
        "/api/v1/bulk-generation/jobs",
        json=_body(store.id, model="gpt-4o", available_credits=5),   # 6 个商品 x 2 credit
    )
    assert resp.status_code == 402
    assert resp.json()["detail"] == "Not enough credits. Need 12, have 5"
    assert dispatched == []
    assert client.get("/api/v1/bulk-generation/jobs", params={"user_id": "user-1"}).json() == []


def test_list_jobs_history(client, store):
    first = client.post("/api/v1/bulk-generation/jobs", json=_body(store.id, auto_start=False)).json()
    second = client.post("/api/v1/bulk-generation/jobs", json=_body(store.id)).json()
    client.post("/api/v1/bulk-generation/jobs", json=_body(store.id, user_id="user-2"))

    resp = client.get("/api/v1/bulk-generation/jobs", params={"user_id": "user-1"})
    assert resp.status_code == 200
    jobs = resp.json()
    assert {j["id"] for j in jobs} == {first["id"], second["id"]}
    created = [j["created_at"] for j in jobs]
    assert created == sorted(created, reverse=True)
    assert {j["status"] for j in jobs} == {"pending", "processing"}
    assert "batches" not in jobs[0]

    only_store = client.get(
        "/api/v1/bulk-generation/jobs", params={"user_id": "user-1", "store_id": store.id, "limit": 1},
    )
    assert len(only_store.json()) == 1


def test_list_jobs_requires_user(client):
    assert client.get("/api/v1/bulk-generation/jobs").status_code == 422
