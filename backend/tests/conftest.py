from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from seohub.db.base import Base
import seohub.db.model  # noqa: F401  加载所有表
from seohub.integrations.ai.errors import GenerationError
from seohub.integrations.woocommerce.errors import UpstreamFetchError
from seohub.orchestration.bulk_generation import bulk_generation_task
from seohub.repository import store_repo


@pytest.fixture
def testing_session(monkeypatch):
    """
    内存 SQLite（StaticPool：所有 Session 共用一条连接），
    并替换 bulk_generation_task.SessionLocal。
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    Base.metadata.create_all(engine)
    monkeypatch.setattr(bulk_generation_task, "SessionLocal", TestingSessionLocal)
    yield TestingSessionLocal
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(testing_session):
    session = testing_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return store_repo.create_store(
        db,
        user_id="user-1",
        store_name="Test Shop",
        store_url="https://shop.example.com/",
        consumer_key="ck_test",
        consumer_secret="cs_test",
    )


# ---------- 假的外部依赖 ----------
class FakeWooClient:
    """按 id 返回固定商品；fail_ids 里的 id 抛 UpstreamFetchError。"""

    def __init__(self, fail_ids: Iterable[int] = ()) -> None:
        self.fail_ids = set(fail_ids)
        self.fetched: List[int] = []

    def get_product(self, product_id: int) -> Dict[str, Any]:
        self.fetched.append(product_id)
        if product_id in self.fail_ids:
            raise UpstreamFetchError("Failed to fetch product: Not Found", status_code=404)
        return {
            "id": product_id,
            "name": f"Product {product_id}",
            "sku": f"SKU-{product_id}",
            "price": "19.95",
            "description": "<p>Long text</p>",
            "short_description": "Short text",
            "categories": [{"id": 1, "name": "Towels"}],
        }


class FakeGenerator:
    """记录调用；fail_ids 里的商品抛 GenerationError。"""

    def __init__(self, fail_ids: Iterable[int] = ()) -> None:
        self.fail_ids = set(fail_ids)
        self.calls: List[Dict[str, Any]] = []

    def generate(self, product, prompt_template, model, user_id: Optional[str] = None):
        self.calls.append({"product": product, "prompt": prompt_template, "model": model, "user_id": user_id})
        if product["id"] in self.fail_ids:
            raise GenerationError("Content generation failed: OpenAI API error: 500", status_code=500)
        return {
            "meta_title": f"Title for {product['name']}",
            "meta_description": "desc",
            "short_description": "short",
            "long_description": "long",
            "alt_text": "alt",
            "focus_keywords": "a, b, c",
            "permalink": f"title-for-product-{product['id']}",
            "product_id": product["id"],
            "product_name": product["name"],
            "user_id": user_id or "",
        }


@pytest.fixture
def fake_woo(monkeypatch):
    client = FakeWooClient()
    monkeypatch.setattr(bulk_generation_task, "_woo_client_for", lambda store: client)
    return client


@pytest.fixture
def fake_generator(monkeypatch):
    gen = FakeGenerator()
    monkeypatch.setattr(bulk_generation_task, "_generator", gen)
    return gen


@pytest.fixture
def dispatched(monkeypatch):
    """拦截 process_batch.apply_async，记录投递参数。"""
    calls: List[Dict[str, Any]] = []

    def _fake_apply_async(args=None, kwargs=None, **options):
        calls.append({"args": list(args or []), **options})

    monkeypatch.setattr(bulk_generation_task.process_batch, "apply_async", _fake_apply_async)
    return calls
