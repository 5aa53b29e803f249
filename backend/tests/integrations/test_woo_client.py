from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
import requests

from seohub.integrations.woocommerce.errors import UpstreamFetchError
from seohub.integrations.woocommerce.http_client import WooHttpClient, to_generation_summary


class FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str = "", reason: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = reason

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    """按顺序返回预设响应（或抛出预设异常），并记录请求。"""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.auth = None

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _client(session: FakeSession, sleeps: Optional[list] = None) -> WooHttpClient:
    return WooHttpClient(
        store_url="https://shop.example.com/",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        max_attempts=3,
        backoff_ms=500,
        session=session,  # type: ignore[arg-type]
        sleep=(sleeps.append if sleeps is not None else (lambda s: None)),
    )


def test_get_product_builds_url_and_basic_auth():
    session = FakeSession([FakeResponse(200, {"id": 42, "name": "Towel"})])
    product = _client(session).get_product(42)

    assert product["name"] == "Towel"
    assert session.calls[0]["url"] == "https://shop.example.com/wp-json/wc/v3/products/42"
    assert session.auth == ("ck_test", "cs_test")


def test_retries_5xx_then_succeeds_with_backoff():
    sleeps: list = []
    session = FakeSession([
        FakeResponse(503, text="busy", reason="Service Unavailable"),
        FakeResponse(429, text="slow down", reason="Too Many Requests"),
        FakeResponse(200, {"id": 1}),
    ])
    assert _client(session, sleeps).get_product(1) == {"id": 1}
    assert len(session.calls) == 3
    assert sleeps == [0.5, 1.0]


def test_not_found_is_not_retried():
    session = FakeSession([FakeResponse(404, text='{"code":"woocommerce_rest_product_invalid_id"}', reason="Not Found")])
    with pytest.raises(UpstreamFetchError) as ei:
        _client(session).get_product(9)

    assert len(session.calls) == 1
    assert ei.value.status_code == 404
    assert str(ei.value) == "Failed to fetch product: Not Found"
    assert "invalid_id" in ei.value.detail


def test_exhausted_retries_raise():
    session = FakeSession([FakeResponse(500, reason="Internal Server Error")] * 3)
    with pytest.raises(UpstreamFetchError) as ei:
        _client(session).get_product(1)
    assert ei.value.status_code == 500
    assert len(session.calls) == 3


def test_network_error_retried_then_raised():
    session = FakeSession([requests.ConnectionError("refused")] * 3)
    with pytest.raises(UpstreamFetchError):
        _client(session).get_product(1)
    assert len(session.calls) == 3


def test_list_products_passes_paging_params():
    session = FakeSession([FakeResponse(200, [{"id": 1}, {"id": 2}])])
    rows = _client(session).list_products(page=2, per_page=20)

    assert [r["id"] for r in rows] == [1, 2]
    call = session.calls[0]
    assert call["url"] == "https://shop.example.com/wp-json/wc/v3/products"
    assert call["params"]["page"] == 2
    assert call["params"]["per_page"] == 20


def test_non_json_body_raises():
    session = FakeSession([FakeResponse(200, None, text="<html>maintenance</html>")])
    with pytest.raises(UpstreamFetchError):
        _client(session).get_product(1)


def test_generation_summary_keeps_only_needed_fields():
    summary = to_generation_summary({
        "id": 5,
        "name": "Mug",
        "description": "<p>Big mug</p>",
        "short_description": "Mug",
        "categories": [{"id": 3, "name": "Kitchen", "slug": "kitchen"}],
        "meta_data": [{"key": "x", "value": "y"}],
    })
    assert summary["categories"] == [{"id": 3, "name": "Kitchen"}]
    assert "meta_data" not in summary
    assert summary["sku"] == ""
