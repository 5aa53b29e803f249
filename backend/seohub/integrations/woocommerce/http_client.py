"""
WooCommerce REST 客户端（每个店铺一个实例）
  - HTTP Basic 鉴权：consumer_key / consumer_secret
  - 429 / 5xx / 网络异常：指数退避后重试；其它 4xx 直接抛 UpstreamFetchError
  - 只提供商品读取：get_product / list_products
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from seohub.core.config import settings
from seohub.integrations.woocommerce.errors import UpstreamFetchError
from seohub.utils.backoff import calc_backoff_seconds

logger = logging.getLogger(__name__)


class WooHttpClient:
    """单店铺 WooCommerce REST API 的低层客户端。"""

    def __init__(
        self,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        api_version: Optional[str] = None,
        connect_timeout: Optional[int] = None,
        read_timeout: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_ms: Optional[int] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = store_url.rstrip("/")
        self.api_version = (api_version or settings.WOO_API_VERSION).strip("/")
        self.connect_timeout = connect_timeout or settings.WOO_CONNECT_TIMEOUT
        self.read_timeout = read_timeout or settings.WOO_READ_TIMEOUT
        self.max_attempts = max_attempts or settings.WOO_HTTP_RETRIES
        self.backoff_ms = settings.WOO_HTTP_BACKOFF_MS if backoff_ms is None else backoff_ms

        self._session = session or requests.Session()
        self._session.auth = (consumer_key, consumer_secret)
        self._sleep = sleep


    @classmethod
    def from_store(cls, store: Any, **kwargs: Any) -> "WooHttpClient":
        """用 StoreCredential 行构造客户端。"""
        return cls(
            store_url=store.store_url,
            consumer_key=store.consumer_key,
            consumer_secret=store.consumer_secret,
            **kwargs,
        )


    # ---------- Public ----------
    def get_product(self, product_id: int) -> Dict[str, Any]:
        """GET /wp-json/wc/v3/products/{id}，返回商品 JSON。"""
        data = self._get_json(f"products/{int(product_id)}")
        if not isinstance(data, dict):
            raise UpstreamFetchError(f"Failed to fetch product: unexpected payload for id={product_id}")
        return data


    def list_products(self, page: int = 1, per_page: Optional[int] = None) -> List[Dict[str, Any]]:
        """分页拉商品列表（按 id 升序，保证翻页稳定）。"""
        params = {
            "page": max(1, int(page)),
            "per_page": per_page or settings.WOO_SCAN_PER_PAGE,
            "orderby": "id",
            "order": "asc",
        }
        data = self._get_json("products", params=params)
        if not isinstance(data, list):
            raise UpstreamFetchError("Failed to fetch products: expected a JSON array")
        return data


    # ---------- Internals ----------
    def _url(self, path: str) -> str:
        return f"{self.base_url}/wp-json/{self.api_version}/{path.lstrip('/')}"


    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = self._request("GET", path, params=params)
        try:
            return resp.json()
        except ValueError as e:
            snippet = (resp.text or "")[:300]
            raise UpstreamFetchError(
                f"non-JSON response (status={resp.status_code})",
                status_code=resp.status_code,
                detail=snippet,
            ) from e


    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._url(path)
        headers = {"Accept": "application/json"}
        timeout = (self.connect_timeout, self.read_timeout)

        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = self._session.request(method, url, headers=headers, timeout=timeout, **kwargs)
            except requests.RequestException as e:
                # 连接/超时：退避重试
                if attempt == self.max_attempts:
                    raise UpstreamFetchError(f"Failed to fetch product: {e}") from e
                logger.warning("woo request error url=%s attempt=%s err=%s", url, attempt, e)
                self._sleep(calc_backoff_seconds(attempt, self.backoff_ms))
                continue

            # 429 / 5xx：退避重试，用尽后抛错
            if resp.status_code == 429 or resp.status_code >= 500:
                if attempt == self.max_attempts:
                    raise self._fetch_error(resp)
                logger.warning("woo retryable status=%s url=%s attempt=%s", resp.status_code, url, attempt)
                self._sleep(calc_backoff_seconds(attempt, self.backoff_ms))
                continue

            # 其它非 2xx（401/403/404…）不重试
            if not (200 <= resp.status_code < 300):
                raise self._fetch_error(resp)

            return resp

        raise UpstreamFetchError("unreachable retry loop")


    @staticmethod
    def _fetch_error(resp: requests.Response) -> UpstreamFetchError:
        reason = resp.reason or str(resp.status_code)
        return UpstreamFetchError(
            f"Failed to fetch product: {reason}",
            status_code=resp.status_code,
            detail=(resp.text or "")[:300],
        )


# 生成接口只需要这几个字段；categories 只保留 id/name
def to_generation_summary(product: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": product.get("id"),
        "name": product.get("name") or "",
        "sku": product.get("sku") or "",
        "price": product.get("price") or "",
        "description": product.get("description") or "",
        "short_description": product.get("short_description") or "",
        "categories": [
            {"id": c.get("id"), "name": c.get("name")}
            for c in (product.get("categories") or [])
            if isinstance(c, dict)
        ],
    }
