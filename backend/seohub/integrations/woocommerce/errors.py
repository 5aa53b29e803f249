
"""
   WooCommerce REST 集成层异常。
   HTTP/网络错误在这里收口，上层只看 UpstreamFetchError。
"""

from typing import Optional


class WooError(Exception):
    """Base for all WooCommerce errors."""


class UpstreamFetchError(WooError):
    """Catalog call failed: non-2xx after retries, network error, or bad payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
