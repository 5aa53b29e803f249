"""
对外统一入口：上层只从这里 import WooCommerce 客户端与异常。
"""

from .http_client import WooHttpClient, to_generation_summary
from .errors import WooError, UpstreamFetchError


__all__ = [
    "WooHttpClient", "to_generation_summary",
    "WooError", "UpstreamFetchError",
]
