from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Union


CheckStatus = Literal["complete", "missing", "poor"]
OverallStatus = Literal["complete", "needs_attention", "critical"]


@dataclass(frozen=True, slots=True)
class ContentField:
    name: str
    required: bool
    min_length: Optional[int] = None
    min_words: Optional[int] = None

    @property
    def label(self) -> str:
        # meta_title -> "meta title"
        return self.name.replace("_", " ", 1)


@dataclass(slots=True)
class ContentHealthCheck:
    field: str
    status: CheckStatus
    reason: Optional[str] = None


@dataclass(slots=True)
class ProductContentHealth:
    product_id: Optional[Union[int, str]]   # WooCommerce 是 int；直接 POST 的商品可能是字符串
    product_name: str
    overall_status: OverallStatus
    missing_fields: List[str]
    checks: List[ContentHealthCheck]
    last_checked: str
    seo_score: int


@dataclass(slots=True)
class MissingFieldCount:
    field: str
    count: int


@dataclass(slots=True)
class ContentHealthSummary:
    total_products: int = 0
    complete_content: int = 0
    missing_one_plus: int = 0
    missing_three_plus: int = 0
    critical_products: int = 0
    common_missing_fields: List[MissingFieldCount] = field(default_factory=list)


"""
    每次调用可覆盖的阈值；默认值与 CONTENT_FIELDS 表一致。
"""
@dataclass(frozen=True, slots=True)
class ContentHealthSettings:
    min_meta_description_length: int = 80
    min_short_description_words: int = 10
