"""
商品 SEO 内容完整度分析

  - 固定 7 个字段的检查表（CONTENT_FIELDS）
  - meta_title / meta_description / focus_keywords 按 SEO 插件（rankmath / yoast / aioseo）查 meta_data，
    找不到再查通用键，最后回落到商品自身字段
  - 每个字段：missing / poor / complete；整体：complete / needs_attention / critical
  - 纯计算，无 I/O
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from seohub.services.content_health.models import (
    ContentField,
    ContentHealthCheck,
    ContentHealthSettings,
    ContentHealthSummary,
    MissingFieldCount,
    ProductContentHealth,
)
from seohub.utils.clock import now_utc

logger = logging.getLogger(__name__)


CONTENT_FIELDS: tuple[ContentField, ...] = (
    ContentField("meta_title", required=True, min_length=30),
    ContentField("meta_description", required=True, min_length=80),
    ContentField("short_description", required=True, min_words=10),
    ContentField("long_description", required=True, min_words=100),
    ContentField("alt_text", required=False, min_length=5),
    ContentField("focus_keywords", required=False),
    ContentField("permalink", required=False),
)

UNIVERSAL = "universal"

# 字段 → 插件 → meta_data 键（按优先级）
SEO_FIELD_MAPPINGS: Dict[str, Dict[str, tuple[str, ...]]] = {
    "meta_title": {
        "rankmath": ("rank_math_title",),
        "yoast": ("_yoast_wpseo_title",),
        "aioseo": ("_aioseo_title",),
        UNIVERSAL: ("seo_title", "meta_title", "product_seo_title"),
    },
    "meta_description": {
        "rankmath": ("rank_math_description",),
        "yoast": ("_yoast_wpseo_metadesc",),
        "aioseo": ("_aioseo_description",),
        UNIVERSAL: ("seo_description", "meta_description", "product_seo_description"),
    },
    "focus_keywords": {
        "rankmath": ("rank_math_focus_keyword",),
        "yoast": ("_yoast_wpseo_focuskw", "_yoast_wpseo_focuskeywords", "_yoast_wpseo_keywords"),
        "aioseo": ("_aioseo_focus_keyword", "_aioseo_keyphrases"),
        UNIVERSAL: ("focus_keywords", "seo_keywords", "product_seo_keywords"),
    },
}

SUMMARY_TOP_N = 6

_TAG_RE = re.compile(r"<[^>]*>")


def _strip_markup(value: str) -> str:
    return _TAG_RE.sub("", value).strip()


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _product_id(value: Any) -> Optional[Union[int, str]]:
    if value is None or isinstance(value, (int, str)):
        return value
    return str(value)


# ---------- 直接字段（插件键都找不到时的回落）----------
def _first_image_alt(product: Mapping[str, Any]) -> str:
    images = product.get("images") or []
    if images and isinstance(images[0], Mapping):
        return images[0].get("alt") or ""
    return ""


def _tag_names(product: Mapping[str, Any]) -> str:
    return ", ".join(
        str(t.get("name") or "") for t in (product.get("tags") or []) if isinstance(t, Mapping)
    )


_DIRECT_SOURCES = {
    "meta_title": lambda p: p.get("name") or "",
    "meta_description": lambda p: p.get("short_description") or "",
    "focus_keywords": _tag_names,
    "short_description": lambda p: p.get("short_description") or "",
    "long_description": lambda p: p.get("description") or "",
    "alt_text": _first_image_alt,
    "permalink": lambda p: p.get("slug") or "",
}


def extract_meta(product: Mapping[str, Any], keys: Sequence[str]) -> str:
    """
    先按 keys 顺序在 meta_data 里找非空字符串，再查商品顶层同名字段；都没有返回 ""。
    """
    meta_data = product.get("meta_data")
    if isinstance(meta_data, list):
        for key in keys:
            item = next(
                (m for m in meta_data if isinstance(m, Mapping) and m.get("key") == key), None,
            )
            value = item.get("value") if item else None
            if isinstance(value, str) and value.strip():
                return value.strip()

    for key in keys:
        value = product.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    return ""


class ContentHealthAnalyzer:

    def __init__(self, settings: Optional[ContentHealthSettings] = None) -> None:
        self.settings = settings or ContentHealthSettings()
        self.fields = self._fields_for(self.settings)


    @staticmethod
    def _fields_for(settings: ContentHealthSettings) -> tuple[ContentField, ...]:
        out = []
        for f in CONTENT_FIELDS:
            if f.name == "meta_description":
                f = replace(f, min_length=settings.min_meta_description_length)
            elif f.name == "short_description":
                f = replace(f, min_words=settings.min_short_description_words)
            out.append(f)
        return tuple(out)


    # ---------- Public ----------
    def analyze_batch(
        self, products: Iterable[Mapping[str, Any]], seo_plugin: Optional[str] = None,
    ) -> List[ProductContentHealth]:
        products = list(products)
        logger.info("content health analyze products=%s plugin=%s", len(products), seo_plugin or UNIVERSAL)
        return [self.analyze_product(p, seo_plugin) for p in products]


    def analyze_product(
        self, product: Mapping[str, Any], seo_plugin: Optional[str] = None,
    ) -> ProductContentHealth:
        checks = [self._check_field(product, f, seo_plugin) for f in self.fields]
        missing = [c.field for c in checks if c.status == "missing"]

        result = ProductContentHealth(
            product_id=_product_id(product.get("id")),
            product_name=str(product.get("name") or ""),
            overall_status=self._overall_status(checks),
            missing_fields=missing,
            checks=checks,
            last_checked=now_utc().isoformat() + "Z",
            seo_score=self._seo_score(checks),
        )
        logger.debug(
            "content health product=%s status=%s score=%s missing=%s",
            result.product_id, result.overall_status, result.seo_score, ",".join(missing),
        )
        return result


    def generate_summary(self, results: Sequence[ProductContentHealth]) -> ContentHealthSummary:
        complete = sum(1 for r in results if r.overall_status == "complete")
        needs_attention = sum(1 for r in results if r.overall_status == "needs_attention")
        critical = sum(1 for r in results if r.overall_status == "critical")

        # Counter 保留首次出现顺序；sorted 稳定，同频次按首次出现排
        counts = Counter(f for r in results for f in r.missing_fields)
        ranked = sorted(counts.items(), key=lambda kv: -kv[1])[:SUMMARY_TOP_N]

        return ContentHealthSummary(
            total_products=len(results),
            complete_content=complete,
            missing_one_plus=needs_attention + critical,
            missing_three_plus=critical,
            critical_products=critical,
            common_missing_fields=[
                MissingFieldCount(field=name.replace("_", " ", 1), count=n) for name, n in ranked
            ],
        )


    # ---------- Internals ----------
    def _raw_value(self, product: Mapping[str, Any], field_name: str, seo_plugin: Optional[str]) -> str:
        mapping = SEO_FIELD_MAPPINGS.get(field_name)
        value = ""
        if mapping is not None:
            if seo_plugin and seo_plugin in mapping and seo_plugin != UNIVERSAL:
                value = extract_meta(product, mapping[seo_plugin])
            if not value:
                value = extract_meta(product, mapping[UNIVERSAL])
        if not value:
            value = _DIRECT_SOURCES[field_name](product)
        return value if isinstance(value, str) else str(value)


    def _check_field(
        self, product: Mapping[str, Any], field_def: ContentField, seo_plugin: Optional[str],
    ) -> ContentHealthCheck:
        clean = _strip_markup(self._raw_value(product, field_def.name, seo_plugin))

        if not clean:
            reason = (
                f"{field_def.label} is required but missing" if field_def.required else f"{field_def.label} is not set"
            )
            return ContentHealthCheck(field=field_def.name, status="missing", reason=reason)

        if field_def.min_length and len(clean) < field_def.min_length:
            return ContentHealthCheck(
                field=field_def.name,
                status="poor",
                reason=f"{field_def.label} is too short ({len(clean)} chars, minimum {field_def.min_length})",
            )

        if field_def.min_words:
            words = len(clean.split())
            if words < field_def.min_words:
                return ContentHealthCheck(
                    field=field_def.name,
                    status="poor",
                    reason=f"{field_def.label} has too few words ({words} words, minimum {field_def.min_words})",
                )

        return ContentHealthCheck(field=field_def.name, status="complete")


    @staticmethod
    def _overall_status(checks: Sequence[ContentHealthCheck]) -> str:
        missing = sum(1 for c in checks if c.status == "missing")
        poor = sum(1 for c in checks if c.status == "poor")
        issues = missing + poor
        if issues == 0:
            return "complete"
        if missing >= 3 or issues >= 4:
            return "critical"
        return "needs_attention"


    @staticmethod
    def _seo_score(checks: Sequence[ContentHealthCheck]) -> int:
        if not checks:
            return 0
        complete = sum(1 for c in checks if c.status == "complete")
        poor = sum(1 for c in checks if c.status == "poor")
        return _round_half_up((complete + 0.5 * poor) / len(checks) * 100)


content_health_analyzer = ContentHealthAnalyzer()
