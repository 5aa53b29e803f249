"""
模型输出 → 结构化 SEO 内容

模型按固定标题分段输出：
    LONG DESCRIPTION: ...
    SHORT DESCRIPTION: ...
    META TITLE: ...
    META DESCRIPTION: ...
    FOCUS KEYWORDS: a, b, c
    IMAGE ALT TEXT: ...
每段取到下一个标题（或文本结尾）为止；permalink 由 meta title 推导。
"""

from __future__ import annotations

import logging
import re
from typing import Dict

from seohub.integrations.ai.errors import GenerationParseError

logger = logging.getLogger(__name__)


# 字段名 → (起始标题, 结束标题们)
_SECTIONS = {
    "long_description": ("LONG DESCRIPTION:", ("SHORT DESCRIPTION:",)),
    "short_description": ("SHORT DESCRIPTION:", ("META TITLE:",)),
    "meta_title": ("META TITLE:", ("META DESCRIPTION:",)),
    "meta_description": ("META DESCRIPTION:", ("FOCUS KEYWORDS:",)),
    "focus_keywords": ("FOCUS KEYWORDS:", ("IMAGE ALT TEXT:", "PERMALINK:")),
    "alt_text": ("IMAGE ALT TEXT:", ("PERMALINK:",)),
}

PERMALINK_MAX_LEN = 50
FOCUS_KEYWORD_COUNT = 3


def _section_pattern(start: str, stops: tuple) -> re.Pattern:
    stop_alt = "|".join(re.escape(s) for s in stops)
    return re.compile(rf"{re.escape(start)}\s*(.*?)(?={stop_alt}|\Z)", re.DOTALL)


_PATTERNS = {field: _section_pattern(start, stops) for field, (start, stops) in _SECTIONS.items()}


def generate_permalink(title: str) -> str:
    slug = (title or "").lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")
    # 截断后可能留下尾部连字符
    return slug[:PERMALINK_MAX_LEN].rstrip("-")


def _normalize_keywords(raw: str) -> str:
    """保留前 3 个关键词；不足 3 个时原样返回（只打 warning）。"""
    keywords = [k.strip() for k in raw.split(",") if k.strip()]
    if len(keywords) >= FOCUS_KEYWORD_COUNT:
        return ", ".join(keywords[:FOCUS_KEYWORD_COUNT])
    if keywords:
        logger.warning("focus keywords expected=%s got=%s", FOCUS_KEYWORD_COUNT, len(keywords))
        return raw
    return ""


def parse_generated_content(text: str) -> Dict[str, str]:
    """
    解析模型回复；一个分段都找不到时抛 GenerationParseError。
    缺失的分段返回空串。
    """
    text = text or ""
    content: Dict[str, str] = {}
    found = 0

    for field, pattern in _PATTERNS.items():
        m = pattern.search(text)
        if m:
            found += 1
            content[field] = m.group(1).strip()
        else:
            content[field] = ""

    if not found:
        raise GenerationParseError(
            "Content generation failed: no recognizable sections in model output",
            detail=text[:300],
        )

    content["focus_keywords"] = _normalize_keywords(content["focus_keywords"])
    content["permalink"] = generate_permalink(content["meta_title"])
    return content
