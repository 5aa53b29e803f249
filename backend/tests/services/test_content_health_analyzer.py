from __future__ import annotations

import copy

import pytest

from seohub.services.content_health.analyzer import SEO_FIELD_MAPPINGS, ContentHealthAnalyzer, extract_meta
from seohub.services.content_health.models import ContentHealthSettings


LONG_TEXT = "<p>" + " ".join(["word"] * 120) + "</p>"


def _complete_product(**overrides):
    product = {
        "id": 101,
        "name": "Organic Cotton Towel",
        "slug": "organic-cotton-towel",
        "description": LONG_TEXT,
        "short_description": "<p>A soft and thick organic cotton towel for everyday bathroom use.</p>",
        "images": [{"id": 1, "alt": "Folded white towel"}],
        "tags": [{"name": "towel"}, {"name": "cotton"}],
        "meta_data": [
            {"key": "seo_title", "value": "Premium Organic Cotton Bath Towel Set"},
            {
                "key": "seo_description",
                "value": "Shop our premium organic cotton bath towel set: soft, thick and quick drying for everyday use.",
            },
        ],
    }
    product.update(overrides)
    return product


@pytest.fixture
def analyzer():
    return ContentHealthAnalyzer()


def _check(result, field):
    return next(c for c in result.checks if c.field == field)


def test_complete_product(analyzer):
    result = analyzer.analyze_product(_complete_product())
    assert result.overall_status == "complete"
    assert result.missing_fields == []
    assert result.seo_score == 100
    assert [c.field for c in result.checks] == [
        "meta_title", "meta_description", "short_description", "long_description",
        "alt_text", "focus_keywords", "permalink",
    ]


# 只缺 short_description：needs_attention，6 个 complete → round(100 * 6 / 7) = 86
def test_missing_short_description(analyzer):
    result = analyzer.analyze_product(_complete_product(short_description=""))

    assert result.overall_status == "needs_attention"
    assert result.missing_fields == ["short_description"]
    assert result.seo_score == 86
    assert _check(result, "short_description").reason == "short description is required but missing"


def test_three_required_fields_missing_is_critical(analyzer):
    product = _complete_product(name="", description="", meta_data=[], short_description="")
    result = analyzer.analyze_product(product)

    assert result.overall_status == "critical"
    for field in ("meta_title", "meta_description", "long_description"):
        assert field in result.missing_fields


def test_four_issues_without_three_missing_is_critical(analyzer):
    product = _complete_product(
        meta_data=[],
        name="Short name",                         # meta_title poor
        short_description="Too few words here",    # short poor + meta_description poor
        description="<p>also short</p>",           # long poor
    )
    result = analyzer.analyze_product(product)
    assert result.missing_fields == []
    assert result.overall_status == "critical"
    # 4 poor, 3 complete → (3 + 2) / 7
    assert result.seo_score == 71


def test_poor_reasons_cite_actual_and_minimum(analyzer):
    product = _complete_product(meta_data=[], name="Towel", short_description="Three word text")
    result = analyzer.analyze_product(product)

    assert _check(result, "meta_title").reason == "meta title is too short (5 chars, minimum 30)"
    assert _check(result, "meta_description").reason == "meta description is too short (15 chars, minimum 80)"
    assert _check(result, "short_description").reason == (
        "short description has too few words (3 words, minimum 10)"
    )


def test_optional_fields_report_not_set(analyzer):
    product = _complete_product(images=[], tags=[], slug="")
    result = analyzer.analyze_product(product)

    assert result.missing_fields == ["alt_text", "focus_keywords", "permalink"]
    assert _check(result, "alt_text").reason == "alt text is not set"
    assert _check(result, "permalink").reason == "permalink is not set"
    assert result.overall_status == "critical"


def test_markup_is_stripped_before_measuring(analyzer):
    product = _complete_product(short_description="<p><strong></strong></p>")
    result = analyzer.analyze_product(product)
    assert _check(result, "short_description").status == "missing"


# ---------- SEO 插件 ----------
def test_yoast_title_wins_over_product_name(analyzer):
    product = _complete_product(
        name="Mug",
        meta_data=[
            {"key": "_yoast_wpseo_title", "value": "Large Ceramic Coffee Mug For Every Morning"},
            {"key": "_yoast_wpseo_metadesc", "value": "x" * 90},
        ],
    )
    title = "Large Ceramic Coffee Mug For Every Morning"
    assert extract_meta(product, SEO_FIELD_MAPPINGS["meta_title"]["yoast"]) == title
    assert analyzer._raw_value(product, "meta_title", "yoast") == title
    with_plugin = analyzer.analyze_product(product, "yoast")
    assert _check(with_plugin, "meta_title").status == "complete"

    # 不指定插件时 yoast 键不在通用键里，回落到商品名 "Mug"
    without_plugin = analyzer.analyze_product(product)
    assert _check(without_plugin, "meta_title").reason == "meta title is too short (3 chars, minimum 30)"


def test_plugin_falls_back_to_universal_keys(analyzer):
    result = analyzer.analyze_product(_complete_product(), "rankmath")
    assert _check(result, "meta_title").status == "complete"


def test_focus_keywords_from_plugin_then_tags():
    product = {
        "tags": [{"name": "mug"}, {"name": "cup"}],
        "meta_data": [{"key": "rank_math_focus_keyword", "value": "  ceramic mug  "}],
    }
    assert extract_meta(product, ("rank_math_focus_keyword",)) == "ceramic mug"
    assert extract_meta(product, ("focus_keywords",)) == ""


def test_extract_meta_skips_blank_and_non_string_values():
    product = {
        "meta_data": [
            {"key": "seo_title", "value": "   "},
            {"key": "meta_title", "value": {"nested": True}},
        ],
        "product_seo_title": "Direct attribute title",
    }
    assert extract_meta(product, ("seo_title", "meta_title", "product_seo_title")) == "Direct attribute title"


# ---------- 阈值覆盖 ----------
def test_settings_override_thresholds():
    product = _complete_product(
        short_description="Two words",
        meta_data=[
            {"key": "seo_title", "value": "Premium Organic Cotton Bath Towel Set"},
            {"key": "seo_description", "value": "Forty character description for the towel"},
        ],
    )
    strict = ContentHealthAnalyzer().analyze_product(product)
    assert _check(strict, "short_description").status == "poor"
    assert _check(strict, "meta_description").status == "poor"

    relaxed = ContentHealthAnalyzer(
        ContentHealthSettings(min_meta_description_length=20, min_short_description_words=2)
    ).analyze_product(product)
    assert _check(relaxed, "short_description").status == "complete"
    assert _check(relaxed, "meta_description").status == "complete"


# ---------- 汇总 ----------
def test_summary_counts_and_top_missing_fields(analyzer):
    products = [
        _complete_product(id=1),
        _complete_product(id=2, short_description=""),
        _complete_product(id=3, short_description="", slug=""),
        _complete_product(id=4, name="", description="", meta_data=[], short_description=""),
    ]
    results = analyzer.analyze_batch(products)
    summary = analyzer.generate_summary(results)

    assert summary.total_products == 4
    assert summary.complete_content == 1
    assert summary.missing_one_plus + summary.complete_content == summary.total_products
    assert summary.critical_products == summary.missing_three_plus == 1
    assert summary.common_missing_fields[0].field == "short description"
    assert summary.common_missing_fields[0].count == 3


def test_summary_keeps_first_seen_order_on_ties_and_caps_at_six(analyzer):
    empty = {"id": 9, "name": "", "description": "", "short_description": "", "meta_data": []}
    results = analyzer.analyze_batch([empty, copy.deepcopy(empty)])
    summary = analyzer.generate_summary(results)

    assert len(summary.common_missing_fields) == 6
    assert [f.field for f in summary.common_missing_fields] == [
        "meta title", "meta description", "short description",
        "long description", "alt text", "focus keywords",
    ]
    assert all(f.count == 2 for f in summary.common_missing_fields)


def test_summary_of_empty_list(analyzer):
    summary = analyzer.generate_summary([])
    assert summary.total_products == 0
    assert summary.common_missing_fields == []


def test_product_identity_is_normalised(analyzer):
    result = analyzer.analyze_product({"id": "sku-1", "name": 42})
    assert result.product_id == "sku-1"
    assert result.product_name == "42"
    assert analyzer.analyze_product({"id": [1]}).product_id == "[1]"
