# 内容健康度接口 -> 前端 Content Health 页面调用
from dataclasses import asdict
from typing import Any, Dict, List, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from seohub.core.config import settings
from seohub.db.session import get_db
from seohub.integrations.woocommerce.errors import UpstreamFetchError
from seohub.integrations.woocommerce.http_client import WooHttpClient
from seohub.repository import store_repo
from seohub.services.content_health.analyzer import ContentHealthAnalyzer
from seohub.services.content_health.models import ContentHealthSettings

router = APIRouter(prefix="/content-health", tags=["content-health"])

SeoPlugin = Literal["rankmath", "yoast", "aioseo"]


class SettingsIn(BaseModel):
    min_meta_description_length: int = Field(80, ge=1)
    min_short_description_words: int = Field(10, ge=1)


class AnalyzeRequest(BaseModel):
    products: List[Dict[str, Any]]
    seo_plugin: Optional[SeoPlugin] = None
    settings: Optional[SettingsIn] = None


class CheckOut(BaseModel):
    field: str
    status: Literal["complete", "missing", "poor"]
    reason: Optional[str] = None


class ProductHealthOut(BaseModel):
    product_id: Optional[Union[int, str]] = None
    product_name: str
    overall_status: Literal["complete", "needs_attention", "critical"]
    missing_fields: List[str]
    checks: List[CheckOut]
    last_checked: str
    seo_score: int


class MissingFieldOut(BaseModel):
    field: str
    count: int


class SummaryOut(BaseModel):
    total_products: int
    complete_content: int
    missing_one_plus: int
    missing_three_plus: int
    critical_products: int
    common_missing_fields: List[MissingFieldOut]


class AnalyzeResponse(BaseModel):
    results: List[ProductHealthOut]
    summary: SummaryOut


def _analyzer(settings_in: Optional[SettingsIn]) -> ContentHealthAnalyzer:
    if settings_in is None:
        return ContentHealthAnalyzer()
    return ContentHealthAnalyzer(ContentHealthSettings(**settings_in.model_dump()))


def _analyze(products: List[Dict[str, Any]], seo_plugin: Optional[str], analyzer: ContentHealthAnalyzer) -> AnalyzeResponse:
    results = analyzer.analyze_batch(products, seo_plugin)
    summary = analyzer.generate_summary(results)
    return AnalyzeResponse(
        results=[ProductHealthOut(**asdict(r)) for r in results],
        summary=SummaryOut(**asdict(summary)),
    )


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze_products(body: AnalyzeRequest) -> AnalyzeResponse:
    return _analyze(body.products, body.seo_plugin, _analyzer(body.settings))


"""
    拉一页店铺商品实时分析；WooCommerce 调用失败 → 502。
"""
@router.post("/stores/{store_id}/scan", response_model=AnalyzeResponse)
def scan_store(
    store_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.WOO_SCAN_PER_PAGE, ge=1, le=100),
    seo_plugin: Optional[SeoPlugin] = None,
    body: Optional[SettingsIn] = None,
    db: Session = Depends(get_db),
) -> AnalyzeResponse:
    store = store_repo.get_store(db, store_id)
    if store is None or not store.is_active:
        raise HTTPException(status_code=404, detail="store not found")

    try:
        products = WooHttpClient.from_store(store).list_products(page=page, per_page=per_page)
    except UpstreamFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return _analyze(products, seo_plugin, _analyzer(body))
