# 单品内容生成接口 -> 前端 SEO Content Generator / 商品详情页调用
# 同步返回生成结果，不落库（批量生成走 /bulk-generation）
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from seohub.db.session import get_db
from seohub.integrations.ai.errors import GenerationConfigError, GenerationError
from seohub.integrations.ai.generation_client import ContentGenerationClient, credit_cost
from seohub.integrations.woocommerce.errors import UpstreamFetchError
from seohub.integrations.woocommerce.http_client import WooHttpClient, to_generation_summary
from seohub.repository import store_repo

router = APIRouter(prefix="/content", tags=["content-generation"])

_generator = ContentGenerationClient()


class GenerateRequest(BaseModel):
    user_id: str = Field(min_length=1)
    prompt_template: str = Field(min_length=1)
    model: str = Field(min_length=1)
    # 二选一：直接传商品，或给 store_id + product_id 实时从 WooCommerce 拉
    product: Optional[Dict[str, Any]] = None
    store_id: Optional[str] = None
    product_id: Optional[int] = None
    available_credits: Optional[int] = Field(default=None, ge=0)


class GeneratedContentOut(BaseModel):
    product_id: Optional[Union[int, str]] = None
    product_name: str = ""
    user_id: str = ""
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    short_description: Optional[str] = None
    long_description: Optional[str] = None
    alt_text: Optional[str] = None
    focus_keywords: Optional[str] = None
    permalink: Optional[str] = None
    credits_used: int


def _load_product(body: GenerateRequest, db: Session) -> Dict[str, Any]:
    if body.product is not None:
        return to_generation_summary(body.product)
    if not body.store_id or body.product_id is None:
        raise HTTPException(status_code=422, detail="either product or store_id + product_id is required")

    store = store_repo.get_store(db, body.store_id)
    if store is None or not store.is_active:
        raise HTTPException(status_code=404, detail="store not found")
    try:
        return to_generation_summary(WooHttpClient.from_store(store).get_product(body.product_id))
    except UpstreamFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


"""
    生成单个商品的 SEO 内容
      - credit 不足 → 402（给了 available_credits 才校验）
      - 供应商 key 未配置 → 503；上游 / 解析失败 → 502
"""
@router.post("/generate", response_model=GeneratedContentOut)
def generate_content(body: GenerateRequest, db: Session = Depends(get_db)) -> GeneratedContentOut:
    cost = credit_cost(body.model)
    if body.available_credits is not None and cost > body.available_credits:
        raise HTTPException(
            status_code=402,
            detail=f"Not enough credits. Need {cost}, have {body.available_credits}",
        )

    product = _load_product(body, db)
    try:
        content = _generator.generate(product, body.prompt_template, body.model, user_id=body.user_id)
    except GenerationConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    content["product_name"] = str(content.get("product_name") or "")
    return GeneratedContentOut(**content, credits_used=cost)
