"""
AI 内容生成客户端
  - 渲染 prompt 模板里的 {{name}} / {{sku}} / {{price}} / {{description}} / {{short_description}} / {{categories}}
  - gemini* 模型走 Gemini generateContent，其它走 OpenAI chat completions
  - 不重试：失败由 worker 记为单品失败
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from seohub.core.config import settings
from seohub.integrations.ai.errors import GenerationConfigError, GenerationError
from seohub.integrations.ai.response_parser import parse_generated_content

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are an expert eCommerce SEO content writer. "
    "Follow the user instructions precisely and return content in the exact format requested."
)

GEMINI_MODEL_PREFIX = "gemini"

# 每个商品消耗的 credit；未列出的模型按 1 计
MODEL_CREDIT_COSTS: Dict[str, int] = {
    "gemini-2.0-flash": 1,
    "gpt-4o-mini": 1,
    "gpt-3.5-turbo": 1,
    "gpt-4o": 2,
    "gpt-4.1": 3,
}


def credit_cost(model: str, product_count: int = 1) -> int:
    return MODEL_CREDIT_COSTS.get(model, 1) * product_count


def render_prompt(template: str, product: Dict[str, Any]) -> str:
    categories = ", ".join(
        str(c.get("name") or "") for c in (product.get("categories") or []) if isinstance(c, dict)
    )
    values = {
        "name": product.get("name") or "",
        "sku": product.get("sku") or "",
        "price": product.get("price") or "",
        "description": product.get("description") or "",
        "short_description": product.get("short_description") or "",
        "categories": categories,
    }
    rendered = template or ""
    for key, value in values.items():
        rendered = rendered.replace("{{" + key + "}}", str(value))
    return rendered


class ContentGenerationClient:

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        gemini_api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.openai_api_key = openai_api_key or (
            settings.OPENAI_API_KEY.get_secret_value() if settings.OPENAI_API_KEY else None
        )
        self.gemini_api_key = gemini_api_key or (
            settings.GEMINI_API_KEY.get_secret_value() if settings.GEMINI_API_KEY else None
        )
        self.timeout = timeout or settings.GENERATION_TIMEOUT
        self._session = session or requests.Session()


    # ---------- Public ----------
    def generate(
        self,
        product: Dict[str, Any],
        prompt_template: str,
        model: str,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        返回解析后的内容 dict（含 permalink），并带上 product_id / product_name / user_id。
        任何失败都抛 GenerationError。
        """
        prompt = render_prompt(prompt_template, product)
        logger.info("generate content model=%s product_id=%s", model, product.get("id"))

        if (model or "").lower().startswith(GEMINI_MODEL_PREFIX):
            text = self._call_gemini(model, prompt)
        else:
            text = self._call_openai(model, prompt)

        content = parse_generated_content(text)
        content["product_id"] = product.get("id")
        content["product_name"] = product.get("name") or ""
        content["user_id"] = user_id or ""
        return content


    # ---------- Providers ----------
    def _call_openai(self, model: str, prompt: str) -> str:
        if not self.openai_api_key:
            raise GenerationConfigError("Content generation failed: OpenAI API key not configured")

        url = f"{settings.OPENAI_BASE_URL.rstrip('/')}/chat/completions"
        body = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": settings.GENERATION_TEMPERATURE,
            "max_tokens": settings.GENERATION_MAX_TOKENS,
        }
        headers = {
            "Authorization": f"Bearer {self.openai_api_key}",
            "Content-Type": "application/json",
        }
        data = self._post_json("OpenAI", url, body, headers=headers)
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Content generation failed: unexpected OpenAI response shape") from e


    def _call_gemini(self, model: str, prompt: str) -> str:
        if not self.gemini_api_key:
            raise GenerationConfigError("Content generation failed: Gemini API key not configured")

        url = f"{settings.GEMINI_BASE_URL.rstrip('/')}/models/{model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.GENERATION_TEMPERATURE,
                "maxOutputTokens": settings.GENERATION_MAX_TOKENS,
            },
        }
        data = self._post_json(
            "Gemini", url, body,
            headers={"Content-Type": "application/json"},
            params={"key": self.gemini_api_key},
        )
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Content generation failed: unexpected Gemini response shape") from e


    def _post_json(self, provider: str, url: str, body: Dict[str, Any], **kwargs: Any) -> Any:
        try:
            resp = self._session.post(url, json=body, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GenerationError(f"Content generation failed: {provider} request error: {e}") from e

        if not (200 <= resp.status_code < 300):
            snippet = (resp.text or "")[:300]
            raise GenerationError(
                f"Content generation failed: {provider} API error: {resp.status_code} {resp.reason or ''}".rstrip(),
                status_code=resp.status_code,
                detail=snippet,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise GenerationError(f"Content generation failed: {provider} returned non-JSON") from e
