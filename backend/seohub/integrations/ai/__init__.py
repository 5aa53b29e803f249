"""
对外统一入口：内容生成客户端 / 解析器 / 异常。
"""

from .generation_client import ContentGenerationClient, MODEL_CREDIT_COSTS, credit_cost, render_prompt
from .response_parser import parse_generated_content, generate_permalink
from .errors import GenerationError, GenerationConfigError, GenerationParseError


__all__ = [
    "ContentGenerationClient", "MODEL_CREDIT_COSTS", "credit_cost", "render_prompt",
    "parse_generated_content", "generate_permalink",
    "GenerationError", "GenerationConfigError", "GenerationParseError",
]
