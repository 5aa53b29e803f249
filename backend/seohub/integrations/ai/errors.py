
"""
   AI 内容生成集成层异常。
"""

from typing import Optional


class GenerationError(Exception):
    """Content generation failed (missing key, upstream non-2xx, unparseable output)."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class GenerationConfigError(GenerationError):
    """Provider API key not configured."""


class GenerationParseError(GenerationError):
    """Model replied but none of the expected sections could be found."""
