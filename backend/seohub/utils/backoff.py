from __future__ import annotations

def calc_backoff_seconds(attempt: int, base_ms: int = 500, max_seconds: float = 30.0) -> float:
    """
    指数退避：第 1 次重试等 base，之后翻倍，直到 max_seconds。
    attempt: 第几次重试（从 1 开始）
    """
    attempt = max(1, attempt)
    delay = (base_ms / 1000.0) * (2 ** (attempt - 1))
    return min(max_seconds, delay)
