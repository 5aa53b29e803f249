
"""
   批量生成流水线的业务异常。
   API 层按类型映射 HTTP 状态码；worker 内按类型决定 batch 失败还是单品失败。
"""

class BulkGenerationError(Exception):
    """Base for all bulk generation pipeline errors."""

class JobNotFound(BulkGenerationError):
    """Job id does not exist when one of its batches runs."""

class InvalidJobState(BulkGenerationError):
    """Start requested on a job that is missing, not pending or has no products."""

class StoreNotAvailable(BulkGenerationError):
    """Store credential missing or deactivated at submission time."""

class InsufficientCredits(BulkGenerationError):
    """Credit balance does not cover products x per-model credit cost."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"Not enough credits. Need {required}, have {available}")
        self.required = required
        self.available = available

class PersistenceError(BulkGenerationError):
    """Database bookkeeping failed (wraps SQLAlchemyError)."""
