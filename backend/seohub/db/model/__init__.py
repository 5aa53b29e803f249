# 聚合导入所有模型，供 Alembic 发现

from .store import StoreCredential
from .bulk_generation import (
    BulkGenerationJob,
    GenerationBatch,
    BulkGenerationResult,
    JobStatus,
    BatchStatus,
    ResultStatus,
)

__all__ = [
    "StoreCredential",
    "BulkGenerationJob", "GenerationBatch", "BulkGenerationResult",
    "JobStatus", "BatchStatus", "ResultStatus",
]
