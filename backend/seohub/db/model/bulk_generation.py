from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seohub.db.base import Base, JSONType
from seohub.db.model.store import StoreCredential


class JobStatus(str):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchStatus(str):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ResultStatus(str):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


'''
  批量生成任务（Job）
  - product_ids 保持提交顺序，分批时按原顺序切片
  - completed_products / failed_products 只允许服务端 +1（见 bulk_job_repo），不要在 Python 里读改写
'''
class BulkGenerationJob(Base):

    __tablename__ = "bulk_generation_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("store_credentials.id"), nullable=False, index=True,
    )

    product_ids: Mapped[List[int]] = mapped_column(JSONType, nullable=False, default=list)
    batch_size: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    prompt_template: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JobStatus.PENDING)

    # 进度计数
    total_products: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_products: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_products: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    store: Mapped[StoreCredential] = relationship("StoreCredential", lazy="joined")
    batches: Mapped[List["GenerationBatch"]] = relationship(
        "GenerationBatch",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="GenerationBatch.batch_number",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','processing','completed','failed')", name="status",
        ),
        CheckConstraint(
            "completed_products + failed_products <= total_products", name="counters_bounded",
        ),
        Index("ix_bgj_status_created", "status", "created_at"),
    )


# ===================== 生成队列（Batch）===================== #
# 一个 batch = job.product_ids 的一段连续切片；batch_number 从 1 开始
class GenerationBatch(Base):

    __tablename__ = "generation_queue"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bulk_generation_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    batch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_ids: Mapped[List[int]] = mapped_column(JSONType, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=BatchStatus.QUEUED)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)   # 每次 claim +1

    # 唯一的调度依据：dispatch_due_batches 只看它
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    job: Mapped[BulkGenerationJob] = relationship("BulkGenerationJob", back_populates="batches")

    __table_args__ = (
        UniqueConstraint("job_id", "batch_number", name="ux_gq_job_batch"),
        CheckConstraint(
            "status IN ('queued','processing','completed','failed')", name="status",
        ),
        Index("ix_gq_status_scheduled", "status", "scheduled_at"),
        Index("ix_gq_status_started", "status", "started_at"),
    )


# ===================== 单品结果（Result）===================== #
class BulkGenerationResult(Base):

    __tablename__ = "bulk_generation_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bulk_generation_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[Optional[str]] = mapped_column(String(512))

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ResultStatus.PENDING)
    content: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("job_id", "product_id", name="ux_bgr_job_product"),
        CheckConstraint(
            "status IN ('pending','processing','completed','failed')", name="status",
        ),
    )
