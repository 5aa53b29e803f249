# bulk generation database repository
#
# 约定：
#   - 状态迁移一律用带 WHERE 条件的 UPDATE，rowcount 决定是否真的迁移了（幂等 / 防重复消费）
#   - 计数器只做服务端 +1，且带 completed + failed < total 的保护
#   - 除 create_job 外，这里不 commit；事务边界由 task / API 控制

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.orm import Session

from seohub.db.model.bulk_generation import (
    BatchStatus,
    BulkGenerationJob,
    BulkGenerationResult,
    GenerationBatch,
    JobStatus,
    ResultStatus,
)
from seohub.utils.clock import now_utc

logger = logging.getLogger(__name__)

_NO_SYNC = {"synchronize_session": False}


@dataclass(slots=True)
class JobCreateDTO:
    user_id: str
    store_id: str
    product_ids: List[int]
    prompt_template: str
    model: str
    batch_size: int = 5
    available_credits: Optional[int] = None     # 调用方给出的 credit 余额；None 表示不校验


def dedupe_product_ids(product_ids: Iterable[int]) -> List[int]:
    """去重并保持首次出现的顺序。"""
    seen: set = set()
    out: List[int] = []
    for pid in product_ids:
        pid = int(pid)
        if pid in seen:
            continue
        seen.add(pid)
        out.append(pid)
    return out


def partition(product_ids: Sequence[int], batch_size: int) -> List[List[int]]:
    """按原顺序切成 batch_size 大小的连续片段，最后一片取余数。"""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [list(product_ids[i:i + batch_size]) for i in range(0, len(product_ids), batch_size)]


# ---------- Query ----------
def get_job(db: Session, job_id: str) -> Optional[BulkGenerationJob]:
    return db.get(BulkGenerationJob, job_id)


def get_batch(db: Session, batch_id: str) -> Optional[GenerationBatch]:
    return db.get(GenerationBatch, batch_id)


def list_batches(db: Session, job_id: str) -> List[GenerationBatch]:
    stmt = (
        select(GenerationBatch)
        .where(GenerationBatch.job_id == job_id)
        .order_by(GenerationBatch.batch_number.asc())
    )
    return list(db.scalars(stmt))


def list_results(db: Session, job_id: str, status: Optional[str] = None) -> List[BulkGenerationResult]:
    stmt = select(BulkGenerationResult).where(BulkGenerationResult.job_id == job_id)
    if status:
        stmt = stmt.where(BulkGenerationResult.status == status)
    return list(db.scalars(stmt.order_by(BulkGenerationResult.id.asc())))


def next_queued_batch(db: Session, job_id: str) -> Optional[GenerationBatch]:
    """该 job 中 batch_number 最小的 queued batch。"""
    stmt = (
        select(GenerationBatch)
        .where(GenerationBatch.job_id == job_id, GenerationBatch.status == BatchStatus.QUEUED)
        .order_by(GenerationBatch.batch_number.asc())
        .limit(1)
    )
    return db.scalars(stmt).first()


'''
  beat 兜底扫表：每个 processing job 只取它最靠前的 queued batch，且
    - scheduled_at 已到期
    - 该 job 没有 processing / failed 的 batch（前一批还在跑，或链已因失败中断）
'''
def due_batches(db: Session, now: Optional[datetime] = None, limit: int = 100) -> List[GenerationBatch]:
    now = now or now_utc()

    blocked_jobs = (
        select(GenerationBatch.job_id)
        .where(GenerationBatch.status.in_([BatchStatus.PROCESSING, BatchStatus.FAILED]))
    )
    first_queued = (
        select(
            GenerationBatch.job_id.label("job_id"),
            func.min(GenerationBatch.batch_number).label("batch_number"),
        )
        .where(GenerationBatch.status == BatchStatus.QUEUED)
        .group_by(GenerationBatch.job_id)
        .subquery()
    )
    stmt = (
        select(GenerationBatch)
        .join(
            first_queued,
            and_(
                GenerationBatch.job_id == first_queued.c.job_id,
                GenerationBatch.batch_number == first_queued.c.batch_number,
            ),
        )
        .join(BulkGenerationJob, BulkGenerationJob.id == GenerationBatch.job_id)
        .where(
            BulkGenerationJob.status == JobStatus.PROCESSING,
            GenerationBatch.scheduled_at <= now,
            GenerationBatch.job_id.not_in(blocked_jobs),
        )
        .order_by(GenerationBatch.scheduled_at.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


def stale_batches(db: Session, started_before: datetime, limit: int = 100) -> List[GenerationBatch]:
    """processing 且 started_at 早于租约截止时间的 batch（只看 processing 中的 job）。"""
    stmt = (
        select(GenerationBatch)
        .join(BulkGenerationJob, BulkGenerationJob.id == GenerationBatch.job_id)
        .where(
            BulkGenerationJob.status == JobStatus.PROCESSING,
            GenerationBatch.status == BatchStatus.PROCESSING,
            GenerationBatch.started_at < started_before,
        )
        .order_by(GenerationBatch.started_at.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


def list_jobs(
    db: Session,
    user_id: str,
    store_id: Optional[str] = None,
    limit: int = 10,
) -> List[BulkGenerationJob]:
    """某个用户的 job 历史，新的在前。"""
    stmt = select(BulkGenerationJob).where(BulkGenerationJob.user_id == user_id)
    if store_id:
        stmt = stmt.where(BulkGenerationJob.store_id == store_id)
    stmt = stmt.order_by(BulkGenerationJob.created_at.desc(), BulkGenerationJob.id.desc()).limit(limit)
    return list(db.scalars(stmt).unique())


def finished_product_ids(db: Session, job_id: str, product_ids: Sequence[int]) -> set:
    """product_ids 中结果已是终态（completed / failed）的那些。"""
    if not product_ids:
        return set()
    stmt = select(BulkGenerationResult.product_id).where(
        BulkGenerationResult.job_id == job_id,
        BulkGenerationResult.product_id.in_(list(product_ids)),
        BulkGenerationResult.status.in_([ResultStatus.COMPLETED, ResultStatus.FAILED]),
    )
    return set(db.scalars(stmt))


# ---------- Job ----------
def create_job(db: Session, dto: JobCreateDTO) -> BulkGenerationJob:
    """写入一条 pending job；product_ids 去重后固定 total_products。"""
    product_ids = dedupe_product_ids(dto.product_ids)
    job = BulkGenerationJob(
        id=str(uuid.uuid4()),
        user_id=dto.user_id,
        store_id=dto.store_id,
        product_ids=product_ids,
        batch_size=dto.batch_size,
        prompt_template=dto.prompt_template,
        model=dto.model,
        status=JobStatus.PENDING,
        total_products=len(product_ids),
        completed_products=0,
        failed_products=0,
        created_at=now_utc(),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def mark_job_processing(db: Session, job_id: str) -> bool:
    """pending → processing；返回是否迁移成功。"""
    res = db.execute(
        update(BulkGenerationJob)
        .where(BulkGenerationJob.id == job_id, BulkGenerationJob.status == JobStatus.PENDING)
        .values(status=JobStatus.PROCESSING, started_at=now_utc(), updated_at=now_utc())
        .execution_options(**_NO_SYNC)
    )
    return bool(res.rowcount)


def _bump_counter(db: Session, job_id: str, column: str) -> bool:
    col = getattr(BulkGenerationJob, column)
    res = db.execute(
        update(BulkGenerationJob)
        .where(
            BulkGenerationJob.id == job_id,
            BulkGenerationJob.completed_products + BulkGenerationJob.failed_products
            < BulkGenerationJob.total_products,
        )
        .values({column: col + 1, "updated_at": now_utc()})
        .execution_options(**_NO_SYNC)
    )
    if not res.rowcount:
        logger.warning("counter bump skipped job=%s column=%s (already at total)", job_id, column)
    return bool(res.rowcount)


def increment_completed(db: Session, job_id: str) -> bool:
    return _bump_counter(db, job_id, "completed_products")


def increment_failed(db: Session, job_id: str) -> bool:
    return _bump_counter(db, job_id, "failed_products")


"""
    完成判定（单条条件 UPDATE，天然幂等）：
      只有 status=processing 且 completed + failed >= total 时才迁移；
      failed == total → failed，否则 completed。
"""
def finalize_job_if_done(db: Session, job_id: str) -> Optional[str]:
    final_status = case(
        (BulkGenerationJob.failed_products == BulkGenerationJob.total_products, JobStatus.FAILED),
        else_=JobStatus.COMPLETED,
    )
    res = db.execute(
        update(BulkGenerationJob)
        .where(
            BulkGenerationJob.id == job_id,
            BulkGenerationJob.status == JobStatus.PROCESSING,
            BulkGenerationJob.completed_products + BulkGenerationJob.failed_products
            >= BulkGenerationJob.total_products,
        )
        .values(status=final_status, completed_at=now_utc(), updated_at=now_utc())
        .execution_options(**_NO_SYNC)
    )
    if not res.rowcount:
        return None
    return db.scalar(select(BulkGenerationJob.status).where(BulkGenerationJob.id == job_id))


# ---------- Batch ----------
def create_batches(
    db: Session,
    job: BulkGenerationJob,
    *,
    delay_sec: int,
    now: Optional[datetime] = None,
) -> List[GenerationBatch]:
    """按 job.batch_size 切片写入 queued batch；第 i 批 scheduled_at = now + i * delay。"""
    now = now or now_utc()
    batches = [
        GenerationBatch(
            id=str(uuid.uuid4()),
            job_id=job.id,
            batch_number=idx + 1,
            product_ids=chunk,
            status=BatchStatus.QUEUED,
            priority=0,
            scheduled_at=now + timedelta(seconds=delay_sec * idx),
        )
        for idx, chunk in enumerate(partition(job.product_ids, job.batch_size))
    ]
    db.add_all(batches)
    db.flush()
    return batches


def claim_batch(db: Session, batch_id: str) -> bool:
    """queued → processing，attempts +1；rowcount=0 说明已被别的 worker 领走或已终态。"""
    res = db.execute(
        update(GenerationBatch)
        .where(GenerationBatch.id == batch_id, GenerationBatch.status == BatchStatus.QUEUED)
        .values(
            status=BatchStatus.PROCESSING,
            started_at=now_utc(),
            attempts=GenerationBatch.attempts + 1,
        )
        .execution_options(**_NO_SYNC)
    )
    return bool(res.rowcount)


def mark_batch_completed(db: Session, batch_id: str) -> bool:
    res = db.execute(
        update(GenerationBatch)
        .where(GenerationBatch.id == batch_id, GenerationBatch.status == BatchStatus.PROCESSING)
        .values(status=BatchStatus.COMPLETED, completed_at=now_utc())
        .execution_options(**_NO_SYNC)
    )
    return bool(res.rowcount)


def mark_batch_failed(db: Session, batch_id: str, err: Exception | str) -> bool:
    res = db.execute(
        update(GenerationBatch)
        .where(
            GenerationBatch.id == batch_id,
            GenerationBatch.status.in_([BatchStatus.QUEUED, BatchStatus.PROCESSING]),
        )
        .values(status=BatchStatus.FAILED, completed_at=now_utc(), error_message=str(err)[:2000])
        .execution_options(**_NO_SYNC)
    )
    if not res.rowcount:
        logger.warning("mark_batch_failed updated 0 rows: batch=%s err=%s", batch_id, err)
    return bool(res.rowcount)


'''
  租约过期的 batch（worker 领走后挂掉，acks_late 重投的消息又被 claim_batch 挡掉）：
    - requeue_stale_batch: processing → queued，scheduled_at = now，留下 error_message 供排查；
      本批中停在 processing 的结果退回 pending
    - expire_stale_batch: processing → failed（次数用尽）
  两者都带 started_at < cutoff 条件，正常跑完的 batch 不会被误伤。
'''
def requeue_stale_batch(
    db: Session,
    batch: GenerationBatch,
    *,
    started_before: datetime,
    now: datetime,
    reason: str,
) -> bool:
    res = db.execute(
        update(GenerationBatch)
        .where(
            GenerationBatch.id == batch.id,
            GenerationBatch.status == BatchStatus.PROCESSING,
            GenerationBatch.started_at < started_before,
        )
        .values(status=BatchStatus.QUEUED, scheduled_at=now, started_at=None, error_message=reason[:2000])
        .execution_options(**_NO_SYNC)
    )
    if not res.rowcount:
        return False

    db.execute(
        update(BulkGenerationResult)
        .where(
            BulkGenerationResult.job_id == batch.job_id,
            BulkGenerationResult.product_id.in_(list(batch.product_ids or [])),
            BulkGenerationResult.status == ResultStatus.PROCESSING,
        )
        .values(status=ResultStatus.PENDING, updated_at=now)
        .execution_options(**_NO_SYNC)
    )
    return True


def expire_stale_batch(db: Session, batch_id: str, *, started_before: datetime, reason: str) -> bool:
    res = db.execute(
        update(GenerationBatch)
        .where(
            GenerationBatch.id == batch_id,
            GenerationBatch.status == BatchStatus.PROCESSING,
            GenerationBatch.started_at < started_before,
        )
        .values(status=BatchStatus.FAILED, completed_at=now_utc(), error_message=reason[:2000])
        .execution_options(**_NO_SYNC)
    )
    return bool(res.rowcount)


def restamp_scheduled_at(db: Session, batch_id: str, scheduled_at: datetime) -> None:
    db.execute(
        update(GenerationBatch)
        .where(GenerationBatch.id == batch_id, GenerationBatch.status == BatchStatus.QUEUED)
        .values(scheduled_at=scheduled_at)
        .execution_options(**_NO_SYNC)
    )


# ---------- Result ----------
def create_results(db: Session, job: BulkGenerationJob) -> None:
    db.add_all(
        BulkGenerationResult(job_id=job.id, product_id=pid, status=ResultStatus.PENDING)
        for pid in job.product_ids
    )
    db.flush()


def mark_result_processing(db: Session, job_id: str, product_id: int) -> bool:
    res = db.execute(
        update(BulkGenerationResult)
        .where(
            BulkGenerationResult.job_id == job_id,
            BulkGenerationResult.product_id == product_id,
            BulkGenerationResult.status == ResultStatus.PENDING,
        )
        .values(status=ResultStatus.PROCESSING, updated_at=now_utc())
        .execution_options(**_NO_SYNC)
    )
    return bool(res.rowcount)


def _finish_result(db: Session, job_id: str, product_id: int, **values) -> bool:
    res = db.execute(
        update(BulkGenerationResult)
        .where(
            BulkGenerationResult.job_id == job_id,
            BulkGenerationResult.product_id == product_id,
            BulkGenerationResult.status.in_([ResultStatus.PENDING, ResultStatus.PROCESSING]),
        )
        .values(updated_at=now_utc(), **values)
        .execution_options(**_NO_SYNC)
    )
    return bool(res.rowcount)


"""
    结果只能进入终态一次；返回 False 表示已是终态（重投的 batch），此时计数器不动。
"""
def mark_result_completed(
    db: Session, job_id: str, product_id: int, *, content: dict, product_name: Optional[str],
) -> bool:
    moved = _finish_result(
        db, job_id, product_id,
        status=ResultStatus.COMPLETED, content=content, product_name=product_name, error_message=None,
    )
    if moved:
        increment_completed(db, job_id)
    return moved


def mark_result_failed(db: Session, job_id: str, product_id: int, err: Exception | str) -> bool:
    moved = _finish_result(
        db, job_id, product_id,
        status=ResultStatus.FAILED, error_message=str(err)[:2000],
    )
    if moved:
        increment_failed(db, job_id)
    return moved
