
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seohub.core.config import settings
from seohub.db.model.bulk_generation import BulkGenerationJob, JobStatus
from seohub.db.session import SessionLocal
from seohub.integrations.ai.generation_client import ContentGenerationClient, credit_cost
from seohub.integrations.woocommerce.http_client import WooHttpClient, to_generation_summary
from seohub.orchestration.bulk_generation.errors import (
    InsufficientCredits,
    InvalidJobState,
    JobNotFound,
    PersistenceError,
    StoreNotAvailable,
)
from seohub.repository import bulk_job_repo as repo
from seohub.repository import store_repo
from seohub.utils.clock import now_utc


logger = logging.getLogger(__name__)

# 单例：worker 进程内复用 requests.Session
_generator = ContentGenerationClient()


def _woo_client_for(store: Any) -> WooHttpClient:
    return WooHttpClient.from_store(store)


"""
  调试开关：True 时整条 batch 链在当前进程内同步执行（批间用 sleep 等待）。
"""
def _inline_tasks_enabled() -> bool:
    return bool(getattr(settings, "SYNC_TASKS_INLINE", False))


def _batch_delay_sec() -> int:
    return int(getattr(settings, "BULK_BATCH_DELAY_SEC", 5))


def _batch_lease_sec() -> int:
    return int(getattr(settings, "BULK_BATCH_LEASE_SEC", 900))


def _batch_max_attempts() -> int:
    return int(getattr(settings, "BULK_BATCH_MAX_ATTEMPTS", 3))



# ========================== 提交 ==========================
"""
    写入 pending job：店铺必须存在且启用；product_ids 去重后固定 total_products。
    给了 available_credits 时，去重后的商品数 x 模型单价不能超过余额。
"""
def submit_job(db: Session, dto: repo.JobCreateDTO) -> BulkGenerationJob:
    store = store_repo.get_store(db, dto.store_id)
    if store is None or not store.is_active:
        raise StoreNotAvailable(f"store {dto.store_id} not found or inactive")
    product_ids = repo.dedupe_product_ids(dto.product_ids)
    if not product_ids:
        raise InvalidJobState("product_ids must not be empty")
    if dto.available_credits is not None:
        required = credit_cost(dto.model, len(product_ids))
        if required > dto.available_credits:
            raise InsufficientCredits(required, dto.available_credits)

    try:
        job = repo.create_job(db, dto)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"failed to create job: {e}") from e

    logger.info(
        "bulk job created job=%s user=%s store=%s products=%s model=%s",
        job.id, job.user_id, job.store_id, job.total_products, job.model,
    )
    return job



# ========================== 启动 ==========================
"""
启动一个 pending job
    1) job → processing，写 started_at
    2) 每个商品一条 pending result
    3) 按 batch_size 切片写 queued batch（scheduled_at = now + i * delay）
    4) 立即投递第 1 批；返回 batch 数
"""
def start_job(
    job_id: str,
    *,
    inline: Optional[bool] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    inline = _inline_tasks_enabled() if inline is None else inline
    db: Session = SessionLocal()

    try:
        job = repo.get_job(db, job_id)
        if job is None:
            raise InvalidJobState(f"job {job_id} does not exist")
        if job.status != JobStatus.PENDING:
            raise InvalidJobState(f"job {job_id} is {job.status}, expected pending")
        if not job.product_ids:
            raise InvalidJobState(f"job {job_id} has no products")

        try:
            if not repo.mark_job_processing(db, job_id):
                # 并发的另一个 start 抢先了
                raise InvalidJobState(f"job {job_id} is no longer pending")
            repo.create_results(db, job)
            batches = repo.create_batches(db, job, delay_sec=_batch_delay_sec())
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"failed to initialise job {job_id}: {e}") from e

        first_batch_id = batches[0].id
        batch_count = len(batches)
        logger.info(
            "bulk job started job=%s products=%s batch_size=%s batches=%s inline=%s",
            job_id, len(job.product_ids), job.batch_size, batch_count, inline,
        )
    finally:
        db.close()

    _dispatch_batch(job_id, first_batch_id, countdown=0, inline=inline, sleep=sleep)
    return batch_count


@shared_task(name="seohub.orchestration.bulk_generation.start_bulk_generation")
def start_bulk_generation(job_id: str) -> Dict[str, Any]:
    try:
        batches = start_job(job_id)
    except Exception:
        logger.exception("start_bulk_generation failed job=%s", job_id)
        raise
    return {"job_id": job_id, "batches": batches}



# ========================== 投递 ==========================
def _dispatch_batch(
    job_id: str,
    batch_id: str,
    *,
    countdown: int,
    inline: bool,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    if inline:
        if countdown:
            sleep(countdown)
        run_batch_chain_inline(job_id, batch_id, sleep=sleep)
        return

    process_batch.apply_async(
        args=[job_id, batch_id], countdown=countdown, task_id=f"batch:{batch_id}",
    )


"""
    调试入口：串行跑完从 batch_id 开始的整条链。
"""
def run_batch_chain_inline(
    job_id: str,
    batch_id: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    processed = 0
    next_id: Optional[str] = batch_id
    while next_id:
        if processed:
            sleep(_batch_delay_sec())
        next_id = _process_batch_logic(job_id, next_id)
        processed += 1
    return processed


@shared_task(name="seohub.orchestration.bulk_generation.process_batch")
def process_batch(job_id: str, batch_id: str) -> Dict[str, Any]:
    next_id = _process_batch_logic(job_id, batch_id)
    if next_id:
        _dispatch_batch(job_id, next_id, countdown=_batch_delay_sec(), inline=_inline_tasks_enabled())
    return {"job_id": job_id, "batch_id": batch_id, "next_batch_id": next_id}


"""
  租约回收：processing 超过 BULK_BATCH_LEASE_SEC 的 batch 视为 worker 已挂。
    - attempts < BULK_BATCH_MAX_ATTEMPTS：退回 queued，本轮 due 扫描即可重新投递
    - 否则：batch → failed，本批未结束的商品记为失败（链条中断，需人工重提）
  返回 (requeued, expired)。
"""
def recover_stale_batches(db: Session, now: Optional[datetime] = None) -> Tuple[int, int]:
    now = now or now_utc()
    cutoff = now - timedelta(seconds=_batch_lease_sec())
    requeued, expired = 0, 0

    for batch in repo.stale_batches(db, cutoff):
        started = batch.started_at.isoformat(timespec="seconds") if batch.started_at else "?"
        if batch.attempts >= _batch_max_attempts():
            reason = f"batch lease expired after {batch.attempts} attempts (last started {started})"
            if not repo.expire_stale_batch(db, batch.id, started_before=cutoff, reason=reason):
                continue
            for product_id in batch.product_ids or []:
                repo.mark_result_failed(db, batch.job_id, product_id, reason)
            repo.finalize_job_if_done(db, batch.job_id)
            expired += 1
            logger.error("stale batch failed job=%s batch=%s attempts=%s", batch.job_id, batch.id, batch.attempts)
        else:
            reason = f"batch lease expired on attempt {batch.attempts} (started {started}), requeued"
            if repo.requeue_stale_batch(db, batch, started_before=cutoff, now=now, reason=reason):
                requeued += 1
                logger.warning("stale batch requeued job=%s batch=%s attempts=%s", batch.job_id, batch.id, batch.attempts)

    db.commit()
    return requeued, expired


"""
  beat 兜底：
    1) 先回收租约过期的 processing batch
    2) scheduled_at 已到期、前一批已结束、却没人消费的 batch 重新投递
  claim_batch 保证同一 batch 即使被投递两次也只会跑一次。
"""
@shared_task(name="seohub.orchestration.bulk_generation.dispatch_due_batches")
def dispatch_due_batches() -> int:
    db: Session = SessionLocal()
    try:
        now = now_utc()
        try:
            recover_stale_batches(db, now)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("recover stale batches failed")
        due = [(b.job_id, b.id) for b in repo.due_batches(db, now)]
    finally:
        db.close()

    for job_id, batch_id in due:
        logger.info("dispatch due batch job=%s batch=%s", job_id, batch_id)
        process_batch.apply_async(args=[job_id, batch_id])
    return len(due)



# ========================== 执行一批 ==========================
"""
    执行一批；返回下一批的 id（没有下一批 / 本批失败 / 未领到时返回 None）。
      - 单品异常：result → failed，failed_products +1，继续下一个商品
      - 其它异常：batch → failed，链条中断
"""
def _process_batch_logic(job_id: str, batch_id: str) -> Optional[str]:
    db: Session = SessionLocal()
    try:
        try:
            claimed = repo.claim_batch(db, batch_id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("claim batch failed job=%s batch=%s", job_id, batch_id)
            return None

        if not claimed:
            logger.info("batch not queued, skip job=%s batch=%s", job_id, batch_id)
            return None

        try:
            return _run_claimed_batch(db, job_id, batch_id)
        except Exception as e:
            db.rollback()
            err = PersistenceError(str(e)) if isinstance(e, SQLAlchemyError) else e
            logger.exception("batch failed job=%s batch=%s err=%s", job_id, batch_id, err)
            try:
                repo.mark_batch_failed(db, batch_id, err)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                logger.exception("mark_batch_failed failed job=%s batch=%s", job_id, batch_id)
            return None
    finally:
        db.close()


def _run_claimed_batch(db: Session, job_id: str, batch_id: str) -> Optional[str]:
    job = repo.get_job(db, job_id)
    if job is None:
        raise JobNotFound(f"job {job_id} not found")
    batch = repo.get_batch(db, batch_id)
    product_ids = list(batch.product_ids or []) if batch else []

    # 租约过期后重跑的 batch：已是终态的商品不再生成
    done_ids = repo.finished_product_ids(db, job_id, product_ids)

    ok, failed = 0, 0
    for product_id in product_ids:
        if product_id in done_ids:
            continue
        try:
            _process_product(db, job, product_id)
            ok += 1
        except Exception as e:
            db.rollback()
            failed += 1
            logger.warning("product failed job=%s product=%s err=%s", job_id, product_id, e)
            repo.mark_result_failed(db, job_id, product_id, e)
            db.commit()

    repo.mark_batch_completed(db, batch_id)
    final_status = repo.finalize_job_if_done(db, job_id)

    # 下一批的 scheduled_at 和本批完成在同一事务里写入
    nxt = repo.next_queued_batch(db, job_id)
    if nxt is not None:
        repo.restamp_scheduled_at(db, nxt.id, now_utc() + timedelta(seconds=_batch_delay_sec()))
    db.commit()

    logger.info(
        "batch done job=%s batch=%s ok=%s failed=%s job_status=%s next=%s",
        job_id, batch_id, ok, failed, final_status or JobStatus.PROCESSING, nxt.id if nxt else None,
    )
    return nxt.id if nxt is not None else None


"""
    单个商品：result → processing → 拉 WooCommerce 商品 → 生成内容 → result → completed
    失败直接抛出，由 _run_claimed_batch 记为单品失败。
"""
def _process_product(db: Session, job: BulkGenerationJob, product_id: int) -> None:
    repo.mark_result_processing(db, job.id, product_id)
    db.commit()

    product = _woo_client_for(job.store).get_product(product_id)
    content = _generator.generate(
        to_generation_summary(product),
        job.prompt_template,
        job.model,
        user_id=job.user_id,
    )

    repo.mark_result_completed(
        db, job.id, product_id, content=content, product_name=product.get("name"),
    )
    db.commit()
