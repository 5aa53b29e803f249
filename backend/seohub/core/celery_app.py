# Celery 实例 + 队列/路由 + beat 兜底扫表

from celery import Celery
from kombu import Exchange, Queue
from seohub.core.config import settings
from seohub.core.logging import configure_logging

configure_logging()


'''
初始化 Celery 应用/实例
   - Beat: 1 台，只负责 dispatch_due_batches 兜底扫表
   - Worker: generation 队列建议并发按 AI 供应商限流来定
'''
celery_app = Celery(
    "seohub",
    broker=settings.CELERY_BROKER_URL,          # 队列位置 (Redis)
    backend=settings.CELERY_RESULT_BACKEND,     # 结果存储（可选）
    include=[
        "seohub.orchestration.bulk_generation.bulk_generation_task",
    ],
)


celery_app.conf.update(
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,                             # 内部还是存 UTC
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    # === 容错 ===
    worker_prefetch_multiplier=1,    # 一个 worker 一次只取一个任务（单个 batch 可能跑好几分钟）
    task_acks_late=True,             # 重投的消息会被 claim 挡掉；卡在 processing 的 batch 由 beat 按租约回收
    broker_heartbeat=30,
    broker_pool_limit=10,
)


'''
队列拆分
   - orchestrator: 启动 job / 扫表，都是很短的 DB 操作
   - generation: 跑 batch，慢 I/O（WooCommerce + AI）
'''
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("orchestrator", Exchange("orchestrator"), routing_key="orchestrator"),
    Queue("generation", Exchange("generation"), routing_key="generation"),
)


celery_app.conf.task_routes = {
    "seohub.orchestration.bulk_generation.start_bulk_generation": {"queue": "orchestrator"},
    "seohub.orchestration.bulk_generation.dispatch_due_batches": {"queue": "orchestrator"},
    "seohub.orchestration.bulk_generation.process_batch": {"queue": "generation"},
}


# 兜底：scheduled_at 到期但没人消费的 batch（worker 重启/消息丢失）由 beat 重新投递
celery_app.conf.beat_schedule = {
    "bulk-generation-dispatch-due": {
        "task": "seohub.orchestration.bulk_generation.dispatch_due_batches",
        "schedule": settings.BULK_DISPATCH_TICK_SEC,  # 秒
    },
}
