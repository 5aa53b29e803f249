# 批量内容生成接口 -> 前端 Bulk Generator 页面调用
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from seohub.core.config import settings
from seohub.db.session import get_db
from seohub.orchestration.bulk_generation import bulk_generation_task as tasks
from seohub.orchestration.bulk_generation.errors import (
    InsufficientCredits,
    InvalidJobState,
    PersistenceError,
    StoreNotAvailable,
)
from seohub.repository import bulk_job_repo as repo

router = APIRouter(prefix="/bulk-generation", tags=["bulk-generation"])


class JobCreate(BaseModel):
    user_id: str = Field(min_length=1)
    store_id: str = Field(min_length=1)
    product_ids: List[int] = Field(min_length=1)
    prompt_template: str = Field(min_length=1)
    model: str = Field(min_length=1)
    batch_size: int = Field(default_factory=lambda: settings.BULK_DEFAULT_BATCH_SIZE, ge=1, le=100)
    available_credits: Optional[int] = Field(default=None, ge=0)   # 前端传入的 credit 余额；不传则不校验
    auto_start: bool = True


class BatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    batch_number: int
    product_ids: List[int]
    status: str
    scheduled_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class JobSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    store_id: str
    status: str
    model: str
    batch_size: int
    total_products: int
    completed_products: int
    failed_products: int
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class JobOut(JobSummaryOut):
    batches: List[BatchOut] = []


class ResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    product_name: Optional[str] = None
    status: str
    content: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None


class StartOut(BaseModel):
    job_id: str
    batches: int


def _job_out(db: Session, job_id: str) -> JobOut:
    job = repo.get_job(db, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    db.refresh(job)
    out = JobOut.model_validate(job)
    out.batches = [BatchOut.model_validate(b) for b in repo.list_batches(db, job_id)]
    return out


def _start_or_raise(job_id: str) -> int:
    try:
        return tasks.start_job(job_id)
    except InvalidJobState as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/jobs", response_model=JobOut, status_code=201)
def create_job(body: JobCreate, db: Session = Depends(get_db)) -> JobOut:
    """
    创建 job；auto_start=True（默认）时立即切批并投递第 1 批，不等待整条链跑完。
    """
    dto = repo.JobCreateDTO(
        user_id=body.user_id,
        store_id=body.store_id,
        product_ids=body.product_ids,
        prompt_template=body.prompt_template,
        model=body.model,
        batch_size=body.batch_size,
        available_credits=body.available_credits,
    )
    try:
        job = tasks.submit_job(db, dto)
    except StoreNotAvailable as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InsufficientCredits as exc:
        raise HTTPException(status_code=402, detail=str(exc)) from exc
    except InvalidJobState as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if body.auto_start:
        _start_or_raise(job.id)

    return _job_out(db, job.id)


@router.post("/jobs/{job_id}/start", response_model=StartOut)
def start_job(job_id: str = Path(..., min_length=1), db: Session = Depends(get_db)) -> StartOut:
    # 不存在的 job 在这里就给 404；其余状态问题由 start_job 抛 InvalidJobState → 409
    if repo.get_job(db, job_id) is None:
        raise HTTPException(status_code=404, detail="job not found")
    return StartOut(job_id=job_id, batches=_start_or_raise(job_id))


@router.get("/jobs/{job_id}", response_model=JobOut)
def get_job(job_id: str, db: Session = Depends(get_db)) -> JobOut:
    return _job_out(db, job_id)


@router.get("/jobs/{job_id}/results", response_model=List[ResultOut])
def list_job_results(
    job_id: str,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
) -> List[ResultOut]:
    if repo.get_job(db, job_id) is None:
        raise HTTPException(status_code=404, detail="job not found")
    return [ResultOut.model_validate(r) for r in repo.list_results(db, job_id, status=status)]


"""
    job 历史（前端 Bulk Generator 页面的历史列表），新的在前。
"""
@router.get("/jobs", response_model=List[JobSummaryOut])
def list_jobs(
    user_id: str = Query(..., min_length=1),
    store_id: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> List[JobSummaryOut]:
    return [JobSummaryOut.model_validate(j) for j in repo.list_jobs(db, user_id, store_id=store_id, limit=limit)]
