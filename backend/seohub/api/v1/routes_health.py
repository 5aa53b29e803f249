# 健康检查（含可选 DB 探活）

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from seohub.db.session import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "db": "ok"}
