# store credential repository

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from seohub.db.model.store import StoreCredential


def get_store(db: Session, store_id: str) -> Optional[StoreCredential]:
    return db.get(StoreCredential, store_id)


def get_by_url(db: Session, user_id: str, store_url: str) -> Optional[StoreCredential]:
    stmt = select(StoreCredential).where(
        StoreCredential.user_id == user_id,
        StoreCredential.store_url == store_url.rstrip("/"),
    )
    return db.scalars(stmt).first()


def create_store(
    db: Session,
    *,
    user_id: str,
    store_name: str,
    store_url: str,
    consumer_key: str,
    consumer_secret: str,
) -> StoreCredential:
    store = StoreCredential(
        id=str(uuid.uuid4()),
        user_id=user_id,
        store_name=store_name,
        store_url=store_url.rstrip("/"),
        consumer_key=consumer_key,
        consumer_secret=consumer_secret,
        is_active=True,
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    return store
