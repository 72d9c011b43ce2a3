"""
SQLAlchemy-backed job store.

Each call opens its own session and runs in the threadpool so the blocking
driver never stalls the event loop that runs generation tasks.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import update as sql_update
from sqlalchemy.orm import Session

from appforge.core.errors import NotFound, StaleRecord
from appforge.core.plan_limits import DEFAULT_PLAN
from appforge.db.models.app_generation import AppGeneration
from appforge.db.models.subscription import Subscription
from appforge.db.models.user import User
from appforge.schemas.generation import GenerationRecord
from appforge.schemas.user import SubscriptionRecord, UserRecord
from appforge.services.storage import (
    DEFAULT_FREE_LIMIT,
    GENERATION_MUTABLE_FIELDS,
    SUBSCRIPTION_MUTABLE_FIELDS,
    USER_MUTABLE_FIELDS,
    JobStore,
    _check_fields,
)

logger = logging.getLogger(__name__)


class SqlJobStore(JobStore):
    """Job store on top of a SQLAlchemy sessionmaker."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def _run(self, fn, *args):
        return await run_in_threadpool(self._in_session, fn, *args)

    def _in_session(self, fn, *args):
        db = self.session_factory()
        try:
            return fn(db, *args)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # Users

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        def _get(db: Session, user_id: str):
            user = db.get(User, user_id)
            return UserRecord.model_validate(user) if user else None
        return await self._run(_get, user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        def _get(db: Session, email: str):
            user = db.query(User).filter(User.email == email).first()
            return UserRecord.model_validate(user) if user else None
        return await self._run(_get, email)

    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[UserRecord]:
        def _get(db: Session, firebase_uid: str):
            user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
            return UserRecord.model_validate(user) if user else None
        return await self._run(_get, firebase_uid)

    async def create_user(self, data: Dict[str, Any]) -> UserRecord:
        def _create(db: Session, data: Dict[str, Any]):
            user = User(
                email=data["email"],
                name=data["name"],
                photo_url=data.get("photo_url"),
                provider=data.get("provider") or "email",
                firebase_uid=data.get("firebase_uid"),
            )
            db.add(user)
            db.flush()
            db.add(Subscription(
                user_id=user.id,
                plan=DEFAULT_PLAN,
                status="active",
                generations_used=0,
                generations_limit=DEFAULT_FREE_LIMIT,
            ))
            db.commit()
            db.refresh(user)
            logger.info(f"User created: user_id={user.id}, provider={user.provider}")
            return UserRecord.model_validate(user)
        return await self._run(_create, data)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        _check_fields(fields, USER_MUTABLE_FIELDS, "user")

        def _update(db: Session, user_id: str, fields: Dict[str, Any]):
            user = db.query(User).filter(User.id == user_id).with_for_update().first()
            if not user:
                raise NotFound("User", user_id)
            for key, value in fields.items():
                setattr(user, key, value)
            db.commit()
            db.refresh(user)
            return UserRecord.model_validate(user)
        return await self._run(_update, user_id, fields)

    # Generation jobs

    async def create_generation(self, data: Dict[str, Any]) -> GenerationRecord:
        def _create(db: Session, data: Dict[str, Any]):
            if not db.get(User, data["user_id"]):
                raise NotFound("User", data["user_id"])
            generation = AppGeneration(
                user_id=data["user_id"],
                app_name=data["app_name"],
                prompt=data["prompt"],
                backend=data["backend"],
                icon_url=data.get("icon_url"),
                status="pending",
                progress={},
            )
            db.add(generation)
            db.commit()
            db.refresh(generation)
            return GenerationRecord.model_validate(generation)
        return await self._run(_create, data)

    async def get(self, job_id: str) -> Optional[GenerationRecord]:
        def _get(db: Session, job_id: str):
            generation = db.get(AppGeneration, job_id)
            return GenerationRecord.model_validate(generation) if generation else None
        return await self._run(_get, job_id)

    async def list_for_user(self, user_id: str) -> List[GenerationRecord]:
        def _list(db: Session, user_id: str):
            rows = (
                db.query(AppGeneration)
                .filter(AppGeneration.user_id == user_id)
                .order_by(AppGeneration.created_at.desc())
                .all()
            )
            return [GenerationRecord.model_validate(row) for row in rows]
        return await self._run(_list, user_id)

    async def update(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
    ) -> GenerationRecord:
        _check_fields(fields, GENERATION_MUTABLE_FIELDS, "generation")

        def _update_if_status(db: Session, job_id: str, fields: Dict[str, Any]):
            # status check and write in one statement; SQLite ignores FOR UPDATE
            result = db.execute(
                sql_update(AppGeneration)
                .where(AppGeneration.id == job_id, AppGeneration.status == expected_status)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                current = db.get(AppGeneration, job_id)
                if not current:
                    raise NotFound("Generation", job_id)
                raise StaleRecord("Generation", job_id, expected_status, current.status)
            db.commit()
            return GenerationRecord.model_validate(db.get(AppGeneration, job_id))

        def _update(db: Session, job_id: str, fields: Dict[str, Any]):
            generation = (
                db.query(AppGeneration)
                .filter(AppGeneration.id == job_id)
                .with_for_update()
                .first()
            )
            if not generation:
                raise NotFound("Generation", job_id)
            for key, value in fields.items():
                setattr(generation, key, value)
            db.commit()
            db.refresh(generation)
            return GenerationRecord.model_validate(generation)

        if expected_status is not None:
            return await self._run(_update_if_status, job_id, fields)
        return await self._run(_update, job_id, fields)

    # Subscriptions

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        def _get(db: Session, user_id: str):
            sub = db.query(Subscription).filter(Subscription.user_id == user_id).first()
            return SubscriptionRecord.model_validate(sub) if sub else None
        return await self._run(_get, user_id)

    async def update_subscription(self, user_id: str, fields: Dict[str, Any]) -> SubscriptionRecord:
        _check_fields(fields, SUBSCRIPTION_MUTABLE_FIELDS, "subscription")

        def _update(db: Session, user_id: str, fields: Dict[str, Any]):
            sub = (
                db.query(Subscription)
                .filter(Subscription.user_id == user_id)
                .with_for_update()
                .first()
            )
            if not sub:
                raise NotFound("Subscription", user_id)
            for key, value in fields.items():
                setattr(sub, key, value)
            db.commit()
            db.refresh(sub)
            return SubscriptionRecord.model_validate(sub)
        return await self._run(_update, user_id, fields)

    async def increment_usage(self, user_id: str) -> SubscriptionRecord:
        def _increment(db: Session, user_id: str):
            result = db.execute(
                sql_update(Subscription)
                .where(Subscription.user_id == user_id)
                .values(generations_used=Subscription.generations_used + 1)
            )
            if result.rowcount == 0:
                db.rollback()
                raise NotFound("Subscription", user_id)
            db.commit()
            sub = db.query(Subscription).filter(Subscription.user_id == user_id).first()
            return SubscriptionRecord.model_validate(sub)
        return await self._run(_increment, user_id)
