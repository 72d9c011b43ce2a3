"""
Job store interface and the in-memory implementation.

The generator and the API only talk to ``JobStore``; the SQL-backed
implementation lives in ``appforge.db.sql_store``. Records cross the
interface as Pydantic models, never as ORM objects, so callers can hold on to
them after the underlying session is gone.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from appforge.core.errors import NotFound, StaleRecord
from appforge.core.plan_limits import DEFAULT_PLAN, get_plan_limit
from appforge.schemas.generation import GenerationRecord
from appforge.schemas.user import SubscriptionRecord, UserRecord

logger = logging.getLogger(__name__)

DEFAULT_FREE_LIMIT = get_plan_limit(DEFAULT_PLAN)

# Fields callers may change through update()/update_user()
GENERATION_MUTABLE_FIELDS = {"status", "progress", "icon_url", "result_url", "apk_url"}
USER_MUTABLE_FIELDS = {"name", "photo_url", "provider", "firebase_uid"}
SUBSCRIPTION_MUTABLE_FIELDS = {"plan", "status", "generations_used", "generations_limit"}


def _check_fields(fields: Dict[str, Any], allowed: set, kind: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update {kind} fields: {', '.join(sorted(unknown))}")


class JobStore(ABC):
    """Keyed record store for users, subscriptions and generation jobs."""

    # Users

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def create_user(self, data: Dict[str, Any]) -> UserRecord:
        """Create a user together with its default free subscription."""
        pass

    @abstractmethod
    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        pass

    # Generation jobs

    @abstractmethod
    async def create_generation(self, data: Dict[str, Any]) -> GenerationRecord:
        """Create a job in ``pending`` state with an empty progress snapshot."""
        pass

    @abstractmethod
    async def get(self, job_id: str) -> Optional[GenerationRecord]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[GenerationRecord]:
        """Jobs owned by ``user_id``, newest first."""
        pass

    @abstractmethod
    async def update(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
    ) -> GenerationRecord:
        """
        Apply ``fields`` to one job atomically and return the updated record.

        When ``expected_status`` is given the update only applies if the job
        is currently in that status.

        Raises:
            NotFound: if the job does not exist
            StaleRecord: if the job is not in ``expected_status``
        """
        pass

    # Subscriptions

    @abstractmethod
    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        pass

    @abstractmethod
    async def update_subscription(self, user_id: str, fields: Dict[str, Any]) -> SubscriptionRecord:
        pass

    @abstractmethod
    async def increment_usage(self, user_id: str) -> SubscriptionRecord:
        """Add one completed generation to the user's counter atomically."""
        pass


class MemoryJobStore(JobStore):
    """
    Dict-backed store.

    A single asyncio.Lock serializes every mutation, which is enough for a
    single-process deployment and for tests.
    """

    def __init__(self):
        self._users: Dict[str, UserRecord] = {}
        self._subscriptions: Dict[str, SubscriptionRecord] = {}  # keyed by user_id
        self._generations: Dict[str, GenerationRecord] = {}
        self._lock = asyncio.Lock()

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self._users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[UserRecord]:
        for user in self._users.values():
            if firebase_uid and user.firebase_uid == firebase_uid:
                return user.model_copy(deep=True)
        return None

    async def create_user(self, data: Dict[str, Any]) -> UserRecord:
        async with self._lock:
            now = datetime.now(timezone.utc)
            user = UserRecord(
                id=str(uuid.uuid4()),
                email=data["email"],
                name=data["name"],
                photo_url=data.get("photo_url"),
                provider=data.get("provider") or "email",
                firebase_uid=data.get("firebase_uid"),
                created_at=now,
            )
            self._users[user.id] = user
            self._subscriptions[user.id] = SubscriptionRecord(
                id=str(uuid.uuid4()),
                user_id=user.id,
                plan=DEFAULT_PLAN,
                status="active",
                generations_used=0,
                generations_limit=DEFAULT_FREE_LIMIT,
                created_at=now,
            )
            logger.info(f"User created: user_id={user.id}, provider={user.provider}")
            return user.model_copy(deep=True)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        _check_fields(fields, USER_MUTABLE_FIELDS, "user")
        async with self._lock:
            user = self._users.get(user_id)
            if not user:
                raise NotFound("User", user_id)
            updated = user.model_copy(update=fields, deep=True)
            self._users[user_id] = updated
            return updated.model_copy(deep=True)

    async def create_generation(self, data: Dict[str, Any]) -> GenerationRecord:
        async with self._lock:
            if data["user_id"] not in self._users:
                raise NotFound("User", data["user_id"])
            generation = GenerationRecord(
                id=str(uuid.uuid4()),
                user_id=data["user_id"],
                app_name=data["app_name"],
                prompt=data["prompt"],
                backend=data["backend"],
                icon_url=data.get("icon_url"),
                status="pending",
                progress={},
                created_at=datetime.now(timezone.utc),
            )
            self._generations[generation.id] = generation
            return generation.model_copy(deep=True)

    async def get(self, job_id: str) -> Optional[GenerationRecord]:
        generation = self._generations.get(job_id)
        return generation.model_copy(deep=True) if generation else None

    async def list_for_user(self, user_id: str) -> List[GenerationRecord]:
        owned = [g for g in reversed(list(self._generations.values())) if g.user_id == user_id]
        owned.sort(key=lambda g: g.created_at, reverse=True)
        return [g.model_copy(deep=True) for g in owned]

    async def update(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
    ) -> GenerationRecord:
        _check_fields(fields, GENERATION_MUTABLE_FIELDS, "generation")
        async with self._lock:
            generation = self._generations.get(job_id)
            if not generation:
                raise NotFound("Generation", job_id)
            if expected_status is not None and generation.status != expected_status:
                raise StaleRecord("Generation", job_id, expected_status, generation.status)
            updated = generation.model_copy(update=fields, deep=True)
            self._generations[job_id] = updated
            return updated.model_copy(deep=True)

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        subscription = self._subscriptions.get(user_id)
        return subscription.model_copy(deep=True) if subscription else None

    async def update_subscription(self, user_id: str, fields: Dict[str, Any]) -> SubscriptionRecord:
        _check_fields(fields, SUBSCRIPTION_MUTABLE_FIELDS, "subscription")
        async with self._lock:
            subscription = self._subscriptions.get(user_id)
            if not subscription:
                raise NotFound("Subscription", user_id)
            updated = subscription.model_copy(update=fields, deep=True)
            self._subscriptions[user_id] = updated
            return updated.model_copy(deep=True)

    async def increment_usage(self, user_id: str) -> SubscriptionRecord:
        async with self._lock:
            subscription = self._subscriptions.get(user_id)
            if not subscription:
                raise NotFound("Subscription", user_id)
            updated = subscription.model_copy(
                update={"generations_used": subscription.generations_used + 1}
            )
            self._subscriptions[user_id] = updated
            return updated.model_copy(deep=True)
