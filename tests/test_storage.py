"""
Tests for the job store implementations (in-memory and SQLAlchemy).
"""
import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from appforge.core.errors import NotFound, StaleRecord
from appforge.db.init_db import init_db
from appforge.db.sql_store import SqlJobStore
from appforge.services.storage import MemoryJobStore

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(params=["memory", "sql"])
def job_store(request):
    if request.param == "memory":
        yield MemoryJobStore()
        return

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield SqlJobStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


async def _new_user(job_store, email="dev@example.com", **extra):
    return await job_store.create_user({"email": email, "name": "Dev User", **extra})


async def test_user_gets_default_subscription(job_store):
    user = await _new_user(job_store, firebase_uid="uid-1", provider="google")

    subscription = await job_store.get_subscription(user.id)

    assert subscription.plan == "free"
    assert subscription.status == "active"
    assert subscription.generations_used == 0
    assert subscription.generations_limit == 2
    assert (await job_store.get_user_by_email("dev@example.com")).id == user.id
    assert (await job_store.get_user_by_firebase_uid("uid-1")).id == user.id
    assert await job_store.get_user_by_firebase_uid("uid-2") is None


async def test_update_user(job_store):
    user = await _new_user(job_store)

    updated = await job_store.update_user(user.id, {"firebase_uid": "uid-9", "provider": "google"})

    assert updated.firebase_uid == "uid-9"
    assert (await job_store.get_user(user.id)).provider == "google"
    with pytest.raises(NotFound):
        await job_store.update_user("missing", {"name": "x"})


async def test_create_generation_is_pending(job_store):
    user = await _new_user(job_store)

    job = await job_store.create_generation({
        "user_id": user.id, "app_name": "FitTrack", "prompt": "track workouts", "backend": "firebase",
    })

    assert job.status == "pending"
    assert job.progress == {}
    assert job.result_url is None
    assert (await job_store.get(job.id)).app_name == "FitTrack"


async def test_create_generation_requires_user(job_store):
    with pytest.raises(NotFound):
        await job_store.create_generation({
            "user_id": "missing", "app_name": "A", "prompt": "p", "backend": "firebase",
        })


async def test_update_returns_updated_record(job_store):
    user = await _new_user(job_store)
    job = await job_store.create_generation({
        "user_id": user.id, "app_name": "A", "prompt": "p", "backend": "nodejs",
    })
    progress = {"step": "Generating pages", "completed": ["Creating Flutter project"], "current": "Generating pages", "total": 6}

    updated = await job_store.update(job.id, {"status": "generating", "progress": progress})

    assert updated.status == "generating"
    assert updated.progress == progress
    assert (await job_store.get(job.id)).progress == progress


async def test_update_unknown_fields_rejected(job_store):
    user = await _new_user(job_store)
    job = await job_store.create_generation({
        "user_id": user.id, "app_name": "A", "prompt": "p", "backend": "nodejs",
    })
    with pytest.raises(ValueError):
        await job_store.update(job.id, {"user_id": "someone-else"})


async def test_update_missing_job(job_store):
    with pytest.raises(NotFound):
        await job_store.update("missing", {"status": "failed"})


async def test_conditional_update(job_store):
    user = await _new_user(job_store)
    job = await job_store.create_generation({
        "user_id": user.id, "app_name": "A", "prompt": "p", "backend": "nodejs",
    })

    await job_store.update(job.id, {"status": "generating"}, expected_status="pending")
    with pytest.raises(StaleRecord) as exc_info:
        await job_store.update(job.id, {"status": "generating"}, expected_status="pending")

    assert exc_info.value.details["actual"] == "generating"


async def test_list_for_user_is_newest_first_and_scoped(job_store):
    user = await _new_user(job_store)
    other = await _new_user(job_store, email="other@example.com")
    first = await job_store.create_generation({"user_id": user.id, "app_name": "One", "prompt": "p", "backend": "firebase"})
    await asyncio.sleep(0.01)
    second = await job_store.create_generation({"user_id": user.id, "app_name": "Two", "prompt": "p", "backend": "firebase"})
    await job_store.create_generation({"user_id": other.id, "app_name": "Other", "prompt": "p", "backend": "firebase"})

    jobs = await job_store.list_for_user(user.id)

    assert [j.id for j in jobs] == [second.id, first.id]


async def test_increment_usage(job_store):
    user = await _new_user(job_store)

    await job_store.increment_usage(user.id)
    subscription = await job_store.increment_usage(user.id)

    assert subscription.generations_used == 2
    with pytest.raises(NotFound):
        await job_store.increment_usage("missing")


async def test_records_are_copies(job_store):
    user = await _new_user(job_store)
    job = await job_store.create_generation({"user_id": user.id, "app_name": "A", "prompt": "p", "backend": "firebase"})

    job.progress["step"] = "tampered"

    assert (await job_store.get(job.id)).progress == {}


@pytest.fixture
def file_sql_store(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    yield SqlJobStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


async def test_concurrent_claims_on_sqlite_file_have_one_winner(file_sql_store):
    user = await _new_user(file_sql_store)
    job = await file_sql_store.create_generation({
        "user_id": user.id, "app_name": "A", "prompt": "p", "backend": "nodejs",
    })

    async def claim():
        try:
            await file_sql_store.update(job.id, {"status": "generating"}, expected_status="pending")
            return "claimed"
        except StaleRecord:
            return "stale"

    results = await asyncio.gather(*(claim() for _ in range(8)))

    assert results.count("claimed") == 1
    assert results.count("stale") == 7
    assert (await file_sql_store.get(job.id)).status == "generating"


async def test_conditional_update_writes_progress_and_reports_missing(file_sql_store):
    user = await _new_user(file_sql_store)
    job = await file_sql_store.create_generation({
        "user_id": user.id, "app_name": "A", "prompt": "p", "backend": "nodejs",
    })
    progress = {"step": "Creating Flutter project", "completed": [], "current": "Creating Flutter project", "total": 6}

    updated = await file_sql_store.update(
        job.id, {"status": "generating", "progress": progress}, expected_status="pending",
    )

    assert updated.status == "generating"
    assert updated.progress == progress
    with pytest.raises(NotFound):
        await file_sql_store.update("missing", {"status": "failed"}, expected_status="generating")
