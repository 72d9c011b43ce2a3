"""
Tests for the generation orchestrator state machine.
"""
import asyncio
import zipfile

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from conftest import ScriptedModelClient, model_bundle, transient_error, unauthorized_error

from appforge.core.errors import NotFound, QuotaExceeded, ValidationError
from appforge.db.init_db import init_db
from appforge.db.sql_store import SqlJobStore
from appforge.services.app_generator import (
    GENERATION_STEPS,
    build_generation_create,
    completed_snapshot,
    submit_generation,
)
from appforge.services.packager import archive_path
from appforge.services.storage import MemoryJobStore


class RecordingStore(MemoryJobStore):
    """Memory store that keeps every progress snapshot written."""

    def __init__(self):
        super().__init__()
        self.snapshots = []
        self.statuses = []

    async def update(self, job_id, fields, expected_status=None):
        record = await super().update(job_id, fields, expected_status=expected_status)
        if "progress" in fields:
            self.snapshots.append(fields["progress"])
        if "status" in fields:
            self.statuses.append(fields["status"])
        return record


async def _submit(store, user_id, app_name="FitTrack", prompt="track workouts", backend="firebase", **extra):
    data = build_generation_create(app_name=app_name, prompt=prompt, backend=backend, **extra)
    return await submit_generation(store, user_id, data)


async def test_fittrack_firebase_completes(store, user, offline_client, make_generator, downloads_dir):
    job = await _submit(store, user.id)

    final = await make_generator(offline_client).run(job.id)

    assert final.status == "completed"
    assert final.progress == completed_snapshot()
    assert final.result_url == f"/api/download/{job.id}"
    assert final.icon_url.startswith("data:image/svg+xml;base64,")
    with zipfile.ZipFile(archive_path(job.id, downloads_dir)) as archive:
        names = archive.namelist()
    assert "android/app/google-services.json" in names
    assert "lib/firebase_options.dart" in names
    subscription = await store.get_subscription(user.id)
    assert (subscription.generations_used, subscription.generations_limit) == (1, 2)


async def test_transient_codegen_failures_fall_back_and_complete(
    store, user, make_generator, sleep_recorder, downloads_dir
):
    client = ScriptedModelClient({
        "enhance": "Track workouts with history and charts.",
        "codegen": [transient_error(), transient_error(), transient_error()],
    })
    job = await _submit(store, user.id)

    final = await make_generator(client).run(job.id)

    assert final.status == "completed"
    assert len(client.calls_for("codegen")) == 3
    assert sleep_recorder.delays == [2.0, 4.0]
    with zipfile.ZipFile(archive_path(job.id, downloads_dir)) as archive:
        assert "lib/screens/home_screen.dart" in archive.namelist()


async def test_unauthorized_codegen_falls_back_without_retry(store, user, make_generator, sleep_recorder):
    client = ScriptedModelClient({"codegen": unauthorized_error()})
    job = await _submit(store, user.id)

    final = await make_generator(client).run(job.id)

    assert final.status == "completed"
    assert len(client.calls_for("codegen")) == 1
    assert sleep_recorder.delays == []


async def test_model_bundle_uses_enhanced_prompt(store, user, make_generator, downloads_dir):
    client = ScriptedModelClient({
        "enhance": "ENHANCED: workouts, history, charts",
        "codegen": model_bundle(),
    })
    job = await _submit(store, user.id, backend="supabase")

    final = await make_generator(client).run(job.id)

    assert final.status == "completed"
    assert "ENHANCED: workouts, history, charts" in client.calls_for("codegen")[0]["user"]
    with zipfile.ZipFile(archive_path(job.id, downloads_dir)) as archive:
        assert sorted(archive.namelist()) == ["README.md", "lib/main.dart", "lib/supabase_config.dart", "pubspec.yaml"]


async def test_supplied_icon_is_kept(store, user, offline_client, make_generator):
    job = await _submit(store, user.id, icon_url="/uploads/abc.png")

    final = await make_generator(offline_client).run(job.id)

    assert final.icon_url == "/uploads/abc.png"
    assert offline_client.calls_for("icon") == []


async def test_progress_is_an_advancing_prefix(offline_client, make_generator):
    recording = RecordingStore()
    owner = await recording.create_user({"email": "rec@example.com", "name": "Rec"})
    job = await _submit(recording, owner.id)

    await make_generator(offline_client, job_store=recording).run(job.id)

    assert recording.statuses == ["generating", "completed"]
    completed_lengths = []
    for snapshot in recording.snapshots:
        assert snapshot["total"] == len(GENERATION_STEPS)
        assert snapshot["completed"] == GENERATION_STEPS[:len(snapshot["completed"])]
        assert snapshot["current"] in GENERATION_STEPS + ["Completed"]
        completed_lengths.append(len(snapshot["completed"]))
    assert completed_lengths == sorted(completed_lengths)
    assert completed_lengths == [0, 1, 2, 3, 4, 5, 6]


async def test_packaging_failure_marks_job_failed(store, user, offline_client, make_generator, downloads_dir):
    job = await _submit(store, user.id)
    archive_path(job.id, downloads_dir).mkdir(parents=True)

    final = await make_generator(offline_client).run(job.id)

    assert final.status == "failed"
    assert final.progress["step"] == "Failed"
    assert final.progress["current"].startswith("Error: ")
    assert final.progress["completed"] == GENERATION_STEPS[:5]
    assert final.result_url is None
    assert (await store.get_subscription(user.id)).generations_used == 0


async def test_terminal_job_is_not_run_again(store, user, offline_client, make_generator):
    job = await _submit(store, user.id)
    generator = make_generator(offline_client)
    await generator.run(job.id)

    again = await generator.run(job.id)

    assert again.status == "completed"
    assert (await store.get_subscription(user.id)).generations_used == 1


async def test_concurrent_runs_of_same_job_count_once(store, user, offline_client, make_generator):
    job = await _submit(store, user.id)
    generator = make_generator(offline_client)

    await asyncio.gather(generator.run(job.id), generator.run(job.id))

    assert (await store.get(job.id)).status == "completed"
    assert (await store.get_subscription(user.id)).generations_used == 1


async def test_unknown_job_is_ignored(offline_client, make_generator):
    assert await make_generator(offline_client).run("missing") is None


async def test_usage_counter_matches_completed_jobs(store, user, offline_client, make_generator, downloads_dir):
    await store.update_subscription(user.id, {"plan": "pro"})
    jobs = [await _submit(store, user.id, app_name=f"App {n}") for n in range(100)]
    for job in jobs[::3]:
        archive_path(job.id, downloads_dir).mkdir(parents=True)

    generator = make_generator(offline_client)
    results = await asyncio.gather(*(generator.run(job.id) for job in jobs))

    statuses = [r.status for r in results]
    assert set(statuses) == {"completed", "failed"}
    assert statuses.count("failed") == len(jobs[::3])
    used = (await store.get_subscription(user.id)).generations_used
    assert used == statuses.count("completed")


async def test_step_delays_are_scaled(store, user, offline_client, make_generator, sleep_recorder):
    job = await _submit(store, user.id)

    await make_generator(offline_client, step_delay_scale=0.5).run(job.id)

    assert sleep_recorder.delays == [1.0, 0.75, 1.0, 1.0, 0.75, 0.5]


async def test_submit_rejects_user_at_quota(store, user):
    await store.update_subscription(user.id, {"generations_used": 2})

    with pytest.raises(QuotaExceeded):
        await _submit(store, user.id)

    assert await store.list_for_user(user.id) == []


async def test_submit_unknown_user(store):
    with pytest.raises(NotFound):
        await _submit(store, "missing")


@pytest.mark.parametrize("fields,field", [
    ({"app_name": "", "prompt": "track workouts", "backend": "firebase"}, "app_name"),
    ({"app_name": "FitTrack", "prompt": "   ", "backend": "firebase"}, "prompt"),
    ({"app_name": "FitTrack", "prompt": "track workouts", "backend": "mongodb"}, "backend"),
])
def test_build_generation_create_validation(fields, field):
    with pytest.raises(ValidationError) as exc_info:
        build_generation_create(**fields)
    assert exc_info.value.details["field"] == field


def test_backend_alias_is_normalized():
    data = build_generation_create(app_name="FitTrack", prompt="track workouts", backend="nodejs-custom")
    assert data.backend == "nodejs"


async def test_back_to_back_submissions_stop_at_the_free_limit(store, user, offline_client, make_generator):
    accepted = []
    rejected = 0
    for n in range(5):
        try:
            accepted.append(await _submit(store, user.id, app_name=f"App {n}"))
        except QuotaExceeded:
            rejected += 1

    generator = make_generator(offline_client)
    for job in accepted:
        await generator.run(job.id)

    assert (len(accepted), rejected) == (2, 3)
    subscription = await store.get_subscription(user.id)
    assert subscription.generations_used == 2
    assert subscription.generations_used <= subscription.generations_limit


async def test_failed_job_releases_its_quota_slot(store, user, offline_client, make_generator, downloads_dir):
    first = await _submit(store, user.id, app_name="First")
    second = await _submit(store, user.id, app_name="Second")
    archive_path(second.id, downloads_dir).mkdir(parents=True)

    with pytest.raises(QuotaExceeded):
        await _submit(store, user.id, app_name="Third")

    generator = make_generator(offline_client)
    await generator.run(first.id)
    assert (await generator.run(second.id)).status == "failed"

    third = await _submit(store, user.id, app_name="Third")
    assert third.status == "pending"


async def test_concurrent_runs_on_sqlite_file_count_once(tmp_path, offline_client, make_generator):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    sql_store = SqlJobStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    try:
        owner = await sql_store.create_user({"email": "sql@example.com", "name": "Sql"})
        job = await _submit(sql_store, owner.id)
        generator = make_generator(offline_client, job_store=sql_store)

        await asyncio.gather(generator.run(job.id), generator.run(job.id))

        assert (await sql_store.get(job.id)).status == "completed"
        assert (await sql_store.get_subscription(owner.id)).generations_used == 1
    finally:
        engine.dispose()
