"""
Generation orchestrator.

Drives one job through the six build steps, writing a progress snapshot to
the job store before every step. Jobs move pending -> generating -> completed
or failed, and the owner's usage counter is bumped only on completion.
"""
import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError

from appforge.core.config import DOWNLOADS_DIR, STEP_DELAY_SCALE
from appforge.core.errors import NotFound, StaleRecord, ValidationError
from appforge.llm.provider import ModelClient
from appforge.schemas.generation import GenerationCreate, GenerationRecord, ProgressSnapshot
from appforge.services.code_synthesizer import (
    AppGenerationRequest,
    add_backend_configuration,
    synthesize_project,
)
from appforge.services.icon_service import generate_app_icon
from appforge.services.packager import create_zip_file
from appforge.services.prompt_enhancer import enhance_prompt
from appforge.services.quota_service import check_generation_quota
from appforge.services.storage import JobStore

logger = logging.getLogger(__name__)

GENERATION_STEPS = [
    "Creating Flutter project",
    "Generating pages",
    "Creating images",
    "Linking navigation",
    "Setting up backend",
    "Building ZIP file",
]

# Seconds of simulated work after each step, scaled by step_delay_scale
STEP_DELAYS = [2.0, 1.5, 2.0, 2.0, 1.5, 1.0]

COMPLETED_LABEL = "Completed"
FAILED_LABEL = "Failed"

SleepFn = Callable[[float], Awaitable[Any]]


def step_snapshot(index: int) -> Dict[str, Any]:
    """Snapshot written just before step ``index`` (0-based) starts."""
    current = GENERATION_STEPS[index]
    return ProgressSnapshot(
        step=current,
        completed=GENERATION_STEPS[:index],
        current=current,
        total=len(GENERATION_STEPS),
    ).model_dump()


def completed_snapshot() -> Dict[str, Any]:
    return ProgressSnapshot(
        step=COMPLETED_LABEL,
        completed=GENERATION_STEPS,
        current=COMPLETED_LABEL,
        total=len(GENERATION_STEPS),
    ).model_dump()


def failed_snapshot(steps_done: int, message: str) -> Dict[str, Any]:
    """Snapshot for a failed job; ``completed`` keeps the steps that finished."""
    return ProgressSnapshot(
        step=FAILED_LABEL,
        completed=GENERATION_STEPS[:steps_done],
        current=f"Error: {message or 'Unknown error'}",
        total=len(GENERATION_STEPS),
    ).model_dump()


class AppGenerator:
    """
    Runs generation jobs against a job store and a model client.

    One instance is shared by the whole app; ``run`` keeps all per-job state
    local so any number of jobs can be in flight at once.
    """

    def __init__(
        self,
        store: JobStore,
        client: ModelClient,
        downloads_dir: str = DOWNLOADS_DIR,
        step_delay_scale: float = STEP_DELAY_SCALE,
        sleep: SleepFn = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.client = client
        self.downloads_dir = downloads_dir
        self.step_delay_scale = step_delay_scale
        self.sleep = sleep
        self.rng = rng

    async def _simulate_work(self, index: int) -> None:
        delay = STEP_DELAYS[index] * self.step_delay_scale
        if delay > 0:
            await self.sleep(delay)

    async def _begin_step(self, generation_id: str, index: int) -> None:
        await self.store.update(generation_id, {"progress": step_snapshot(index)})
        logger.debug(f"Generation {generation_id}: step {index + 1}/{len(GENERATION_STEPS)} {GENERATION_STEPS[index]}")

    async def run(self, generation_id: str) -> Optional[GenerationRecord]:
        """
        Execute one job to a terminal state.

        Never raises: every failure is recorded on the job as ``failed``.
        A job that is not ``pending`` is left untouched.

        Returns:
            The final job record, or None if the job does not exist
        """
        job = await self.store.get(generation_id)
        if job is None:
            logger.error(f"Generation not found, nothing to run: generation_id={generation_id}")
            return None
        if job.is_terminal:
            logger.warning(f"Generation {generation_id} already {job.status}, not running it again")
            return job
        if job.status != "pending":
            logger.warning(f"Generation {generation_id} is already running")
            return job

        try:
            job = await self.store.update(
                generation_id,
                {"status": "generating", "progress": step_snapshot(0)},
                expected_status="pending",
            )
        except StaleRecord as e:
            logger.warning(f"Generation {generation_id} was claimed by another run: {e.message}")
            return await self.store.get(generation_id)
        except NotFound:
            logger.error(f"Generation disappeared before start: generation_id={generation_id}")
            return None

        logger.info(
            f"Generation started: generation_id={job.id}, user_id={job.user_id}, "
            f"app_name={job.app_name}, backend={job.backend}"
        )

        steps_done = 0
        try:
            # Step 1: project scaffold
            await self._simulate_work(0)
            steps_done = 1

            # Step 2: prompt enhancement
            await self._begin_step(job.id, 1)
            enhanced_prompt = await enhance_prompt(self.client, job.prompt)
            await self._simulate_work(1)
            steps_done = 2

            # Step 3: icon
            await self._begin_step(job.id, 2)
            icon_url = job.icon_url
            if not icon_url:
                icon = await generate_app_icon(self.client, job.app_name, job.prompt, rng=self.rng)
                icon_url = icon.data_uri
                await self.store.update(job.id, {"icon_url": icon_url})
            await self._simulate_work(2)
            steps_done = 3

            # Step 4: code synthesis
            await self._begin_step(job.id, 3)
            synthesis = await synthesize_project(
                self.client,
                AppGenerationRequest(
                    app_name=job.app_name,
                    prompt=enhanced_prompt,
                    backend=job.backend,
                    icon_url=icon_url,
                ),
                sleep=self.sleep,
            )
            await self._simulate_work(3)
            steps_done = 4

            # Step 5: backend configuration
            await self._begin_step(job.id, 4)
            bundle = add_backend_configuration(synthesis.bundle, job.backend)
            await self._simulate_work(4)
            steps_done = 5

            # Step 6: archive
            await self._begin_step(job.id, 5)
            result_url = await run_in_threadpool(create_zip_file, job.id, bundle, self.downloads_dir)
            await self.store.update(job.id, {"result_url": result_url})
            await self._simulate_work(5)
            steps_done = 6

            final = await self.store.update(
                job.id,
                {"status": "completed", "progress": completed_snapshot()},
                expected_status="generating",
            )
        except Exception as e:
            logger.error(
                f"Generation failed: generation_id={job.id}, step={steps_done + 1}, error={e}",
                exc_info=True,
            )
            return await self._record_failure(job.id, steps_done, e)

        logger.info(
            f"Generation completed: generation_id={job.id}, source={synthesis.source}, "
            f"attempts={synthesis.attempts}, files={len(bundle.files)}"
        )

        try:
            subscription = await self.store.increment_usage(job.user_id)
            logger.info(
                f"Usage recorded: user_id={job.user_id}, "
                f"used={subscription.generations_used}/{subscription.generations_limit}"
            )
        except NotFound:
            logger.warning(f"No subscription to charge for generation {job.id}: user_id={job.user_id}")
        except Exception as e:
            logger.error(f"Failed to record usage for generation {job.id}: {e}", exc_info=True)

        return final

    async def _record_failure(
        self, generation_id: str, steps_done: int, error: Exception
    ) -> Optional[GenerationRecord]:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        try:
            return await self.store.update(
                generation_id,
                {"status": "failed", "progress": failed_snapshot(steps_done, message)},
                expected_status="generating",
            )
        except Exception as e:
            logger.error(f"Could not record failure for generation {generation_id}: {e}", exc_info=True)
            return None


def build_generation_create(**fields: Any) -> GenerationCreate:
    """
    Validate raw submission fields.

    Raises:
        ValidationError: naming the first offending field
    """
    try:
        return GenerationCreate(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid input")
        raise ValidationError(message, field=field) from e


async def submit_generation(store: JobStore, user_id: str, data: GenerationCreate) -> GenerationRecord:
    """
    Create a pending job after checking the owner's quota.

    Raises:
        NotFound: if the user does not exist
        QuotaExceeded: if the user's capped plan is used up (nothing is created)
    """
    user = await store.get_user(user_id)
    if user is None:
        raise NotFound("User", user_id)

    in_flight = sum(1 for job in await store.list_for_user(user_id) if not job.is_terminal)
    check_generation_quota(await store.get_subscription(user_id), in_flight=in_flight)

    generation = await store.create_generation({
        "user_id": user_id,
        "app_name": data.app_name,
        "prompt": data.prompt,
        "backend": data.backend,
        "icon_url": data.icon_url,
    })
    logger.info(
        f"Generation submitted: generation_id={generation.id}, user_id={user_id}, "
        f"backend={generation.backend}"
    )
    return generation

