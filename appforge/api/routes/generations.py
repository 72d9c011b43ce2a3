"""
Generation job endpoints.

Submitting a job creates a pending record and hands it to the generator as a
background task; clients poll GET /api/generations/{id} for progress and
fetch the archive from /api/download/{id} once it is completed.
"""
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from appforge.core.auth_dependency import get_current_user, get_generator, get_store, get_uploads_dir
from appforge.core.config import MAX_ICON_UPLOAD_BYTES
from appforge.core.errors import ValidationError
from appforge.schemas.generation import GenerationListResponse, GenerationRecord, GenerationResponse
from appforge.schemas.user import UserRecord
from appforge.services.app_generator import AppGenerator, build_generation_create, submit_generation
from appforge.services.packager import archive_path
from appforge.services.storage import JobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Generations"])

# raster only: uploads are served same-origin under /uploads
ALLOWED_ICON_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}


async def _get_owned_generation(store: JobStore, generation_id: str, user: UserRecord) -> GenerationRecord:
    generation = await store.get(generation_id)
    if not generation or generation.user_id != user.id:
        raise HTTPException(status_code=404, detail="Generation not found")
    return generation


def _write_upload(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def _read_icon(icon: UploadFile) -> bytes:
    if icon.content_type not in ALLOWED_ICON_TYPES:
        raise ValidationError(f"Unsupported icon type: {icon.content_type}", field="icon")
    content = await icon.read(MAX_ICON_UPLOAD_BYTES + 1)
    if len(content) > MAX_ICON_UPLOAD_BYTES:
        raise ValidationError("Icon must be 5MB or smaller", field="icon")
    if not content:
        raise ValidationError("Icon file is empty", field="icon")
    return content


@router.get("/generations", response_model=GenerationListResponse)
async def list_generations(
    user: UserRecord = Depends(get_current_user),
    store: JobStore = Depends(get_store),
):
    generations = await store.list_for_user(user.id)
    return {"generations": generations}


@router.post("/generations", response_model=GenerationResponse)
async def create_generation(
    background_tasks: BackgroundTasks,
    app_name: str = Form(""),
    prompt: str = Form(""),
    backend: str = Form("firebase"),
    generated_icon_url: Optional[str] = Form(None),
    icon: Optional[UploadFile] = File(None),
    user: UserRecord = Depends(get_current_user),
    store: JobStore = Depends(get_store),
    generator: AppGenerator = Depends(get_generator),
    uploads_dir: str = Depends(get_uploads_dir),
):
    """
    Submit a new generation job.

    Accepts multipart form data. An uploaded ``icon`` wins over
    ``generated_icon_url``; with neither, the generator produces an icon.
    """
    icon_content = None
    icon_path = None
    icon_url = generated_icon_url or None
    if icon is not None and icon.filename:
        icon_content = await _read_icon(icon)
        filename = f"{uuid.uuid4().hex}{ALLOWED_ICON_TYPES[icon.content_type]}"
        icon_path = Path(uploads_dir) / filename
        icon_url = f"/uploads/{filename}"

    data = build_generation_create(app_name=app_name, prompt=prompt, backend=backend, icon_url=icon_url)

    # the icon must exist before a job can reference it
    if icon_content is not None:
        await run_in_threadpool(_write_upload, icon_path, icon_content)

    try:
        generation = await submit_generation(store, user.id, data)
    except Exception:
        if icon_path is not None:
            icon_path.unlink(missing_ok=True)
        raise

    if icon_content is not None:
        logger.info(f"Icon uploaded: generation_id={generation.id}, bytes={len(icon_content)}")

    background_tasks.add_task(generator.run, generation.id)

    return {"generation": generation}


@router.get("/generations/{generation_id}", response_model=GenerationResponse)
async def get_generation(
    generation_id: str,
    user: UserRecord = Depends(get_current_user),
    store: JobStore = Depends(get_store),
):
    generation = await _get_owned_generation(store, generation_id, user)
    return {"generation": generation}


@router.get("/download/{generation_id}")
async def download_generation(
    generation_id: str,
    user: UserRecord = Depends(get_current_user),
    store: JobStore = Depends(get_store),
    generator: AppGenerator = Depends(get_generator),
):
    generation = await _get_owned_generation(store, generation_id, user)

    if generation.status != "completed" or not generation.result_url:
        raise HTTPException(status_code=400, detail="Generation not completed")

    path = archive_path(generation.id, generator.downloads_dir)
    if not os.path.exists(path):
        logger.warning(f"Archive missing for completed generation: generation_id={generation.id}, path={path}")
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(path, media_type="application/zip", filename=f"{generation.app_name}.zip")
