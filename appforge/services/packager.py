"""
Archive packager.
Writes a generated project bundle into a downloadable ZIP.
"""
import logging
import zipfile
from pathlib import Path

from appforge.core.errors import PackagingError
from appforge.schemas.generation import ProjectBundle

logger = logging.getLogger(__name__)

README_NAME = "README.md"


def archive_path(generation_id: str, downloads_dir: str) -> Path:
    """Filesystem location of a generation's archive."""
    return Path(downloads_dir) / f"{generation_id}.zip"


def download_handle(generation_id: str) -> str:
    """Opaque handle stored on the job and resolved by the download route."""
    return f"/api/download/{generation_id}"


def create_zip_file(generation_id: str, bundle: ProjectBundle, downloads_dir: str) -> str:
    """
    Package a bundle into ``<downloads_dir>/<generation_id>.zip``.

    File paths become entry names unchanged; ``bundle.readme`` is written as
    README.md and replaces any README.md in ``bundle.files``.

    Args:
        generation_id: Generation ID
        bundle: Project bundle
        downloads_dir: Output directory (created if missing)

    Returns:
        Download handle for the archive

    Raises:
        PackagingError: if the archive cannot be written
    """
    path = archive_path(generation_id, downloads_dir)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for file_path, content in bundle.files.items():
                if file_path == README_NAME and bundle.readme:
                    continue
                archive.writestr(file_path, content)
            if bundle.readme or README_NAME not in bundle.files:
                archive.writestr(README_NAME, bundle.readme)
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        logger.error(f"Failed to write archive for generation {generation_id}: {e}", exc_info=True)
        raise PackagingError(f"Failed to build ZIP file: {e}", cause=e) from e

    logger.info(f"Archive written: generation_id={generation_id}, entries={len(bundle.files)}, path={path}")
    return download_handle(generation_id)
