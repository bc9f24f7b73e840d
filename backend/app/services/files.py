from pathlib import Path
import shutil
import uuid
from typing import BinaryIO

from app.core.config import settings
from app.core.logging import logger


def ensure_dirs():
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    Path(settings.EXPORT_DIR).mkdir(parents=True, exist_ok=True)


def save_upload(src: BinaryIO, dest_path: Path) -> None:
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    with dest_path.open("wb") as f:
        shutil.copyfileobj(src, f)


def stage_upload(src: BinaryIO, filename: str) -> Path:
    """Copy an upload into UPLOAD_DIR under a unique name keeping its suffix."""
    ensure_dirs()
    # unique name so parallel uploads never overwrite each other
    dest = Path(settings.UPLOAD_DIR) / f"tmp_{uuid.uuid4().hex}_{Path(filename or 'upload').name}"
    save_upload(src, dest)
    return dest


def remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("file_cleanup_failed", path=str(path), error=str(e))
