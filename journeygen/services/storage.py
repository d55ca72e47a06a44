# journeygen/services/storage.py
import os
import re
import time
import logging
from pathlib import Path

from fastapi import UploadFile

from journeygen.background import run_sync
from journeygen.settings.config import settings

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def clean_filename(name: str) -> str:
    name = os.path.basename(name or "")
    name = re.sub(r"[^\w\-_.]", "_", name)
    return name or "upload"


def url_to_path(file_url: str) -> Path:
    """Map a stored '/uploads/<name>' locator back onto the upload directory."""
    name = os.path.basename((file_url or "").strip())
    return Path(settings.UPLOAD_DIR) / name


def _write_bytes(path: Path, data: bytes) -> None:
    path.write_bytes(data)


async def save_upload(upload: UploadFile) -> dict:
    """
    Persist an uploaded file under the upload dir with a millisecond prefix.
    Returns {filename, path, mimetype, size}.
    """
    stored = f"{int(time.time() * 1000)}-{clean_filename(upload.filename)}"
    dest = upload_dir() / stored
    data = await upload.read()
    await run_sync(_write_bytes, dest, data)
    logger.info("Stored upload %s (%d bytes)", stored, len(data))
    return {
        "filename": stored,
        "path": f"{URL_PREFIX}{stored}",
        "mimetype": upload.content_type,
        "size": len(data),
    }


def _unlink(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


async def delete_upload(file_url: str) -> bool:
    removed = await run_sync(_unlink, url_to_path(file_url))
    if not removed:
        logger.info("Upload %s already gone", file_url)
    return removed


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")
