"""Local staging area for uploaded catalog files."""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from storefront.core.config import get_settings

settings = get_settings()
UPLOADS_DIR = Path(settings.uploads_dir).resolve()
UPLOADS_DIR.mkdir(parents=True, exist_ok=True)


def save_upload(file_obj: BinaryIO, original_name: str | None = None) -> Path:
    """Persist an uploaded CSV under a unique name and return the absolute path."""
    suffix = Path(original_name or "upload.csv").suffix or ".csv"
    target_path = (UPLOADS_DIR / f"{uuid.uuid4()}{suffix}").resolve()
    file_obj.seek(0)
    with target_path.open("wb") as destination:
        shutil.copyfileobj(file_obj, destination)
    return target_path


def delete_upload(uri: str | Path) -> None:
    """Remove a staged file once its import has finished."""
    path = Path(uri)
    if not path.is_absolute():
        path = path.resolve()
    try:
        path.unlink(missing_ok=True)
    except OSError:
        # Best effort; a leftover staged file does not affect the catalog.
        pass
