"""
Image uploads stored on local disk and served under /uploads.
"""

from __future__ import annotations

import re
import secrets
from pathlib import Path

from fastapi import HTTPException, UploadFile

from . import settings

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _file_ext(filename: str) -> str:
    return Path(filename).suffix.lower()


def safe_filename(filename: str) -> str:
    stem = Path(filename).stem
    cleaned = _UNSAFE_CHARS.sub("-", stem).strip("-.")
    return cleaned[:80] or "file"


def validate_image(file: UploadFile, allowed: set[str] | None = None) -> str:
    """
    Return the normalized extension if this upload is an accepted image.

    Validation is by extension because `content_type` is often missing or wrong.
    """
    allowed = allowed or IMAGE_EXTENSIONS
    if not file.filename:
        raise HTTPException(status_code=400, detail="Missing filename.")

    ext = _file_ext(file.filename)
    if ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Only image files are allowed. Allowed: {sorted(allowed)}",
        )
    return ext


async def read_upload_bytes(file: UploadFile, max_bytes: int) -> bytes:
    chunk_size = 1024 * 1024
    buf = bytearray()

    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Max is {max_bytes} bytes.",
            )

    if not buf:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    return bytes(buf)


async def save_image(
    file: UploadFile,
    *,
    subdir: str,
    max_bytes: int | None = None,
    allowed: set[str] | None = None,
) -> str:
    """
    Persist an uploaded image and return its public path (/uploads/<subdir>/<name>).
    """
    ext = validate_image(file, allowed)
    data = await read_upload_bytes(file, max_bytes or settings.max_image_bytes())

    target_dir = Path(settings.upload_dir()) / subdir
    target_dir.mkdir(parents=True, exist_ok=True)

    name = f"{secrets.token_hex(8)}-{safe_filename(file.filename or '')}{ext}"
    (target_dir / name).write_bytes(data)
    return f"/uploads/{subdir}/{name}"
