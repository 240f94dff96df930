from __future__ import annotations

import asyncio
import io
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from colorbook.deps import get_storage
from colorbook.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/uploads", tags=["uploads"])

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_FOLDERS = {"sketch", "reference", "cover", "images"}
_FORMATS = {"PNG": ("png", "image/png"), "JPEG": ("jpg", "image/jpeg"), "WEBP": ("webp", "image/webp")}


@router.post("")
async def upload_image(
    file: UploadFile = File(...),
    folder: str = Form("images"),
    storage: ObjectStorage = Depends(get_storage),
):
    """Store a user image (sketch, color reference, post cover) and return its public URL."""
    if folder not in ALLOWED_FOLDERS:
        raise HTTPException(status_code=400, detail=f"folder must be one of {sorted(ALLOWED_FOLDERS)}")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File is larger than 10 MB")

    try:
        with PILImage.open(io.BytesIO(content)) as img:
            fmt = img.format
            width, height = img.size
    except UnidentifiedImageError:
        raise HTTPException(status_code=400, detail="File is not an image")

    if fmt not in _FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported image format: {fmt}")
    ext, content_type = _FORMATS[fmt]

    key = storage.build_key(folder, ext)
    url = await asyncio.to_thread(storage.upload_bytes, content=content, key=key, content_type=content_type)
    logger.info("upload %s stored as %s", file.filename, key)
    return {"url": url, "key": key, "width": width, "height": height, "content_type": content_type}
