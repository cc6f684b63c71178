import logging
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from config import (
    DEFAULT_UPLOAD_BUCKET,
    UPLOAD_BUCKETS,
    UPLOAD_CONTENT_TYPES,
    UPLOAD_MAX_BYTES,
    UPLOAD_MEDIA_TYPES,
)
from deps import storage
from storage import StorageError, sanitize_filename

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


@router.post("/api/upload")
async def upload_file(file: UploadFile = File(...), bucket: str = DEFAULT_UPLOAD_BUCKET):
    if bucket not in UPLOAD_BUCKETS:
        raise HTTPException(status_code=400, detail=f"Invalid bucket: {bucket}")
    content_type = (file.content_type or "").lower()
    if content_type not in UPLOAD_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only JPEG, PNG, GIF and WebP images are allowed.",
        )

    data = await file.read()
    if len(data) > UPLOAD_MAX_BYTES:
        raise HTTPException(status_code=400, detail="File too large. Maximum size is 10MB.")

    # Stored extension follows the checked content type, not the client filename
    stem = Path(file.filename or "upload").stem
    filename = sanitize_filename(f"{stem}.{UPLOAD_CONTENT_TYPES[content_type]}")
    url = storage.save(bucket, filename, data)
    logger.info("Stored upload %s/%s (%d bytes)", bucket, filename, len(data))
    return {
        "success": True,
        "url": url,
        "filename": filename,
        "size": len(data),
        "type": content_type,
    }


@router.get("/uploads/{bucket}/{filename}")
async def serve_upload(bucket: str, filename: str):
    try:
        path = storage.path_for(bucket, filename)
    except StorageError:
        raise HTTPException(status_code=404, detail="File not found")
    media_type = UPLOAD_MEDIA_TYPES.get(path.suffix.lstrip(".").lower())
    if not media_type or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type=media_type)
