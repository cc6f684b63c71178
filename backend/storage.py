"""Local filesystem storage for uploads and generated mockups."""

import re
import time
from pathlib import Path
from typing import Optional

from config import UPLOAD_BUCKETS


class StorageError(ValueError):
    pass


def sanitize_filename(name: str, timestamp_ms: Optional[int] = None) -> str:
    """Build a unique, filesystem-safe name: <ms>-<base>.<ext>."""
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    name = Path(name or "file").name
    base, dot, ext = name.rpartition(".")
    if not dot:
        base, ext = name, ""
    base = re.sub(r"[^a-zA-Z0-9_-]+", "-", base).strip("-")[:80] or "file"
    ext = re.sub(r"[^a-zA-Z0-9]", "", ext).lower()
    return f"{ts}-{base}.{ext}" if ext else f"{ts}-{base}"


class LocalStorage:
    def __init__(self, root: str = "./uploads", base_url: str = ""):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def path_for(self, bucket: str, filename: str) -> Path:
        """Resolve a stored file path. Raises StorageError on unknown buckets or traversal."""
        if bucket not in UPLOAD_BUCKETS:
            raise StorageError(f"Unknown bucket: {bucket}")
        bucket_dir = self.root / bucket
        path = (bucket_dir / filename).resolve()
        if path.parent != bucket_dir.resolve():
            raise StorageError("Invalid filename")
        return path

    def url_for(self, bucket: str, filename: str) -> str:
        return f"{self.base_url}/uploads/{bucket}/{filename}"

    def save(self, bucket: str, filename: str, data: bytes) -> str:
        path = self.path_for(bucket, filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return self.url_for(bucket, filename)

    def exists(self, bucket: str, filename: str) -> bool:
        try:
            return self.path_for(bucket, filename).is_file()
        except StorageError:
            return False
