"""Transient storage for uploads and bulk outputs.

Uploads only live for the duration of a request: they are acquired through
``upload()``/``uploads()`` and removed on every exit path. Bulk outputs are
fetched by URL after the request ends, so they are written to the output
directory and expired by ``sweep_forever``.
"""
import asyncio
import logging
import re
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import UploadFile

from image_api.config import ALLOWED_EXTENSIONS
from image_api.conversion.errors import FileTooLargeError, MissingFileError, UnsupportedFileTypeError
from image_api.conversion.formats import extension_for, get_image_format
from image_api.conversion.models import EncodedResult, UploadedAsset

logger = logging.getLogger("image_api.workspace")

_ALLOWED_MIME = re.compile("|".join(ALLOWED_EXTENSIONS))
_CHUNK = 1024 * 1024


def sanitize_filename(name: str) -> str:
    """Safe file name stem (no path separators, never empty)."""
    s = "".join(c for c in name if c.isalnum() or c in "._- ").strip().replace(" ", "_") or "file"
    return s[:64]


class Workspace:
    def __init__(self, upload_dir: Path, output_dir: Path, max_upload_bytes: int):
        self.upload_dir = Path(upload_dir)
        self.output_dir = Path(output_dir)
        self.max_upload_bytes = max_upload_bytes

    def ensure_dirs(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def validate_upload(self, file: Optional[UploadFile]) -> str:
        """Check the upload against the extension (and, when given, content-type) allow-list."""
        if file is None or not file.filename:
            raise MissingFileError("No file uploaded")
        ext = Path(file.filename).suffix.lower().lstrip(".")
        content_type = (file.content_type or "").lower()
        mime_ok = content_type in ("", "application/octet-stream") or bool(_ALLOWED_MIME.search(content_type))
        if ext not in ALLOWED_EXTENSIONS or not mime_ok:
            raise UnsupportedFileTypeError("Only image files are allowed!")
        return ext

    async def save_upload(self, file: Optional[UploadFile]) -> UploadedAsset:
        ext = self.validate_upload(file)
        max_mb = self.max_upload_bytes // (1024 * 1024)
        dest = self.upload_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}.{ext}"
        total = 0
        try:
            with open(dest, "wb") as f:
                while chunk := await file.read(_CHUNK):
                    total += len(chunk)
                    if total > self.max_upload_bytes:
                        raise FileTooLargeError(f"File too large: {file.filename} (max {max_mb} MB)")
                    f.write(chunk)
        except BaseException:
            self.discard(dest)
            raise
        return UploadedAsset(
            path=dest,
            original_name=file.filename,
            source_format=get_image_format(file.filename),
            size=total,
        )

    @asynccontextmanager
    async def uploads(self, files: list[UploadFile]) -> AsyncIterator[list[UploadedAsset]]:
        """Store every upload for the duration of the block, then delete them all."""
        assets: list[UploadedAsset] = []
        try:
            for file in files:
                assets.append(await self.save_upload(file))
            yield assets
        finally:
            for asset in assets:
                self.discard(asset.path)

    @asynccontextmanager
    async def upload(self, file: Optional[UploadFile]) -> AsyncIterator[UploadedAsset]:
        async with self.uploads([file]) as assets:
            yield assets[0]

    def discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)

    def write_output(self, original_name: str, result: EncodedResult, prefix: str) -> Path:
        stem = sanitize_filename(Path(original_name).stem)
        path = self.output_dir / f"{prefix}-{uuid.uuid4().hex[:8]}-{stem}.{extension_for(result.format)}"
        path.write_bytes(result.data)
        return path

    def sweep_expired(self, max_age_seconds: float, now: Optional[float] = None) -> int:
        """Delete bulk outputs older than ``max_age_seconds``. Returns the count."""
        cutoff = (now if now is not None else time.time()) - max_age_seconds
        removed = 0
        if not self.output_dir.is_dir():
            return 0
        for path in self.output_dir.iterdir():
            try:
                if path.is_file() and path.stat().st_mtime <= cutoff:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not remove expired file %s: %s", path, e)
        if removed:
            logger.info("Swept %s expired file(s)", removed)
        return removed

    async def sweep_forever(self, interval_seconds: float, max_age_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await asyncio.to_thread(self.sweep_expired, max_age_seconds)
            except OSError as e:
                logger.warning("Output sweep failed: %s", e)
