"""API routes for upload, conversion, resize, crop and compression."""
import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response

from image_api.config import ALLOWED_EXTENSIONS, Settings
from image_api.conversion.errors import ImageRequestError, InvalidParameterError, MissingFileError
from image_api.conversion.formats import (
    extension_for,
    media_type_for,
    parse_int,
    resolve_max_bytes,
    resolve_quality,
)
from image_api.conversion.models import CompressionSpec, CropSpec, EncodedResult, ResizeSpec
from image_api.conversion.service import ImageService
from image_api.workspace import Workspace

logger = logging.getLogger("image_api.api")
router = APIRouter(prefix="/api", tags=["images"])


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def get_image_service(request: Request) -> ImageService:
    return request.app.state.image_service


@contextmanager
def _request_errors(action: str):
    """Client errors become 400/413; anything else from the pipeline becomes 500."""
    try:
        yield
    except HTTPException:
        raise
    except ImageRequestError as e:
        raise HTTPException(e.status_code, str(e))
    except Exception as e:
        logger.exception("%s failed: %s", action, e)
        raise HTTPException(500, str(e))


def _parse_dimensions(width: Optional[str], height: Optional[str]) -> tuple[int, int]:
    w, h = parse_int(width), parse_int(height)
    if not w or not h:
        raise InvalidParameterError("Width and height are required")
    return w, h


def _download(result: EncodedResult, prefix: str) -> Response:
    filename = f"{prefix}-{int(time.time() * 1000)}.{extension_for(result.format)}"
    return Response(
        content=result.data,
        media_type=media_type_for(result.format),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _output_url(request: Request, settings: Settings, name: str) -> str:
    if settings.public_base_url:
        return f"{settings.public_base_url}/output/{quote(name)}"
    return str(request.url_for("output", path=name))


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/limits")
def get_limits(settings: Settings = Depends(get_settings)):
    """Return upload limits for the client."""
    return {
        "max_upload_size_mb": settings.max_upload_size_mb,
        "max_upload_size_bytes": settings.max_upload_size_bytes,
        "max_bulk_files": settings.max_bulk_files,
        "allowed_extensions": list(ALLOWED_EXTENSIONS),
    }


@router.post("/get-conversion-options")
async def get_conversion_options(
    file: Optional[UploadFile] = File(None),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    """Formats the client may offer for this upload. Informational; /convert does not enforce it."""
    with _request_errors("Conversion options"):
        async with workspace.upload(file) as asset:
            return svc.conversion_options(asset)


@router.post("/convert")
async def convert(
    file: Optional[UploadFile] = File(None),
    targetFormat: Optional[str] = Form(None),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    with _request_errors("Conversion"):
        if file is None or not file.filename:
            raise MissingFileError("No file uploaded")
        if not (targetFormat or "").strip():
            raise InvalidParameterError("Target format not specified")
        async with workspace.upload(file) as asset:
            result = await asyncio.to_thread(svc.convert, asset, targetFormat)
    return _download(result, "converted")


@router.post("/resize")
async def resize(
    file: Optional[UploadFile] = File(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    maintainAspectRatio: Optional[str] = Form(None),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    """Resize to width x height; with maintainAspectRatio=true fit inside without upscaling."""
    with _request_errors("Resize"):
        if file is None or not file.filename:
            raise MissingFileError("No file uploaded")
        w, h = _parse_dimensions(width, height)
        keep = (maintainAspectRatio or "").strip().lower() == "true"
        spec = ResizeSpec(width=w, height=h, maintain_aspect_ratio=keep)
        async with workspace.upload(file) as asset:
            result = await asyncio.to_thread(svc.resize, asset, spec)
    return _download(result, "resized")


@router.post("/bulk-resize")
async def bulk_resize(
    request: Request,
    files: Optional[list[UploadFile]] = File(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    """Resize up to MAX_BULK_FILES files; returns a URL per resized file and an error per failed one."""
    with _request_errors("Bulk resize"):
        files = [f for f in (files or []) if f.filename]
        if not files:
            raise MissingFileError("No files uploaded")
        if len(files) > settings.max_bulk_files:
            raise InvalidParameterError(f"Max {settings.max_bulk_files} files per request")
        w, h = _parse_dimensions(width, height)
        async with workspace.uploads(files) as assets:
            results = await asyncio.to_thread(svc.bulk_resize, assets, w, h)
        if not any(r.ok for r in results):
            raise HTTPException(500, results[0].error or "Resize failed")

        payload = []
        for r in results:
            if r.ok:
                path = await asyncio.to_thread(workspace.write_output, r.original_name, r.result, "resized")
                payload.append({"name": path.name, "url": _output_url(request, settings, path.name)})
            else:
                payload.append({"name": r.original_name, "error": r.error})
    return {"files": payload}


@router.post("/crop")
async def crop(
    file: Optional[UploadFile] = File(None),
    x: Optional[str] = Form(None),
    y: Optional[str] = Form(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    """Crop a rectangle; an extent past the image edge is truncated, an origin past it is rejected."""
    with _request_errors("Crop"):
        if file is None or not file.filename:
            raise MissingFileError("No file uploaded")
        values = [parse_int(v) for v in (x, y, width, height)]
        if any(v is None for v in values):
            raise InvalidParameterError("Invalid crop parameters")
        spec = CropSpec(*values)
        async with workspace.upload(file) as asset:
            result = await asyncio.to_thread(svc.crop, asset, spec)
    return _download(result, "cropped")


def _compression_spec(quality: Optional[str], maxSizeKb: Optional[str]) -> CompressionSpec:
    return CompressionSpec(quality=resolve_quality(quality), max_bytes=resolve_max_bytes(maxSizeKb))


@router.post("/compress")
async def compress(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    maxSizeKb: Optional[str] = Form(None),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    """Compress at a quality (10-100, default 70) or to fit maxSizeKb kilobytes."""
    with _request_errors("Compression"):
        if file is None or not file.filename:
            raise MissingFileError("No file uploaded")
        spec = _compression_spec(quality, maxSizeKb)
        async with workspace.upload(file) as asset:
            result = await asyncio.to_thread(svc.compress, asset, spec)
    return _download(result, "compressed")


@router.post("/compress-preview")
async def compress_preview(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    maxSizeKb: Optional[str] = Form(None),
    workspace: Workspace = Depends(get_workspace),
    svc: ImageService = Depends(get_image_service),
):
    """Run the same compression as /compress and report only the output size and format."""
    with _request_errors("Compression preview"):
        if file is None or not file.filename:
            raise MissingFileError("No file uploaded")
        spec = _compression_spec(quality, maxSizeKb)
        async with workspace.upload(file) as asset:
            return await asyncio.to_thread(svc.preview_compression, asset, spec)
