"""Image operations: convert, resize, crop and compress, with parallel bulk resize."""
import base64
import logging
from concurrent.futures import ThreadPoolExecutor

from image_api.conversion.codec import decode_image, encode_image, encode_png_palette
from image_api.conversion.errors import InvalidParameterError, OutOfBoundsError
from image_api.conversion.formats import (
    TUNABLE_FORMATS,
    compression_output_format,
    conversion_options,
    encoder_target,
    resize_output_format,
    search_format,
)
from image_api.conversion.models import (
    BulkItemResult,
    CompressionSpec,
    CropSpec,
    EncodedResult,
    ResizeSpec,
    UploadedAsset,
)
from image_api.conversion.resize import resize_exact, resize_keep_aspect
from image_api.conversion.search import compress_to_target

logger = logging.getLogger("image_api.service")

SVG_TEMPLATE = """<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}">
  <image href="data:image/png;base64,{payload}" width="{w}" height="{h}"/>
</svg>"""


class ImageService:
    """Runs image operations on uploaded assets. Every call is independent."""

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        logger.info("ImageService initialized with max_workers=%s", max_workers)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def conversion_options(asset: UploadedAsset) -> dict:
        return {
            "inputFormat": asset.source_format,
            "availableFormats": conversion_options(asset.source_format),
        }

    def convert(self, asset: UploadedAsset, target_format: str) -> EncodedResult:
        """Re-encode into ``target_format``. "svg" wraps a PNG raster; it does not vectorize."""
        fmt = encoder_target(target_format)
        with decode_image(asset.path, asset.source_format) as img:
            if fmt == "svg":
                payload = base64.b64encode(encode_image(img, "png")).decode("ascii")
                w, h = img.size
                doc = SVG_TEMPLATE.format(w=w, h=h, payload=payload)
                out = EncodedResult(data=doc.encode("utf-8"), format="svg")
            else:
                out = EncodedResult(data=encode_image(img, fmt), format=fmt)
        logger.info("Converted %s (%s) -> %s, %s bytes", asset.original_name, asset.source_format, out.format, out.size)
        return out

    def resize(self, asset: UploadedAsset, spec: ResizeSpec) -> EncodedResult:
        if spec.width <= 0 or spec.height <= 0:
            raise InvalidParameterError("Width and height must be > 0")
        fmt = resize_output_format(asset.source_format)
        with decode_image(asset.path, asset.source_format) as img:
            if spec.maintain_aspect_ratio:
                work = resize_keep_aspect(img, spec.width, spec.height)
            else:
                work = resize_exact(img, spec.width, spec.height)
            out = EncodedResult(data=encode_image(work, fmt), format=fmt)
            logger.info("Resized %s %sx%s -> %sx%s", asset.original_name, img.width, img.height, work.width, work.height)
        return out

    def _resize_one(self, asset: UploadedAsset, spec: ResizeSpec) -> BulkItemResult:
        try:
            return BulkItemResult(original_name=asset.original_name, result=self.resize(asset, spec))
        except Exception as e:
            logger.exception("Bulk resize failed for %s: %s", asset.original_name, e)
            return BulkItemResult(original_name=asset.original_name, error=str(e))

    def bulk_resize(self, assets: list[UploadedAsset], width: int, height: int) -> list[BulkItemResult]:
        """Resize files in parallel to exactly width x height. Results keep input order;
        a failure in one file is reported for that file only."""
        if width <= 0 or height <= 0:
            raise InvalidParameterError("Width and height must be > 0")
        spec = ResizeSpec(width=width, height=height, maintain_aspect_ratio=False)
        futures = [self._executor.submit(self._resize_one, asset, spec) for asset in assets]
        return [f.result() for f in futures]

    def crop(self, asset: UploadedAsset, spec: CropSpec) -> EncodedResult:
        """Crop with a clamped origin. An origin outside the image is rejected;
        an extent running past the edge is truncated to fit."""
        x = max(0, spec.x)
        y = max(0, spec.y)
        if spec.width <= 0 or spec.height <= 0:
            raise InvalidParameterError("Width and height must be > 0")

        fmt = resize_output_format(asset.source_format)
        with decode_image(asset.path, asset.source_format) as img:
            max_w = max(1, img.width or 1)
            max_h = max(1, img.height or 1)
            if x >= max_w or y >= max_h:
                raise OutOfBoundsError("Crop area out of bounds")
            safe_w = max(1, min(spec.width, max_w - x))
            safe_h = max(1, min(spec.height, max_h - y))
            work = img.crop((x, y, x + safe_w, y + safe_h))
            out = EncodedResult(data=encode_image(work, fmt), format=fmt)
        logger.info("Cropped %s at (%s,%s) size %sx%s", asset.original_name, x, y, safe_w, safe_h)
        return out

    def compress(self, asset: UploadedAsset, spec: CompressionSpec) -> EncodedResult:
        """Compress at a fixed quality or, when ``spec.max_bytes`` is set, search for
        the highest quality under that budget."""
        out_fmt = compression_output_format(asset.source_format)
        with decode_image(asset.path, asset.source_format) as img:
            if spec.max_bytes:
                out = compress_to_target(img, search_format(out_fmt), spec.max_bytes)
            elif out_fmt == "png":
                out = EncodedResult(data=encode_png_palette(img), format="png")
            elif out_fmt in TUNABLE_FORMATS:
                out = EncodedResult(data=encode_image(img, out_fmt, spec.quality), format=out_fmt, quality=spec.quality)
            else:
                out = EncodedResult(data=encode_image(img, out_fmt), format=out_fmt)
        logger.info(
            "Compressed %s: %s -> %s bytes as %s (quality=%s)",
            asset.original_name, asset.size, out.size, out.format, out.quality,
        )
        return out

    def preview_compression(self, asset: UploadedAsset, spec: CompressionSpec) -> dict:
        """Same computation as compress(); only the size and format leave this call."""
        out = self.compress(asset, spec)
        return {"bytes": out.size, "format": out.format}

