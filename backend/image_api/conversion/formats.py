"""Format and quality resolution rules.

Not every uploaded format can be written back by the encoder, so each operation
maps the source format onto something encodable. Formats are always derived
from the filename extension, never from the declared content type.
"""
import re
from pathlib import Path
from typing import Optional

from image_api.config import DEFAULT_QUALITY, MAX_QUALITY, MIN_QUALITY
from image_api.conversion.errors import InvalidParameterError

# Formats the target-size search can tune with a quality knob
TUNABLE_FORMATS = ("jpeg", "webp")

# Targets /convert will attempt ("jpg" is the public alias of "jpeg")
CONVERSION_TARGETS = ("jpg", "jpeg", "png", "webp", "gif", "tiff", "heic", "svg")

# Informational only: what the UI offers for a given source
CONVERSION_OPTIONS = {
    "png": ["jpg", "jpeg", "webp", "svg"],
    "jpeg": ["png", "webp"],
    "jpg": ["png", "webp"],
    "webp": ["png", "jpg", "jpeg"],
    "jfif": ["png"],
    "heic": ["jpg", "png"],
    "svg": ["png", "jpg"],
}
DEFAULT_CONVERSION_OPTIONS = ["png", "jpg", "webp"]

# Our format name -> Pillow format id
PIL_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "gif": "GIF",
    "tiff": "TIFF",
    "bmp": "BMP",
    "heic": "HEIF",
}

MEDIA_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "tiff": "image/tiff",
    "bmp": "image/bmp",
    "heic": "image/heic",
    "svg": "image/svg+xml",
}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def get_image_format(filename: str) -> str:
    """Normalized format from the filename extension (jpg/jpeg/jfif -> jpeg)."""
    ext = Path(filename or "").suffix.lower().lstrip(".")
    if ext in ("jpg", "jpeg", "jfif"):
        return "jpeg"
    return ext


def extension_for(fmt: str) -> str:
    return "jpg" if fmt == "jpeg" else fmt


def media_type_for(fmt: str) -> str:
    return MEDIA_TYPES.get(fmt, "application/octet-stream")


def conversion_options(input_format: str) -> list[str]:
    """Targets offered for a source format, with jpeg folded into jpg."""
    formats = CONVERSION_OPTIONS.get(input_format, DEFAULT_CONVERSION_OPTIONS)
    seen: list[str] = []
    for fmt in formats:
        fmt = "jpg" if fmt == "jpeg" else fmt
        if fmt not in seen:
            seen.append(fmt)
    return seen


def encoder_target(target_format: str) -> str:
    """Map a public conversion target onto the encoder's format name."""
    target = (target_format or "").strip().lower()
    if target not in CONVERSION_TARGETS:
        raise InvalidParameterError(f"Unsupported target format: {target_format}")
    return "jpeg" if target == "jpg" else target


def compression_output_format(source_format: str) -> str:
    if source_format in ("heic", "svg"):
        return "jpeg"
    if source_format == "gif":
        # No quality-driven GIF writer; webp keeps animation-free images small
        return "webp"
    return source_format


def search_format(output_format: str) -> str:
    """Format used when searching for a byte budget. PNG has no quality knob."""
    return "webp" if output_format == "png" else output_format


def resize_output_format(source_format: str) -> str:
    """Resize and crop keep the source format except where it cannot be written."""
    if source_format == "svg":
        return "png"
    return source_format


def parse_int(value) -> Optional[int]:
    """Leading-integer parse: "80" and "80px" give 80; None, "" and "abc" give None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    m = _LEADING_INT.match(str(value))
    return int(m.group(1)) if m else None


def resolve_quality(raw) -> int:
    """Requested quality clamped to [10, 100]; missing, zero or garbage means the default."""
    q = parse_int(raw) or DEFAULT_QUALITY
    return max(MIN_QUALITY, min(MAX_QUALITY, q))


def resolve_max_bytes(raw) -> Optional[int]:
    """Byte budget from a kilobyte count, or None when no budget was requested."""
    if raw is None or str(raw).strip() == "":
        return None
    kb = parse_int(raw)
    if kb is None:
        raise InvalidParameterError("maxSizeKb must be a number")
    return max(1, kb) * 1024
