"""Target-size compression: highest quality whose encoding fits a byte budget."""
import logging
from typing import Callable, Optional

from PIL import Image

from image_api.config import MAX_QUALITY, MIN_QUALITY
from image_api.conversion.codec import encode_image
from image_api.conversion.formats import TUNABLE_FORMATS
from image_api.conversion.models import EncodedResult

logger = logging.getLogger("image_api.search")

Encoder = Callable[[Image.Image, str, Optional[int]], bytes]


def _encode_at(img: Image.Image, fmt: str, quality: int, encoder: Encoder) -> bytes:
    if fmt in TUNABLE_FORMATS:
        return encoder(img, fmt, quality)
    return encoder(img, fmt, None)


def compress_to_target(
    img: Image.Image,
    fmt: str,
    max_bytes: int,
    encoder: Encoder = encode_image,
) -> EncodedResult:
    """
    Binary-search the quality range for the largest quality whose output is <= max_bytes.

    Assumes encoded size is non-decreasing in quality. If nothing fits, the
    MIN_QUALITY encoding is returned even though it exceeds the budget.
    Formats without a quality knob are encoded with defaults on every probe.
    """
    tunable = fmt in TUNABLE_FORMATS
    low, high = MIN_QUALITY, MAX_QUALITY
    best: Optional[bytes] = None
    best_q: Optional[int] = None
    probes = 0
    while low <= high:
        mid = (low + high) // 2
        buf = _encode_at(img, fmt, mid, encoder)
        probes += 1
        if len(buf) <= max_bytes:
            best = buf
            best_q = mid
            low = mid + 1
        else:
            high = mid - 1

    if best is None:
        logger.info(
            "No %s quality fits %s bytes after %s probes; falling back to quality %s",
            fmt, max_bytes, probes, MIN_QUALITY,
        )
        data = _encode_at(img, fmt, MIN_QUALITY, encoder)
        return EncodedResult(data=data, format=fmt, quality=MIN_QUALITY if tunable else None)

    logger.debug("Budget %s bytes met by %s q=%s (%s bytes, %s probes)", max_bytes, fmt, best_q, len(best), probes)
    return EncodedResult(data=best, format=fmt, quality=best_q if tunable else None)
