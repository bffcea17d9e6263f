"""Decode/encode wrappers around Pillow. All pixel work happens here."""
import io
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import pillow_heif
from PIL import Image, ImageFile

from image_api.conversion.formats import PIL_FORMATS

pillow_heif.register_heif_opener()

# LOAD_TRUNCATED_IMAGES is module-global in Pillow; serialize lenient loads
_lenient_lock = threading.Lock()

_NON_RGB_MODES = ("CMYK", "YCbCr", "LAB", "HSV")


@contextmanager
def _tolerant_decoding():
    with _lenient_lock:
        previous = ImageFile.LOAD_TRUNCATED_IMAGES
        ImageFile.LOAD_TRUNCATED_IMAGES = True
        try:
            yield
        finally:
            ImageFile.LOAD_TRUNCATED_IMAGES = previous


def _rasterize_svg(path: Path) -> Image.Image:
    # cairosvg needs the system cairo library, so only load it for SVG input
    import cairosvg

    png = cairosvg.svg2png(url=str(path))
    img = Image.open(io.BytesIO(png))
    img.load()
    return img


def decode_image(path: Path, source_format: str) -> Image.Image:
    """Open and fully load an image. HEIC is decoded leniently; SVG is rasterized."""
    if source_format == "svg":
        return _rasterize_svg(path)
    img = Image.open(path)
    if source_format == "heic":
        with _tolerant_decoding():
            img.load()
    else:
        img.load()
    return img


def _prepare(img: Image.Image, fmt: str) -> Image.Image:
    if fmt == "jpeg":
        if img.mode not in ("RGB", "L", "CMYK"):
            return img.convert("RGBA").convert("RGB") if img.mode == "P" else img.convert("RGB")
        return img
    if fmt in ("webp", "heic"):
        if img.mode not in ("RGB", "RGBA"):
            return img.convert("RGBA" if "A" in img.getbands() or img.mode == "P" else "RGB")
        return img
    if fmt in ("png", "gif", "tiff") and img.mode in _NON_RGB_MODES:
        return img.convert("RGBA" if "A" in img.getbands() else "RGB")
    return img


def encode_image(img: Image.Image, fmt: str, quality: Optional[int] = None, **options) -> bytes:
    """Encode ``img`` as ``fmt``. ``quality`` applies only where the format has one."""
    pil_format = PIL_FORMATS.get(fmt)
    if pil_format is None:
        raise ValueError(f"Cannot encode format: {fmt}")
    work = _prepare(img, fmt)
    save_kw: dict = {"format": pil_format, **options}
    if quality is not None and fmt in ("jpeg", "webp", "heic"):
        save_kw["quality"] = quality
    buf = io.BytesIO()
    work.save(buf, **save_kw)
    return buf.getvalue()


def encode_png_palette(img: Image.Image) -> bytes:
    """256-colour palette PNG at maximum zlib compression."""
    work = img if img.mode in ("RGB", "RGBA") else img.convert("RGBA")
    quantized = work.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
    return encode_image(quantized, "png", compress_level=9, optimize=True)
