"""Resize to an exact box or fit inside a box without enlarging."""
from PIL import Image


def resize_exact(img: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """Force exactly (target_width, target_height); the aspect ratio may change."""
    if img.size == (target_width, target_height):
        return img.copy()
    return img.resize((target_width, target_height), Image.Resampling.LANCZOS)


def resize_keep_aspect(img: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """
    Scale image to fit within the target box, maintaining aspect ratio.
    Images already inside the box keep their native size (no upscaling).
    """
    w, h = img.size
    scale = min(target_width / w, target_height / h)
    if scale >= 1:
        return img.copy()
    new_w = min(target_width, max(1, int(round(w * scale))))
    new_h = min(target_height, max(1, int(round(h * scale))))
    return img.resize((new_w, new_h), Image.Resampling.LANCZOS)
