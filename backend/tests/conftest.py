import io
import random

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from image_api.config import Settings
from image_api.main import create_app


def _noisy_image(size, mode="RGB", seed=0):
    """Gradient with noise on top: compresses like a photo, so quality really changes size."""
    w, h = size
    rng = random.Random(seed)
    base = Image.linear_gradient("L").resize(size)
    noise = Image.frombytes("L", size, rng.randbytes(w * h))
    channels = [
        Image.blend(base, noise, 0.25),
        Image.blend(base.transpose(Image.Transpose.FLIP_LEFT_RIGHT), noise, 0.25),
        Image.blend(base.transpose(Image.Transpose.FLIP_TOP_BOTTOM), noise, 0.25),
    ]
    img = Image.merge("RGB", channels)
    return img.convert(mode) if mode != "RGB" else img


@pytest.fixture
def make_image():
    """Factory: encoded image bytes of a given format and size."""

    def _make(fmt="PNG", size=(800, 600), mode="RGB", seed=0):
        img = _noisy_image(size, mode=mode, seed=seed)
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        return buf.getvalue()

    return _make


@pytest.fixture
def noisy_image():
    return _noisy_image


@pytest.fixture
def svg_support():
    """Skip when cairosvg or the system cairo library it loads is missing."""
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError) as e:
        pytest.skip(f"SVG rasterizing unavailable: {e}")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        upload_dir=tmp_path / "uploads",
        output_dir=tmp_path / "output",
        max_workers=2,
        cleanup_interval_seconds=3600,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
