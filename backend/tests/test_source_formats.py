import io

import pytest
from PIL import Image

SVG_DOC = b"""<svg xmlns="http://www.w3.org/2000/svg" width="120" height="80">
  <rect width="120" height="80" fill="#3366cc"/>
  <circle cx="60" cy="40" r="30" fill="#ffcc00"/>
</svg>"""


def _post(client, path, name, data, content_type, **fields):
    return client.post(
        path,
        files={"file": (name, data, content_type)},
        data={k: str(v) for k, v in fields.items()},
    )


def test_heic_converts_to_png(client, make_image):
    r = _post(client, "/api/convert", "phone.heic", make_image("HEIF", (64, 48)), "image/heic", targetFormat="png")
    assert r.status_code == 200, r.text
    assert r.headers["content-type"] == "image/png"
    with Image.open(io.BytesIO(r.content)) as img:
        assert img.format == "PNG"
        assert img.size == (64, 48)


def test_heic_converts_to_jpg(client, make_image):
    r = _post(client, "/api/convert", "phone.heic", make_image("HEIF", (64, 48)), "image/heic", targetFormat="jpg")
    assert r.status_code == 200, r.text
    with Image.open(io.BytesIO(r.content)) as img:
        assert img.format == "JPEG"


@pytest.mark.parametrize("fields", [{"quality": 60}, {"maxSizeKb": 20}])
def test_heic_compresses_to_jpeg(client, make_image, fields):
    data = make_image("HEIF", (200, 150))
    full = _post(client, "/api/compress", "phone.heic", data, "image/heic", **fields)
    preview = _post(client, "/api/compress-preview", "phone.heic", data, "image/heic", **fields)
    assert full.status_code == 200, full.text
    assert preview.json() == {"bytes": len(full.content), "format": "jpeg"}
    assert '.jpg"' in full.headers["content-disposition"]
    with Image.open(io.BytesIO(full.content)) as img:
        assert img.format == "JPEG"


def test_svg_compresses_to_jpeg(client, svg_support):
    full = _post(client, "/api/compress", "logo.svg", SVG_DOC, "image/svg+xml", quality=70)
    preview = _post(client, "/api/compress-preview", "logo.svg", SVG_DOC, "image/svg+xml", quality=70)
    assert full.status_code == 200, full.text
    assert preview.json() == {"bytes": len(full.content), "format": "jpeg"}
    with Image.open(io.BytesIO(full.content)) as img:
        assert img.format == "JPEG"
        assert img.size == (120, 80)


def test_svg_resize_is_written_as_png(client, svg_support):
    r = _post(client, "/api/resize", "logo.svg", SVG_DOC, "image/svg+xml", width=60, height=60, maintainAspectRatio="true")
    assert r.status_code == 200, r.text
    assert r.headers["content-type"] == "image/png"
    assert '.png"' in r.headers["content-disposition"]
    with Image.open(io.BytesIO(r.content)) as img:
        assert img.format == "PNG"
        assert img.size == (60, 40)


def test_svg_crop_is_written_as_png(client, svg_support):
    r = _post(client, "/api/crop", "logo.svg", SVG_DOC, "image/svg+xml", x=10, y=10, width=50, height=30)
    assert r.status_code == 200, r.text
    with Image.open(io.BytesIO(r.content)) as img:
        assert img.format == "PNG"
        assert img.size == (50, 30)
