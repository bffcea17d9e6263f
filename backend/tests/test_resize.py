import io

import pytest
from PIL import Image

from image_api.conversion.resize import resize_exact, resize_keep_aspect


@pytest.mark.parametrize(
    "source,box,expected",
    [
        ((800, 600), (400, 100), (133, 100)),
        ((800, 600), (400, 400), (400, 300)),
        ((200, 100), (400, 400), (200, 100)),
        ((600, 800), (300, 300), (225, 300)),
    ],
)
def test_keep_aspect_fits_inside_without_enlarging(source, box, expected):
    out = resize_keep_aspect(Image.new("RGB", source), *box)
    assert out.size == expected
    assert out.width <= min(box[0], source[0])
    assert out.height <= min(box[1], source[1])


def test_exact_resize_distorts():
    out = resize_exact(Image.new("RGB", (800, 600)), 300, 300)
    assert out.size == (300, 300)


def test_resize_endpoint_keeps_aspect(client, make_image):
    r = client.post(
        "/api/resize",
        files={"file": ("photo.png", make_image("PNG", (800, 600)), "image/png")},
        data={"width": "400", "height": "100", "maintainAspectRatio": "true"},
    )
    assert r.status_code == 200, r.text
    assert r.headers["content-type"] == "image/png"
    assert r.headers["content-disposition"].startswith('attachment; filename="resized-')
    with Image.open(io.BytesIO(r.content)) as img:
        assert img.size == (133, 100)


def test_resize_endpoint_exact(client, make_image):
    r = client.post(
        "/api/resize",
        files={"file": ("photo.jpg", make_image("JPEG", (800, 600)), "image/jpeg")},
        data={"width": "300", "height": "300"},
    )
    assert r.status_code == 200, r.text
    with Image.open(io.BytesIO(r.content)) as img:
        assert img.format == "JPEG"
        assert img.size == (300, 300)


@pytest.mark.parametrize("width,height", [("", "100"), ("abc", "100"), ("0", "100")])
def test_resize_requires_dimensions(client, make_image, width, height):
    r = client.post(
        "/api/resize",
        files={"file": ("photo.png", make_image("PNG", (50, 50)), "image/png")},
        data={"width": width, "height": height},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Width and height are required"


def test_resize_rejects_negative_dimensions(client, make_image):
    r = client.post(
        "/api/resize",
        files={"file": ("photo.png", make_image("PNG", (50, 50)), "image/png")},
        data={"width": "-10", "height": "100"},
    )
    assert r.status_code == 400


def test_bulk_resize_returns_urls(client, make_image):
    files = [
        ("files", (f"img{i}.png", make_image("PNG", (120, 80), seed=i), "image/png"))
        for i in range(3)
    ]
    r = client.post("/api/bulk-resize", files=files, data={"width": "50", "height": "40"})
    assert r.status_code == 200, r.text
    payload = r.json()["files"]
    assert len(payload) == 3
    for i, entry in enumerate(payload):
        assert entry["name"].startswith("resized-")
        assert entry["name"].endswith(f"img{i}.png")
        got = client.get(entry["url"])
        assert got.status_code == 200
        with Image.open(io.BytesIO(got.content)) as img:
            assert img.size == (50, 40)


def test_bulk_resize_keeps_partial_results(client, make_image):
    files = [
        ("files", ("good.png", make_image("PNG", (120, 80)), "image/png")),
        ("files", ("broken.png", b"definitely not a png", "image/png")),
    ]
    r = client.post("/api/bulk-resize", files=files, data={"width": "50", "height": "40"})
    assert r.status_code == 200, r.text
    good, broken = r.json()["files"]
    assert "url" in good
    assert broken["name"] == "broken.png"
    assert broken["error"]


def test_bulk_resize_all_failed_is_500(client):
    files = [("files", ("broken.png", b"nope", "image/png"))]
    r = client.post("/api/bulk-resize", files=files, data={"width": "50", "height": "40"})
    assert r.status_code == 500


def test_bulk_resize_caps_file_count(client, make_image):
    data = make_image("PNG", (10, 10))
    files = [("files", (f"f{i}.png", data, "image/png")) for i in range(11)]
    r = client.post("/api/bulk-resize", files=files, data={"width": "5", "height": "5"})
    assert r.status_code == 400


def test_bulk_resize_without_files(client):
    r = client.post("/api/bulk-resize", data={"width": "5", "height": "5"})
    assert r.status_code == 400
    assert r.json()["detail"] == "No files uploaded"
