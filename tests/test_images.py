from __future__ import annotations

import io

import requests
from PIL import Image

from domprint import images
from domprint.images import detect_image_format, fetch_image_bytes, resolve_image_url


def _png():
    buffer = io.BytesIO()
    Image.effect_noise((32, 32), 64).convert("RGB").save(buffer, format="PNG")
    return buffer.getvalue()


PNG = _png()


class FakeResponse:
    def __init__(self, content, status=200):
        self.content = content
        self.status = status
        self.headers = {"Content-Type": "image/png"}

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")


class FakeHttp:
    def __init__(self, response):
        self.response = response
        self.urls = []
        self.closed = False

    def get(self, url, timeout):
        self.urls.append(url)
        return self.response

    def close(self):
        self.closed = True


def test_detect_image_format():
    assert detect_image_format(PNG) == "png"
    assert detect_image_format(b"not an image") is None


def test_resolve_image_url():
    assert resolve_image_url("/logo.png", "https://shop.example.com/a/b") == (
        "https://shop.example.com/logo.png"
    )
    assert resolve_image_url("data:image/png;base64,xx", "https://shop.example.com") is None
    assert resolve_image_url("", "https://shop.example.com") is None
    assert resolve_image_url("logo.png", "") is None


def test_fetch_image_bytes():
    http = FakeHttp(FakeResponse(PNG))
    data = fetch_image_bytes("/logo.png", "https://shop.example.com/", session=http)
    assert data == PNG
    assert http.urls == ["https://shop.example.com/logo.png"]


def test_fetch_rejects_errors_and_non_images():
    not_found = FakeHttp(FakeResponse(PNG, 404))
    not_image = FakeHttp(FakeResponse(b"x" * 200))
    assert fetch_image_bytes("/a.png", "https://x.example", session=not_found) is None
    assert fetch_image_bytes("/a.png", "https://x.example", session=not_image) is None


def test_owned_session_is_closed(monkeypatch):
    http = FakeHttp(FakeResponse(PNG))
    monkeypatch.setattr(images.requests, "Session", lambda: http)
    assert fetch_image_bytes("/logo.png", "https://shop.example.com/") == PNG
    assert http.closed

    failing = FakeHttp(FakeResponse(PNG, 500))
    monkeypatch.setattr(images.requests, "Session", lambda: failing)
    assert fetch_image_bytes("/logo.png", "https://shop.example.com/") is None
    assert failing.closed


def test_shared_session_stays_open():
    http = FakeHttp(FakeResponse(PNG))
    fetch_image_bytes("/logo.png", "https://shop.example.com/", session=http)
    assert not http.closed
