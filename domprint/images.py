"""Image fetching and validation for image elements without a screenshot crop."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin

import requests
from filetype import guess

logger = logging.getLogger("domprint.images")

MAX_IMAGE_BYTES = 10 * 1024 * 1024
MIN_IMAGE_BYTES = 64
ALLOWED_IMAGE_TYPES = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff"}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def resolve_image_url(src: str, page_url: str) -> Optional[str]:
    """Absolute http(s) URL for an ``img`` ``src``; data and blob URIs are skipped."""
    src = (src or "").strip()
    if not src or src.startswith(("data:", "blob:")):
        return None
    absolute = urljoin(page_url, src) if page_url else src
    if not absolute.startswith(("http://", "https://")):
        return None
    return absolute


def fetch_image_bytes(
    src: str,
    page_url: str = "",
    session: Optional[requests.Session] = None,
    timeout: float = 15,
) -> Optional[bytes]:
    """Download an element image and return its bytes when it is a usable image."""
    url = resolve_image_url(src, page_url)
    if url is None:
        return None
    owned = session is None
    http = session or requests.Session()
    try:
        resp = http.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch image %s: %s", url, exc)
        return None
    finally:
        if owned:
            http.close()

    data = resp.content
    if len(data) < MIN_IMAGE_BYTES:
        logger.warning("Skipping %s: response too small", url)
        return None
    if len(data) > MAX_IMAGE_BYTES:
        logger.warning("Skipping %s: image larger than %s bytes", url, MAX_IMAGE_BYTES)
        return None

    extension = detect_image_format(data)
    if not extension or extension not in ALLOWED_IMAGE_TYPES:
        logger.warning(
            "Skipping %s: unsupported image type (Content-Type=%s)",
            url,
            resp.headers.get("Content-Type", ""),
        )
        return None
    return data
