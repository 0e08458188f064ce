"""Content checksums for page sources, screenshots and element markup.

Checksums answer one question only: "has this exact content already been
processed for this audit scope?". They are never used for ordering, and
uniqueness inside a document is the locator generator's job.
"""

from __future__ import annotations

import hashlib
import io
import re
from typing import Optional, Union

from bs4 import BeautifulSoup, Comment
from PIL import Image

_GENERALIZE_DROP_TAGS = ["script", "link", "style", "iframe"]
_CLEAN_DROP_TAGS = ["script", "style", "link"]
_ANY_WHITESPACE = re.compile(r"\s+")
_REPEATED_SPACES = re.compile(r" {2,}")

ELEMENT_KEY_PREFIX = "element"


def checksum(payload: Union[bytes, str]) -> str:
    """SHA-256 hex digest of raw bytes or UTF-8 encoded text."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def element_checksum(outer_html: str) -> str:
    return checksum(outer_html)


def element_key(element_digest: str) -> str:
    return f"{ELEMENT_KEY_PREFIX}{element_digest}"


def screenshot_checksum(image: Union[Image.Image, bytes]) -> str:
    """Hash a screenshot; Pillow images are PNG-encoded first."""
    if isinstance(image, (bytes, bytearray)):
        return checksum(bytes(image))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return checksum(buffer.getvalue())


def _strip_comments(soup: BeautifulSoup) -> None:
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


def generalize_source(html: str) -> str:
    """Reduce markup to its bare tag structure.

    Comments, ``script``/``link``/``style``/``iframe`` subtrees, every
    attribute and all whitespace are removed so that two renders of the same
    page that differ only in volatile data produce the same string.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_GENERALIZE_DROP_TAGS):
        tag.decompose()
    _strip_comments(soup)
    for tag in soup.find_all(True):
        tag.attrs = {}
    return _ANY_WHITESPACE.sub("", str(soup))


def clean_source(html: str) -> str:
    """Drop scripts and styles and collapse whitespace in a page source."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_CLEAN_DROP_TAGS):
        tag.decompose()
    cleaned = str(soup).replace("\r", "").replace("\n", "").replace("\t", " ")
    cleaned = _REPEATED_SPACES.sub(" ", cleaned)
    return cleaned.replace(' style=""', "")


def page_checksum(source: str, url: Optional[str] = None) -> str:
    """Checksum of a page's generalised source, salted with its URL if given."""
    generalized = generalize_source(source)
    if url:
        generalized = url + generalized
    return checksum(generalized)
