"""Assemble canonical Element records from resolved nodes."""

from __future__ import annotations

import io
import logging
from dataclasses import replace
from typing import Mapping, Optional, Tuple

from lxml import etree
from lxml import html as lxml_html
from PIL import Image

from .config import EngineConfig
from .fingerprint import element_checksum, element_key, screenshot_checksum
from .models import BoundingBox, Element, ElementClassification, ImageAnnotations
from .selectors import translate_to_css
from .utils import clean_attribute_value

logger = logging.getLogger("domprint.builder")


def _collapse(text: str) -> str:
    return clean_attribute_value(text or "")


def node_text(node: lxml_html.HtmlElement) -> Tuple[str, str]:
    """Return ``(own_text, all_text)``; own text excludes descendant element text."""
    own = [node.text or ""]
    own.extend(child.tail or "" for child in node)
    return _collapse(" ".join(own)), _collapse(node.text_content())


def outer_html(node: lxml_html.HtmlElement) -> str:
    return etree.tostring(node, method="html", encoding="unicode", with_tail=False)


def parse_fragment(markup: str) -> Optional[lxml_html.HtmlElement]:
    """First element of an HTML fragment, or ``None`` when there is none."""
    if not markup or not markup.strip():
        return None
    try:
        parts = lxml_html.fragments_fromstring(markup)
    except (etree.ParserError, ValueError):
        return None
    for part in parts:
        if isinstance(part, lxml_html.HtmlElement) and isinstance(part.tag, str):
            return part
    return None


def _foreground(style: Mapping[str, str], config: EngineConfig) -> str:
    value = style.get("color")
    if value is None or not value.strip():
        return config.default_foreground
    return value


def _background(style: Mapping[str, str], config: EngineConfig) -> str:
    value = style.get("background-color")
    if value is None or not value.strip():
        return config.default_background
    return value


def build_element(
    locator: str,
    tag_name: str,
    outer_markup: str,
    bounding_box: BoundingBox,
    classification: ElementClassification,
    attributes: Optional[Mapping[str, str]] = None,
    rendered_style: Optional[Mapping[str, str]] = None,
    own_text: str = "",
    all_text: str = "",
    visible: bool = True,
    config: Optional[EngineConfig] = None,
) -> Element:
    """Create an Element keyed by the checksum of its outer markup.

    Tags listed in ``config.image_tags`` become image elements carrying empty
    annotations that the vision step may fill in later.
    """
    config = config or EngineConfig()
    style = dict(rendered_style or {})
    digest = element_checksum(outer_markup)
    tag = tag_name.lower()
    return Element(
        key=element_key(digest),
        checksum=digest,
        locator=locator,
        css_selector=translate_to_css(locator),
        tag_name=tag,
        attributes=dict(attributes or {}),
        rendered_style=style,
        bounding_box=bounding_box,
        own_text=own_text,
        all_text=all_text,
        outer_html=outer_markup,
        foreground_color=_foreground(style, config),
        background_color=_background(style, config),
        visible=visible,
        classification=classification,
        image=ImageAnnotations() if tag in config.image_tags else None,
    )


def crop_screenshot(page_image: Image.Image, rect: BoundingBox) -> Optional[Image.Image]:
    """Cut ``rect`` out of a full-page screenshot, clamped to the image bounds."""
    left = max(rect.x, 0)
    top = max(rect.y, 0)
    right = min(rect.x + rect.width, page_image.width)
    bottom = min(rect.y + rect.height, page_image.height)
    if right <= left or bottom <= top:
        logger.debug("Rectangle %s lies outside the %sx%s screenshot", rect, *page_image.size)
        return None
    return page_image.crop((left, top, right, bottom))


def _png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def enrich_element(
    element: Element,
    rendered_style: Optional[Mapping[str, str]] = None,
    attributes: Optional[Mapping[str, str]] = None,
    screenshot: Optional[Image.Image] = None,
    config: Optional[EngineConfig] = None,
) -> Element:
    config = config or EngineConfig()
    changes = {}
    if rendered_style is not None:
        style = dict(rendered_style)
        changes["rendered_style"] = style
        changes["foreground_color"] = _foreground(style, config)
        changes["background_color"] = _background(style, config)
    if attributes is not None:
        changes["attributes"] = dict(attributes)
    if screenshot is not None:
        png = _png_bytes(screenshot)
        changes["screenshot_png"] = png
        changes["screenshot_checksum"] = screenshot_checksum(png)
    return replace(element, **changes)


def annotate_image(element: Element, annotations: ImageAnnotations) -> Element:
    if not element.is_image:
        raise ValueError(f"<{element.tag_name}> at {element.locator} is not an image element")
    return replace(element, image=annotations)
