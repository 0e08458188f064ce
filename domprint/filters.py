"""Visibility, geometry and tag rules deciding which nodes get extracted."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .config import STRUCTURE_TAGS, EngineConfig
from .models import BoundingBox, ElementClassification, LiveNode, Viewport


@dataclass(frozen=True)
class FilterDecision:
    accepted: bool
    reason: Optional[str] = None


ACCEPTED = FilterDecision(True)


def is_structure_tag(tag_name: str, structure_tags: Iterable[str] = STRUCTURE_TAGS) -> bool:
    return tag_name.lower() in structure_tags


def has_width_and_height(rect: BoundingBox) -> bool:
    return rect.width > 1 and rect.height > 1


def has_negative_position(rect: BoundingBox) -> bool:
    return rect.x < 0 or rect.y < 0


def is_hidden(rect: BoundingBox) -> bool:
    """Collapsed at or before the origin."""
    return rect.x <= 0 and rect.y <= 0 and rect.width <= 0 and rect.height <= 0


def is_visible_in_viewport(rect: BoundingBox, viewport: Viewport) -> bool:
    """True when the whole rectangle lies inside the scrolled viewport."""
    return (
        rect.x >= viewport.scroll_x
        and rect.y >= viewport.scroll_y
        and (rect.x - viewport.scroll_x) + rect.width <= viewport.width
        and (rect.y - viewport.scroll_y) + rect.height <= viewport.height
    )


def is_larger_than_viewport(rect: BoundingBox, viewport: Viewport) -> bool:
    return rect.width > viewport.width or rect.height > viewport.height


def evaluate_node(
    node: LiveNode,
    viewport: Viewport,
    config: Optional[EngineConfig] = None,
) -> FilterDecision:
    """Apply every extraction rule to a live node, reporting the first failure."""
    config = config or EngineConfig()
    if not node.displayed or is_hidden(node.rect):
        return FilterDecision(False, "not displayed")
    if not has_width_and_height(node.rect):
        return FilterDecision(False, "width or height not greater than 1")
    if has_negative_position(node.rect):
        return FilterDecision(False, "negative position")
    if not is_visible_in_viewport(node.rect, viewport):
        return FilterDecision(False, "outside viewport")
    if is_structure_tag(node.tag_name, config.structure_tags):
        return FilterDecision(False, f"structural tag <{node.tag_name}>")
    return ACCEPTED


def classify_children(
    child_tags: Iterable[str],
    structure_tags: Iterable[str] = STRUCTURE_TAGS,
) -> ElementClassification:
    """Leaf when no extractable child remains after dropping structural tags."""
    structure_tags = frozenset(structure_tags)
    for tag in child_tags:
        if not is_structure_tag(tag, structure_tags):
            return ElementClassification.PARENT
    return ElementClassification.LEAF
