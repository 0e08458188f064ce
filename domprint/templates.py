"""Cluster structurally similar parent elements into templates."""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Comment

from .config import DEFAULT_SIMILARITY_THRESHOLD
from .models import Element, ElementClassification, Template

logger = logging.getLogger("domprint.templates")

_DROP_TAGS = ["script", "link", "style"]
_DROP_ATTRIBUTES = {"id", "name", "style"}


def extract_template(outer_html: str) -> str:
    """Normalise element markup so volatile identifiers do not split clusters.

    Comments and ``script``/``link``/``style`` subtrees are removed, as are the
    ``id``, ``name``, ``style`` and ``data-*`` attributes of every tag.
    """
    if not outer_html or not outer_html.strip():
        return ""
    soup = BeautifulSoup(outer_html, "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        tag.attrs = {
            name: value
            for name, value in tag.attrs.items()
            if name not in _DROP_ATTRIBUTES and not name.startswith("data-")
        }
    return str(soup).strip()


def levenshtein(a: str, b: str, max_distance: Optional[int] = None) -> int:
    """Edit distance between ``a`` and ``b``.

    Uses the bit-parallel formulation so each character of the longer string
    costs a handful of integer operations. With ``max_distance`` set, any
    distance above it is reported as ``max_distance + 1``.
    """
    if a == b:
        return 0
    prefix = 0
    limit = min(len(a), len(b))
    while prefix < limit and a[prefix] == b[prefix]:
        prefix += 1
    a, b = a[prefix:], b[prefix:]
    while a and b and a[-1] == b[-1]:
        a, b = a[:-1], b[:-1]
    if len(a) > len(b):
        a, b = b, a
    if max_distance is not None and len(b) - len(a) > max_distance:
        return max_distance + 1
    if not a:
        return len(b)

    masks: Dict[str, int] = {}
    bit = 1
    for char in a:
        masks[char] = masks.get(char, 0) | bit
        bit <<= 1
    last = 1 << (len(a) - 1)
    positive = (1 << len(a)) - 1
    negative = 0
    distance = len(a)
    remaining = len(b)
    for char in b:
        match = masks.get(char, 0)
        diagonal = (((match & positive) + positive) ^ positive) | match | negative
        horizontal_pos = negative | ~(diagonal | positive)
        horizontal_neg = diagonal & positive
        if horizontal_pos & last:
            distance += 1
        elif horizontal_neg & last:
            distance -= 1
        remaining -= 1
        if max_distance is not None and distance - remaining > max_distance:
            return max_distance + 1
        horizontal_pos = (horizontal_pos << 1) | 1
        horizontal_neg <<= 1
        positive = horizontal_neg | ~(diagonal | horizontal_pos)
        negative = horizontal_pos & diagonal
    return distance


def similarity(a: str, b: str, threshold: Optional[float] = None) -> float:
    """Edit distance divided by the average length; 0.0 means identical.

    When ``threshold`` is given the distance is only computed exactly while
    it stays below ``threshold``; larger scores are reported as some value
    that is still at least ``threshold``.
    """
    average = (len(a) + len(b)) / 2
    if average == 0:
        return 0.0
    if threshold is None:
        return levenshtein(a, b) / average
    if abs(len(a) - len(b)) / average >= threshold:
        return abs(len(a) - len(b)) / average
    return levenshtein(a, b, max_distance=math.floor(threshold * average)) / average


def find_templates(
    elements: Sequence[Element],
    threshold: Optional[float] = None,
) -> Dict[str, Template]:
    """Group parent elements whose templates are equal or nearly equal.

    Elements are compared pairwise in their original order and only against
    elements with the same tag. The first cluster an element joins is final.
    The registry is keyed by the normalised markup of each cluster's first
    element.
    """
    if threshold is None:
        threshold = DEFAULT_SIMILARITY_THRESHOLD
    parents = [el for el in elements if el.classification == ElementClassification.PARENT]
    markups = [extract_template(el.outer_html) for el in parents]
    registry: Dict[str, Template] = {}
    assigned = set()

    for i, first in enumerate(parents):
        if i in assigned:
            continue
        if not markups[i]:
            logger.warning("Empty template for %s; skipping comparison", first.locator)
            continue
        members: List[Element] = []
        for j in range(i + 1, len(parents)):
            if j in assigned or not markups[j]:
                continue
            second = parents[j]
            if second.tag_name != first.tag_name:
                continue
            if markups[i] == markups[j] or (
                similarity(markups[i], markups[j], threshold) < threshold
            ):
                members.append(second)
                assigned.add(j)
        if not members:
            continue
        assigned.add(i)
        template = registry.setdefault(markups[i], Template(markup=markups[i]))
        template.elements.extend([first] + members)

    logger.debug("Clustered %d parent element(s) into %d template(s)", len(assigned), len(registry))
    return registry


def reduce_templates(templates: Dict[str, Template]) -> Dict[str, Template]:
    """Keep only templates whose markup is not contained in another template."""
    reduced: Dict[str, Template] = {}
    for markup, template in templates.items():
        contained = any(
            other != markup and markup in other for other in templates
        )
        if not contained:
            reduced[markup] = template
    return reduced
