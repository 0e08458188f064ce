"""Minimal unique structural locators for snapshot and live nodes."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Mapping, Optional, Tuple

from lxml import html as lxml_html

from .collaborators import SessionHandle
from .config import EngineConfig
from .errors import LocatorResolutionError
from .filters import is_structure_tag
from .models import DocumentSnapshot, LiveNode
from .utils import clean_attribute_value, is_javascript, remove_auto_generated_tokens

logger = logging.getLogger("domprint.locator")


@dataclass(frozen=True)
class LocatorResult:
    """Outcome of locator generation for one node.

    ``unique`` is true when the locator re-evaluates to exactly one node.
    ``error`` carries the reason evaluation failed, in which case ``locator``
    is the best effort reached so far. ``warning`` is set when positional
    disambiguation could not find the target among the matches.
    """

    locator: str
    unique: bool
    error: Optional[str] = None
    warning: Optional[str] = None


def _quote(token: str) -> Optional[str]:
    if '"' not in token:
        return f'"{token}"'
    if "'" not in token:
        return f"'{token}'"
    return None


def build_attribute_predicate(
    attributes: Mapping[str, str],
    config: Optional[EngineConfig] = None,
) -> str:
    """Return ``[contains(@attr,"token")]`` for the first usable attribute, or ``""``."""
    config = config or EngineConfig()
    for name in config.locator_attributes:
        raw = attributes.get(name)
        if not raw:
            continue
        value = clean_attribute_value(raw)
        if not value or is_javascript(value):
            continue
        tokens = remove_auto_generated_tokens(value).split()
        if not tokens:
            continue
        quoted = _quote(tokens[0])
        if quoted is None:
            continue
        return f"[contains(@{name},{quoted})]"
    return ""


def generate_locator(
    node: lxml_html.HtmlElement,
    snapshot: DocumentSnapshot,
    config: Optional[EngineConfig] = None,
) -> LocatorResult:
    """Build the shortest ancestor-qualified locator that singles out ``node``.

    Ancestors are prepended one at a time and ``//ancestor<suffix>`` is tried
    against the snapshot after each step. The walk stops at structural tags
    (``body`` included), at the root, or when a candidate stops matching; the
    remaining path is then disambiguated by position.
    """
    config = config or EngineConfig()
    locator = f"/{node.tag}{build_attribute_predicate(node.attrib, config)}"
    parent = node.getparent()
    while parent is not None and not is_structure_tag(parent.tag, config.structure_tags):
        candidate = f"//{parent.tag}{locator}"
        try:
            matches = snapshot.evaluate(candidate)
        except LocatorResolutionError as exc:
            logger.warning("Locator evaluation failed for %s: %s", candidate, exc.reason)
            return LocatorResult(f"/{locator}", False, error=exc.reason)
        if len(matches) == 1:
            return LocatorResult(candidate, True)
        if not matches:
            break
        locator = f"/{parent.tag}{locator}"
        parent = parent.getparent()

    return uniqify_locator(node, f"/{locator}", snapshot)


def uniqify_locator(
    node: lxml_html.HtmlElement,
    locator: str,
    snapshot: DocumentSnapshot,
) -> LocatorResult:
    """Wrap an ambiguous locator as ``(locator)[k]`` using node identity."""
    try:
        matches = snapshot.evaluate(locator)
    except LocatorResolutionError as exc:
        logger.warning("Locator evaluation failed for %s: %s", locator, exc.reason)
        return LocatorResult(locator, False, error=exc.reason)
    if len(matches) == 1 and matches[0] is node:
        return LocatorResult(locator, True)
    for index, match in enumerate(matches, start=1):
        if match is node:
            return LocatorResult(f"({locator})[{index}]", True)
    warning = f"{locator}: target not among {len(matches)} match(es); using first match"
    logger.warning(warning)
    return LocatorResult(f"({locator})[1]", False, warning=warning)


async def generate_live_locator(
    session: SessionHandle,
    node: LiveNode,
    attributes: Mapping[str, str],
    config: Optional[EngineConfig] = None,
) -> LocatorResult:
    """Same walk as :func:`generate_locator`, evaluated through a live session."""
    config = config or EngineConfig()
    locator = f"/{node.tag_name}{build_attribute_predicate(attributes, config)}"
    current = node
    while True:
        try:
            parent = await session.parent_of(current)
        except LocatorResolutionError as exc:
            logger.warning("Could not read parent of <%s>: %s", current.tag_name, exc.reason)
            return LocatorResult(f"/{locator}", False, error=exc.reason)
        if parent is None or is_structure_tag(parent.tag_name, config.structure_tags):
            break
        candidate = f"//{parent.tag_name}{locator}"
        try:
            matches = await session.find_elements(candidate)
        except LocatorResolutionError as exc:
            logger.warning("Locator evaluation failed for %s: %s", candidate, exc.reason)
            return LocatorResult(f"/{locator}", False, error=exc.reason)
        if len(matches) == 1:
            return LocatorResult(candidate, True)
        if not matches:
            break
        locator = f"/{parent.tag_name}{locator}"
        current = parent

    return await uniqify_live_locator(session, node, f"/{locator}")


async def uniqify_live_locator(
    session: SessionHandle,
    node: LiveNode,
    locator: str,
) -> LocatorResult:
    """Positional disambiguation matching on tag name and top-left corner."""
    try:
        matches = await session.find_elements(locator)
    except LocatorResolutionError as exc:
        logger.warning("Locator evaluation failed for %s: %s", locator, exc.reason)
        return LocatorResult(locator, False, error=exc.reason)
    if len(matches) == 1:
        return LocatorResult(locator, True)
    for index, match in enumerate(matches, start=1):
        if match.tag_name == node.tag_name and (match.rect.x, match.rect.y) == (
            node.rect.x,
            node.rect.y,
        ):
            return LocatorResult(f"({locator})[{index}]", True)
    warning = f"{locator}: target not among {len(matches)} match(es); using first match"
    logger.warning(warning)
    return LocatorResult(f"({locator})[1]", False, warning=warning)


def _sibling_index(node: lxml_html.HtmlElement) -> int:
    index = 1
    for sibling in node.itersiblings(preceding=True):
        if sibling.tag == node.tag:
            index += 1
    return index


def absolute_locator(node: lxml_html.HtmlElement) -> str:
    """Fully indexed path such as ``//body/div[1]/span[2]``."""
    steps: List[str] = []
    current = node
    while current is not None and current.tag != "body":
        steps.append(f"{current.tag}[{_sibling_index(current)}]")
        current = current.getparent()
    steps.reverse()
    if current is None:
        return "/" + "/".join(steps)
    return "/".join(["//body"] + steps)


def shorten_locator(locator: str, snapshot: DocumentSnapshot) -> str:
    """Drop leading steps for as long as the locator still selects one node."""
    if locator.startswith("("):
        return locator
    steps = [step for step in locator.split("/") if step]
    shortest = locator
    for start in range(1, len(steps)):
        candidate = "//" + "/".join(steps[start:])
        try:
            matches = snapshot.evaluate(candidate)
        except LocatorResolutionError:
            break
        if len(matches) != 1:
            break
        shortest = candidate
    return shortest


def extract_all_unique_locators(
    snapshot: DocumentSnapshot,
    config: Optional[EngineConfig] = None,
) -> List[str]:
    """Breadth-first unique locators for every non-structural node under ``body``."""
    config = config or EngineConfig()
    queue: Deque[Tuple[lxml_html.HtmlElement, str]] = deque(
        (body, "//body") for body in snapshot.evaluate("//body")[:1]
    )
    locators: List[str] = []
    seen = set()
    while queue:
        node, path = queue.popleft()
        counts: Dict[str, int] = {}
        for child in node:
            if not isinstance(child.tag, str):
                continue
            tag = child.tag
            counts[tag] = counts.get(tag, 0) + 1
            if is_structure_tag(tag, config.structure_tags):
                continue
            child_path = f"{path}/{tag}[{counts[tag]}]"
            queue.append((child, child_path))
            shortened = shorten_locator(child_path, snapshot)
            if shortened not in seen:
                seen.add(shortened)
                locators.append(shortened)
    logger.debug("Collected %d unique locator(s)", len(locators))
    return locators
