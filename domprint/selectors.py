"""Translate structural locators into CSS-selector form."""

from __future__ import annotations

import re
from typing import List

INDEX_PATTERN = re.compile(r"\[([0-9]+)\]")


def translate_step(step: str) -> str:
    """Rewrite a ``tag[n]`` step as ``tag:nth-child(n)``; other steps pass through."""
    match = INDEX_PATTERN.search(step)
    if not match:
        return step.strip()
    index = int(match.group(1))
    return INDEX_PATTERN.sub("", step).strip() + f":nth-child({index})"


def join_selectors(selectors: List[str]) -> str:
    return " ".join(selector for selector in selectors if selector)


def translate_to_css(locator: str) -> str:
    """Convert a locator such as ``//div/ul/li[3]`` into ``div ul li:nth-child(3)``.

    The transform is purely textual: no document is consulted and any input
    string yields a result.
    """
    return join_selectors([translate_step(step) for step in locator.split("/")])
