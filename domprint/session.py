"""Live session backed by an async Playwright page."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import ElementHandle, Page

from .errors import LocatorResolutionError, ServiceUnavailableError
from .models import BoundingBox, LiveNode, Viewport

logger = logging.getLogger("domprint.session")

_DESCRIBE_SCRIPT = """
e => {
    const r = e.getBoundingClientRect();
    return {
        tag: e.tagName.toLowerCase(),
        x: r.left + window.scrollX,
        y: r.top + window.scrollY,
        width: r.width,
        height: r.height,
    };
}
"""

_ATTRIBUTES_SCRIPT = """
e => {
    const out = {};
    for (const attr of e.attributes) { out[attr.name] = attr.value; }
    return out;
}
"""

_COMPUTED_STYLE_SCRIPT = """
e => {
    const style = window.getComputedStyle(e);
    const out = {};
    for (let i = 0; i < style.length; i++) {
        const name = style.item(i);
        out[name] = style.getPropertyValue(name);
    }
    return out;
}
"""

_CHILD_TAGS_SCRIPT = "e => Array.from(e.children).map(c => c.tagName.toLowerCase())"

_VIEWPORT_SCRIPT = """
() => ({
    width: window.innerWidth,
    height: window.innerHeight,
    scrollX: window.scrollX,
    scrollY: window.scrollY,
})
"""


def _label(node: LiveNode) -> str:
    return f"<{node.tag_name}>"


class PlaywrightSession:
    """Adapt a Playwright :class:`Page` to the session interface the engine uses.

    Playwright failures during resolution surface as
    :class:`LocatorResolutionError` so the engine can record and skip them.
    """

    def __init__(self, page: Page) -> None:
        self.page = page

    async def page_source(self) -> str:
        try:
            return await self.page.content()
        except PlaywrightError as exc:
            raise ServiceUnavailableError(f"could not read page source: {exc}") from exc

    async def full_page_screenshot(self) -> bytes:
        try:
            return await self.page.screenshot(full_page=True, type="png")
        except PlaywrightError as exc:
            raise ServiceUnavailableError(f"could not capture screenshot: {exc}") from exc

    async def viewport(self) -> Viewport:
        try:
            info = await self.page.evaluate(_VIEWPORT_SCRIPT)
        except PlaywrightError as exc:
            raise ServiceUnavailableError(f"could not read viewport: {exc}") from exc
        return Viewport(
            width=int(info["width"]),
            height=int(info["height"]),
            scroll_x=int(info["scrollX"]),
            scroll_y=int(info["scrollY"]),
        )

    async def _describe(self, handle: ElementHandle) -> LiveNode:
        info = await handle.evaluate(_DESCRIBE_SCRIPT)
        displayed = await handle.is_visible()
        rect = BoundingBox(
            x=round(info["x"]),
            y=round(info["y"]),
            width=round(info["width"]),
            height=round(info["height"]),
        )
        return LiveNode(tag_name=info["tag"], rect=rect, displayed=displayed, handle=handle)

    async def find_elements(self, locator: str) -> List[LiveNode]:
        try:
            handles = await self.page.locator(f"xpath={locator}").element_handles()
            return [await self._describe(handle) for handle in handles]
        except PlaywrightError as exc:
            raise LocatorResolutionError(locator, str(exc)) from exc

    async def find_element(self, locator: str) -> LiveNode:
        nodes = await self.find_elements(locator)
        if not nodes:
            raise LocatorResolutionError(locator, "no element found")
        return nodes[0]

    async def _evaluate(self, node: LiveNode, script: str) -> Any:
        try:
            return await node.handle.evaluate(script)
        except PlaywrightError as exc:
            raise LocatorResolutionError(_label(node), str(exc)) from exc

    async def parent_of(self, node: LiveNode) -> Optional[LiveNode]:
        try:
            parent = await node.handle.evaluate_handle("e => e.parentElement")
            element = parent.as_element()
            if element is None:
                return None
            return await self._describe(element)
        except PlaywrightError as exc:
            raise LocatorResolutionError(_label(node), str(exc)) from exc

    async def child_tags(self, node: LiveNode) -> List[str]:
        return list(await self._evaluate(node, _CHILD_TAGS_SCRIPT))

    async def attributes(self, node: LiveNode) -> Dict[str, str]:
        return dict(await self._evaluate(node, _ATTRIBUTES_SCRIPT))

    async def computed_style(self, node: LiveNode) -> Dict[str, str]:
        return dict(await self._evaluate(node, _COMPUTED_STYLE_SCRIPT))

    async def outer_html(self, node: LiveNode) -> str:
        return await self._evaluate(node, "e => e.outerHTML")

    async def scroll_into_view(self, node: LiveNode) -> None:
        try:
            await node.handle.scroll_into_view_if_needed()
        except PlaywrightError as exc:
            logger.debug("Could not scroll %s into view: %s", _label(node), exc)
