from __future__ import annotations

import io
from typing import Dict, List, Optional

import pytest
from PIL import Image

from domprint.builder import outer_html
from domprint.errors import LocatorResolutionError
from domprint.models import BoundingBox, DocumentSnapshot, LiveNode, Viewport

SAMPLE_HTML = """<html>
<head><title>Shop</title><script>var tracking = 1;</script></head>
<body>
<div class="header main-nav">
  <a id="logo" href="/">Shop</a>
  <ul class="menu">
    <li class="item"><a href="/a">A</a></li>
    <li class="item"><a href="/b">B</a></li>
  </ul>
</div>
<div class="product card-17"><h2 class="title">One</h2><span class="price">10</span></div>
<div class="product card-18"><h2 class="title">Two</h2><span class="price">20</span></div>
<section class="cards">
  <div class="card" data-id="1"><h3>Same</h3><p>Body text</p></div>
  <div class="card" data-id="2"><h3>Same</h3><p>Body text</p></div>
</section>
<p class="note">Hi</p>
<p class="note">Hi</p>
<img src="/logo.png" class="hero">
<br>
</body>
</html>"""

VIEWPORT = Viewport(width=400, height=2000)


class FakeSession:
    """Snapshot-backed session with a deterministic layout.

    Every element gets a 50x8 box stacked by document order unless
    ``geometry`` overrides it by locator.
    """

    def __init__(
        self,
        snapshot: DocumentSnapshot,
        geometry: Optional[Dict[str, BoundingBox]] = None,
        styles: Optional[Dict[str, Dict[str, str]]] = None,
        hidden: Optional[List[str]] = None,
    ) -> None:
        self.snapshot = snapshot
        self.order = {node: index for index, node in enumerate(snapshot.tree.iter())}
        self.geometry = {}
        for locator, rect in (geometry or {}).items():
            self.geometry[snapshot.evaluate(locator)[0]] = rect
        self.styles = {}
        for locator, style in (styles or {}).items():
            self.styles[snapshot.evaluate(locator)[0]] = style
        self.hidden = {snapshot.evaluate(locator)[0] for locator in (hidden or [])}
        self.scrolled: List[str] = []

    def _live(self, node) -> LiveNode:
        rect = self.geometry.get(node)
        if rect is None:
            rect = BoundingBox(x=0, y=self.order[node] * 10, width=50, height=8)
        return LiveNode(
            tag_name=node.tag,
            rect=rect,
            displayed=node not in self.hidden,
            handle=node,
        )

    async def page_source(self) -> str:
        return self.snapshot.source

    async def full_page_screenshot(self) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (VIEWPORT.width, VIEWPORT.height), "white").save(buffer, format="PNG")
        return buffer.getvalue()

    async def viewport(self) -> Viewport:
        return VIEWPORT

    async def find_elements(self, locator: str) -> List[LiveNode]:
        return [self._live(node) for node in self.snapshot.evaluate(locator)]

    async def find_element(self, locator: str) -> LiveNode:
        nodes = await self.find_elements(locator)
        if not nodes:
            raise LocatorResolutionError(locator, "no element found")
        return nodes[0]

    async def parent_of(self, node: LiveNode) -> Optional[LiveNode]:
        parent = node.handle.getparent()
        return self._live(parent) if parent is not None else None

    async def child_tags(self, node: LiveNode) -> List[str]:
        return [child.tag for child in node.handle if isinstance(child.tag, str)]

    async def attributes(self, node: LiveNode) -> Dict[str, str]:
        return dict(node.handle.attrib)

    async def computed_style(self, node: LiveNode) -> Dict[str, str]:
        return dict(self.styles.get(node.handle, {}))

    async def outer_html(self, node: LiveNode) -> str:
        return outer_html(node.handle)

    async def scroll_into_view(self, node: LiveNode) -> None:
        self.scrolled.append(node.tag_name)


@pytest.fixture
def snapshot() -> DocumentSnapshot:
    return DocumentSnapshot(SAMPLE_HTML, "https://shop.example.com/catalog")


@pytest.fixture
def make_session():
    def factory(snapshot: DocumentSnapshot, **kwargs) -> FakeSession:
        return FakeSession(snapshot, **kwargs)

    return factory


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML
