"""Narrow interfaces to the browser session, dedup store and image annotator."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Protocol, Tuple

from .errors import DedupStoreError
from .models import Element, ImageAnnotations, LiveNode, Viewport


class SessionHandle(Protocol):
    """Async view of one rendered page.

    Resolution methods raise :class:`~domprint.errors.LocatorResolutionError`
    for invalid, stale or detached locators.
    """

    async def page_source(self) -> str: ...

    async def full_page_screenshot(self) -> bytes: ...

    async def viewport(self) -> Viewport: ...

    async def find_elements(self, locator: str) -> List[LiveNode]: ...

    async def find_element(self, locator: str) -> LiveNode: ...

    async def parent_of(self, node: LiveNode) -> Optional[LiveNode]: ...

    async def child_tags(self, node: LiveNode) -> List[str]: ...

    async def attributes(self, node: LiveNode) -> Dict[str, str]: ...

    async def computed_style(self, node: LiveNode) -> Dict[str, str]: ...

    async def outer_html(self, node: LiveNode) -> str: ...

    async def scroll_into_view(self, node: LiveNode) -> None: ...


class DedupStore(Protocol):
    def lookup(self, scope: str, checksum: str) -> Optional[Element]: ...

    def upsert(self, scope: str, element: Element) -> Element: ...


class VisionAnnotator(Protocol):
    def annotate(self, image_bytes: bytes) -> ImageAnnotations: ...


class InMemoryDedupStore:
    """Process-local store holding at most one element per checksum per scope."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], Element] = {}
        self._lock = threading.Lock()

    def lookup(self, scope: str, checksum: str) -> Optional[Element]:
        with self._lock:
            return self._records.get((scope, checksum))

    def upsert(self, scope: str, element: Element) -> Element:
        if not element.checksum:
            raise DedupStoreError(f"element {element.locator!r} has no checksum")
        key = (scope, element.checksum)
        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                return existing
            self._records[key] = element
            return element

    def scope_size(self, scope: str) -> int:
        with self._lock:
            return sum(1 for record_scope, _ in self._records if record_scope == scope)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)