"""Data models used throughout the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from lxml import etree
from lxml import html as lxml_html

from .errors import LocatorResolutionError
from .fingerprint import checksum, page_checksum
from .utils import extract_body

_EMPTY_DOCUMENT = "<html><head></head><body></body></html>"


class ElementClassification(str, Enum):
    LEAF = "leaf"
    PARENT = "parent"
    UNKNOWN = "unknown"


class TemplateType(str, Enum):
    ATOM = "atom"
    MOLECULE = "molecule"
    ORGANISM = "organism"
    TEMPLATE = "template"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BoundingBox:
    """Element rectangle in document coordinates."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class Viewport:
    """Visible window size and its current scroll offsets."""

    width: int
    height: int
    scroll_x: int = 0
    scroll_y: int = 0


@dataclass
class LiveNode:
    """What a browser session reports about a node it resolved."""

    tag_name: str
    rect: BoundingBox
    displayed: bool
    handle: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable parse of one page's HTML at one point in time."""

    source: str
    url: str = ""

    @property
    def host(self) -> str:
        return urlparse(self.url).netloc

    @cached_property
    def body_source(self) -> str:
        return extract_body(self.source)

    @cached_property
    def tree(self) -> lxml_html.HtmlElement:
        source = self.source if self.source.strip() else _EMPTY_DOCUMENT
        try:
            return lxml_html.document_fromstring(source)
        except etree.ParserError:
            return lxml_html.document_fromstring(_EMPTY_DOCUMENT)

    @cached_property
    def checksum(self) -> str:
        return page_checksum(self.source, self.url or None)

    def evaluate(self, locator: str) -> List[lxml_html.HtmlElement]:
        """Return the element nodes matched by ``locator`` in document order."""
        try:
            result = self.tree.xpath(locator)
        except etree.XPathError as exc:
            raise LocatorResolutionError(locator, f"invalid locator ({exc})") from exc
        if not isinstance(result, list):
            raise LocatorResolutionError(locator, "locator does not select nodes")
        return [node for node in result if isinstance(getattr(node, "tag", None), str)]


@dataclass
class ImageSearchResult:
    """Reverse image search hits for an image element."""

    full_matching_images: List[str] = field(default_factory=list)
    partial_matching_images: List[str] = field(default_factory=list)
    pages_with_matching_images: List[str] = field(default_factory=list)
    best_guess_labels: List[str] = field(default_factory=list)


@dataclass
class ImageAnnotations:
    """Vision payload carried by image elements."""

    labels: List[str] = field(default_factory=list)
    logos: List[str] = field(default_factory=list)
    landmarks: List[str] = field(default_factory=list)
    faces: List[Dict[str, Any]] = field(default_factory=list)
    image_search: Optional[ImageSearchResult] = None
    adult: Optional[str] = None
    racy: Optional[str] = None
    violence: Optional[str] = None


@dataclass
class Element:
    """Canonical record for one extracted DOM element.

    Image elements carry an ``image`` payload; every other element leaves it
    ``None``. ``key`` is derived from the checksum of ``outer_html`` and is
    the identity used for idempotent persistence.
    """

    key: str
    checksum: str
    locator: str
    css_selector: str
    tag_name: str
    attributes: Dict[str, str]
    rendered_style: Dict[str, str]
    bounding_box: BoundingBox
    own_text: str
    all_text: str
    outer_html: str
    foreground_color: str
    background_color: str
    visible: bool
    classification: ElementClassification
    screenshot_checksum: Optional[str] = None
    screenshot_png: Optional[bytes] = field(default=None, repr=False, compare=False)
    image: Optional[ImageAnnotations] = None

    @property
    def is_image(self) -> bool:
        return self.image is not None

    @property
    def image_flagged(self) -> bool:
        if self.image is None or self.image.image_search is None:
            return False
        return bool(self.image.image_search.full_matching_images)


@dataclass
class Template:
    """Cluster of elements sharing the same normalised markup."""

    markup: str
    elements: List[Element] = field(default_factory=list)
    type: TemplateType = TemplateType.UNKNOWN

    @property
    def key(self) -> str:
        return f"{self.type.value}{checksum(self.markup)}"


@dataclass(frozen=True)
class ErroredLocator:
    locator: str
    reason: str


@dataclass
class ExtractionResult:
    """Everything one extraction pass hands to downstream collaborators."""

    url: str
    page_checksum: str
    elements: List[Element] = field(default_factory=list)
    templates: Dict[str, Template] = field(default_factory=dict)
    errored_locators: List[ErroredLocator] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
