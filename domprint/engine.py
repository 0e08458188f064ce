"""Per-page extraction pass: resolve, filter, build, deduplicate, cluster."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Dict, List, Optional, Sequence

from PIL import Image

from .builder import (
    annotate_image,
    build_element,
    crop_screenshot,
    enrich_element,
    node_text,
    outer_html,
    parse_fragment,
)
from .classifier import classify_templates
from .collaborators import DedupStore, InMemoryDedupStore, SessionHandle, VisionAnnotator
from .config import EngineConfig
from .errors import DedupStoreError, LocatorResolutionError, ServiceUnavailableError
from .filters import classify_children, evaluate_node, is_structure_tag
from .fingerprint import clean_source, element_checksum
from .images import fetch_image_bytes
from .locator import (
    LocatorResult,
    extract_all_unique_locators,
    generate_live_locator,
    generate_locator,
)
from .models import (
    BoundingBox,
    DocumentSnapshot,
    Element,
    ErroredLocator,
    ExtractionResult,
    LiveNode,
    Template,
    Viewport,
)
from .templates import find_templates, reduce_templates
from .utils import is_service_unavailable

logger = logging.getLogger("domprint")


class ExtractionEngine:
    """Turn a rendered page into deduplicated elements and classified templates.

    Locators are resolved one after another against the session. A failure on
    one locator is recorded in ``errored_locators`` and the pass continues;
    dedup store failures and unavailable pages propagate to the caller.
    """

    def __init__(
        self,
        store: DedupStore,
        annotator: Optional[VisionAnnotator] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.store = store
        self.annotator = annotator
        self.config = config or EngineConfig()

    def _lookup(self, scope: str, digest: str) -> Optional[Element]:
        try:
            return self.store.lookup(scope, digest)
        except DedupStoreError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Dedup lookup failed for %s in scope %s: %s", digest, scope, exc)
            raise DedupStoreError(f"lookup of {digest} failed: {exc}") from exc

    def _upsert(self, scope: str, element: Element) -> Element:
        try:
            return self.store.upsert(scope, element)
        except DedupStoreError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Dedup upsert failed for %s in scope %s: %s", element.key, scope, exc)
            raise DedupStoreError(f"upsert of {element.key} failed: {exc}") from exc

    def build_templates(self, elements: Sequence[Element]) -> Dict[str, Template]:
        clusters = find_templates(elements, self.config.similarity_threshold)
        return classify_templates(reduce_templates(clusters))

    async def extract_page(
        self,
        session: SessionHandle,
        snapshot: DocumentSnapshot,
        locators: Sequence[str],
        audit_scope: str = "default",
    ) -> ExtractionResult:
        if is_service_unavailable(snapshot.source):
            raise ServiceUnavailableError(f"{snapshot.url or 'page'} returned 503")

        viewport = await session.viewport()
        screenshot = await session.full_page_screenshot()
        page_image = Image.open(io.BytesIO(screenshot))
        page_image.load()

        result = ExtractionResult(url=snapshot.url, page_checksum=snapshot.checksum)
        for locator in locators:
            try:
                element = await self._extract_locator(
                    session, snapshot, locator, viewport, page_image, audit_scope, result.warnings
                )
            except LocatorResolutionError as exc:
                logger.warning("Skipping %s: %s", locator, exc.reason)
                result.errored_locators.append(ErroredLocator(locator, exc.reason))
                continue
            if element is not None:
                result.elements.append(element)

        result.templates = await asyncio.to_thread(self.build_templates, result.elements)
        logger.info(
            "Extracted %d element(s), %d template(s), %d errored locator(s) from %s",
            len(result.elements),
            len(result.templates),
            len(result.errored_locators),
            snapshot.url or "snapshot",
        )
        return result

    async def _resolve_locator(
        self,
        session: SessionHandle,
        snapshot: DocumentSnapshot,
        locator: str,
        node: LiveNode,
        attributes: Dict[str, str],
    ) -> LocatorResult:
        try:
            matches = snapshot.evaluate(locator)
        except LocatorResolutionError:
            matches = []
        if len(matches) == 1:
            return generate_locator(matches[0], snapshot, self.config)
        return await generate_live_locator(session, node, attributes, self.config)

    async def _extract_locator(
        self,
        session: SessionHandle,
        snapshot: DocumentSnapshot,
        locator: str,
        viewport: Viewport,
        page_image: Image.Image,
        audit_scope: str,
        warnings: List[str],
    ) -> Optional[Element]:
        node = await session.find_element(locator)
        if self.config.scroll_into_view:
            await session.scroll_into_view(node)
            viewport = await session.viewport()

        decision = evaluate_node(node, viewport, self.config)
        if not decision.accepted:
            logger.debug("Filtered %s: %s", locator, decision.reason)
            return None

        markup = await session.outer_html(node)
        existing = self._lookup(audit_scope, element_checksum(markup))
        if existing is not None:
            logger.debug("Dedup hit for %s", locator)
            return existing

        classification = classify_children(
            await session.child_tags(node), self.config.structure_tags
        )
        attributes = await session.attributes(node)
        style = await session.computed_style(node)

        generated = await self._resolve_locator(session, snapshot, locator, node, attributes)
        if generated.error:
            warnings.append(f"{locator}: locator generation failed ({generated.error})")
        if generated.warning:
            warnings.append(generated.warning)

        fragment = parse_fragment(markup)
        own_text, all_text = node_text(fragment) if fragment is not None else ("", "")
        element = build_element(
            locator=generated.locator,
            tag_name=node.tag_name,
            outer_markup=markup,
            bounding_box=node.rect,
            classification=classification,
            attributes=attributes,
            rendered_style=style,
            own_text=own_text,
            all_text=all_text,
            visible=node.displayed,
            config=self.config,
        )
        crop = crop_screenshot(page_image, node.rect)
        if crop is not None:
            element = enrich_element(element, screenshot=crop, config=self.config)
        if element.is_image:
            element = await self._annotate(element, snapshot)
        return self._upsert(audit_scope, element)

    async def _annotate(self, element: Element, snapshot: DocumentSnapshot) -> Element:
        if self.annotator is None or not self.config.enrich_images:
            return element
        image_bytes = element.screenshot_png or await asyncio.to_thread(
            fetch_image_bytes, element.attributes.get("src", ""), snapshot.url
        )
        if not image_bytes:
            logger.debug("No image bytes for %s", element.locator)
            return element
        try:
            annotations = await asyncio.to_thread(self.annotator.annotate, image_bytes)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Image annotation failed for %s: %s", element.locator, exc)
            return element
        return annotate_image(element, annotations)

    def extract_snapshot_elements(
        self,
        snapshot: DocumentSnapshot,
        locators: Optional[Sequence[str]] = None,
        audit_scope: str = "default",
    ) -> ExtractionResult:
        """Offline pass over a saved page: no geometry, styles or screenshots."""
        if is_service_unavailable(snapshot.source):
            raise ServiceUnavailableError(f"{snapshot.url or 'page'} returned 503")
        if locators is None:
            locators = extract_all_unique_locators(snapshot, self.config)

        result = ExtractionResult(url=snapshot.url, page_checksum=snapshot.checksum)
        for locator in locators:
            try:
                matches = snapshot.evaluate(locator)
            except LocatorResolutionError as exc:
                result.errored_locators.append(ErroredLocator(locator, exc.reason))
                continue
            if not matches:
                result.errored_locators.append(ErroredLocator(locator, "no element found"))
                continue
            node = matches[0]
            if is_structure_tag(node.tag, self.config.structure_tags):
                continue

            markup = outer_html(node)
            existing = self._lookup(audit_scope, element_checksum(markup))
            if existing is not None:
                result.elements.append(existing)
                continue

            generated = generate_locator(node, snapshot, self.config)
            if generated.error:
                result.warnings.append(f"{locator}: locator generation failed ({generated.error})")
            if generated.warning:
                result.warnings.append(generated.warning)
            own_text, all_text = node_text(node)
            classification = classify_children(
                [child.tag for child in node if isinstance(child.tag, str)],
                self.config.structure_tags,
            )
            element = build_element(
                locator=generated.locator,
                tag_name=node.tag,
                outer_markup=markup,
                bounding_box=BoundingBox(0, 0, 0, 0),
                classification=classification,
                attributes=dict(node.attrib),
                own_text=own_text,
                all_text=all_text,
                visible=False,
                config=self.config,
            )
            result.elements.append(self._upsert(audit_scope, element))

        result.templates = self.build_templates(result.elements)
        return result


def extract_html(
    source: str,
    url: str = "",
    config: Optional[EngineConfig] = None,
    store: Optional[DedupStore] = None,
) -> ExtractionResult:
    """Run the offline pass over saved HTML with a throwaway dedup store."""
    engine = ExtractionEngine(store or InMemoryDedupStore(), config=config)
    return engine.extract_snapshot_elements(DocumentSnapshot(clean_source(source), url))
