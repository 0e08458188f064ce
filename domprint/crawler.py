"""High-level orchestration for rendering pages and running the extraction engine."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from playwright.async_api import (
    Browser,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .collaborators import DedupStore, InMemoryDedupStore, VisionAnnotator
from .config import CrawlConfig
from .engine import ExtractionEngine
from .errors import DedupStoreError, ServiceUnavailableError
from .fingerprint import clean_source
from .locator import extract_all_unique_locators
from .models import DocumentSnapshot, ExtractionResult
from .output import build_output_dir, write_result
from .session import PlaywrightSession

logger = logging.getLogger("domprint")


@dataclass
class CrawlMetrics:
    """Summary of one processed URL."""

    url: str
    output_path: Path
    element_count: int
    template_count: int
    errored_count: int
    total_seconds: float


async def extract_url(
    browser: Browser,
    url: str,
    config: CrawlConfig,
    engine: ExtractionEngine,
) -> ExtractionResult:
    """Render ``url`` in a fresh page and run one extraction pass over it."""
    page = await browser.new_page(
        viewport={"width": config.viewport_width, "height": config.viewport_height}
    )
    page.set_default_navigation_timeout(config.navigation_timeout * 1000)
    page.set_default_timeout(config.navigation_timeout * 1000)
    try:
        logger.info("Loading %s", url)
        await page.goto(url, wait_until="networkidle")
        if config.wait_after_load:
            await page.wait_for_timeout(int(config.wait_after_load * 1000))
        session = PlaywrightSession(page)
        snapshot = DocumentSnapshot(clean_source(await session.page_source()), page.url)
        locators = extract_all_unique_locators(snapshot, config.engine)
        logger.debug("Resolving %d locator(s) on %s", len(locators), page.url)
        return await engine.extract_page(session, snapshot, locators, config.audit_scope)
    finally:
        await page.close()


async def render_and_extract(
    browser: Browser,
    url: str,
    config: CrawlConfig,
    engine: ExtractionEngine,
    semaphore: asyncio.Semaphore,
) -> Optional[CrawlMetrics]:
    """Extract one URL and write its output; page-level failures are logged and skipped."""
    async with semaphore:
        start = time.perf_counter()
        try:
            result = await extract_url(browser, url, config, engine)
        except PlaywrightTimeoutError as exc:
            logger.error("Timeout while loading %s: %s", url, exc)
            return None
        except ServiceUnavailableError as exc:
            logger.error("Service unavailable for %s: %s", url, exc)
            return None
        except DedupStoreError:
            raise
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error extracting %s", url)
            return None

    output_dir = build_output_dir(config, result.url or url)
    output_path = write_result(result, output_dir)
    return CrawlMetrics(
        url=url,
        output_path=output_path,
        element_count=len(result.elements),
        template_count=len(result.templates),
        errored_count=len(result.errored_locators),
        total_seconds=time.perf_counter() - start,
    )


async def run_crawler(
    urls: List[str],
    config: CrawlConfig,
    annotator: Optional[VisionAnnotator] = None,
    store: Optional[DedupStore] = None,
) -> List[CrawlMetrics]:
    """Process URLs concurrently, sharing one browser and one dedup store."""
    engine = ExtractionEngine(store or InMemoryDedupStore(), annotator, config.engine)
    semaphore = asyncio.Semaphore(max(1, config.max_concurrent_pages))
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True)
        try:
            outcomes = await asyncio.gather(
                *(render_and_extract(browser, url, config, engine, semaphore) for url in urls)
            )
        finally:
            await browser.close()
    return [metrics for metrics in outcomes if metrics is not None]


async def extract_single(
    url: str,
    config: CrawlConfig,
    annotator: Optional[VisionAnnotator] = None,
) -> ExtractionResult:
    """Render and extract one URL without writing output."""
    engine = ExtractionEngine(InMemoryDedupStore(), annotator, config.engine)
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True)
        try:
            return await extract_url(browser, url, config, engine)
        finally:
            await browser.close()
