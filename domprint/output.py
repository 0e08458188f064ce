"""JSON and screenshot output for extraction results."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .config import CrawlConfig
from .models import Element, ExtractionResult, Template
from .utils import slugify

logger = logging.getLogger("domprint")


def build_output_dir(config: CrawlConfig, url: str) -> Path:
    """Create an output directory based on the page URL."""
    parsed = urlparse(url)
    domain = slugify(parsed.netloc or "site", fallback="site")
    path_slug = slugify(parsed.path.strip("/") or "index", fallback="index")
    output_dir = config.output_root / domain / path_slug[:80]
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def element_to_dict(element: Element, screenshot_path: Optional[str] = None) -> Dict[str, Any]:
    data = asdict(element)
    data.pop("screenshot_png", None)
    data["classification"] = element.classification.value
    data["screenshot_path"] = screenshot_path
    return data


def template_to_dict(template: Template) -> Dict[str, Any]:
    return {
        "key": template.key,
        "type": template.type.value,
        "markup": template.markup,
        "elements": [element.key for element in template.elements],
    }


def result_to_dict(
    result: ExtractionResult,
    screenshot_paths: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """JSON-safe view of a result; screenshots appear as relative paths only."""
    screenshot_paths = screenshot_paths or {}
    return {
        "url": result.url,
        "page_checksum": result.page_checksum,
        "elements": [
            element_to_dict(element, screenshot_paths.get(element.key))
            for element in result.elements
        ],
        "templates": [template_to_dict(template) for template in result.templates.values()],
        "errored_locators": [asdict(errored) for errored in result.errored_locators],
        "warnings": list(result.warnings),
    }


def write_result(result: ExtractionResult, output_dir: Path) -> Path:
    """Write ``elements.json`` and one PNG per element screenshot into ``output_dir``."""
    screenshot_dir = output_dir / "elements"
    screenshot_paths: Dict[str, str] = {}
    for element in result.elements:
        if not element.screenshot_png or element.key in screenshot_paths:
            continue
        screenshot_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{element.checksum}.png"
        destination = screenshot_dir / filename
        try:
            destination.write_bytes(element.screenshot_png)
        except OSError as exc:
            logger.warning("Failed to write screenshot %s: %s", destination, exc)
            continue
        screenshot_paths[element.key] = str(Path("elements") / filename)

    output_path = output_dir / "elements.json"
    output_path.write_text(
        json.dumps(result_to_dict(result, screenshot_paths), indent=2),
        encoding="utf-8",
    )
    logger.info("Saved %d element(s) to %s", len(result.elements), output_path)
    return output_path
