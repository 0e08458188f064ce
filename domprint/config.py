"""Configuration objects and constants for extraction and crawling."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Tuple

DEFAULT_SIMILARITY_THRESHOLD = 0.025
DEFAULT_VISION_MODEL_ID = "mlx-community/Qwen2.5-VL-3B-Instruct-4bit"

LOCATOR_ATTRIBUTES: Tuple[str, ...] = ("class", "id", "name", "title")

STRUCTURE_TAGS: FrozenSet[str] = frozenset(
    {
        "head",
        "link",
        "script",
        "style",
        "meta",
        "base",
        "iframe",
        "noscript",
        "svg",
        "path",
        "g",
        "polygon",
        "polyline",
        "use",
        "template",
        "audio",
        "br",
        "em",
        "body",
    }
)

IMAGE_TAGS: FrozenSet[str] = frozenset({"img"})

DEFAULT_FOREGROUND_COLOR = "rgb(0,0,0)"
DEFAULT_BACKGROUND_COLOR = "rgb(255,255,255)"


@dataclass
class EngineConfig:
    """Settings that control locator generation, filtering and clustering."""

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    locator_attributes: Tuple[str, ...] = LOCATOR_ATTRIBUTES
    structure_tags: FrozenSet[str] = STRUCTURE_TAGS
    image_tags: FrozenSet[str] = IMAGE_TAGS
    default_foreground: str = DEFAULT_FOREGROUND_COLOR
    default_background: str = DEFAULT_BACKGROUND_COLOR
    scroll_into_view: bool = True
    enrich_images: bool = True


@dataclass
class CrawlConfig:
    """Top-level settings for rendering pages and running the engine."""

    output_root: Path
    wait_after_load: float = 1.0
    navigation_timeout: float = 30.0
    viewport_width: int = 1280
    viewport_height: int = 800
    max_concurrent_pages: int = 3
    audit_scope: str = "default"
    engine: EngineConfig = field(default_factory=EngineConfig)


@dataclass
class VisionConfig:
    """Settings for the optional vision-language image annotator."""

    model_id: str = DEFAULT_VISION_MODEL_ID
    max_tokens: int = 512
    temperature: float = 0.0
    max_image_side: int = 1024
