"""Command-line entry point for domprint."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence

from .config import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_VISION_MODEL_ID,
    CrawlConfig,
    EngineConfig,
    VisionConfig,
)
from .crawler import run_crawler
from .engine import extract_html
from .output import template_to_dict

logger = logging.getLogger("domprint.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("crawl", *argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_SIMILARITY_THRESHOLD,
        help="Maximum normalised edit distance for two templates to cluster",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_crawl_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("urls", nargs="+", help="One or more URLs to extract")
    parser.add_argument(
        "--output",
        default="output",
        type=Path,
        help="Directory where elements.json and element screenshots are written",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=1.0,
        help="Seconds to wait after network idle before extracting",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument("--width", type=int, default=1280, help="Viewport width in pixels")
    parser.add_argument("--height", type=int, default=800, help="Viewport height in pixels")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=3,
        help="Maximum number of pages processed at the same time",
    )
    parser.add_argument(
        "--scope",
        default="default",
        help="Audit scope within which element checksums are deduplicated",
    )
    parser.add_argument(
        "--vision",
        action="store_true",
        help="Annotate image elements with an MLX vision-language model",
    )
    parser.add_argument(
        "--vision-model",
        default=DEFAULT_VISION_MODEL_ID,
        help="MLX VLM identifier used with --vision",
    )
    _add_common_arguments(parser)


def _add_templates_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("paths", nargs="+", type=Path, help="Saved HTML files to classify")
    parser.add_argument(
        "--url",
        default="",
        help="URL the HTML was captured from, used to salt the page checksum",
    )
    _add_common_arguments(parser)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Extract, deduplicate and classify DOM elements of rendered pages or saved HTML."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser(
        "crawl", help="Render web pages with Playwright and extract their elements"
    )
    _add_crawl_arguments(crawl_parser)

    templates_parser = subparsers.add_parser(
        "templates", help="Cluster and classify templates of saved HTML files"
    )
    _add_templates_arguments(templates_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def build_crawl_config(args: argparse.Namespace) -> CrawlConfig:
    return CrawlConfig(
        output_root=Path(args.output).resolve(),
        wait_after_load=args.wait,
        navigation_timeout=args.timeout,
        viewport_width=args.width,
        viewport_height=args.height,
        max_concurrent_pages=args.concurrency,
        audit_scope=args.scope,
        engine=EngineConfig(similarity_threshold=args.threshold, enrich_images=args.vision),
    )


def _run_crawl(args: argparse.Namespace) -> None:
    _configure_logging(args.verbose)
    config = build_crawl_config(args)

    annotator = None
    if args.vision:
        from .vision import VlmImageAnnotator

        annotator = VlmImageAnnotator(VisionConfig(model_id=args.vision_model))

    overall_start = time.perf_counter()
    metrics = asyncio.run(run_crawler(args.urls, config, annotator))
    total_elapsed = time.perf_counter() - overall_start

    successes = len(metrics)
    total_urls = len(args.urls)
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        successes,
        total_urls,
        total_urls - successes,
    )
    for metric in metrics:
        logger.debug(
            "%s -> %s | elements: %d | templates: %d | errored: %d | %.2fs",
            metric.url,
            metric.output_path,
            metric.element_count,
            metric.template_count,
            metric.errored_count,
            metric.total_seconds,
        )


def _run_templates(args: argparse.Namespace) -> None:
    _configure_logging(args.verbose)
    config = EngineConfig(similarity_threshold=args.threshold)
    report = {}
    for path in args.paths:
        try:
            source = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.error("Could not read %s: %s", path, exc)
            continue
        result = extract_html(source, args.url, config)
        report[str(path)] = [template_to_dict(template) for template in result.templates.values()]
        logger.info(
            "%s: %d element(s), %d template(s)", path, len(result.elements), len(result.templates)
        )
    sys.stdout.write(json.dumps(report, indent=2) + "\n")
    sys.stdout.flush()


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    if args.command == "crawl":
        _run_crawl(args)
    else:
        _run_templates(args)


if __name__ == "__main__":
    main()
