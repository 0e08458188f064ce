"""MCP server exposing domprint extraction tools."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .config import CrawlConfig
from .crawler import extract_single
from .engine import extract_html
from .output import result_to_dict, template_to_dict

logger = logging.getLogger("domprint.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="domprint")


@mcp.tool()
async def extract(url: str) -> str:
    """Render a web page with Playwright and return its elements and templates as JSON."""
    with tempfile.TemporaryDirectory(prefix="domprint-extract-") as tmp_dir:
        config = CrawlConfig(output_root=Path(tmp_dir))
        result = await extract_single(url, config)
    return json.dumps(result_to_dict(result), indent=2)


@mcp.tool()
async def templates(html: str) -> str:
    """Cluster and classify the templates of an HTML document."""
    result = extract_html(html)
    return json.dumps([template_to_dict(template) for template in result.templates.values()], indent=2)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
