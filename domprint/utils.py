"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import re

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
BODY_PATTERN = re.compile(r"<body[^>]*>[\s\S]*</body>", re.IGNORECASE)
WHITESPACE_PATTERN = re.compile(r"\s+")

SERVICE_UNAVAILABLE_MARKER = "503 Service Temporarily Unavailable"


def slugify(value: str, fallback: str = "page") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def extract_body(source: str) -> str:
    """Return the ``<body>...</body>`` slice of a page, or an empty string."""
    match = BODY_PATTERN.search(source)
    return match.group(0) if match else ""


def clean_attribute_value(value: str) -> str:
    """Collapse whitespace inside an attribute value."""
    return WHITESPACE_PATTERN.sub(" ", value).strip()


def is_javascript(value: str) -> bool:
    return value.strip().lower().startswith("javascript:")


def is_auto_generated(token: str) -> bool:
    """Tokens ending in a digit are treated as generated per build or request."""
    return bool(token) and token[-1].isdigit()


def remove_auto_generated_tokens(value: str) -> str:
    return " ".join(token for token in value.split(" ") if token and not is_auto_generated(token))


def is_service_unavailable(source: str) -> bool:
    return SERVICE_UNAVAILABLE_MARKER in source
