"""Exceptions raised across the extraction pipeline."""

from __future__ import annotations


class DomprintError(RuntimeError):
    """Base class for extraction failures."""


class LocatorResolutionError(DomprintError):
    """A locator was invalid, stale, or pointed at a detached node."""

    def __init__(self, locator: str, reason: str) -> None:
        super().__init__(f"{locator}: {reason}")
        self.locator = locator
        self.reason = reason


class ServiceUnavailableError(DomprintError):
    """The live session could not serve the page (e.g. a 503 response)."""


class DedupStoreError(DomprintError):
    """The dedup store could not be queried or updated."""
