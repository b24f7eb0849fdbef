"""Optional destinations for captured target pages (debug artifacts)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from firstpage.models import Screenshot

logger = logging.getLogger(__name__)


def sanitize_slug(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]+", "-", value).strip("-") or "book"


class CaptureSink(Protocol):
    def save(self, book_key: str, screenshot: Screenshot) -> None: ...


class DirectoryCaptureSink:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, book_key: str, screenshot: Screenshot) -> Path:
        extension = "jpg" if screenshot.encoding == "jpeg" else screenshot.encoding
        return self.root / f"screenshot-{sanitize_slug(book_key)}-{screenshot.ordinal}.{extension}"

    def save(self, book_key: str, screenshot: Screenshot) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(book_key, screenshot)
        path.write_bytes(screenshot.image_bytes)
        logger.info("Saved screenshot: %s", path)
