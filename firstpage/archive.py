"""Open Library bibliographic records and Internet Archive full-text transcripts."""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

OPEN_LIBRARY_BOOKS_URL = "https://openlibrary.org/api/books"
ARCHIVE_TEXT_URL_TEMPLATE = "https://archive.org/download/{identifier}/{identifier}_djvu.txt"


class ArchiveClient:
    def __init__(self, *, timeout: float = 10.0, session: Any | None = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    def open_library_record(self, isbn: str) -> dict[str, Any] | None:
        bibkey = f"ISBN:{isbn}"
        response = self.session.get(
            OPEN_LIBRARY_BOOKS_URL,
            params={"bibkeys": bibkey, "format": "json", "jscmd": "data"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            return None
        record = payload.get(bibkey)
        return record if isinstance(record, dict) else None

    def full_text_identifier(self, isbn: str) -> str | None:
        """Archive identifier of a fully readable edition, if Open Library lists one."""
        record = self.open_library_record(isbn)
        if not record or record.get("preview") != "full":
            return None
        identifiers = record.get("ia")
        if isinstance(identifiers, str):
            return identifiers or None
        if isinstance(identifiers, list) and identifiers:
            return str(identifiers[0])
        return None

    def full_text(self, identifier: str) -> str:
        url = ARCHIVE_TEXT_URL_TEMPLATE.format(identifier=identifier)
        logger.info("Fetching archive transcript: %s", url)
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.text
