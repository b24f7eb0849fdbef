"""Google Books lookups and the resolver that turns a cover guess into a BookIdentity."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

import requests

from firstpage.genre import FictionPolicy, KeywordFictionPolicy
from firstpage.models import UNKNOWN_AUTHOR, UNKNOWN_TITLE, BookIdentity, IdentityGuess

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_VOLUMES_URL = "https://www.googleapis.com/books/v1/volumes"
UNKNOWN_SENTINELS = {"unknown", "unknown author", "n/a", "none", "null"}


@dataclass(frozen=True, slots=True)
class VolumeRecord:
    """Normalized subset of a Google Books volume resource."""

    volume_id: str
    title: str | None
    authors: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    description: str | None = None
    isbn: str | None = None
    viewability: str | None = None
    embeddable: bool = False
    preview_link: str | None = None
    text_snippet: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "VolumeRecord":
        info = item.get("volumeInfo") or {}
        access = item.get("accessInfo") or {}
        search_info = item.get("searchInfo") or {}

        identifiers = info.get("industryIdentifiers") or []
        isbn13 = next((i.get("identifier") for i in identifiers if i.get("type") == "ISBN_13"), None)
        isbn10 = next((i.get("identifier") for i in identifiers if i.get("type") == "ISBN_10"), None)

        authors = tuple(
            a.strip() for a in info.get("authors") or [] if isinstance(a, str) and a.strip()
        )
        categories = tuple(
            c.strip() for c in info.get("categories") or [] if isinstance(c, str) and c.strip()
        )
        return cls(
            volume_id=str(item.get("id") or ""),
            title=info.get("title"),
            authors=authors,
            categories=categories,
            description=info.get("description") or None,
            isbn=isbn13 or isbn10,
            viewability=access.get("viewability"),
            embeddable=bool(access.get("embeddable")),
            preview_link=info.get("previewLink") or None,
            text_snippet=search_info.get("textSnippet") or None,
            raw=item,
        )


class GoogleBooksClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_token: str | None = None,
        timeout: float = 10.0,
        session: Any | None = None,
        base_url: str = GOOGLE_BOOKS_VOLUMES_URL,
    ) -> None:
        self.api_key = api_key
        self.api_token = api_token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        query = dict(params or {})
        if self.api_key:
            query["key"] = self.api_key
        response = self.session.get(url, params=query, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    def _first_item(self, query: str) -> VolumeRecord | None:
        payload = self._get_json(self.base_url, {"q": query})
        items = payload.get("items") or []
        if not items:
            return None
        return VolumeRecord.from_item(items[0])

    def lookup_isbn(self, isbn: str) -> VolumeRecord | None:
        return self._first_item(f"isbn:{isbn}")

    def search(self, query: str) -> VolumeRecord | None:
        return self._first_item(query)

    def volume(self, volume_id: str, fields: str | None = None) -> dict[str, Any]:
        params = {"fields": fields} if fields else None
        return self._get_json(f"{self.base_url}/{volume_id}", params)

    def page_content(self, volume_id: str, page: int) -> str | None:
        """Request the text of one page; only some volumes and credentials allow it."""
        headers = None
        if self.api_token:
            headers = {"Authorization": f"Bearer {self.api_token}"}
        payload = self._get_json(
            f"{self.base_url}/{volume_id}/pages",
            {"page": page, "numpages": 1},
            headers,
        )
        content = payload.get("content")
        if isinstance(content, str) and content.strip():
            return content
        return None


def _is_known(value: str | None) -> bool:
    return bool(value and value.strip() and value.strip().lower() not in UNKNOWN_SENTINELS)


class BibliographicResolver:
    """Resolve a cover guess to a canonical identity. Never raises on lookup misses."""

    def __init__(self, client: GoogleBooksClient, policy: FictionPolicy | None = None) -> None:
        self.client = client
        self.policy = policy or KeywordFictionPolicy()

    def resolve(self, guess: IdentityGuess) -> BookIdentity:
        logger.info("Resolving book: title=%r author=%r isbn=%r", guess.title, guess.author, guess.isbn)

        if guess.isbn:
            try:
                record = self.client.lookup_isbn(guess.isbn)
            except (requests.RequestException, ValueError) as exc:
                logger.warning("ISBN lookup failed for %s: %s", guess.isbn, exc)
                record = None
            if record is not None:
                return self._identity_from_record(record, guess)
            logger.info("ISBN search failed, falling back to title/author search")

        query = self.build_query(guess)
        if query:
            try:
                record = self.client.search(query)
            except (requests.RequestException, ValueError) as exc:
                logger.warning("Book search failed for %r: %s", query, exc)
                record = None
            if record is not None:
                return self._identity_from_record(record, guess)
            logger.warning("No bibliographic match for %r", query)

        return self.fallback_identity(guess)

    @staticmethod
    def build_query(guess: IdentityGuess) -> str | None:
        if not _is_known(guess.title):
            return None
        query = guess.title.strip()
        if _is_known(guess.author):
            query += f" {guess.author.strip()}"
        return query

    @staticmethod
    def fallback_identity(guess: IdentityGuess) -> BookIdentity:
        return BookIdentity(
            title=guess.title or UNKNOWN_TITLE,
            author=guess.author or UNKNOWN_AUTHOR,
            isbn=guess.isbn or None,
            is_fiction=True if guess.is_fiction is None else guess.is_fiction,
        )

    def _identity_from_record(self, record: VolumeRecord, guess: IdentityGuess) -> BookIdentity:
        title = record.title or guess.title or UNKNOWN_TITLE
        identity = BookIdentity(
            title=title,
            author=record.authors[0] if record.authors else (guess.author or UNKNOWN_AUTHOR),
            isbn=record.isbn or guess.isbn or None,
            provider_id=record.volume_id or None,
            is_fiction=self.policy.is_fiction(record.categories, record.description, title),
            description=record.description,
            preview_link=record.preview_link,
            viewability=record.viewability,
            text_snippet=record.text_snippet,
            categories=record.categories,
        )
        logger.info(
            "Book identified: %s by %s (%s)",
            identity.title,
            identity.author,
            "Fiction" if identity.is_fiction else "Non-Fiction",
        )
        return identity
