"""Value types passed between the resolver, locator, extractor and cascade."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"
PREVIEWABLE_VIEWABILITY = ("PARTIAL", "ALL_PAGES")


class SourceLabel(str, Enum):
    """Provenance of the text in an ExtractionResult."""

    AUTOMATED_CAPTURE = "automated-capture"
    ARCHIVE_FULL_TEXT = "archive-full-text"
    PROVIDER_PAGE_CONTENT = "provider-page-content"
    BIBLIOGRAPHIC_SNIPPET = "bibliographic-snippet"
    AI_GENERATED_EXCERPT = "ai-generated-excerpt"
    UNAVAILABLE = "unavailable"


class LocatorState(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    CLASSIFYING = "classifying"
    ADVANCING = "advancing"
    FOUND = "found"
    EXHAUSTED = "exhausted"
    NAVIGATION_FAILED = "navigation-failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class IdentityGuess:
    """Noisy book details read off a cover image; any field may be missing."""

    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    is_fiction: bool | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "IdentityGuess":
        if not isinstance(payload, dict):
            return cls()

        def text(*keys: str) -> str | None:
            for key in keys:
                value = payload.get(key)
                if isinstance(value, str) and value.strip() and value.strip().lower() != "null":
                    return value.strip()
            return None

        raw_fiction = next(
            (payload[k] for k in ("isFiction", "is_fiction", "fiction") if isinstance(payload.get(k), bool)),
            None,
        )
        if raw_fiction is None:
            genre = text("fiction", "type", "genre")
            if genre is None:
                raw_fiction = None
            else:
                lowered = genre.lower()
                raw_fiction = not ("non" in lowered and "fiction" in lowered)

        isbn = text("isbn", "ISBN")
        if isbn is not None:
            isbn = "".join(ch for ch in isbn if ch.isdigit() or ch in "Xx") or None

        return cls(
            title=text("title"),
            author=text("author", "authors"),
            isbn=isbn,
            is_fiction=raw_fiction,
        )


@dataclass(frozen=True, slots=True)
class BookIdentity:
    title: str
    author: str
    isbn: str | None = None
    provider_id: str | None = None
    is_fiction: bool = True
    description: str | None = None
    preview_link: str | None = None
    viewability: str | None = None
    text_snippet: str | None = None
    categories: tuple[str, ...] = ()

    @property
    def preview_available(self) -> bool:
        return self.viewability in PREVIEWABLE_VIEWABILITY

    @property
    def page_type(self) -> str:
        return "second" if self.is_fiction else "first"

    @property
    def target_page(self) -> int:
        return 2 if self.is_fiction else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "id": self.provider_id,
            "isFiction": self.is_fiction,
            "description": self.description,
            "previewLink": self.preview_link,
            "previewAvailable": self.preview_available,
            "categories": list(self.categories),
            "pageType": self.page_type,
        }


@dataclass(frozen=True, slots=True)
class Screenshot:
    """One captured viewport image, JPEG encoded."""

    ordinal: int
    image_bytes: bytes
    encoding: str = "jpeg"

    def data_url(self) -> str:
        b64 = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:image/{self.encoding};base64,{b64}"


@dataclass(slots=True)
class PageLocatorState:
    attempts_made: int = 0
    content_page_found: bool = False
    captured_page: Screenshot | None = None
    state: LocatorState = LocatorState.IDLE

    def mark_found(self, screenshot: Screenshot) -> None:
        self.captured_page = screenshot
        self.content_page_found = True
        self.state = LocatorState.FOUND


@dataclass(frozen=True, slots=True)
class LocateOutcome:
    """Terminal report of one page-locator run."""

    success: bool
    state: LocatorState
    attempts: int
    screenshots: tuple[Screenshot, ...] = ()
    message: str = ""


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    text: str
    source_label: SourceLabel
    book_info: BookIdentity
    preview_url: str | None = None
    page_image: bytes | None = None
    captured_pages: int = 0
    is_error: bool = False
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def page_type(self) -> str:
        return self.book_info.page_type

    def to_dict(self) -> dict[str, Any]:
        image = None
        if self.page_image is not None:
            image = base64.b64encode(self.page_image).decode("ascii")
        return {
            "text": self.text,
            "source": self.source_label.value,
            "url": self.preview_url,
            "bookInfo": self.book_info.to_dict(),
            "pageType": self.page_type,
            "capturedScreenshots": self.captured_pages,
            "pageImage": image,
            "isError": self.is_error,
            "notes": list(self.notes),
        }
