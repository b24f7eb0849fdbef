"""
Ordered fallback sources for page text when automated capture is unavailable.

The first method returning non-empty text wins; an error in one method is
logged and the next is tried. Only total exhaustion produces the
"unavailable" message.
"""

from __future__ import annotations

from dataclasses import dataclass
import html
import logging
import re
from typing import Callable

import requests

from firstpage.archive import ArchiveClient
from firstpage.bibliographic import GoogleBooksClient
from firstpage.errors import ConfigurationError, ModelRequestError
from firstpage.models import PREVIEWABLE_VIEWABILITY, BookIdentity, SourceLabel
from firstpage.vision import VisionModel

logger = logging.getLogger(__name__)

FRONT_MATTER_FRACTION = 0.1
FRONT_MATTER_CAP = 30
FICTION_EXTRA_PARAGRAPHS = 5
WINDOW_PARAGRAPHS = 10
MIN_WINDOW_CHARS = 200

EXCERPT_INSTRUCTIONS = (
    "You are a literary expert who can produce excerpts that match the style "
    "and content of famous books."
)

SOURCE_DESCRIPTIONS = {
    SourceLabel.PROVIDER_PAGE_CONTENT: "Google Books API page content",
    SourceLabel.ARCHIVE_FULL_TEXT: "Internet Archive full text",
    SourceLabel.AI_GENERATED_EXCERPT: "AI-generated excerpt based on book description",
    SourceLabel.BIBLIOGRAPHIC_SNIPPET: "Google Books snippet",
}

# Transient HTTP faults, bad payloads and model failures all mean "try the next method".
RECOVERABLE_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError, ModelRequestError)


@dataclass(frozen=True, slots=True)
class CascadeResult:
    text: str
    source_label: SourceLabel


def split_paragraphs(full_text: str) -> list[str]:
    return [p for p in re.split(r"\n\s*\n+", full_text) if p.strip()]


def select_page_window(full_text: str, is_fiction: bool) -> str | None:
    """Pick the paragraphs just past the estimated front matter, or None if too short."""
    paragraphs = split_paragraphs(full_text)
    content_start = min(FRONT_MATTER_CAP, int(len(paragraphs) * FRONT_MATTER_FRACTION))
    start = content_start + (FICTION_EXTRA_PARAGRAPHS if is_fiction else 0)
    window = "\n\n".join(p.strip() for p in paragraphs[start : start + WINDOW_PARAGRAPHS])
    if len(window) < MIN_WINDOW_CHARS:
        return None
    return window


def clean_snippet(snippet: str) -> str:
    stripped = re.sub(r"</?[^>]+(>|$)", "", snippet)
    return " ".join(html.unescape(stripped).split())


def format_page_content(identity: BookIdentity, text: str, label: SourceLabel) -> str:
    page_type = identity.page_type.capitalize()
    lines = [f"# {identity.title}", "", f"By {identity.author}", "", f"## {page_type} Page Content", ""]
    lines.append(text.strip())
    lines.append("")
    if label is SourceLabel.AI_GENERATED_EXCERPT:
        lines.append(
            "Note: AI-generated excerpt, not verbatim text. It was written from the "
            "book's description and does not reproduce the actual page."
        )
    else:
        lines.append(f"Source: {SOURCE_DESCRIPTIONS[label]}")
    lines.append("")
    lines.append(
        f"Note: This preview is provided as a sample of the {page_type.lower()} page of content. "
        "For the full text, please purchase the book."
    )
    return "\n".join(lines)


def unavailable_message(identity: BookIdentity) -> str:
    page_type = identity.page_type
    genre = "fiction" if identity.is_fiction else "non-fiction"

    message = f"# {identity.title} by {identity.author}\n\n"
    if identity.description:
        message += f"## Description\n\n{identity.description}\n\n"

    message += f"We were unable to access the {page_type} page text for this book. "
    message += f"Since this is a {genre} book, "
    message += f"we would normally show you the {page_type} page of actual content.\n\n"

    if identity.preview_link:
        message += (
            f"You can [view the book preview on Google Books]({identity.preview_link}) "
            "to read sample pages.\n\n"
        )

    message += "Alternatively, you might find previews on:\n"
    message += "- The publisher's website\n"
    if identity.isbn:
        message += f"- Open Library (ISBN: {identity.isbn})\n"
    message += "- Amazon's \"Look Inside\" feature\n"
    message += "- Your local library's digital collection"
    return message


class FallbackCascade:
    def __init__(
        self,
        books: GoogleBooksClient,
        archive: ArchiveClient,
        model: VisionModel | None = None,
    ) -> None:
        self.books = books
        self.archive = archive
        self.model = model

    def methods(self) -> list[tuple[SourceLabel, Callable[[BookIdentity], str | None]]]:
        return [
            (SourceLabel.PROVIDER_PAGE_CONTENT, self.provider_page_content),
            (SourceLabel.ARCHIVE_FULL_TEXT, self.archive_full_text),
            (SourceLabel.AI_GENERATED_EXCERPT, self.ai_excerpt),
            (SourceLabel.BIBLIOGRAPHIC_SNIPPET, self.bibliographic_snippet),
        ]

    def run(self, identity: BookIdentity) -> CascadeResult:
        logger.info(
            "Book is %s, targeting %s page",
            "fiction" if identity.is_fiction else "non-fiction",
            identity.page_type,
        )
        for label, method in self.methods():
            try:
                text = method(identity)
            except ConfigurationError:
                raise
            except RECOVERABLE_ERRORS as exc:
                logger.warning("%s failed: %s", SOURCE_DESCRIPTIONS[label], exc)
                continue
            if text and text.strip():
                logger.info("Page text obtained from %s", SOURCE_DESCRIPTIONS[label])
                return CascadeResult(format_page_content(identity, text, label), label)

        logger.warning("No text source worked for %s", identity.title)
        return CascadeResult(unavailable_message(identity), SourceLabel.UNAVAILABLE)

    def provider_page_content(self, identity: BookIdentity) -> str | None:
        if not identity.provider_id:
            return None
        viewability = identity.viewability
        if viewability is None:
            detail = self.books.volume(
                identity.provider_id, fields="accessInfo(embeddable,viewability)"
            )
            viewability = (detail.get("accessInfo") or {}).get("viewability")
        if viewability not in PREVIEWABLE_VIEWABILITY:
            return None
        return self.books.page_content(identity.provider_id, identity.target_page)

    def archive_full_text(self, identity: BookIdentity) -> str | None:
        if not identity.isbn:
            return None
        logger.info("Trying Open Library for text content...")
        identifier = self.archive.full_text_identifier(identity.isbn)
        if not identifier:
            return None
        return select_page_window(self.archive.full_text(identifier), identity.is_fiction)

    def ai_excerpt(self, identity: BookIdentity) -> str | None:
        if not identity.description or self.model is None:
            return None
        logger.info("Using AI to generate relevant excerpt based on description...")
        prompt = (
            f"Based on this book description, generate what the {identity.page_type} page of "
            "actual content (not title/copyright pages) might contain. "
            f"Make it authentic to the style of {identity.author}. "
            f"Title: {identity.title}. Description: {identity.description}"
        )
        return self.model.generate_text(prompt, instructions=EXCERPT_INSTRUCTIONS, label="excerpt")

    def bibliographic_snippet(self, identity: BookIdentity) -> str | None:
        snippet = identity.text_snippet
        if not snippet and identity.provider_id:
            detail = self.books.volume(identity.provider_id)
            snippet = (detail.get("searchInfo") or {}).get("textSnippet")
        if not snippet:
            return None
        return clean_snippet(snippet) or None
