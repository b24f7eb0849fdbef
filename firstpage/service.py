"""Cover image (or identity guess) in, one ExtractionResult out."""

from __future__ import annotations

import logging
import threading

from firstpage.archive import ArchiveClient
from firstpage.bibliographic import BibliographicResolver, GoogleBooksClient
from firstpage.capture import DirectoryCaptureSink
from firstpage.cascade import FallbackCascade
from firstpage.classifier import VisionPageClassifier
from firstpage.config import Settings
from firstpage.errors import ModelRequestError
from firstpage.extractor import TextExtractor
from firstpage.locator import PageLocator
from firstpage.models import (
    UNKNOWN_AUTHOR,
    UNKNOWN_TITLE,
    BookIdentity,
    ExtractionResult,
    IdentityGuess,
    SourceLabel,
)
from firstpage.viewer import PlaywrightSessionFactory, preview_url
from firstpage.vision import VisionModel

logger = logging.getLogger(__name__)

NOT_A_COVER_MESSAGE = (
    "The image you provided doesn't appear to be a book cover. "
    "Please take another photo making sure the book cover is clearly visible."
)
UNIDENTIFIED_MESSAGE = (
    "We couldn't identify the book from this cover. "
    "Please take another photo with the title and author clearly visible."
)


class BookPageService:
    """Wires the resolver, page locator, extractor and fallback cascade together."""

    def __init__(
        self,
        settings: Settings,
        *,
        automation: bool = True,
        model: VisionModel | None = None,
        resolver: BibliographicResolver | None = None,
        locator: PageLocator | None = None,
        extractor: TextExtractor | None = None,
        cascade: FallbackCascade | None = None,
    ) -> None:
        self.settings = settings
        self.automation = automation
        self.model = model or VisionModel(
            api_key=settings.openai_api_key,
            vision_model=settings.vision_model,
            text_model=settings.text_model,
        )

        books = GoogleBooksClient(
            api_key=settings.google_books_api_key,
            api_token=settings.google_books_api_token,
            timeout=settings.http_timeout,
        )
        self.resolver = resolver or BibliographicResolver(books)
        self.extractor = extractor or TextExtractor(self.model)
        self.cascade = cascade or FallbackCascade(
            books, ArchiveClient(timeout=settings.http_timeout), self.model
        )

        if locator is None and automation:
            locator = PageLocator(
                PlaywrightSessionFactory(
                    headless=settings.headless,
                    browser_path=settings.browser_path,
                    navigation_timeout=settings.navigation_timeout,
                    control_timeout=settings.control_timeout,
                ),
                VisionPageClassifier(self.model),
                max_attempts=settings.max_attempts,
                fiction_page_offset=settings.fiction_page_offset,
                loop_timeout=settings.loop_timeout,
                capture_sink=DirectoryCaptureSink(settings.debug_dir) if settings.debug_dir else None,
            )
        self.locator = locator

    def locate_and_extract(
        self,
        source: bytes | IdentityGuess,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionResult:
        if isinstance(source, IdentityGuess):
            guess = source
        else:
            guess_or_error = self._identify(source)
            if isinstance(guess_or_error, ExtractionResult):
                return guess_or_error
            guess = guess_or_error

        identity = self.resolver.resolve(guess)
        url = self._preview_url(identity)
        notes: list[str] = []

        if self.automation and self.locator is not None and identity.provider_id:
            outcome = self.locator.locate(identity, cancel_event)
            notes.append(outcome.message)
            if outcome.success and outcome.screenshots:
                extracted = self.extractor.extract(outcome.screenshots, identity)
                if extracted.text:
                    if extracted.partial:
                        notes.append(
                            f"Extracted {extracted.pages_extracted} of "
                            f"{extracted.pages_extracted + extracted.pages_failed} pages"
                        )
                    logger.info("Processing complete, returning automated capture")
                    return ExtractionResult(
                        text=extracted.text,
                        source_label=SourceLabel.AUTOMATED_CAPTURE,
                        book_info=identity,
                        preview_url=url,
                        page_image=outcome.screenshots[-1].image_bytes,
                        captured_pages=len(outcome.screenshots),
                        notes=tuple(notes),
                    )
                notes.append("Text extraction returned nothing for the captured page")
            logger.info("Automated capture unavailable; using fallback text sources")

        result = self.cascade.run(identity)
        return ExtractionResult(
            text=result.text,
            source_label=result.source_label,
            book_info=identity,
            preview_url=url,
            notes=tuple(notes),
        )

    def _identify(self, image_bytes: bytes) -> IdentityGuess | ExtractionResult:
        placeholder = BookIdentity(title=UNKNOWN_TITLE, author=UNKNOWN_AUTHOR)
        try:
            if not self.model.is_book_cover(image_bytes):
                return ExtractionResult(
                    text=NOT_A_COVER_MESSAGE,
                    source_label=SourceLabel.UNAVAILABLE,
                    book_info=placeholder,
                    is_error=True,
                )
            return self.model.identify_cover(image_bytes)
        except ModelRequestError as exc:
            logger.error("Error identifying book: %s", exc)
            return ExtractionResult(
                text=UNIDENTIFIED_MESSAGE,
                source_label=SourceLabel.UNAVAILABLE,
                book_info=placeholder,
                is_error=True,
                notes=(str(exc),),
            )

    @staticmethod
    def _preview_url(identity: BookIdentity) -> str | None:
        if identity.provider_id:
            return preview_url(identity.provider_id, identity.target_page)
        return identity.preview_link
