"""
Bounded page-turning loop that finds the first page of real content.

Each attempt screenshots the viewer and asks the classifier whether the
page is the first content page. "No" turns the page; a missing page-turn
control ends the run as exhausted. "Yes" stops immediately for non-fiction
and, for fiction, advances ``fiction_page_offset`` more pages before the
target capture. The viewer session is closed on every exit path.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from firstpage.capture import CaptureSink
from firstpage.classifier import PageClassifier
from firstpage.errors import ConfigurationError, NavigationError
from firstpage.models import BookIdentity, LocateOutcome, LocatorState, PageLocatorState, Screenshot
from firstpage.viewer import SessionFactory, ViewerSession, preview_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 15


class PageLocator:
    def __init__(
        self,
        session_factory: SessionFactory,
        classifier: PageClassifier,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        fiction_page_offset: int = 1,
        loop_timeout: float | None = None,
        capture_sink: CaptureSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if fiction_page_offset < 0:
            raise ValueError("fiction_page_offset cannot be negative")

        self.session_factory = session_factory
        self.classifier = classifier
        self.max_attempts = max_attempts
        self.fiction_page_offset = fiction_page_offset
        self.loop_timeout = loop_timeout
        self.capture_sink = capture_sink
        self._clock = clock

    def locate(
        self, identity: BookIdentity, cancel_event: threading.Event | None = None
    ) -> LocateOutcome:
        if not identity.provider_id:
            return LocateOutcome(
                success=False,
                state=LocatorState.IDLE,
                attempts=0,
                message="No provider identifier; preview viewer not opened",
            )

        logger.info("Starting screenshot extraction for book ID: %s", identity.provider_id)
        state = PageLocatorState()
        session: ViewerSession | None = None
        try:
            state.state = LocatorState.NAVIGATING
            session = self.session_factory.acquire()
            session.open(preview_url(identity.provider_id, 1))
            self._run(session, identity, state, cancel_event)
        except NavigationError as exc:
            logger.error("Error extracting screenshots: %s", exc)
            state.state = LocatorState.NAVIGATION_FAILED
            return LocateOutcome(
                success=False,
                state=state.state,
                attempts=state.attempts_made,
                message=f"Error extracting screenshots: {exc}",
            )
        finally:
            if session is not None:
                session.close()

        return self._outcome(identity, state)

    def _run(
        self,
        session: ViewerSession,
        identity: BookIdentity,
        state: PageLocatorState,
        cancel_event: threading.Event | None,
    ) -> None:
        deadline = None
        if self.loop_timeout is not None:
            deadline = self._clock() + self.loop_timeout

        while state.attempts_made < self.max_attempts:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Page search cancelled after %d attempts", state.attempts_made)
                state.state = LocatorState.CANCELLED
                return
            if deadline is not None and self._clock() >= deadline:
                logger.warning("Page search hit the %ss time limit", self.loop_timeout)
                state.state = LocatorState.EXHAUSTED
                return

            state.attempts_made += 1
            state.state = LocatorState.CLASSIFYING
            screenshot = Screenshot(ordinal=state.attempts_made, image_bytes=session.screenshot())
            logger.info("Taking screenshot %d/%d", state.attempts_made, self.max_attempts)

            if self._classify(screenshot):
                logger.info("Found first content page at capture %d", screenshot.ordinal)
                target = screenshot
                if identity.is_fiction:
                    target = self._advance_past_first(session, screenshot)
                state.mark_found(target)
                return

            state.state = LocatorState.ADVANCING
            if not session.next_page():
                logger.info("Next-page control unavailable; end of preview")
                state.state = LocatorState.EXHAUSTED
                return

        state.state = LocatorState.EXHAUSTED

    def _classify(self, screenshot: Screenshot) -> bool:
        try:
            return self.classifier.is_first_content_page(screenshot)
        except (NavigationError, ConfigurationError):
            raise
        except Exception as exc:
            logger.warning("Page classification failed for capture %d: %s", screenshot.ordinal, exc)
            return False

    def _advance_past_first(self, session: ViewerSession, first: Screenshot) -> Screenshot:
        """Turn fiction_page_offset more pages; keep the first capture if none turn."""
        ordinal = first.ordinal
        for _ in range(self.fiction_page_offset):
            try:
                if not session.next_page():
                    logger.warning("Could not advance past capture %d; stopping there", ordinal)
                    break
                ordinal += 1
            except NavigationError as exc:
                logger.warning("Advance past first content page failed: %s", exc)
                return first

        if ordinal == first.ordinal:
            return first
        try:
            return Screenshot(ordinal=ordinal, image_bytes=session.screenshot())
        except NavigationError as exc:
            logger.warning("Capture after advancing failed: %s", exc)
            return first

    def _outcome(self, identity: BookIdentity, state: PageLocatorState) -> LocateOutcome:
        if not state.content_page_found or state.captured_page is None:
            logger.info("No content page found after %d attempts", state.attempts_made)
            return LocateOutcome(
                success=False,
                state=state.state,
                attempts=state.attempts_made,
                message=f"No content page found after {state.attempts_made} attempts",
            )

        if self.capture_sink is not None:
            try:
                self.capture_sink.save(identity.provider_id or identity.title, state.captured_page)
            except OSError as exc:
                logger.warning("Could not save debug screenshot: %s", exc)

        logger.info("Screenshot capture complete. Captured 1 screenshot.")
        return LocateOutcome(
            success=True,
            state=state.state,
            attempts=state.attempts_made,
            screenshots=(state.captured_page,),
            message="Successfully captured 1 screenshot",
        )
