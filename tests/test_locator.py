from __future__ import annotations

import itertools
import threading

import pytest
from playwright.sync_api import Error as PlaywrightError

from firstpage.errors import ConfigurationError, NavigationError
from firstpage.locator import PageLocator
from firstpage.models import BookIdentity, LocatorState, Screenshot
from firstpage.viewer import PlaywrightViewerSession


class _FakeSession:
    def __init__(
        self,
        page_count: int,
        *,
        open_error: bool = False,
        screenshot_error_at: int | None = None,
    ) -> None:
        self.pages = [f"page-{n}".encode() for n in range(1, page_count + 1)]
        self.index = 0
        self.open_error = open_error
        self.screenshot_error_at = screenshot_error_at
        self.opened: list[str] = []
        self.next_calls = 0
        self.close_calls = 0

    def open(self, url: str) -> None:
        self.opened.append(url)
        if self.open_error:
            raise NavigationError("timed out after 30s")

    def screenshot(self) -> bytes:
        if self.screenshot_error_at is not None and self.index + 1 == self.screenshot_error_at:
            raise NavigationError("page crashed")
        return self.pages[self.index]

    def next_page(self) -> bool:
        self.next_calls += 1
        if self.index + 1 >= len(self.pages):
            return False
        self.index += 1
        return True

    def close(self) -> None:
        self.close_calls += 1


class _FakeFactory:
    def __init__(self, session: _FakeSession | None = None, error: bool = False) -> None:
        self.session = session
        self.error = error
        self.acquired = 0

    def acquire(self) -> _FakeSession:
        self.acquired += 1
        if self.error:
            raise NavigationError("browser launch failed")
        assert self.session is not None
        return self.session


class _ScriptedClassifier:
    """Says yes for the listed page numbers; may raise on others."""

    def __init__(self, content_pages: set[int], failing_pages: set[int] | None = None) -> None:
        self.content_pages = {f"page-{n}".encode() for n in content_pages}
        self.failing_pages = {f"page-{n}".encode() for n in failing_pages or set()}
        self.seen: list[bytes] = []

    def is_first_content_page(self, screenshot: Screenshot) -> bool:
        self.seen.append(screenshot.image_bytes)
        if screenshot.image_bytes in self.failing_pages:
            raise RuntimeError("model unavailable")
        return screenshot.image_bytes in self.content_pages


class _RecordingSink:
    def __init__(self, error: Exception | None = None) -> None:
        self.saved: list[tuple[str, Screenshot]] = []
        self.error = error

    def save(self, book_key: str, screenshot: Screenshot) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append((book_key, screenshot))


def _locator(session: _FakeSession, classifier: _ScriptedClassifier, **kwargs) -> PageLocator:
    return PageLocator(_FakeFactory(session), classifier, **kwargs)


def test_non_fiction_stops_at_first_content_page(biography: BookIdentity) -> None:
    session = _FakeSession(8)
    classifier = _ScriptedClassifier({3})

    outcome = _locator(session, classifier).locate(biography)

    assert outcome.success is True
    assert outcome.state is LocatorState.FOUND
    assert outcome.attempts == 3
    assert [s.image_bytes for s in outcome.screenshots] == [b"page-3"]
    assert outcome.screenshots[0].ordinal == 3
    assert session.next_calls == 2
    assert session.close_calls == 1
    assert "id=8U2oAAAAQBAJ" in session.opened[0]
    assert "pg=PA1" in session.opened[0]


def test_fiction_advances_exactly_one_more_page(dune: BookIdentity) -> None:
    session = _FakeSession(8)
    classifier = _ScriptedClassifier({3})

    outcome = _locator(session, classifier).locate(dune)

    assert outcome.success is True
    assert [s.image_bytes for s in outcome.screenshots] == [b"page-4"]
    assert outcome.screenshots[0].ordinal == 4
    assert session.next_calls == 3
    assert len(classifier.seen) == 3
    assert session.close_calls == 1


def test_fiction_keeps_first_content_page_when_advance_fails(dune: BookIdentity) -> None:
    session = _FakeSession(3)
    classifier = _ScriptedClassifier({3})

    outcome = _locator(session, classifier).locate(dune)

    assert outcome.success is True
    assert [s.image_bytes for s in outcome.screenshots] == [b"page-3"]


def test_fiction_page_offset_is_configurable(dune: BookIdentity) -> None:
    session = _FakeSession(8)

    outcome = _locator(session, _ScriptedClassifier({2}), fiction_page_offset=0).locate(dune)

    assert [s.image_bytes for s in outcome.screenshots] == [b"page-2"]
    assert session.next_calls == 1


def test_attempt_ceiling_bounds_classifier_calls(biography: BookIdentity) -> None:
    session = _FakeSession(40)
    classifier = _ScriptedClassifier(set())

    outcome = _locator(session, classifier, max_attempts=15).locate(biography)

    assert outcome.success is False
    assert outcome.state is LocatorState.EXHAUSTED
    assert outcome.screenshots == ()
    assert outcome.attempts == 15
    assert len(classifier.seen) == 15
    assert session.close_calls == 1


def test_missing_next_control_ends_as_exhausted_not_error(biography: BookIdentity) -> None:
    session = _FakeSession(4)
    classifier = _ScriptedClassifier(set())

    outcome = _locator(session, classifier).locate(biography)

    assert outcome.success is False
    assert outcome.state is LocatorState.EXHAUSTED
    assert len(classifier.seen) == 4
    assert session.next_calls == 4
    assert session.close_calls == 1


def test_open_failure_is_navigation_failed_and_session_closed(biography: BookIdentity) -> None:
    session = _FakeSession(4, open_error=True)
    classifier = _ScriptedClassifier({1})

    outcome = _locator(session, classifier).locate(biography)

    assert outcome.success is False
    assert outcome.state is LocatorState.NAVIGATION_FAILED
    assert "timed out" in outcome.message
    assert classifier.seen == []
    assert session.close_calls == 1


def test_screenshot_failure_mid_loop_is_navigation_failed(biography: BookIdentity) -> None:
    session = _FakeSession(6, screenshot_error_at=3)

    outcome = _locator(session, _ScriptedClassifier(set())).locate(biography)

    assert outcome.state is LocatorState.NAVIGATION_FAILED
    assert outcome.attempts == 3
    assert session.close_calls == 1


def test_session_acquire_failure_is_navigation_failed(biography: BookIdentity) -> None:
    factory = _FakeFactory(error=True)

    outcome = PageLocator(factory, _ScriptedClassifier({1})).locate(biography)

    assert outcome.state is LocatorState.NAVIGATION_FAILED
    assert factory.acquired == 1


def test_identity_without_provider_id_never_opens_viewer() -> None:
    factory = _FakeFactory(_FakeSession(3))

    outcome = PageLocator(factory, _ScriptedClassifier({1})).locate(
        BookIdentity(title="Dune", author="Frank Herbert")
    )

    assert outcome.success is False
    assert factory.acquired == 0


def test_cancel_event_stops_loop_and_closes_session(biography: BookIdentity) -> None:
    session = _FakeSession(5)
    classifier = _ScriptedClassifier({2})
    cancel = threading.Event()
    cancel.set()

    outcome = _locator(session, classifier).locate(biography, cancel)

    assert outcome.state is LocatorState.CANCELLED
    assert outcome.success is False
    assert classifier.seen == []
    assert session.close_calls == 1


def test_wall_clock_ceiling_ends_loop(biography: BookIdentity) -> None:
    ticks = itertools.count(0, 10)
    session = _FakeSession(10)
    classifier = _ScriptedClassifier(set())

    outcome = _locator(session, classifier, loop_timeout=25, clock=lambda: next(ticks)).locate(biography)

    assert outcome.state is LocatorState.EXHAUSTED
    assert outcome.attempts == 2
    assert session.close_calls == 1


def test_classifier_errors_count_as_not_yet(biography: BookIdentity) -> None:
    session = _FakeSession(5)
    classifier = _ScriptedClassifier({3}, failing_pages={1, 2})

    outcome = _locator(session, classifier).locate(biography)

    assert outcome.success is True
    assert [s.image_bytes for s in outcome.screenshots] == [b"page-3"]


def test_capture_sink_receives_only_target_page(dune: BookIdentity) -> None:
    sink = _RecordingSink()

    outcome = _locator(_FakeSession(6), _ScriptedClassifier({2}), capture_sink=sink).locate(dune)

    assert outcome.success is True
    assert [(key, shot.image_bytes) for key, shot in sink.saved] == [("B1XAAAAQBAJ", b"page-3")]


def test_capture_sink_errors_do_not_fail_the_run(dune: BookIdentity) -> None:
    sink = _RecordingSink(error=OSError("disk full"))

    outcome = _locator(_FakeSession(6), _ScriptedClassifier({2}), capture_sink=sink).locate(dune)

    assert outcome.success is True


def test_invalid_limits_are_rejected() -> None:
    with pytest.raises(ValueError):
        PageLocator(_FakeFactory(), _ScriptedClassifier(set()), max_attempts=0)
    with pytest.raises(ValueError):
        PageLocator(_FakeFactory(), _ScriptedClassifier(set()), fiction_page_offset=-1)


class _VisibleControl:
    first = property(lambda self: self)

    def count(self) -> int:
        return 1

    def is_visible(self) -> bool:
        return True

    def click(self, timeout=None) -> None:
        return None


class _ClosingPage:
    """Viewer page whose target dies while waiting for a page turn."""

    def locator(self, selector: str) -> _VisibleControl:
        return _VisibleControl()

    def goto(self, url, wait_until=None, timeout=None) -> None:
        return None

    def screenshot(self, **kwargs) -> bytes:
        return b"page-1"

    def evaluate(self, script: str):
        return None

    def is_closed(self) -> bool:
        return True

    def wait_for_timeout(self, ms) -> None:
        raise PlaywrightError("Target page, context or browser has been closed")


class _Stoppable:
    def __init__(self) -> None:
        self.calls = 0

    def close(self) -> None:
        self.calls += 1

    def stop(self) -> None:
        self.calls += 1


def test_browser_closing_mid_turn_is_navigation_failed(biography: BookIdentity) -> None:
    playwright, browser, context = _Stoppable(), _Stoppable(), _Stoppable()
    session = PlaywrightViewerSession(playwright, browser, context, _ClosingPage())

    outcome = _locator(session, _ScriptedClassifier(set())).locate(biography)

    assert outcome.success is False
    assert outcome.state is LocatorState.NAVIGATION_FAILED
    assert outcome.attempts == 1
    assert "has been closed" in outcome.message
    assert (playwright.calls, browser.calls, context.calls) == (1, 1, 1)


def test_rejected_credentials_escape_the_loop(biography: BookIdentity) -> None:
    class _RejectingClassifier:
        def is_first_content_page(self, screenshot: Screenshot) -> bool:
            raise ConfigurationError("OpenAI rejected the API key")

    session = _FakeSession(4)

    with pytest.raises(ConfigurationError):
        _locator(session, _RejectingClassifier()).locate(biography)
    assert session.close_calls == 1
    assert session.next_calls == 0
