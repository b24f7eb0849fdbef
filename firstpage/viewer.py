"""
Scripted browser session against the Google Books embedded preview viewer.

The locator only talks to ViewerSession/SessionFactory; everything that
knows about Playwright, selectors and browser executables lives here.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import time
from typing import Any, Callable, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from firstpage.errors import NavigationError

logger = logging.getLogger(__name__)

PREVIEW_URL_TEMPLATE = (
    "https://books.google.com/books?id={volume_id}&newbks=0&lpg=PP1&pg=PA{page}&output=embed"
)
VIEWPORT = {"width": 1280, "height": 900}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-web-security"]
NEXT_PAGE_SELECTORS = (
    "div[style*='right_btn.png']",
    "[aria-label='Next page']",
)
SCREENSHOT_QUALITY = 80

BROWSER_CANDIDATES = {
    "darwin": (
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
        "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        "/Applications/Brave Browser.app/Contents/MacOS/Brave Browser",
    ),
    "win32": (
        r"C:\Program Files\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
        r"C:\Program Files\Microsoft\Edge\Application\msedge.exe",
        r"C:\Program Files\BraveSoftware\Brave-Browser\Application\brave.exe",
    ),
    "linux": (
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/usr/bin/microsoft-edge",
        "/usr/bin/brave-browser",
    ),
}
BROWSER_COMMANDS = ("google-chrome", "chrome", "chromium", "chromium-browser", "microsoft-edge", "brave")


def preview_url(volume_id, page=1):
    """Return the embedded preview URL opened at a given page."""
    return PREVIEW_URL_TEMPLATE.format(volume_id=volume_id, page=page)


class ViewerSession(Protocol):
    def open(self, url: str) -> None: ...

    def screenshot(self) -> bytes: ...

    def next_page(self) -> bool: ...

    def close(self) -> None: ...


class SessionFactory(Protocol):
    def acquire(self) -> ViewerSession: ...


def find_browser_executable(
    platform: str | None = None,
    exists: Callable[[str], bool] = os.path.exists,
    which: Callable[[str], str | None] = shutil.which,
) -> str | None:
    """Probe common install locations, then PATH, for a Chromium-family browser."""
    platform = platform or sys.platform
    key = "linux" if platform.startswith("linux") else platform
    for candidate in BROWSER_CANDIDATES.get(key, ()):
        if exists(candidate):
            return candidate

    if key != "win32":
        for command in BROWSER_COMMANDS:
            found = which(command)
            if found:
                return found
    return None


def is_control_visible(page, selector):
    """Return True when a selector exists and is visible."""
    try:
        node = page.locator(selector).first
        return node.count() > 0 and node.is_visible()
    except PlaywrightError:
        return False


def wait_for_next_control(page, timeout_ms=60_000, poll_ms=100):
    """Wait until a known next-page control is visible."""
    deadline = time.time() + (timeout_ms / 1000)
    while time.time() < deadline:
        if any(is_control_visible(page, selector) for selector in NEXT_PAGE_SELECTORS):
            return True
        page.wait_for_timeout(poll_ms)
    return False


def click_next_control(page, timeout_ms=5_000):
    """Click the first visible next-page control; False when none can be activated."""
    for selector in NEXT_PAGE_SELECTORS:
        try:
            control = page.locator(selector).first
            if control.count() == 0 or not control.is_visible():
                continue
            control.click(timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            continue
        except PlaywrightError as exc:
            if page.is_closed():
                raise NavigationError(f"Viewer page closed while turning page: {exc}") from exc
            continue
    return False


def get_content_signature(page):
    """Return a best-effort signature of the page images currently displayed."""
    try:
        return page.evaluate("""
            () => Array.from(document.querySelectorAll("img"))
                .map((img) => img.getAttribute("src") || "")
                .filter((src) => src.includes("pg=") || src.includes("books/content"))
                .join("|") || null
        """)
    except PlaywrightError:
        return None


def wait_for_turn_content_change(
    page,
    previous_signature,
    timeout_seconds=8,
    poll_interval_ms=100,
    max_retries=2,
    retry_interval_ms=1000,
):
    """Wait for content identity change and retry clicking next if needed."""
    deadline = time.time() + timeout_seconds
    retries_used = 0
    next_retry_at = time.time() + (retry_interval_ms / 1000)
    while time.time() < deadline:
        current_signature = get_content_signature(page)
        if previous_signature and current_signature and current_signature != previous_signature:
            return True, retries_used

        now = time.time()
        if retries_used < max_retries and now >= next_retry_at:
            if click_next_control(page):
                retries_used += 1
                logger.info("Retrying next click (%d/%d)...", retries_used, max_retries)
            next_retry_at = now + (retry_interval_ms / 1000)
        page.wait_for_timeout(poll_interval_ms)
    return False, retries_used


class PlaywrightViewerSession:
    """One live browser context showing the preview viewer."""

    def __init__(
        self,
        playwright: Any,
        browser: Any,
        context: Any,
        page: Any,
        *,
        navigation_timeout: float = 30.0,
        control_timeout: float = 60.0,
        turn_timeout: float = 8.0,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.page = page
        self.navigation_timeout = navigation_timeout
        self.control_timeout = control_timeout
        self.turn_timeout = turn_timeout
        self._closed = False

    def open(self, url: str) -> None:
        logger.info("Navigating to URL: %s", url)
        try:
            self.page.goto(url, wait_until="load", timeout=self.navigation_timeout * 1000)
        except PlaywrightError as exc:
            raise NavigationError(f"Could not load preview viewer: {exc}") from exc

        try:
            control_ready = wait_for_next_control(self.page, timeout_ms=self.control_timeout * 1000)
        except PlaywrightError as exc:
            raise NavigationError(f"Preview viewer failed while loading: {exc}") from exc
        if not control_ready:
            raise NavigationError("Next-page control did not appear in the preview viewer")
        logger.info("Page loaded")

    def screenshot(self) -> bytes:
        try:
            return self.page.screenshot(type="jpeg", quality=SCREENSHOT_QUALITY, full_page=False)
        except PlaywrightError as exc:
            raise NavigationError(f"Viewport screenshot failed: {exc}") from exc

    def next_page(self) -> bool:
        try:
            previous_signature = get_content_signature(self.page)
            if not click_next_control(self.page):
                logger.info("Could not click next page button, possibly end of preview")
                return False

            changed, _retries_used = wait_for_turn_content_change(
                self.page, previous_signature, timeout_seconds=self.turn_timeout
            )
        except PlaywrightError as exc:
            raise NavigationError(f"Page turn failed: {exc}") from exc
        if not changed:
            logger.warning("Page content did not confirm change within %ss; continuing.", self.turn_timeout)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for label, closer in (
            ("context", self._context.close),
            ("browser", self._browser.close),
            ("playwright", self._playwright.stop),
        ):
            try:
                closer()
            except Exception as exc:
                logger.warning("Failed to close %s: %s", label, exc)
        logger.info("Browser closed")


class PlaywrightSessionFactory:
    """Launch Chromium (system install or Playwright's bundled build) per session."""

    def __init__(
        self,
        *,
        headless: bool = True,
        browser_path: str | None = None,
        navigation_timeout: float = 30.0,
        control_timeout: float = 60.0,
    ) -> None:
        self.headless = headless
        self.browser_path = browser_path
        self.navigation_timeout = navigation_timeout
        self.control_timeout = control_timeout

    def resolve_executable(self) -> str | None:
        if self.browser_path and self.browser_path.lower() != "auto":
            return self.browser_path
        if self.browser_path:
            found = find_browser_executable()
            if found:
                logger.info("Using browser at: %s", found)
                return found
            logger.warning("No system browser found; falling back to bundled Chromium")
        return None

    def acquire(self) -> PlaywrightViewerSession:
        try:
            playwright = sync_playwright().start()
        except PlaywrightError as exc:
            raise NavigationError(f"Could not start Playwright: {exc}") from exc

        try:
            browser = playwright.chromium.launch(
                headless=self.headless,
                executable_path=self.resolve_executable(),
                args=BROWSER_ARGS,
            )
        except PlaywrightError as exc:
            playwright.stop()
            raise NavigationError(f"Could not launch browser: {exc}") from exc

        try:
            context = browser.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
            page = context.new_page()
        except PlaywrightError as exc:
            browser.close()
            playwright.stop()
            raise NavigationError(f"Could not open browser page: {exc}") from exc

        return PlaywrightViewerSession(
            playwright,
            browser,
            context,
            page,
            navigation_timeout=self.navigation_timeout,
            control_timeout=self.control_timeout,
        )
