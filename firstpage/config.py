"""Runtime configuration for the page locator and its external clients."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping

from firstpage.errors import ConfigurationError

DEFAULT_VISION_MODEL = "gpt-4o-mini"
DEFAULT_TEXT_MODEL = "gpt-4o"
DEFAULT_MAX_ATTEMPTS = 15
DEFAULT_NAVIGATION_TIMEOUT = 30.0
DEFAULT_CONTROL_TIMEOUT = 60.0
DEFAULT_LOOP_TIMEOUT = 180.0
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_FICTION_PAGE_OFFSET = 1

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_int(source: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = source.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}")
    return value


def _parse_seconds(source: Mapping[str, str], name: str, default: float) -> float:
    raw = source.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0")
    return value


def _parse_bool(source: Mapping[str, str], name: str, default: bool) -> bool:
    raw = source.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class Settings:
    """Validated settings; OPENAI_API_KEY is the only required value."""

    openai_api_key: str
    vision_model: str = DEFAULT_VISION_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    google_books_api_key: str | None = None
    google_books_api_token: str | None = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT
    control_timeout: float = DEFAULT_CONTROL_TIMEOUT
    loop_timeout: float = DEFAULT_LOOP_TIMEOUT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    fiction_page_offset: int = DEFAULT_FICTION_PAGE_OFFSET
    headless: bool = True
    browser_path: str | None = None
    debug_dir: Path | None = None

    def __post_init__(self) -> None:
        if not self.openai_api_key or not self.openai_api_key.strip():
            raise ConfigurationError("OPENAI_API_KEY is not set")
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.fiction_page_offset < 0:
            raise ConfigurationError("fiction_page_offset cannot be negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        api_key = source.get("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key is missing. Set the OPENAI_API_KEY environment variable."
            )

        debug_dir = source.get("FIRSTPAGE_DEBUG_DIR", "").strip()
        return cls(
            openai_api_key=api_key,
            vision_model=source.get("FIRSTPAGE_VISION_MODEL", "").strip() or DEFAULT_VISION_MODEL,
            text_model=source.get("FIRSTPAGE_TEXT_MODEL", "").strip() or DEFAULT_TEXT_MODEL,
            google_books_api_key=source.get("GOOGLE_BOOKS_API_KEY", "").strip() or None,
            google_books_api_token=source.get("GOOGLE_BOOKS_API_TOKEN", "").strip() or None,
            max_attempts=_parse_int(source, "FIRSTPAGE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, 1),
            navigation_timeout=_parse_seconds(
                source, "FIRSTPAGE_NAVIGATION_TIMEOUT", DEFAULT_NAVIGATION_TIMEOUT
            ),
            control_timeout=_parse_seconds(source, "FIRSTPAGE_CONTROL_TIMEOUT", DEFAULT_CONTROL_TIMEOUT),
            loop_timeout=_parse_seconds(source, "FIRSTPAGE_LOOP_TIMEOUT", DEFAULT_LOOP_TIMEOUT),
            http_timeout=_parse_seconds(source, "FIRSTPAGE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            fiction_page_offset=_parse_int(
                source, "FIRSTPAGE_FICTION_PAGE_OFFSET", DEFAULT_FICTION_PAGE_OFFSET, 0
            ),
            headless=_parse_bool(source, "FIRSTPAGE_HEADLESS", True),
            browser_path=source.get("FIRSTPAGE_BROWSER_PATH", "").strip() or None,
            debug_dir=Path(debug_dir) if debug_dir else None,
        )
