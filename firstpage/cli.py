"""
Find and print the first page of real content for a book.

Usage:
    firstpage cover.jpg
    firstpage --title "Dune" --author "Frank Herbert" [--isbn 9780441013593]
    firstpage cover.jpg --text-only --json
    firstpage cover.jpg --show-browser --debug-dir ./screenshots --save-page page.jpg

Requires OPENAI_API_KEY (read from the environment or a .env file).
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from firstpage.config import Settings
from firstpage.errors import ConfigurationError
from firstpage.models import IdentityGuess
from firstpage.service import BookPageService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="firstpage",
        description="Locate a book's first content page in its online preview and extract the text",
    )
    parser.add_argument("cover", nargs="?", type=Path, help="Photo of the book cover")
    parser.add_argument("--title", help="Book title (skips cover recognition)")
    parser.add_argument("--author", help="Book author")
    parser.add_argument("--isbn", help="Book ISBN")
    parser.add_argument(
        "--text-only",
        action="store_true",
        help="Skip the browser and use only the fallback text sources",
    )
    parser.add_argument(
        "--show-browser", action="store_true", help="Run the preview browser with a visible window"
    )
    parser.add_argument("--debug-dir", type=Path, help="Directory for captured target screenshots")
    parser.add_argument(
        "--max-attempts", type=int, default=None, help="Page-turn attempt ceiling (default: 15)"
    )
    parser.add_argument("--save-page", type=Path, help="Write the captured page image here")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only warnings and errors")
    return parser


def settings_from_args(args: argparse.Namespace, environ=None) -> Settings:
    settings = Settings.from_env(environ)
    overrides = {}
    if args.show_browser:
        overrides["headless"] = False
    if args.debug_dir is not None:
        overrides["debug_dir"] = args.debug_dir
    if args.max_attempts is not None:
        overrides["max_attempts"] = args.max_attempts
    return replace(settings, **overrides) if overrides else settings


def main(argv=None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cover is None and not args.title and not args.isbn:
        parser.error("provide a cover image or --title/--isbn")
    if args.cover is not None and (args.title or args.isbn):
        parser.error("use either a cover image or --title/--isbn, not both")
    if args.max_attempts is not None and args.max_attempts < 1:
        parser.error("--max-attempts must be >= 1")
    if args.cover is not None and not args.cover.is_file():
        parser.error(f"cover image not found: {args.cover}")

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        settings = settings_from_args(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2

    service = BookPageService(settings, automation=not args.text_only)
    if args.cover is not None:
        source = args.cover.read_bytes()
    else:
        source = IdentityGuess(title=args.title, author=args.author, isbn=args.isbn)

    try:
        result = service.locate_and_extract(source)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2

    if args.save_page is not None and result.page_image is not None:
        args.save_page.write_bytes(result.page_image)
        print(f"Saved page image: {args.save_page}")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.text)
        print(f"\n[source: {result.source_label.value}]")

    return 1 if result.is_error else 0
