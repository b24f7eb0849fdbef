"""Transcription of captured page images into text."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Sequence

from firstpage.errors import ModelRequestError
from firstpage.models import BookIdentity, Screenshot
from firstpage.vision import VisionModel

logger = logging.getLogger(__name__)

TRANSCRIBE_PROMPT = (
    "Extract all the text from this book page image, maintaining paragraph structure. "
    "Only return the text content exactly as it appears, with no additional commentary."
)


@dataclass(frozen=True, slots=True)
class ExtractedText:
    text: str
    pages_extracted: int
    pages_failed: int

    @property
    def partial(self) -> bool:
        return self.pages_extracted > 0 and self.pages_failed > 0


class TextExtractor:
    def __init__(self, model: VisionModel, *, instruction: str = TRANSCRIBE_PROMPT) -> None:
        self.model = model
        self.instruction = instruction

    def transcribe(self, screenshot: Screenshot) -> str:
        return self.model.ask_image(
            self.instruction, screenshot.data_url(), label=f"transcribe page {screenshot.ordinal}"
        )

    def extract(self, screenshots: Sequence[Screenshot], identity: BookIdentity) -> ExtractedText:
        logger.info("Analyzing %d screenshots to extract text...", len(screenshots))
        sections: list[str] = []
        failed = 0
        for screenshot in screenshots:
            try:
                text = self.transcribe(screenshot).strip()
            except ModelRequestError as exc:
                logger.warning("Error analyzing screenshot %d: %s", screenshot.ordinal, exc)
                failed += 1
                continue
            if not text:
                failed += 1
                continue
            sections.append(f"--- Page {screenshot.ordinal} ---\n\n{text}")

        if not sections:
            return ExtractedText(text="", pages_extracted=0, pages_failed=failed)

        body = "\n\n".join(sections)
        return ExtractedText(
            text=f"# {identity.title} by {identity.author}\n\n{body}\n",
            pages_extracted=len(sections),
            pages_failed=failed,
        )
