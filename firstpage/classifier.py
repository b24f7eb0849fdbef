"""Predicates deciding whether a captured page is the first page of real content."""

from __future__ import annotations

import logging
from typing import Protocol

from firstpage.models import Screenshot
from firstpage.vision import AFFIRMATIVE_TOKEN, VisionModel

logger = logging.getLogger(__name__)

FIRST_CONTENT_PAGE_PROMPT = (
    "Check if this is the first page of actual reading content in the book "
    "(excluding title, table of contents, etc.). "
    "Only return 'yes' or 'no' with no additional commentary."
)


class PageClassifier(Protocol):
    def is_first_content_page(self, screenshot: Screenshot) -> bool: ...


class VisionPageClassifier:
    def __init__(
        self,
        model: VisionModel,
        *,
        instruction: str = FIRST_CONTENT_PAGE_PROMPT,
        affirmative_token: str = AFFIRMATIVE_TOKEN,
    ) -> None:
        self.model = model
        self.instruction = instruction
        self.affirmative_token = affirmative_token.lower()

    def is_first_content_page(self, screenshot: Screenshot) -> bool:
        answer = self.model.ask_image(
            self.instruction,
            screenshot.data_url(),
            label=f"classify page {screenshot.ordinal}",
        )
        logger.info("First page detection result for capture %d: %s", screenshot.ordinal, answer.strip())
        return self.affirmative_token in answer.strip().lower()
