"""Fiction/non-fiction classification from provider tags, description and title."""

from __future__ import annotations

import re
from typing import Protocol, Sequence

NON_FICTION_CATEGORY_KEYWORDS = (
    "biography",
    "history",
    "science",
    "technology",
    "business",
    "self-help",
    "cooking",
    "travel",
    "reference",
    "education",
    "philosophy",
    "religion",
    "politics",
    "economics",
    "medicine",
    "law",
    "mathematics",
    "computers",
    "nature",
    "art history",
    "non-fiction",
    "nonfiction",
)

FICTION_DESCRIPTION_WORDS = (
    "novel",
    "fiction",
    "story",
    "adventure",
    "fantasy",
    "protagonist",
    "character",
    "hero",
    "magical",
    "romance",
    "thriller",
    "mystery",
    "sci-fi",
    "science fiction",
    "dystopian",
    "journey",
    "tale",
    "legend",
    "epic",
    "saga",
)

NON_FICTION_DESCRIPTION_WORDS = (
    "history",
    "guide",
    "analysis",
    "research",
    "biography",
    "autobiography",
    "memoir",
    "reference",
    "textbook",
    "examination",
    "study",
    "report",
    "handbook",
    "manual",
    "investigation",
    "philosophy",
    "theory",
    "argument",
    "thesis",
    "exploration",
    "account",
    "chronicle",
    "journal",
    "essay",
    "documentary",
)

# Genre names that embed a non-fiction keyword ("science fiction" -> "science").
FICTION_GENRE_PHRASES = ("science fiction", "science-fiction")

INSTRUCTIONAL_TITLE_PATTERN = re.compile(
    r"^(how to|the art of|introduction to|guide to|principles of|history of|the science of)",
    re.IGNORECASE,
)


class FictionPolicy(Protocol):
    def is_fiction(
        self, categories: Sequence[str], description: str | None, title: str | None
    ) -> bool: ...


def categories_indicate_fiction(categories: Sequence[str]) -> bool:
    """Return False when any category contains a non-fiction keyword."""
    for category in categories:
        lowered = category.lower()
        for phrase in FICTION_GENRE_PHRASES:
            lowered = lowered.replace(phrase, " ")
        if any(keyword in lowered for keyword in NON_FICTION_CATEGORY_KEYWORDS):
            return False
    return True


class KeywordFictionPolicy:
    """Category keywords first; otherwise a weighted description/title vote."""

    def __init__(
        self,
        *,
        instructional_title_bonus: float = 2.0,
        short_title_bonus: float = 0.5,
        short_title_max_words: int = 3,
    ) -> None:
        self.instructional_title_bonus = instructional_title_bonus
        self.short_title_bonus = short_title_bonus
        self.short_title_max_words = short_title_max_words

    def is_fiction(
        self, categories: Sequence[str], description: str | None, title: str | None
    ) -> bool:
        tags = [c for c in categories or () if isinstance(c, str) and c.strip()]
        if tags:
            return categories_indicate_fiction(tags)

        fiction_score, non_fiction_score = self.score(description, title)
        # Ties default to fiction.
        return fiction_score >= non_fiction_score

    def score(self, description: str | None, title: str | None) -> tuple[float, float]:
        fiction_score = 0.0
        non_fiction_score = 0.0

        if description:
            desc = description.lower()
            fiction_score += sum(1 for word in FICTION_DESCRIPTION_WORDS if word in desc)
            non_fiction_score += sum(1 for word in NON_FICTION_DESCRIPTION_WORDS if word in desc)

        if title:
            if INSTRUCTIONAL_TITLE_PATTERN.match(title.strip()):
                non_fiction_score += self.instructional_title_bonus
            if len(title.split()) <= self.short_title_max_words:
                fiction_score += self.short_title_bonus

        return fiction_score, non_fiction_score
