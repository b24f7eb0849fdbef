from __future__ import annotations

import pytest

from firstpage.genre import KeywordFictionPolicy, categories_indicate_fiction


@pytest.fixture
def policy() -> KeywordFictionPolicy:
    return KeywordFictionPolicy()


def test_fiction_categories_are_fiction(policy: KeywordFictionPolicy) -> None:
    assert policy.is_fiction(["Fiction", "Science Fiction"], None, "Dune") is True


def test_any_non_fiction_keyword_forces_non_fiction(policy: KeywordFictionPolicy) -> None:
    assert policy.is_fiction(["Biography & Autobiography"], "a thrilling novel", "Short") is False
    assert policy.is_fiction(["Fiction", "History"], None, None) is False
    assert categories_indicate_fiction(["Juvenile Nonfiction"]) is False


def test_tags_take_precedence_over_description(policy: KeywordFictionPolicy) -> None:
    description = "A research handbook and study guide with analysis"
    assert policy.is_fiction(["Fiction"], description, "How to Do It All") is True


def test_description_votes_when_no_tags(policy: KeywordFictionPolicy) -> None:
    description = "An exhaustive history and analysis based on decades of research."
    assert policy.is_fiction([], description, "The Long Twentieth Century in Europe") is False

    description = "A fantasy adventure: the hero begins a magical journey."
    assert policy.is_fiction([], description, "The Wheel of Time Returns Again") is True


def test_instructional_title_adds_non_fiction_bonus(policy: KeywordFictionPolicy) -> None:
    fiction_score, non_fiction_score = policy.score(None, "How to Win Friends and Influence People")

    assert fiction_score == 0
    assert non_fiction_score == 2
    assert policy.is_fiction([], None, "How to Win Friends and Influence People") is False


def test_short_title_adds_small_fiction_bonus(policy: KeywordFictionPolicy) -> None:
    assert policy.score(None, "Dune") == (0.5, 0)
    # One non-fiction word outweighs the short-title bonus.
    assert policy.is_fiction([], "a memoir", "Educated") is False


def test_ties_default_to_fiction(policy: KeywordFictionPolicy) -> None:
    assert policy.is_fiction([], None, None) is True
    assert policy.is_fiction([], "a story with a guide", "A Very Long Untagged Title Here") is True


def test_science_fiction_tag_is_not_read_as_science(policy: KeywordFictionPolicy) -> None:
    assert policy.is_fiction(["Fiction / Science Fiction / General"], None, None) is True
    assert policy.is_fiction(["Science"], None, None) is False
