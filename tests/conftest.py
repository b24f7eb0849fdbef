from __future__ import annotations

import pytest

from firstpage.config import Settings
from firstpage.models import BookIdentity


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="sk-test")


@pytest.fixture
def dune() -> BookIdentity:
    return BookIdentity(
        title="Dune",
        author="Frank Herbert",
        isbn="9780441013593",
        provider_id="B1XAAAAQBAJ",
        is_fiction=True,
        description="A stunning blend of adventure and mysticism on the desert planet Arrakis.",
        preview_link="http://books.google.com/books?id=B1XAAAAQBAJ",
        viewability="PARTIAL",
        categories=("Fiction",),
    )


@pytest.fixture
def biography() -> BookIdentity:
    return BookIdentity(
        title="Steve Jobs",
        author="Walter Isaacson",
        isbn="9781451648539",
        provider_id="8U2oAAAAQBAJ",
        is_fiction=False,
        categories=("Biography & Autobiography",),
    )
