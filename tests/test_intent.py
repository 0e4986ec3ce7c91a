"""Tests for the default keyword intent classifier."""
from __future__ import annotations

import pytest

from agent_router.orchestration.intent import GENERAL_INTENT, KeywordIntentClassifier


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Create a new product listing", "product_management"),
        ("Show me the sales report for last week", "analytics"),
        ("What should my price be?", "pricing"),
        ("Hello there", GENERAL_INTENT),
        # product is checked before pricing
        ("Price check for my product", "product_management"),
        ("competitor-pricing summary", "pricing"),
    ],
)
async def test_classify(message: str, expected: str) -> None:
    assert await KeywordIntentClassifier().classify(message) == expected


@pytest.mark.anyio
async def test_keywords_match_whole_tokens_only() -> None:
    classifier = KeywordIntentClassifier()

    assert await classifier.classify("reproduction notes") == GENERAL_INTENT


@pytest.mark.anyio
async def test_custom_taxonomy_and_fallback() -> None:
    classifier = KeywordIntentClassifier(taxonomy=[("shipping", ["ship", "delivery"])], fallback="other")

    assert await classifier.classify("When will delivery happen?") == "shipping"
    assert await classifier.classify("Create a product") == "other"
