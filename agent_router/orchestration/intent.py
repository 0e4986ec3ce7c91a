"""Pluggable intent classification for routing user messages."""
from __future__ import annotations

import logging
import re
from typing import Optional, Protocol, Sequence, Tuple

from agent_router.core.models import ConversationContext

logger = logging.getLogger(__name__)

GENERAL_INTENT = "general"

# Checked in this order; the first category with a matching token wins.
DEFAULT_TAXONOMY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("product_management", ("product", "products", "listing", "listings", "create", "publish", "marketplace")),
    ("analytics", ("analytics", "report", "reports", "statistics", "data", "performance")),
    ("pricing", ("price", "prices", "cost", "costs", "pricing", "competitor", "competitors")),
)

_TOKEN = re.compile(r"[^\W_]+")


class IntentClassifier(Protocol):
    async def classify(self, message: str, context: Optional[ConversationContext] = None) -> str:
        """Return a short intent label for ``message``."""


class KeywordIntentClassifier:
    """Closed keyword taxonomy with a fixed category priority and a general fallback."""

    def __init__(
        self,
        taxonomy: Sequence[Tuple[str, Sequence[str]]] = DEFAULT_TAXONOMY,
        fallback: str = GENERAL_INTENT,
    ) -> None:
        self._taxonomy = [(label, frozenset(word.lower() for word in words)) for label, words in taxonomy]
        self.fallback = fallback

    async def classify(self, message: str, context: Optional[ConversationContext] = None) -> str:
        tokens = set(_TOKEN.findall(message.lower()))
        for label, keywords in self._taxonomy:
            if tokens & keywords:
                return label
        logger.debug("No specific intent for message %.100r, using %s", message, self.fallback)
        return self.fallback
