from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import pytest

from seoul_bites.config import Settings
from seoul_bites.models import ChatMessage, LocationCoords
from seoul_bites.services.gemini import SearchReply

PLACES_REPLY = (
    "```json\n"
    '[{"name": "Myeongdong Kyoja", "latitude": 37.5625, "longitude": 126.9856,'
    ' "description": "Famous kalguksu", "price": "$"},'
    ' {"name": "Secret Stall", "description": "No coordinates given"}]\n'
    "```\n"
    "## Top picks\n"
    "**Myeongdong Kyoja** is a classic."
)


class FakeBackend:
    """In-memory LanguageBackend; records every call."""

    def __init__(self) -> None:
        self.search_reply = SearchReply(text=PLACES_REPLY)
        self.chat_reply = "Try the tteokbokki."
        self.error: Optional[Exception] = None
        self.search_calls: List[Tuple[str, Optional[LocationCoords]]] = []
        self.chat_calls: List[Tuple[List[ChatMessage], str]] = []

    async def search(self, prompt: str, location: Optional[LocationCoords] = None) -> SearchReply:
        self.search_calls.append((prompt, location))
        if self.error is not None:
            raise self.error
        return self.search_reply

    async def chat(self, transcript: Sequence[ChatMessage], message: str) -> str:
        self.chat_calls.append((list(transcript), message))
        if self.error is not None:
            raise self.error
        return self.chat_reply


@pytest.fixture
def settings() -> Settings:
    return Settings(gemini_api_key="test-key", search_cache_ttl_s=0, city="Seoul", country="Korea")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
