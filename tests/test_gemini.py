from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import aiohttp
import pytest

from seoul_bites.config import Settings
from seoul_bites.models import ChatMessage, LocationCoords, Role
from seoul_bites.services import gemini
from seoul_bites.services.gemini import (
    BackendError,
    GeminiBackend,
    build_chat_body,
    build_search_body,
    reply_text,
)

PAYLOAD = {
    "candidates": [
        {
            "content": {"role": "model", "parts": [{"text": "```json\n[]\n```\n"}, {"text": "Enjoy!"}]},
            "groundingMetadata": {"groundingChunks": [{"web": {"uri": "https://a", "title": "A"}}]},
        }
    ]
}


def _msg(i: int, role: Role, text: str) -> ChatMessage:
    return ChatMessage(id=str(i), role=role, text=text, timestamp=float(i))


class Recorder:
    def __init__(self, result=PAYLOAD, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def __call__(self, session, *, url, api_key, body, timeout):
        self.calls.append({"url": url, "api_key": api_key, "body": body, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.result


def test_search_body_with_location():
    body = build_search_body("ramen in Seoul, Korea", LocationCoords(latitude=37.5, longitude=127.0), "guide")

    assert body["contents"] == [{"role": "user", "parts": [{"text": "ramen in Seoul, Korea"}]}]
    assert body["systemInstruction"] == {"parts": [{"text": "guide"}]}
    assert body["tools"] == [{"googleSearch": {}}, {"googleMaps": {}}]
    assert body["toolConfig"]["retrievalConfig"]["latLng"] == {"latitude": 37.5, "longitude": 127.0}


def test_search_body_without_location_has_no_tool_config():
    assert "toolConfig" not in build_search_body("ramen", None, "guide")


def test_chat_body_sends_whole_transcript_after_greeting():
    transcript = [
        _msg(0, Role.ASSISTANT, "hello"),
        _msg(1, Role.USER, "Is tipping expected?"),
        _msg(2, Role.ASSISTANT, "No."),
    ]
    body = build_chat_body(transcript, "What about water?", "be nice")

    assert [(c["role"], c["parts"][0]["text"]) for c in body["contents"]] == [
        ("user", "Is tipping expected?"),
        ("model", "No."),
        ("user", "What about water?"),
    ]
    assert body["systemInstruction"]["parts"][0]["text"] == "be nice"


def test_reply_text_joins_parts():
    assert reply_text(PAYLOAD) == "```json\n[]\n```\nEnjoy!"


def test_reply_text_without_candidates_is_empty():
    assert reply_text({"promptFeedback": {"blockReason": "SAFETY"}}) == ""
    assert reply_text({"candidates": [{"finishReason": "SAFETY"}]}) == ""


@pytest.mark.parametrize(
    "payload",
    [None, [], {"candidates": "nope"}, {"candidates": ["nope"]}, {"candidates": [{"content": {"parts": 5}}]}],
)
def test_reply_text_rejects_malformed_payload(payload):
    with pytest.raises(BackendError):
        reply_text(payload)


@pytest.mark.asyncio
async def test_search_calls_generate_content(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(gemini, "generate_content", recorder)
    backend = GeminiBackend(Settings(gemini_api_key="k", search_cache_ttl_s=0, city="Seoul", country="Korea"))

    reply = await backend.search("ramen in Seoul, Korea", LocationCoords(latitude=37.5, longitude=127.0))

    assert reply.text.endswith("Enjoy!")
    assert reply.citations.entries[0].web.title == "A"
    call = recorder.calls[0]
    assert call["url"] == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
    assert call["api_key"] == "k"
    assert "local guide for Seoul, Korea" in call["body"]["systemInstruction"]["parts"][0]["text"]
    assert "toolConfig" in call["body"]


@pytest.mark.asyncio
async def test_search_replies_are_cached(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(gemini, "generate_content", recorder)
    backend = GeminiBackend(Settings(gemini_api_key="k", search_cache_ttl_s=60))

    first = await backend.search("bbq in Seoul, Korea")
    second = await backend.search("BBQ in Seoul, Korea")

    assert first is second
    assert len(recorder.calls) == 1


@pytest.mark.asyncio
async def test_chat_uses_chat_model(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(gemini, "generate_content", recorder)
    backend = GeminiBackend(Settings(gemini_api_key="k", chat_model="chat-model"))

    text = await backend.chat([_msg(1, Role.USER, "hi"), _msg(2, Role.ASSISTANT, "hey")], "more")

    assert text.endswith("Enjoy!")
    assert recorder.calls[0]["url"].endswith("/models/chat-model:generateContent")
    assert "tools" not in recorder.calls[0]["body"]


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_calling_out(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(gemini, "generate_content", recorder)
    backend = GeminiBackend(Settings(gemini_api_key=None))

    with pytest.raises(BackendError):
        await backend.chat([], "hi")
    assert recorder.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=429),
        aiohttp.ClientConnectionError("refused"),
        asyncio.TimeoutError(),
        json.JSONDecodeError("Expecting value", "<html>busy</html>", 0),
        aiohttp.ContentTypeError(request_info=MagicMock(), history=()),
    ],
)
async def test_transport_errors_become_backend_errors(monkeypatch, error):
    monkeypatch.setattr(gemini, "generate_content", Recorder(error=error))
    backend = GeminiBackend(Settings(gemini_api_key="k", search_cache_ttl_s=60))

    with pytest.raises(BackendError):
        await backend.search("ramen")
    # failures are not cached
    assert len(backend._cache) == 0


@pytest.mark.asyncio
async def test_chat_with_non_list_parts_raises_backend_error(monkeypatch):
    monkeypatch.setattr(gemini, "generate_content", Recorder(result={"candidates": [{"content": {"parts": 5}}]}))
    backend = GeminiBackend(Settings(gemini_api_key="k"))

    with pytest.raises(BackendError):
        await backend.chat([], "hi")


@pytest.mark.asyncio
async def test_search_tolerates_odd_grounding_shapes(monkeypatch):
    payload = {
        "candidates": [
            {
                "content": {"parts": [{"text": "hello"}]},
                "groundingMetadata": {"groundingChunks": 3},
            }
        ]
    }
    monkeypatch.setattr(gemini, "generate_content", Recorder(result=payload))
    backend = GeminiBackend(Settings(gemini_api_key="k", search_cache_ttl_s=0))

    reply = await backend.search("ramen")

    assert reply.text == "hello"
    assert reply.citations.entries == []
