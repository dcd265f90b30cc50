from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import aiohttp

from seoul_bites.config import Settings
from seoul_bites.models import ChatMessage, CitationMetadata, LocationCoords, Role
from seoul_bites.services.cache import ReplyCache, search_cache_key
from seoul_bites.services.citations import parse_grounding_metadata

logger = logging.getLogger(__name__)

SEARCH_INSTRUCTION = """\
You are a helpful local guide for {city}, {country}.
When users ask for places to eat (best, cheapest, nearest, etc.), use the Google Maps \
and Search tools to find accurate, real-time information.

CRITICAL OUTPUT FORMAT:
You must start your response with a JSON code block containing the details of the \
places found, including coordinates.
The format must be:
```json
[
  {{
    "name": "Place Name",
    "latitude": 37.123,
    "longitude": 127.123,
    "description": "Brief description of why it fits",
    "price": "$$"
  }}
]
```

After the JSON block, provide a helpful summary in clean Markdown, describing the \
options and why they were chosen.
"""

CHAT_INSTRUCTION = (
    "You are a knowledgeable and friendly AI assistant specializing in {city}, {country} "
    "tourism and dining. Be helpful, polite, and enthusiastic."
)

_ROLE_NAMES = {Role.USER: "user", Role.ASSISTANT: "model"}


class BackendError(RuntimeError):
    """Any failure talking to the language backend."""


@dataclass
class SearchReply:
    text: str
    citations: Optional[CitationMetadata] = None


class LanguageBackend(Protocol):
    async def search(self, prompt: str, location: Optional[LocationCoords] = None) -> SearchReply:
        ...

    async def chat(self, transcript: Sequence[ChatMessage], message: str) -> str:
        ...


async def generate_content(
    session: aiohttp.ClientSession,
    *,
    url: str,
    api_key: str,
    body: Dict[str, Any],
    timeout: aiohttp.ClientTimeout,
) -> Dict[str, Any]:
    """POST one generateContent request and return the decoded JSON body."""
    headers = {"x-goog-api-key": api_key}
    async with session.post(url, json=body, headers=headers, timeout=timeout) as resp:
        resp.raise_for_status()
        return await resp.json()


def _text_part(text: str) -> Dict[str, Any]:
    return {"parts": [{"text": text}]}


def build_search_body(prompt: str, location: Optional[LocationCoords], instruction: str) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "contents": [{"role": "user", **_text_part(prompt)}],
        "systemInstruction": _text_part(instruction),
        "tools": [{"googleSearch": {}}, {"googleMaps": {}}],
    }
    if location is not None:
        body["toolConfig"] = {
            "retrievalConfig": {
                "latLng": {"latitude": location.latitude, "longitude": location.longitude},
            }
        }
    return body


def build_chat_body(transcript: Sequence[ChatMessage], message: str, instruction: str) -> Dict[str, Any]:
    """The whole transcript goes out on every turn; no server-side session is held.

    Assistant messages that precede the first user turn (the greeting) are
    not sent, since the conversation has to open with a user turn.
    """
    contents: List[Dict[str, Any]] = []
    for msg in transcript:
        if not contents and msg.role != Role.USER:
            continue
        contents.append({"role": _ROLE_NAMES[msg.role], **_text_part(msg.text)})
    contents.append({"role": "user", **_text_part(message)})
    return {"contents": contents, "systemInstruction": _text_part(instruction)}


def _first_candidate(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise BackendError("Unexpected response payload from Gemini")
    candidates = payload.get("candidates") or []
    if not isinstance(candidates, list):
        raise BackendError("Unexpected 'candidates' in Gemini response")
    if not candidates:
        return {}
    first = candidates[0]
    if not isinstance(first, dict):
        raise BackendError("Unexpected candidate in Gemini response")
    return first


def reply_text(payload: Any) -> str:
    content = _first_candidate(payload).get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise BackendError("Unexpected 'parts' in Gemini response")
    return "".join(str(p["text"]) for p in parts if isinstance(p, dict) and p.get("text"))


def reply_grounding(payload: Any) -> Optional[Dict[str, Any]]:
    grounding = _first_candidate(payload).get("groundingMetadata")
    return grounding if isinstance(grounding, dict) else None


class GeminiBackend:
    """LanguageBackend over the Gemini REST API."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._cache: ReplyCache[SearchReply] = ReplyCache(
            ttl_s=settings.search_cache_ttl_s, max_size=settings.search_cache_max_size
        )
        if not settings.gemini_api_key:
            logger.warning("No Gemini API key found. Set GEMINI_API_KEY in a local .env file or the environment.")

    def _url(self, model: str) -> str:
        return f"{str(self.settings.gemini_base_url).rstrip('/')}/models/{model}:generateContent"

    def _instruction(self, template: str) -> str:
        return template.format(city=self.settings.city, country=self.settings.country)

    async def _generate(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.settings.gemini_api_key:
            raise BackendError("Gemini API key is not configured")

        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_s)
        try:
            async with aiohttp.ClientSession() as session:
                return await generate_content(
                    session,
                    url=self._url(model),
                    api_key=self.settings.gemini_api_key,
                    body=body,
                    timeout=timeout,
                )
        except aiohttp.ClientResponseError as e:
            raise BackendError(f"Gemini error: {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BackendError(f"Gemini request failed: {e!r}") from e
        except ValueError as e:
            # non-JSON body on a 2xx status
            raise BackendError(f"Unparseable Gemini response: {e}") from e

    async def search(self, prompt: str, location: Optional[LocationCoords] = None) -> SearchReply:
        cache_key = search_cache_key(prompt, location)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Search cache hit for %r", prompt)
            return cached

        body = build_search_body(prompt, location, self._instruction(SEARCH_INSTRUCTION))
        payload = await self._generate(self.settings.search_model, body)
        reply = SearchReply(text=reply_text(payload), citations=parse_grounding_metadata(reply_grounding(payload)))
        self._cache.put(cache_key, reply)
        return reply

    async def chat(self, transcript: Sequence[ChatMessage], message: str) -> str:
        body = build_chat_body(transcript, message, self._instruction(CHAT_INSTRUCTION))
        payload = await self._generate(self.settings.chat_model, body)
        return reply_text(payload)
