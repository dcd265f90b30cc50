"""Search orchestration: query -> backend -> decoded places and narrative.

Phases per request: idle -> searching -> succeeded|failed -> idle. Starting a
search clears the displayed results right away. Every search is tagged with a
request id; when a reply arrives for a request that is no longer the latest
one issued, it is handed back to its caller but never published.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from seoul_bites.config import Settings
from seoul_bites.models import LocationCoords, QuickFilter, SearchPhase, SearchView
from seoul_bites.services.decoder import decode
from seoul_bites.services.gemini import BackendError, LanguageBackend

logger = logging.getLogger(__name__)

SEARCH_FAILED_TEXT = "Sorry, I encountered an error while searching for places. Please try again."
NO_RESULTS_TEXT = "I couldn't find any specific places matching that request."

QUICK_FILTERS: List[QuickFilter] = [
    QuickFilter(key="ramen", label="🍜 Best Rated Ramen", term="Best rated Ramen places"),
    QuickFilter(key="kbbq", label="🍖 K-BBQ", term="Top Korean BBQ restaurants"),
    QuickFilter(key="cheap-eats", label="💸 Cheap Eats", term="Cheapest good food"),
    QuickFilter(key="nearest-lunch", label="📍 Nearest Lunch", term="Best lunch spots near me"),
    QuickFilter(key="cafes", label="☕ Trendy Cafes", term="Most trendy cafes"),
]

ViewListener = Callable[[SearchView], None]


def quick_filter(key: str) -> QuickFilter:
    for item in QUICK_FILTERS:
        if item.key == key:
            return item
    raise ValueError(
        f"Unknown quick filter '{key}'. Supported: {', '.join(item.key for item in QUICK_FILTERS)}"
    )


def augment_query(query: str, city: str, country: str) -> str:
    """Append the locale qualifier unless the query already names the city."""
    if city.lower() in query.lower():
        return query
    return f"{query} in {city}, {country}"


class SearchOrchestrator:
    def __init__(self, backend: LanguageBackend, settings: Settings) -> None:
        self.backend = backend
        self.settings = settings
        self._view = SearchView()
        self._latest_request_id = 0
        self._listeners: List[ViewListener] = []

    @property
    def view(self) -> SearchView:
        return self._view

    def subscribe(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    def _publish(self, view: SearchView) -> None:
        self._view = view
        for listener in self._listeners:
            listener(view)

    async def search(
        self,
        query: str,
        location: Optional[LocationCoords] = None,
        location_warning: Optional[str] = None,
    ) -> SearchView:
        """Run one search and return the view it produced.

        Blank queries are ignored and leave the current view as is.
        """
        if not query.strip():
            return self._view

        self._latest_request_id += 1
        request_id = self._latest_request_id
        prompt = augment_query(query, self.settings.city, self.settings.country)

        base = dict(
            request_id=request_id,
            query=query,
            user_location=location,
            location_warning=location_warning,
        )
        self._publish(SearchView(phase=SearchPhase.SEARCHING, **base))

        try:
            reply = await self.backend.search(prompt, location)
        except BackendError as e:
            logger.error("Error searching places for %r: %s", prompt, e)
            result = SearchView(phase=SearchPhase.FAILED, narrative=SEARCH_FAILED_TEXT, **base)
        except Exception:
            logger.exception("Unexpected backend failure searching places for %r", prompt)
            result = SearchView(phase=SearchPhase.FAILED, narrative=SEARCH_FAILED_TEXT, **base)
        else:
            decoded = decode(reply.text or NO_RESULTS_TEXT, reply.citations)
            result = SearchView(
                phase=SearchPhase.SUCCEEDED,
                places=decoded.place_records,
                narrative=decoded.narrative_text,
                citations=decoded.citations,
                **base,
            )

        if request_id != self._latest_request_id:
            logger.info(
                "Discarding reply for superseded search #%d (latest is #%d)", request_id, self._latest_request_id
            )
            return result.model_copy(update={"superseded": True, "outcome": result.phase, "phase": SearchPhase.IDLE})

        self._publish(result)
        idle = result.model_copy(update={"outcome": result.phase, "phase": SearchPhase.IDLE})
        self._publish(idle)
        return idle

    async def quick_search(
        self,
        key: str,
        location: Optional[LocationCoords] = None,
        location_warning: Optional[str] = None,
    ) -> SearchView:
        item = quick_filter(key)
        return await self.search(item.term, location, location_warning)
