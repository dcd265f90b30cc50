from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException

from seoul_bites.config import get_settings
from seoul_bites.models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    LocationCoords,
    MapView,
    QuickFilter,
    QuickSearchRequest,
    RenderRequest,
    RenderResponse,
    SearchRequest,
    SearchResponse,
    SearchView,
)
from seoul_bites.services.chat import ChatOrchestrator
from seoul_bites.services.citations import source_links
from seoul_bites.services.gemini import GeminiBackend
from seoul_bites.services.mapping import LeafletMapView, draw_map, listings, resolve_location
from seoul_bites.services.markup import render, to_html
from seoul_bites.services.search import QUICK_FILTERS, SearchOrchestrator

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("aiohttp").setLevel(logging.WARNING)

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Seoul dining finder and chat assistant backed by Gemini with Maps & Search grounding.",
)

# One user, one process: the orchestrators live as long as the app does.
_backend = GeminiBackend(settings)
_search = SearchOrchestrator(_backend, settings)
_chat = ChatOrchestrator(_backend)


def get_search_orchestrator() -> SearchOrchestrator:
    return _search


def get_chat_orchestrator() -> ChatOrchestrator:
    return _chat


def _search_response(view: SearchView) -> SearchResponse:
    return SearchResponse(
        view=view,
        blocks=render(view.narrative),
        sources=source_links(view.citations),
        listings=listings(settings, view.places),
    )


@app.get("/", tags=["Root"])
async def root():
    return {"ok": True, "service": settings.app_name, "version": settings.version}


@app.get("/health", tags=["Healthcheck"])
async def health():
    return {"ok": True}


@app.get("/api/quick-filters", response_model=List[QuickFilter], tags=["Api Search"])
async def api_quick_filters():
    return QUICK_FILTERS


@app.get("/api/search", response_model=SearchResponse, tags=["Api Search"])
async def api_search_view(search: SearchOrchestrator = Depends(get_search_orchestrator)):
    return _search_response(search.view)


@app.post("/api/search", response_model=SearchResponse, tags=["Api Search"])
async def api_search(req: SearchRequest, search: SearchOrchestrator = Depends(get_search_orchestrator)):
    location, warning = resolve_location(req.latitude, req.longitude)
    view = await search.search(req.query, location, warning)
    return _search_response(view)


@app.post("/api/quick-search/{key}", response_model=SearchResponse, tags=["Api Search"])
async def api_quick_search(
    key: str,
    req: Optional[QuickSearchRequest] = None,
    search: SearchOrchestrator = Depends(get_search_orchestrator),
):
    req = req or QuickSearchRequest()
    location, warning = resolve_location(req.latitude, req.longitude)
    try:
        view = await search.quick_search(key, location, warning)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _search_response(view)


@app.get("/api/map", response_model=MapView, tags=["Api Map"])
async def api_map(search: SearchOrchestrator = Depends(get_search_orchestrator)):
    view = search.view
    canvas = LeafletMapView(settings)
    default_center = LocationCoords(latitude=settings.default_center_lat, longitude=settings.default_center_lon)
    draw_map(canvas, view.places, view.user_location, default_center)
    return canvas.view()


@app.get("/api/chat", response_model=ChatResponse, tags=["Api Chat"])
async def api_chat_transcript(chat: ChatOrchestrator = Depends(get_chat_orchestrator)):
    return ChatResponse(messages=chat.messages, pending=chat.pending)


@app.post("/api/chat", response_model=ChatResponse, tags=["Api Chat"])
async def api_chat(req: ChatRequest, chat: ChatOrchestrator = Depends(get_chat_orchestrator)):
    added: List[ChatMessage] = await chat.send(req.message)
    return ChatResponse(messages=added, pending=chat.pending)


@app.delete("/api/chat", response_model=ChatResponse, tags=["Api Chat"])
async def api_chat_reset(chat: ChatOrchestrator = Depends(get_chat_orchestrator)):
    chat.reset()
    return ChatResponse(messages=chat.messages, pending=chat.pending)


@app.post("/api/render", response_model=RenderResponse, tags=["Api Render"])
async def api_render(req: RenderRequest):
    blocks = render(req.text)
    return RenderResponse(blocks=blocks, html=to_html(blocks))
