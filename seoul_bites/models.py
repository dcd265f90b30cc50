from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class LocationCoords(BaseModel):
    latitude: float
    longitude: float


def is_valid_coordinate(lat: Optional[float], lon: Optional[float]) -> bool:
    if lat is None or lon is None:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


class PlaceRecord(BaseModel):
    """A venue decoded from a backend reply.

    Coordinates may be missing or out of range; such records stay in the
    result list but never reach the map.
    """

    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: str = ""
    price: Optional[str] = None

    @computed_field
    @property
    def geolocatable(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)


class PlaceListing(BaseModel):
    place: PlaceRecord
    directions_url: Optional[str] = None


# --- citations ---------------------------------------------------------------


class WebSource(BaseModel):
    uri: str
    title: str = ""


class MapsSource(BaseModel):
    uri: str
    title: str = ""
    review_snippets: List[str] = Field(default_factory=list)


class CitationEntry(BaseModel):
    web: Optional[WebSource] = None
    maps: Optional[MapsSource] = None


class CitationMetadata(BaseModel):
    entries: List[CitationEntry] = Field(default_factory=list)
    search_entry_point: Optional[str] = None


class SourceLink(BaseModel):
    kind: str
    uri: str
    label: str


class DecodedResponse(BaseModel):
    place_records: List[PlaceRecord] = Field(default_factory=list)
    narrative_text: str = ""
    citations: Optional[CitationMetadata] = None


# --- markup ------------------------------------------------------------------


class BlockKind(str, Enum):
    HEADING_2 = "heading2"
    HEADING_3 = "heading3"
    BULLET_ITEM = "bullet_item"
    NUMBERED_ITEM = "numbered_item"
    SPACER = "spacer"
    PARAGRAPH = "paragraph"


class Span(BaseModel):
    text: str
    bold: bool = False


class DisplayBlock(BaseModel):
    kind: BlockKind
    spans: List[Span] = Field(default_factory=list)


# --- chat --------------------------------------------------------------------


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    text: str
    timestamp: float
    citations: Optional[CitationMetadata] = None


# --- search ------------------------------------------------------------------


class SearchPhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class QuickFilter(BaseModel):
    key: str
    label: str
    term: str


class SearchView(BaseModel):
    """What the presentation layer shows for the most recent search."""

    phase: SearchPhase = SearchPhase.IDLE
    outcome: Optional[SearchPhase] = None
    request_id: int = 0
    query: str = ""
    places: List[PlaceRecord] = Field(default_factory=list)
    narrative: str = ""
    citations: Optional[CitationMetadata] = None
    user_location: Optional[LocationCoords] = None
    location_warning: Optional[str] = None
    superseded: bool = False

    @computed_field
    @property
    def loading(self) -> bool:
        return self.phase == SearchPhase.SEARCHING


# --- map ---------------------------------------------------------------------


class MapMarker(BaseModel):
    name: str
    latitude: float
    longitude: float
    popup_html: str
    directions_url: Optional[str] = None
    distance_m: Optional[float] = None


class MapBounds(BaseModel):
    south: float
    west: float
    north: float
    east: float


class MapView(BaseModel):
    center: LocationCoords
    zoom: int
    markers: List[MapMarker] = Field(default_factory=list)
    user_marker: Optional[MapMarker] = None
    bounds: Optional[MapBounds] = None
    padding: List[int] = Field(default_factory=lambda: [50, 50])
    # client should group nearby markers
    cluster: bool = True


# --- HTTP bodies -------------------------------------------------------------


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Free-text dining query, e.g. 'cheap noodles near me'")
    latitude: Optional[float] = Field(None, description="Device latitude, if geolocation succeeded")
    longitude: Optional[float] = Field(None, description="Device longitude, if geolocation succeeded")


class QuickSearchRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SearchResponse(BaseModel):
    view: SearchView
    blocks: List[DisplayBlock] = Field(default_factory=list)
    sources: List[SourceLink] = Field(default_factory=list)
    listings: List[PlaceListing] = Field(default_factory=list)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class ChatResponse(BaseModel):
    messages: List[ChatMessage]
    pending: bool = False


class RenderRequest(BaseModel):
    text: str = ""


class RenderResponse(BaseModel):
    blocks: List[DisplayBlock]
    html: str
