from __future__ import annotations

import html
import logging
import math
from typing import List, Optional, Protocol, Sequence, Tuple

from seoul_bites.config import Settings
from seoul_bites.models import (
    LocationCoords,
    MapBounds,
    MapMarker,
    MapView,
    PlaceListing,
    PlaceRecord,
    is_valid_coordinate,
)

logger = logging.getLogger(__name__)

LOCATION_WARNING = "Location access denied. 'Nearest' search may be less accurate."


class MapCanvas(Protocol):
    """What the core needs from a map widget. Adapters wrap the real library."""

    def initialize(self, center: LocationCoords) -> None:
        ...

    def set_markers(self, places: Sequence[PlaceRecord]) -> None:
        ...

    def set_user_marker(self, point: Optional[LocationCoords]) -> None:
        ...

    def fit_bounds(self, points: Sequence[LocationCoords]) -> None:
        ...


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two WGS84 coords."""
    r = 6371000.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return r * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def resolve_location(lat: Optional[float], lon: Optional[float]) -> Tuple[Optional[LocationCoords], Optional[str]]:
    """Device coordinates as reported by the client, or (None, warning) when unusable."""
    if not is_valid_coordinate(lat, lon):
        logger.info("No usable device location (lat=%r, lon=%r); searching without it", lat, lon)
        return None, LOCATION_WARNING
    return LocationCoords(latitude=lat, longitude=lon), None


def mappable(places: Sequence[PlaceRecord]) -> List[PlaceRecord]:
    return [p for p in places if p.geolocatable]


def directions_url(settings: Settings, lat: float, lon: float) -> str:
    return f"{settings.directions_base_url}?api=1&destination={lat},{lon}"


def listings(settings: Settings, places: Sequence[PlaceRecord]) -> List[PlaceListing]:
    out = []
    for place in places:
        url = directions_url(settings, place.latitude, place.longitude) if place.geolocatable else None
        out.append(PlaceListing(place=place, directions_url=url))
    return out


def compute_bounds(points: Sequence[LocationCoords]) -> Optional[MapBounds]:
    if not points:
        return None
    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return MapBounds(south=min(lats), west=min(lons), north=max(lats), east=max(lons))


def _popup_html(place: PlaceRecord, url: str) -> str:
    price = (
        f'<span class="price">{html.escape(place.price)}</span>' if place.price else "<span></span>"
    )
    return (
        '<div class="popup">'
        f"<h3>{html.escape(place.name)}</h3>"
        f"<p>{html.escape(place.description)}</p>"
        f'<div class="popup-footer">{price}'
        f'<a href="{html.escape(url)}" target="_blank" rel="noopener noreferrer">Get Directions</a>'
        "</div></div>"
    )


class LeafletMapView:
    """MapCanvas that collects a Leaflet-shaped JSON payload (markers, popups, bounds) for a browser client."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._center = LocationCoords(latitude=settings.default_center_lat, longitude=settings.default_center_lon)
        self._markers: List[MapMarker] = []
        self._user: Optional[LocationCoords] = None
        self._bounds: Optional[MapBounds] = None

    def initialize(self, center: LocationCoords) -> None:
        self._center = center
        self._markers = []
        self._user = None
        self._bounds = None

    def set_markers(self, places: Sequence[PlaceRecord]) -> None:
        self._markers = []
        for place in mappable(places):
            url = directions_url(self.settings, place.latitude, place.longitude)
            distance = None
            if self._user is not None:
                distance = haversine_m(self._user.latitude, self._user.longitude, place.latitude, place.longitude)
            self._markers.append(
                MapMarker(
                    name=place.name,
                    latitude=place.latitude,
                    longitude=place.longitude,
                    popup_html=_popup_html(place, url),
                    directions_url=url,
                    distance_m=distance,
                )
            )

    def set_user_marker(self, point: Optional[LocationCoords]) -> None:
        self._user = point

    def fit_bounds(self, points: Sequence[LocationCoords]) -> None:
        self._bounds = compute_bounds(points)

    def view(self) -> MapView:
        user_marker = None
        if self._user is not None:
            user_marker = MapMarker(
                name="You are here",
                latitude=self._user.latitude,
                longitude=self._user.longitude,
                popup_html="You are here",
            )
        return MapView(
            center=self._center,
            zoom=self.settings.default_zoom,
            markers=list(self._markers),
            user_marker=user_marker,
            bounds=self._bounds,
        )


def draw_map(
    canvas: MapCanvas,
    places: Sequence[PlaceRecord],
    user_location: Optional[LocationCoords],
    default_center: LocationCoords,
) -> None:
    """Push places and the user point onto a canvas.

    Bounds cover every geolocatable place plus the user; with no
    geolocatable place the viewport is left at its centre.
    """
    canvas.initialize(user_location or default_center)
    canvas.set_user_marker(user_location)
    canvas.set_markers(mappable(places))

    points = [LocationCoords(latitude=p.latitude, longitude=p.longitude) for p in mappable(places)]
    if points:
        if user_location is not None:
            points.append(user_location)
        canvas.fit_bounds(points)
