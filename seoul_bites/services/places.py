from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Optional

from seoul_bites.models import PlaceRecord

logger = logging.getLogger(__name__)


def _coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    # bool is an int subclass; "true" is not a label
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_coordinate(value: Any) -> Optional[float]:
    """Best-effort float conversion; None for anything non-numeric or non-finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_place(raw: Any) -> Optional[PlaceRecord]:
    """Turn one decoded JSON object into a PlaceRecord, or None if it has no usable name.

    Bad coordinates never drop the record; PlaceRecord.geolocatable reports them.
    """
    if not isinstance(raw, dict):
        logger.debug("Dropping non-object place entry: %r", raw)
        return None

    name = _coerce_text(raw.get("name"))
    if name is None or not name.strip():
        logger.debug("Dropping place entry without a name: %r", raw)
        return None

    description = _coerce_text(raw.get("description")) or ""
    price = _coerce_text(raw.get("price"))

    return PlaceRecord(
        name=name.strip(),
        latitude=_coerce_coordinate(raw.get("latitude")),
        longitude=_coerce_coordinate(raw.get("longitude")),
        description=description,
        price=price,
    )


def normalize_places(items: Iterable[Any]) -> List[PlaceRecord]:
    places: List[PlaceRecord] = []
    for item in items:
        place = normalize_place(item)
        if place is not None:
            places.append(place)
    return places
