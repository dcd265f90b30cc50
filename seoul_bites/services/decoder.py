"""Split a backend reply into place records and narrative text.

The search instruction asks the model to open its reply with a fenced
```json block listing the places it found, followed by a markdown summary.
Only the first such block is considered; anything after it stays in the
narrative untouched.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Optional

from seoul_bites.models import CitationMetadata, DecodedResponse
from seoul_bites.services.places import normalize_places

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```json\r?\n(.*?)\r?\n```", re.DOTALL)
_TRAILING_BREAK_RE = re.compile(r"\r?\n")


def decode(raw_text: str, citations: Optional[CitationMetadata] = None) -> DecodedResponse:
    match = _FENCED_JSON_RE.search(raw_text)
    if match is None:
        return DecodedResponse(place_records=[], narrative_text=raw_text, citations=citations)

    try:
        payload = json.loads(match.group(1))
    except (ValueError, RecursionError) as e:
        logger.warning("Failed to parse places JSON: %s", e)
        return DecodedResponse(place_records=[], narrative_text=raw_text, citations=citations)

    if not isinstance(payload, list):
        logger.warning("Places JSON is a %s, expected an array", type(payload).__name__)
        return DecodedResponse(place_records=[], narrative_text=raw_text, citations=citations)

    # The block occupies its own line(s); drop the line break that ends it too.
    end = match.end()
    trailing = _TRAILING_BREAK_RE.match(raw_text, end)
    if trailing is not None:
        end = trailing.end()
    narrative = (raw_text[: match.start()] + raw_text[end:]).strip()

    return DecodedResponse(
        place_records=normalize_places(payload),
        narrative_text=narrative,
        citations=citations,
    )
