from __future__ import annotations

from typing import Any, Dict, List, Optional

from seoul_bites.models import CitationEntry, CitationMetadata, MapsSource, SourceLink, WebSource


def _review_snippets(maps: Dict[str, Any]) -> List[str]:
    sources = maps.get("placeAnswerSources")
    if not isinstance(sources, dict):
        return []
    snippets = sources.get("reviewSnippets") or []
    if not isinstance(snippets, list):
        return []
    out = []
    for snippet in snippets:
        if isinstance(snippet, dict) and snippet.get("content"):
            out.append(str(snippet["content"]))
    return out


def parse_grounding_metadata(raw: Optional[Dict[str, Any]]) -> Optional[CitationMetadata]:
    """Convert a Gemini ``groundingMetadata`` object into CitationMetadata.

    Chunk order is kept. Chunks that are neither web nor maps sources are
    skipped, as are chunks without a URI.
    """
    if not raw:
        return None

    entries: List[CitationEntry] = []
    chunks = raw.get("groundingChunks") or []
    if not isinstance(chunks, list):
        chunks = []
    for chunk in chunks:
        if not isinstance(chunk, dict):
            continue
        web = chunk.get("web")
        maps = chunk.get("maps")
        if isinstance(web, dict) and web.get("uri"):
            entries.append(CitationEntry(web=WebSource(uri=str(web["uri"]), title=str(web.get("title") or ""))))
        elif isinstance(maps, dict) and maps.get("uri"):
            entries.append(
                CitationEntry(
                    maps=MapsSource(
                        uri=str(maps["uri"]),
                        title=str(maps.get("title") or ""),
                        review_snippets=_review_snippets(maps),
                    )
                )
            )

    entry_point = raw.get("searchEntryPoint")
    rendered = entry_point.get("renderedContent") if isinstance(entry_point, dict) else None
    if not isinstance(rendered, str):
        rendered = None
    return CitationMetadata(entries=entries, search_entry_point=rendered)


def source_links(metadata: Optional[CitationMetadata]) -> List[SourceLink]:
    """Links for the "Sources & Locations" strip. Empty metadata renders nothing."""
    if metadata is None:
        return []

    links: List[SourceLink] = []
    for entry in metadata.entries:
        if entry.web is not None:
            links.append(SourceLink(kind="web", uri=entry.web.uri, label=entry.web.title or "Web Source"))
        elif entry.maps is not None:
            links.append(SourceLink(kind="maps", uri=entry.maps.uri, label=entry.maps.title or "Map Location"))
    return links
