"""
Citation post-processing for generated introductions.

Splits generated prose on [ID...] markers and resolves each marker to a
saved Document for tooltips and reference lists.
"""
import re
from typing import Dict, List, Sequence

from litdraft.models import CitationSegment, Document, Segment, TextSegment

# Matches: "[ID12345678]", "[IDabc_12-3]"
# Anything else in brackets ("[1]", "[ID 123]", "[PMC123]") stays plain text
CITATION_MARKER_PATTERN = re.compile(r'\[ID([A-Za-z0-9_\-]+)\]')

UNKNOWN_SOURCE = "Unknown source"


def annotate(generated_text: str, documents: Sequence[Document]) -> List[Segment]:
    """
    Split text into Text and Citation segments in original order.

    Joining every segment's content gives back generated_text exactly.
    Unresolvable markers get the "Unknown source" title instead of raising.
    """
    titles: Dict[str, str] = {}
    for doc in documents:
        titles.setdefault(doc.id, doc.title)

    segments: List[Segment] = []
    position = 0
    for match in CITATION_MARKER_PATTERN.finditer(generated_text):
        if match.start() > position:
            segments.append(TextSegment(generated_text[position:match.start()]))

        source_id = match.group(1)
        segments.append(CitationSegment(
            content=match.group(0),
            source_id=source_id,
            resolved_source_title=titles.get(source_id, UNKNOWN_SOURCE)
        ))
        position = match.end()

    if position < len(generated_text):
        segments.append(TextSegment(generated_text[position:]))

    return segments


def cited_documents(segments: Sequence[Segment], documents: Sequence[Document]) -> List[Document]:
    """Unique cited Documents in order of first citation; unresolved markers are skipped."""
    by_id = {doc.id: doc for doc in documents}

    seen = set()
    cited = []
    for segment in segments:
        if not isinstance(segment, CitationSegment) or segment.source_id in seen:
            continue
        seen.add(segment.source_id)
        doc = by_id.get(segment.source_id)
        if doc is not None:
            cited.append(doc)
    return cited
