"""
Core data models for LitDraft.

These models represent the primary data structures used across
search, saved results, theme handling and introduction generation.
"""
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple, Union

from litdraft.errors import InvalidArgument

PUBMED_ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{}/"

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10


@dataclass(frozen=True)
class Combination:
    """
    A conjunctive group of MeSH terms used as a single search query.

    Terms keep the order in which they were combined; the query string is
    the terms joined by AND.
    """
    terms: Tuple[str, ...]

    @property
    def query(self) -> str:
        return " AND ".join(self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def __str__(self) -> str:
        return self.query


@dataclass
class Document:
    """
    A saved or selected search result.

    `id` is the PubMed UID and is the only identifier used for citation
    markers, persistence and de-duplication.
    """
    id: str
    title: str
    authors: List[str] = field(default_factory=list)
    abstract: str = ""
    year: Optional[int] = None
    external_ref: str = ""
    content: str = ""  # Full text or notes, if the user attached any
    journal: Optional[str] = None

    def __post_init__(self):
        if not self.external_ref:
            self.external_ref = PUBMED_ARTICLE_URL.format(self.id)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            authors=list(data.get("authors") or []),
            abstract=data.get("abstract") or "",
            year=data.get("year"),
            external_ref=data.get("external_ref") or "",
            content=data.get("content") or "",
            journal=data.get("journal"),
        )


@dataclass
class Theme:
    """A research theme with a user-assigned importance from 1 to 10."""
    text: str
    importance: int = 5

    def __post_init__(self):
        if not isinstance(self.importance, int) or isinstance(self.importance, bool):
            raise InvalidArgument(f"Theme importance must be an integer, got {self.importance!r}")
        if not MIN_IMPORTANCE <= self.importance <= MAX_IMPORTANCE:
            raise InvalidArgument(
                f"Theme importance must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}, got {self.importance}"
            )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Theme":
        # Older saved sessions used "rating" for importance
        importance = data.get("importance", data.get("rating", 5))
        return cls(text=data["text"], importance=int(importance))


@dataclass(frozen=True)
class DocumentProjection:
    """Minimal view of a Document that is sent to the LLM."""
    id: str
    abstract: str
    content: str


@dataclass(frozen=True)
class TextSegment:
    """Plain generated prose between citation markers."""
    content: str
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class CitationSegment:
    """
    An inline citation marker such as [ID12345678].

    resolved_source_title is the cited Document's title, or
    "Unknown source" when no saved Document has that id.
    """
    content: str
    source_id: str
    resolved_source_title: str
    kind: str = field(default="citation", init=False)


Segment = Union[TextSegment, CitationSegment]
