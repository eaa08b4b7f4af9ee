"""
Client-side filtering of search results by year and author.
"""
from typing import List, Optional, Union

from litdraft.models import Document


def filter_documents(
    documents: List[Document],
    year: Optional[Union[int, str]] = None,
    author: Optional[str] = None
) -> List[Document]:
    """
    Keep documents matching every given filter.

    Args:
        documents: Search results
        year: Publication year to match exactly (empty/None means any)
        author: Case-insensitive substring of any author name
    """
    year_value = int(year) if year not in (None, "") else None
    author_value = (author or "").strip().lower()

    filtered = []
    for doc in documents:
        if year_value is not None and doc.year != year_value:
            continue
        if author_value and not any(author_value in name.lower() for name in doc.authors):
            continue
        filtered.append(doc)
    return filtered
