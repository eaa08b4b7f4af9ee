"""
MeSH term combination engine.

Turns candidate MeSH terms into a small, deterministic list of AND-joined
search queries: single terms first, then pairs, then triples.
"""
import logging
from collections import deque
from typing import List, Sequence

from litdraft.errors import InvalidArgument
from litdraft.models import Combination

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMBINATIONS = 5
MAX_COMBINATION_LENGTH = 3


def generate_combinations(
    terms: Sequence[str],
    max_combinations: int = DEFAULT_MAX_COMBINATIONS,
    max_length: int = MAX_COMBINATION_LENGTH
) -> List[Combination]:
    """
    Breadth-first expansion of terms into at most max_combinations Combinations.

    Every single term is enumerated first (input order). Each enumerated
    Combination shorter than max_length is then extended by every term it
    does not contain, again in input order. A Combination whose term set was
    already produced (e.g. "B AND A" after "A AND B") is skipped, so pairs
    come out in (first index, second index) order and triples likewise.

    Args:
        terms: Candidate MeSH terms. Repeated terms are collapsed.
        max_combinations: Upper bound on returned Combinations, must be >= 1.
        max_length: Longest Combination to build.

    Returns:
        Combinations in enumeration order. Empty if terms is empty.
    """
    if max_combinations < 1:
        raise InvalidArgument(f"max_combinations must be >= 1, got {max_combinations}")
    if max_length < 1:
        raise InvalidArgument(f"max_length must be >= 1, got {max_length}")

    unique_terms = list(dict.fromkeys(terms))
    if not unique_terms:
        return []

    combinations: List[Combination] = []
    seen = set()
    queue = deque()

    for term in unique_terms:
        key = frozenset([term])
        if key not in seen:
            seen.add(key)
            queue.append((term,))

    while queue and len(combinations) < max_combinations:
        current = queue.popleft()
        combinations.append(Combination(current))

        if len(current) >= max_length:
            continue

        for term in unique_terms:
            if term in current:
                continue
            key = frozenset(current + (term,))
            if key in seen:
                continue
            seen.add(key)
            queue.append(current + (term,))

    logger.debug(f"Built {len(combinations)} combinations from {len(unique_terms)} terms")
    return combinations


def build_search_queries(text: str, pubmed_client, max_combinations: int = DEFAULT_MAX_COMBINATIONS) -> List[str]:
    """
    Expand free text into MeSH combination queries, falling back to the text itself.

    Args:
        text: What the user typed into the search box
        pubmed_client: Anything with fetch_mesh_terms(text) -> List[str]
        max_combinations: Passed through to generate_combinations

    Returns:
        Query strings, never empty for non-empty text.
    """
    terms = pubmed_client.fetch_mesh_terms(text)
    queries = [c.query for c in generate_combinations(terms, max_combinations)]

    if not queries:
        logger.info(f"No MeSH terms for '{text}', using raw query")
        return [text]

    logger.info(f"Expanded '{text}' into {len(queries)} MeSH queries")
    return queries
