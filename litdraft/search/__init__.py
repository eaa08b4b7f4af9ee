"""
Search module: PubMed/MeSH lookups, MeSH query expansion and result filters.
"""
from .mesh import generate_combinations, build_search_queries
from .filters import filter_documents
from .pubmed_client import PubMedClient

__all__ = ['generate_combinations', 'build_search_queries', 'filter_documents', 'PubMedClient']
