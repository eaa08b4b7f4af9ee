"""
LitDraft: search PubMed, save articles, and draft a cited introduction.
"""
__version__ = "0.1.0"
