"""
PubMed and MeSH lookups using the NCBI Entrez API.
Searches PubMed, fetches result summaries and abstracts, and resolves
free text to candidate MeSH headings.
"""
from typing import Dict, List, Optional
import logging
import os
import re
import time

from Bio import Entrez
from dotenv import load_dotenv
from lxml import etree

from litdraft.models import Document

logger = logging.getLogger(__name__)

load_dotenv()

# NCBI requires an email for API usage
Entrez.email = os.getenv("NCBI_EMAIL", "litdraft@example.org")
Entrez.tool = "LitDraft"
Entrez.api_key = os.getenv("NCBI_API_KEY") or None  # 10 req/sec with key, 3 req/sec without
# Entrez retries failed HTTP requests itself
Entrez.max_tries = 3
Entrez.sleep_between_tries = 1

HTTP_TIMEOUT = 30
YEAR_PATTERN = re.compile(r"\b(\d{4})\b")


def parse_year(pub_date: str) -> Optional[int]:
    """Pull the year out of an esummary PubDate like '2023 Jan 5' or '2021 Spring'."""
    match = YEAR_PATTERN.search(pub_date or "")
    return int(match.group(1)) if match else None


class PubMedClient:
    """Thin wrapper over Entrez for the pubmed and mesh databases."""

    def __init__(self, email: Optional[str] = None, timeout: int = HTTP_TIMEOUT):
        if email:
            Entrez.email = email
        self.timeout = timeout

    def _rate_limit(self):
        # Conservative timing to avoid 429s
        time.sleep(0.15 if Entrez.api_key else 0.4)

    def search(self, query: str, max_results: int = 20) -> List[str]:
        """
        Search PubMed and return matching UIDs in relevance order.

        Args:
            query: PubMed query string (free text or MeSH combination)
            max_results: Maximum number of UIDs to return
        """
        try:
            logger.info(f"Searching PubMed for '{query}' (max: {max_results})")
            handle = Entrez.esearch(
                db="pubmed",
                term=query,
                retmax=max_results,
                sort="relevance",
                timeout=self.timeout
            )
            record = Entrez.read(handle)
            handle.close()

            ids = list(record["IdList"])
            logger.info(f"Found {len(ids)} papers")
            return ids

        except Exception as e:
            logger.error(f"Error searching PubMed: {e}")
            raise

    def fetch_summaries(self, ids: List[str]) -> List[Document]:
        """Fetch esummary records for UIDs and convert them to Documents (no abstracts)."""
        if not ids:
            return []

        handle = Entrez.esummary(db="pubmed", id=",".join(ids), timeout=self.timeout)
        summaries = Entrez.read(handle)
        handle.close()

        documents = []
        for summary in summaries:
            uid = str(summary.get("Id", ""))
            if not uid:
                continue
            documents.append(Document(
                id=uid,
                title=str(summary.get("Title", "")),
                authors=[str(a) for a in summary.get("AuthorList", [])],
                year=parse_year(str(summary.get("PubDate", ""))),
                journal=str(summary.get("FullJournalName", "")) or None,
            ))
        return documents

    def fetch_abstracts(self, ids: List[str]) -> Dict[str, str]:
        """Fetch abstracts for UIDs via efetch, keyed by UID. Missing abstracts map to ''."""
        if not ids:
            return {}

        handle = Entrez.efetch(
            db="pubmed",
            id=",".join(ids),
            rettype="abstract",
            retmode="xml",
            timeout=self.timeout
        )
        xml_content = handle.read()
        handle.close()

        if isinstance(xml_content, str):
            xml_content = xml_content.encode("utf-8")

        root = etree.fromstring(xml_content)
        abstracts = {}
        for article in root.iter("PubmedArticle"):
            pmid = article.findtext(".//MedlineCitation/PMID") or ""
            # Structured abstracts split into labelled AbstractText parts
            parts = ["".join(node.itertext()).strip() for node in article.iterfind(".//Abstract/AbstractText")]
            abstracts[pmid] = " ".join(p for p in parts if p)
        return abstracts

    def fetch_documents(self, ids: List[str], include_abstracts: bool = True) -> List[Document]:
        """
        Fetch Documents for UIDs, preserving the order of ids.

        Args:
            ids: PubMed UIDs
            include_abstracts: Also call efetch to fill Document.abstract
        """
        documents = self.fetch_summaries(ids)
        if include_abstracts and documents:
            self._rate_limit()
            abstracts = self.fetch_abstracts([d.id for d in documents])
            for doc in documents:
                doc.abstract = abstracts.get(doc.id, "")

        order = {uid: idx for idx, uid in enumerate(ids)}
        documents.sort(key=lambda d: order.get(d.id, len(order)))
        return documents

    def search_documents(self, query: str, max_results: int = 20, include_abstracts: bool = True) -> List[Document]:
        """Search and fetch in one go."""
        ids = self.search(query, max_results)
        if not ids:
            return []
        self._rate_limit()
        return self.fetch_documents(ids, include_abstracts)

    def fetch_mesh_terms(self, text: str) -> List[str]:
        """
        Resolve free text to candidate MeSH headings.

        Returns the preferred heading of each matching MeSH record, in the
        order Entrez ranks them, without duplicates.
        """
        if not text or not text.strip():
            return []

        try:
            handle = Entrez.esearch(db="mesh", term=text, timeout=self.timeout)
            record = Entrez.read(handle)
            handle.close()

            mesh_ids = list(record["IdList"])
            if not mesh_ids:
                logger.info(f"No MeSH records for '{text}'")
                return []

            self._rate_limit()
            handle = Entrez.esummary(db="mesh", id=",".join(mesh_ids), timeout=self.timeout)
            summaries = Entrez.read(handle)
            handle.close()

        except Exception as e:
            logger.error(f"Error fetching MeSH terms: {e}")
            raise

        terms = []
        for summary in summaries:
            headings = summary.get("DS_MeshTerms") or []
            if headings:
                terms.append(str(headings[0]))

        terms = list(dict.fromkeys(terms))
        logger.info(f"MeSH terms for '{text}': {terms}")
        return terms
