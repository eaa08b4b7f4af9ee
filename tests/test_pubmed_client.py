"""
Tests for PubMedClient with Entrez calls mocked out.
"""
import io
from unittest.mock import MagicMock

import pytest

from litdraft.search import pubmed_client as pubmed_module
from litdraft.search.filters import filter_documents
from litdraft.search.pubmed_client import PubMedClient, parse_year
from litdraft.models import Document

EFETCH_XML = b"""<?xml version="1.0"?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID Version="1">111</PMID>
      <Article>
        <Abstract>
          <AbstractText Label="BACKGROUND">Metformin is <i>first</i> line.</AbstractText>
          <AbstractText Label="RESULTS">HbA1c fell.</AbstractText>
        </Abstract>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation>
      <PMID Version="1">222</PMID>
      <Article></Article>
    </MedlineCitation>
  </PubmedArticle>
</PubmedArticleSet>
"""


@pytest.fixture
def entrez(monkeypatch):
    """Replace the Entrez calls used by the client; tests set return values."""
    mock = MagicMock()
    mock.esearch.return_value = io.BytesIO(b"")
    mock.esummary.return_value = io.BytesIO(b"")
    mock.efetch.return_value = io.BytesIO(EFETCH_XML)
    for name in ("esearch", "esummary", "efetch", "read"):
        monkeypatch.setattr(pubmed_module.Entrez, name, getattr(mock, name))
    monkeypatch.setattr(PubMedClient, "_rate_limit", lambda self: None)
    return mock


@pytest.mark.parametrize("pub_date,expected", [
    ("2023 Jan 5", 2023),
    ("2021 Spring", 2021),
    ("", None),
    ("n.d.", None),
])
def test_parse_year(pub_date, expected):
    assert parse_year(pub_date) == expected


def test_search_returns_ids(entrez):
    entrez.read.return_value = {"IdList": ["111", "222"]}

    ids = PubMedClient().search("metformin", max_results=5)

    assert ids == ["111", "222"]
    kwargs = entrez.esearch.call_args.kwargs
    assert kwargs["db"] == "pubmed"
    assert kwargs["term"] == "metformin"
    assert kwargs["retmax"] == 5


def test_search_propagates_errors(entrez):
    entrez.esearch.side_effect = RuntimeError("HTTP 500")
    with pytest.raises(RuntimeError):
        PubMedClient().search("metformin")


def test_fetch_documents_merges_summaries_and_abstracts(entrez):
    entrez.read.return_value = [
        {"Id": "222", "Title": "Second", "AuthorList": ["Lee K"], "PubDate": "2019", "FullJournalName": "BMJ"},
        {"Id": "111", "Title": "First", "AuthorList": ["Smith J", "Doe A"], "PubDate": "2023 Mar", "FullJournalName": ""},
    ]

    docs = PubMedClient().fetch_documents(["111", "222"])

    assert [d.id for d in docs] == ["111", "222"]
    first, second = docs
    assert first.title == "First"
    assert first.authors == ["Smith J", "Doe A"]
    assert first.year == 2023
    assert first.journal is None
    assert first.abstract == "Metformin is first line. HbA1c fell."
    assert first.external_ref == "https://pubmed.ncbi.nlm.nih.gov/111/"
    assert second.abstract == ""
    assert second.journal == "BMJ"


def test_fetch_documents_without_abstracts_skips_efetch(entrez):
    entrez.read.return_value = [{"Id": "111", "Title": "First", "AuthorList": [], "PubDate": "2023"}]

    docs = PubMedClient().fetch_documents(["111"], include_abstracts=False)

    assert docs[0].abstract == ""
    entrez.efetch.assert_not_called()


def test_search_documents_with_no_hits(entrez):
    entrez.read.return_value = {"IdList": []}

    assert PubMedClient().search_documents("nothing matches") == []
    entrez.esummary.assert_not_called()


def test_fetch_mesh_terms(entrez):
    entrez.read.side_effect = [
        {"IdList": ["68008687", "68003924", "68000001"]},
        [
            {"DS_MeshTerms": ["Metformin", "Glucophage"]},
            {"DS_MeshTerms": ["Diabetes Mellitus, Type 2"]},
            {"DS_MeshTerms": ["Metformin"]},
            {"DS_MeshTerms": []},
        ],
    ]

    terms = PubMedClient().fetch_mesh_terms("metformin for type 2 diabetes")

    assert terms == ["Metformin", "Diabetes Mellitus, Type 2"]
    assert entrez.esearch.call_args.kwargs["db"] == "mesh"
    assert entrez.esummary.call_args.kwargs["db"] == "mesh"


def test_fetch_mesh_terms_no_records(entrez):
    entrez.read.return_value = {"IdList": []}
    assert PubMedClient().fetch_mesh_terms("qwertyuiop") == []
    entrez.esummary.assert_not_called()


def test_fetch_mesh_terms_blank_text_skips_lookup(entrez):
    assert PubMedClient().fetch_mesh_terms("   ") == []
    entrez.esearch.assert_not_called()


class TestFilterDocuments:
    docs = [
        Document(id="1", title="A", authors=["Smith John", "Doe Ann"], year=2023),
        Document(id="2", title="B", authors=["Lee Kim"], year=2021),
        Document(id="3", title="C", authors=[], year=None),
    ]

    def test_no_filters(self):
        assert filter_documents(self.docs) == self.docs

    def test_year(self):
        assert [d.id for d in filter_documents(self.docs, year=2021)] == ["2"]
        assert [d.id for d in filter_documents(self.docs, year="2023")] == ["1"]
        assert filter_documents(self.docs, year="") == self.docs

    def test_author_case_insensitive_substring(self):
        assert [d.id for d in filter_documents(self.docs, author="smith")] == ["1"]
        assert [d.id for d in filter_documents(self.docs, author="  ")] == ["1", "2", "3"]

    def test_combined(self):
        assert filter_documents(self.docs, year=2021, author="smith") == []
