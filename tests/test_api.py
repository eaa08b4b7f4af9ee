"""
Tests for the FastAPI endpoints with storage, PubMed and the LLM faked out.
"""
import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from litdraft import main
from litdraft.db.kv_store import InMemoryKeyValueStore
from litdraft.generation.llm_client import GenerationClient, OpenAIGenerationClient
from litdraft.generation.theme_extraction import ThemeExtractionOrchestrator
from litdraft.models import Document
from litdraft.saved_results import SavedResults
from litdraft.themes import ThemeList

from fakes import FakeGenerationClient, instant_pipeline, make_document, word_count


class FakePubMed:
    def __init__(self, documents, mesh_terms=None):
        self.documents = documents
        self.mesh_terms = mesh_terms or []
        self.queries = []

    def fetch_mesh_terms(self, text):
        return self.mesh_terms

    def search_documents(self, query, max_results=20, include_abstracts=True):
        self.queries.append(query)
        return list(self.documents)


@pytest.fixture
def api(monkeypatch):
    store = InMemoryKeyValueStore()
    state = {"client": FakeGenerationClient(reply="Intro [ID111] and [ID999].")}

    def build_orchestrator(use_local):
        return ThemeExtractionOrchestrator(state["client"], pipeline=instant_pipeline(), token_counter=word_count)

    monkeypatch.setattr(main, "saved_results", SavedResults(store))
    monkeypatch.setattr(main, "theme_list", ThemeList(store))
    monkeypatch.setattr(main, "build_orchestrator", build_orchestrator)
    monkeypatch.setattr(main, "get_generation_client", lambda use_local=None: state["client"])
    monkeypatch.setattr(main, "pubmed_client", FakePubMed([
        make_document("111", "Metformin trial", authors=["Smith J"], year=2023),
        make_document("222", "Insulin review", authors=["Lee K"], year=2021),
    ], mesh_terms=["Metformin", "Diabetes Mellitus"]))

    client = TestClient(main.app)
    client.llm = state
    return client


def save(api, doc_id, title):
    return api.post("/saved", json={"id": doc_id, "title": title, "authors": ["Smith J"], "year": 2023})


def test_health(api):
    assert api.get("/health").json()["status"] == "healthy"


def test_mesh_combinations(api):
    response = api.post("/mesh/combinations", json={"terms": ["A", "B", "C"], "max_combinations": 5})
    assert response.status_code == 200
    assert response.json()["combinations"] == ["A", "B", "C", "A AND B", "A AND C"]


def test_mesh_combinations_invalid_limit(api):
    response = api.post("/mesh/combinations", json={"terms": ["A"], "max_combinations": 0})
    assert response.status_code == 400


def test_mesh_expand(api):
    response = api.get("/mesh/expand", params={"query": "metformin diabetes", "max_combinations": 3})
    assert response.json()["queries"] == ["Metformin", "Diabetes Mellitus", "Metformin AND Diabetes Mellitus"]


def test_search_filters_by_author(api):
    response = api.get("/search", params={"query": "diabetes", "author": "lee"})
    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == ["222"]


def test_search_with_mesh_expansion_deduplicates(api):
    response = api.get("/search", params={"query": "diabetes", "expand_mesh": True, "max_results": 10})
    assert [d["id"] for d in response.json()] == ["111", "222"]
    assert main.pubmed_client.queries[0] == "Metformin"


def test_saved_crud(api):
    assert save(api, "111", "Paper A").json() == {"added": True, "count": 1}
    assert save(api, "111", "Paper A").json() == {"added": False, "count": 1}
    save(api, "222", "Paper B")

    assert [d["id"] for d in api.get("/saved").json()] == ["111", "222"]
    assert api.delete("/saved/111").status_code == 200
    assert api.delete("/saved/111").status_code == 404
    assert api.delete("/saved").json() == {"count": 0}
    assert api.get("/saved").json() == []


def test_export_formats(api):
    save(api, "111", "Paper A")

    text = api.get("/saved/export", params={"format": "text"})
    assert text.headers["content-type"].startswith("text/plain")
    assert "PMID: 111" in text.text

    xml = api.get("/saved/export", params={"format": "endnote"})
    assert xml.headers["content-type"].startswith("application/xml")
    assert "<accession-num>111</accession-num>" in xml.text

    assert api.get("/saved/export", params={"format": "pdf"}).status_code == 422


def test_themes_from_text_and_structured(api):
    response = api.put("/themes", json={"text": "- Glycemic control\n- Weight loss\n"})
    assert response.json() == [
        {"text": "Glycemic control", "importance": 5},
        {"text": "Weight loss", "importance": 5},
    ]

    api.put("/themes", json={"themes": [{"text": "Renal outcomes", "importance": 9}]})
    assert api.get("/themes").json() == [{"text": "Renal outcomes", "importance": 9}]

    bad = api.put("/themes", json={"themes": [{"text": "x", "importance": 11}]})
    assert bad.status_code == 422


def test_suggest_theme(api):
    api.llm["client"] = FakeGenerationClient(reply="Renal outcomes")
    assert api.post("/themes/suggest", json={}).json() == {"theme": "Renal outcomes"}


def test_introduction_requires_saved_articles(api):
    response = api.post("/introduction", json={"themes": [{"text": "x", "importance": 3}]})
    assert response.status_code == 400
    assert "at least one article" in response.json()["detail"]


def test_introduction_returns_annotated_segments(api):
    save(api, "111", "Paper A")

    response = api.post("/introduction", json={"themes": [{"text": "Glycemic control", "importance": 8}]})
    body = response.json()

    assert response.status_code == 200
    assert body["generated_text"] == "Intro [ID111] and [ID999]."
    assert body["segments"] == [
        {"content": "Intro ", "kind": "text"},
        {"content": "[ID111]", "source_id": "111", "resolved_source_title": "Paper A", "kind": "citation"},
        {"content": " and ", "kind": "text"},
        {"content": "[ID999]", "source_id": "999", "resolved_source_title": "Unknown source", "kind": "citation"},
        {"content": ".", "kind": "text"},
    ]
    assert [d["id"] for d in body["cited_documents"]] == ["111"]
    assert body["llm_provider"] == "fake"


def test_introduction_uses_stored_themes_by_default(api):
    save(api, "111", "Paper A")
    api.put("/themes", json={"themes": [{"text": "Stored theme", "importance": 7}]})

    api.post("/introduction", json={})

    prompt = api.llm["client"].calls[0][1]["content"]
    assert "Theme: Stored theme, Importance: 7" in prompt


def test_introduction_generation_failure(api):
    save(api, "111", "Paper A")
    api.llm["client"] = FakeGenerationClient(error=ConnectionError("refused"))

    response = api.post("/introduction", json={"themes": []})
    assert response.status_code == 502


def test_introduction_stream_emits_progress_then_complete(api):
    save(api, "111", "Paper A")

    with api.stream("POST", "/introduction/stream", json={"themes": []}) as response:
        events = [
            json.loads(line[len("data: "):])
            for line in response.iter_lines()
            if line.startswith("data: ")
        ]

    assert events[0]["type"] == "start"
    assert events[-1]["type"] == "complete"
    assert events[-1]["generated_text"] == "Intro [ID111] and [ID999]."

    progress = [e for e in events if e["type"] == "progress"]
    assert progress
    last_by_stage = {}
    for event in progress:
        assert event["progress"] >= last_by_stage.get(event["stage"], 0)
        last_by_stage[event["stage"]] = event["progress"]
    assert all(value == 100.0 for value in last_by_stage.values())


def test_introduction_stream_rejects_empty_saved_set(api):
    response = api.post("/introduction/stream", json={"themes": []})
    assert response.status_code == 400


def test_introduction_without_openai_key_is_unavailable(api, monkeypatch):
    save(api, "111", "Paper A")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(main, "build_orchestrator", lambda use_local: ThemeExtractionOrchestrator(OpenAIGenerationClient()))

    response = api.post("/introduction", json={"themes": [], "use_local": False})
    assert response.status_code == 503
    assert "OpenAI is not configured" in response.json()["detail"]

    assert api.post("/introduction/stream", json={"themes": [], "use_local": False}).status_code == 503


class HangingGenerationClient(GenerationClient):
    """Never answers; records whether its call was cancelled."""

    provider = "fake"

    def __init__(self):
        self.started = False
        self.cancelled = False

    async def complete(self, messages):
        self.started = True
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


def test_introduction_stream_cancels_run_when_client_disconnects(api, monkeypatch):
    save(api, "111", "Paper A")
    llm = HangingGenerationClient()
    orchestrator = ThemeExtractionOrchestrator(llm, pipeline=instant_pipeline(), token_counter=word_count)
    monkeypatch.setattr(main, "build_orchestrator", lambda use_local: orchestrator)

    async def disconnect_during_generation():
        response = await main.draft_introduction_stream(main.IntroductionRequest(themes=[]))
        events = response.body_iterator
        received = [await events.__anext__()]
        while not llm.started:
            received.append(await events.__anext__())

        # Starlette closes the body iterator when the client goes away
        await events.aclose()
        for _ in range(5):
            await asyncio.sleep(0)
        return received

    received = asyncio.run(disconnect_during_generation())

    assert '"type": "start"' in received[0]
    assert not any('"type": "complete"' in event for event in received)
    assert orchestrator.pipeline.cancelled
    assert llm.cancelled
