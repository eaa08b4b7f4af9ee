from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field
from dataclasses import asdict
import asyncio
import json
import os
import time
from typing import List, Optional

from litdraft.db.database import SessionLocal
from litdraft.db.init_db import init_db
from litdraft.db.kv_store import SqlKeyValueStore
from litdraft.errors import (
    EmptyInputError, GenerationFailedError, InvalidArgument, LitDraftError, PromptTooLargeError, ProviderUnavailableError
)
from litdraft.exports import to_endnote_xml, to_plain_text
from litdraft.generation.citations import annotate, cited_documents
from litdraft.generation.llm_client import get_generation_client
from litdraft.generation.suggestions import generate_mesh_query, suggest_theme
from litdraft.generation.theme_extraction import ThemeExtractionOrchestrator
from litdraft.logging_config import setup_logging, get_logger
from litdraft.models import Document, Theme
from litdraft.saved_results import SavedResults
from litdraft.search.filters import filter_documents
from litdraft.search.mesh import build_search_queries, generate_combinations
from litdraft.search.pubmed_client import PubMedClient
from litdraft.themes import ThemeList, themes_from_text

# Session state lives in the local key-value table
store = SqlKeyValueStore(SessionLocal)
saved_results = SavedResults(store)
theme_list = ThemeList(store)
pubmed_client = PubMedClient()

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="LitDraft API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CombinationRequest(BaseModel):
    terms: List[str]
    max_combinations: int = 5


class MeshQueryRequest(BaseModel):
    search_term: str
    use_local: Optional[bool] = None


class DocumentRequest(BaseModel):
    id: str
    title: str
    authors: List[str] = []
    abstract: str = ""
    year: Optional[int] = None
    external_ref: str = ""
    content: str = ""
    journal: Optional[str] = None


class ThemeModel(BaseModel):
    text: str
    importance: int = Field(5, ge=1, le=10)


class ThemesRequest(BaseModel):
    themes: Optional[List[ThemeModel]] = None
    text: Optional[str] = None  # Free text, one theme per line


class ThemeSuggestionRequest(BaseModel):
    use_local: Optional[bool] = None


class IntroductionRequest(BaseModel):
    themes: Optional[List[ThemeModel]] = None  # Defaults to the stored theme list
    use_local: Optional[bool] = None


def build_orchestrator(use_local: Optional[bool]) -> ThemeExtractionOrchestrator:
    return ThemeExtractionOrchestrator(get_generation_client(use_local))


def _resolve_themes(request: IntroductionRequest) -> List[Theme]:
    if request.themes is None:
        return list(theme_list.themes)
    return [Theme(text=t.text, importance=t.importance) for t in request.themes]


def _http_error(e: LitDraftError) -> HTTPException:
    if isinstance(e, (EmptyInputError, InvalidArgument)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, PromptTooLargeError):
        return HTTPException(status_code=413, detail=str(e))
    if isinstance(e, GenerationFailedError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ProviderUnavailableError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _draft_payload(generated_text: str, documents: List[Document]) -> dict:
    segments = annotate(generated_text, documents)
    return {
        "generated_text": generated_text,
        "segments": [asdict(s) for s in segments],
        "cited_documents": [doc.to_dict() for doc in cited_documents(segments, documents)],
    }


@app.on_event("startup")
async def startup_event():
    logger.info("Starting LitDraft API")
    init_db()
    logger.info(f"Using local LLM: {os.getenv('USE_LOCAL_LLM', 'true')}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down LitDraft API")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "LitDraft API is running"}


@app.post("/mesh/combinations")
async def mesh_combinations(request: CombinationRequest):
    """Combine known MeSH terms into AND queries"""
    try:
        combinations = generate_combinations(request.terms, request.max_combinations)
    except InvalidArgument as e:
        raise _http_error(e)
    return {"combinations": [c.query for c in combinations]}


@app.get("/mesh/expand")
def mesh_expand(query: str, max_combinations: int = Query(5, ge=1)):
    """Look up MeSH terms for free text and return combination queries (raw text if none)"""
    try:
        queries = build_search_queries(query, pubmed_client, max_combinations)
    except Exception as e:
        logger.error(f"Error expanding query: {str(e)}", exc_info=True)
        raise HTTPException(status_code=502, detail=f"Error looking up MeSH terms: {str(e)}")
    return {"query": query, "queries": queries}


@app.post("/mesh/query")
async def mesh_query(request: MeshQueryRequest):
    """Ask the LLM to rewrite casual language as a MeSH query"""
    try:
        mesh_query_text = await generate_mesh_query(request.search_term, get_generation_client(request.use_local))
    except LitDraftError as e:
        raise _http_error(e)
    return {"search_term": request.search_term, "mesh_query": mesh_query_text}


@app.get("/search", response_model=List[Document])
def search(
    query: str,
    max_results: int = Query(20, ge=1, le=200),
    year: Optional[int] = None,
    author: Optional[str] = None,
    expand_mesh: bool = False
):
    """Search PubMed, optionally across MeSH combinations, then filter by year/author"""
    search_start = time.time()
    try:
        queries = build_search_queries(query, pubmed_client) if expand_mesh else [query]

        documents: List[Document] = []
        seen = set()
        for q in queries:
            for doc in pubmed_client.search_documents(q, max_results):
                if doc.id not in seen:
                    seen.add(doc.id)
                    documents.append(doc)
            if len(documents) >= max_results:
                break
    except Exception as e:
        logger.error(f"Error searching PubMed: {str(e)}", exc_info=True)
        raise HTTPException(status_code=502, detail=f"Error searching PubMed: {str(e)}")

    results = filter_documents(documents[:max_results], year=year, author=author)
    logger.info(f"Search '{query}' returned {len(results)} results in {(time.time() - search_start) * 1000:.0f}ms")
    return results


@app.get("/saved", response_model=List[Document])
async def list_saved():
    return saved_results.list()


@app.post("/saved")
async def save_result(request: DocumentRequest):
    added = saved_results.add(Document(**request.model_dump()))
    return {"added": added, "count": len(saved_results)}


@app.delete("/saved/{document_id}")
async def remove_saved(document_id: str):
    if not saved_results.remove(document_id):
        raise HTTPException(status_code=404, detail="Saved result not found")
    return {"removed": document_id, "count": len(saved_results)}


@app.delete("/saved")
async def clear_saved():
    saved_results.clear()
    return {"count": 0}


@app.get("/saved/export")
async def export_saved(format: str = Query("text", pattern="^(text|endnote)$")):
    """Download saved results as plain text or EndNote XML"""
    documents = saved_results.list()
    if format == "endnote":
        return Response(
            content=to_endnote_xml(documents),
            media_type="application/xml",
            headers={"Content-Disposition": "attachment; filename=saved_results.xml"}
        )
    return Response(
        content=to_plain_text(documents),
        media_type="text/plain",
        headers={"Content-Disposition": "attachment; filename=saved_results.txt"}
    )


@app.get("/themes", response_model=List[ThemeModel])
async def get_themes():
    return [ThemeModel(text=t.text, importance=t.importance) for t in theme_list.themes]


@app.put("/themes", response_model=List[ThemeModel])
async def replace_themes(request: ThemesRequest):
    """Replace the theme list from structured themes or free text"""
    if request.themes is not None:
        themes = [Theme(text=t.text, importance=t.importance) for t in request.themes]
    else:
        themes = themes_from_text(request.text or "")
    theme_list.replace(themes)
    return [ThemeModel(text=t.text, importance=t.importance) for t in theme_list.themes]


@app.post("/themes/suggest")
async def suggest_new_theme(request: ThemeSuggestionRequest):
    """Suggest one more theme related to the current list"""
    try:
        theme = await suggest_theme([t.text for t in theme_list.themes], get_generation_client(request.use_local))
    except LitDraftError as e:
        raise _http_error(e)
    return {"theme": theme}


@app.post("/introduction")
async def draft_introduction(request: IntroductionRequest):
    """Generate an introduction draft from the saved results, with resolved citations"""
    documents = saved_results.list()
    themes = _resolve_themes(request)

    generation_start = time.time()
    try:
        orchestrator = build_orchestrator(request.use_local)
        generated_text = await orchestrator.extract_and_generate(documents, themes)
    except LitDraftError as e:
        logger.error(f"Error generating introduction: {str(e)}", exc_info=True)
        raise _http_error(e)
    generation_time_ms = (time.time() - generation_start) * 1000

    payload = _draft_payload(generated_text, documents)
    payload["llm_provider"] = orchestrator.client.provider
    payload["generation_time_ms"] = generation_time_ms
    logger.info(f"Generated introduction with {len(payload['cited_documents'])} cited articles in {generation_time_ms:.0f}ms")
    return payload


@app.post("/introduction/stream")
async def draft_introduction_stream(request: IntroductionRequest):
    """Streams stage progress via SSE (Server Sent Events), then the annotated draft"""
    documents = saved_results.list()
    themes = _resolve_themes(request)

    # Fail fast before opening the stream
    try:
        orchestrator = build_orchestrator(request.use_local)
        orchestrator.prepare_messages(documents, themes)
    except LitDraftError as e:
        raise _http_error(e)

    async def event_generator():
        queue: asyncio.Queue = asyncio.Queue()

        def on_progress(stage_name: str, progress: float):
            queue.put_nowait({'type': 'progress', 'stage': stage_name, 'progress': progress})

        task = asyncio.create_task(orchestrator.extract_and_generate(documents, themes, on_progress))
        try:
            yield f"data: {json.dumps({'type': 'start', 'article_count': len(documents)})}\n\n"

            # Use 5-minute timeout
            async with asyncio.timeout(300):
                while not task.done() or not queue.empty():
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=0.25)
                    except asyncio.TimeoutError:
                        continue
                    yield f"data: {json.dumps(event)}\n\n"

                generated_text = task.result()

            payload = _draft_payload(generated_text, documents)
            yield f"data: {json.dumps({'type': 'complete', **payload})}\n\n"

        except asyncio.TimeoutError:
            logger.error("Introduction generation timed out")
            yield f"data: {json.dumps({'type': 'error', 'message': 'Generation timeout'})}\n\n"

        except LitDraftError as e:
            logger.error(f"Error generating introduction: {str(e)}", exc_info=True)
            yield f"data: {json.dumps({'type': 'error', 'message': str(e)})}\n\n"

        finally:
            # Client went away or we timed out: drop the run, never apply a late result
            if not task.done():
                orchestrator.pipeline.cancel()
                task.cancel()

    return StreamingResponse(event_generator(), media_type="text/event-stream")


@app.get("/")
async def root():
    return {"message": "Welcome to LitDraft API", "docs": "/docs"}
