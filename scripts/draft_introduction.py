"""
Draft an introduction from the command line.

Optionally searches PubMed and saves the results, then generates an
introduction from the saved set and prints it with a reference list.
"""
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from litdraft.db.database import SessionLocal
from litdraft.db.init_db import init_db
from litdraft.db.kv_store import SqlKeyValueStore
from litdraft.errors import InvalidArgument, LitDraftError
from litdraft.generation.citations import annotate, cited_documents
from litdraft.generation.llm_client import get_generation_client
from litdraft.generation.theme_extraction import ThemeExtractionOrchestrator
from litdraft.logging_config import setup_logging
from litdraft.models import Theme
from litdraft.saved_results import SavedResults
from litdraft.search.mesh import build_search_queries
from litdraft.search.pubmed_client import PubMedClient
from litdraft.themes import ThemeList, themes_from_text

load_dotenv()
logger = logging.getLogger(__name__)


def print_progress(stage_name: str, progress: float):
    # Only print stage boundaries, not every tick
    if progress >= 100:
        print(f"  ✓ {stage_name}")


def parse_theme_args(values: List[str]) -> List[Theme]:
    """
    Parse repeated --theme values given as 'text' or 'text:importance'.

    Raises:
        InvalidArgument: importance outside 1-10
    """
    themes = []
    for raw in values:
        text, _, importance = raw.rpartition(":")
        if text and importance.strip().isdigit():
            themes.extend(themes_from_text(text, default_importance=int(importance)))
        else:
            themes.extend(themes_from_text(raw))
    return themes


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Search PubMed, save results and draft an introduction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Save the top 10 results for a casual query, expanded into MeSH combinations
  python -m scripts.draft_introduction --search "sugar pills for diabetes" --limit 10 --expand-mesh --no-draft

  # Draft from the saved set with two weighted themes
  python -m scripts.draft_introduction --theme "GLP-1 agonists:9" --theme "cardiovascular outcomes:6"

  # Themes from a text file, one per line, using OpenAI instead of Ollama
  python -m scripts.draft_introduction --themes-file themes.txt --openai
        """
    )
    parser.add_argument("--search", type=str, help="Query to search and save before drafting")
    parser.add_argument("--limit", type=int, default=10, help="Results to save per query (default: 10)")
    parser.add_argument("--expand-mesh", action="store_true", help="Expand --search into MeSH term combinations")
    parser.add_argument("--theme", action="append", default=[],
                        help="Theme as 'text' or 'text:importance' (repeatable)")
    parser.add_argument("--themes-file", type=str, help="File with one theme per line")
    parser.add_argument("--openai", action="store_true", help="Use OpenAI instead of the local Ollama model")
    parser.add_argument("--no-draft", action="store_true", help="Only search and save")
    parser.add_argument("--clear", action="store_true", help="Clear saved results first")

    args = parser.parse_args(argv)

    try:
        themes = parse_theme_args(args.theme)
    except InvalidArgument as e:
        parser.error(f"--theme: {e}")

    setup_logging(level=os.getenv("LOG_LEVEL", "WARNING"), log_file=os.getenv("LOG_FILE", ""))
    init_db()

    store = SqlKeyValueStore(SessionLocal)
    saved = SavedResults(store)
    theme_list = ThemeList(store)

    if args.clear:
        saved.clear()

    if args.search:
        client = PubMedClient()
        queries = build_search_queries(args.search, client) if args.expand_mesh else [args.search]
        for query in queries:
            added = saved.add_many(client.search_documents(query, args.limit))
            print(f"{query}: saved {added} new results")
        print(f"Saved results: {len(saved)}")

    if args.no_draft:
        return

    if args.themes_file:
        with open(args.themes_file) as f:
            themes.extend(themes_from_text(f.read()))
    if themes:
        theme_list.replace(themes)

    documents = saved.list()

    print(f"Drafting from {len(documents)} articles and {len(theme_list.themes)} themes...")
    try:
        orchestrator = ThemeExtractionOrchestrator(get_generation_client(use_local=not args.openai))
        text = asyncio.run(orchestrator.extract_and_generate(documents, theme_list.themes, print_progress))
    except LitDraftError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    segments = annotate(text, documents)
    print("\n" + text + "\n")
    print("References:")
    for doc in cited_documents(segments, documents):
        print(f"  [ID{doc.id}] {doc.title} ({doc.year or 'n.d.'}) {doc.external_ref}")


if __name__ == "__main__":
    main()
