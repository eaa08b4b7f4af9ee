"""
Small single-shot LLM helpers: MeSH query drafting and theme suggestions.
"""
import logging
from typing import Sequence

from litdraft.errors import GenerationFailedError
from litdraft.generation.llm_client import GenerationClient

logger = logging.getLogger(__name__)

MESH_QUERY_PROMPT = (
    "You are a helpful assistant that converts user queries into MeSH (Medical Subject Headings) "
    "search queries for PubMed. Only return the MeSH query, nothing else."
)

THEME_PROMPT = (
    "You are a helpful assistant that generates additional research themes based on existing themes. "
    "Generate a single, concise theme that is related to but distinct from the existing themes. "
    "Only return the theme, nothing else."
)


async def _complete(client: GenerationClient, system_prompt: str, user_message: str) -> str:
    messages = [
        {'role': 'system', 'content': system_prompt},
        {'role': 'user', 'content': user_message},
    ]
    try:
        return (await client.complete(messages)).strip()
    except Exception as e:
        logger.error(f"Error calling {client.provider}: {e}", exc_info=True)
        raise GenerationFailedError(f"Error calling {client.provider}: {e}") from e


async def generate_mesh_query(search_term: str, client: GenerationClient) -> str:
    """Turn casual language into a PubMed MeSH query string."""
    return await _complete(client, MESH_QUERY_PROMPT, f"Convert this search term to a MeSH query: {search_term}")


async def suggest_theme(existing_themes: Sequence[str], client: GenerationClient) -> str:
    """Suggest one new theme related to, but distinct from, existing_themes."""
    if existing_themes:
        user_message = (
            f"Based on these existing themes: {', '.join(existing_themes)}, "
            f"suggest a new, related research theme."
        )
    else:
        user_message = "Suggest a research theme for a biomedical literature review."
    theme = await _complete(client, THEME_PROMPT, user_message)
    # Models sometimes wrap the answer in quotes or a bullet
    return theme.strip().lstrip("-*• ").strip('"').strip()
