"""
LLM clients for LitDraft.

Wraps the local Ollama server and the OpenAI API behind one async
complete(messages) call. Retries belong to the SDKs' HTTP layers.
"""
from typing import List, Optional
import logging
import os
import time

import ollama
from dotenv import load_dotenv
from openai import AsyncOpenAI, OpenAIError

from litdraft.errors import MalformedResponseError, ProviderUnavailableError

logger = logging.getLogger(__name__)

load_dotenv()

OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.7


class GenerationClient:
    """Interface for chat-style text generation."""

    provider = "unknown"

    async def complete(self, messages: List[dict]) -> str:
        raise NotImplementedError


class OllamaGenerationClient(GenerationClient):
    """Local generation through an Ollama server."""

    provider = "ollama"

    def __init__(self, model: str = OLLAMA_MODEL, host: str = OLLAMA_BASE_URL, temperature: float = DEFAULT_TEMPERATURE):
        self.model = model
        self.temperature = temperature
        self.client = ollama.AsyncClient(host=host)

    async def complete(self, messages: List[dict]) -> str:
        llm_start = time.time()
        logger.info(f"Using model: {self.model}")
        response = await self.client.chat(
            model=self.model,
            messages=messages,
            options={'temperature': self.temperature},
            keep_alive=-1
        )
        logger.info(f"LLM generation time: {(time.time() - llm_start) * 1000:.0f}ms")

        try:
            content = response['message']['content']
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(f"Ollama response has no message content: {e}") from e
        return _require_text(content, self.provider)


class OpenAIGenerationClient(GenerationClient):
    """Generation through the OpenAI chat completions API."""

    provider = "openai"

    def __init__(
        self,
        model: str = OPENAI_MODEL,
        api_key: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        try:
            self.client = AsyncOpenAI(api_key=api_key or os.getenv("OPENAI_API_KEY"))
        except OpenAIError as e:
            logger.error(f"OpenAI client unavailable: {e}")
            raise ProviderUnavailableError(f"OpenAI is not configured: {e}") from e

    async def complete(self, messages: List[dict]) -> str:
        llm_start = time.time()
        logger.info(f"Using model: {self.model}")
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature
        )
        logger.info(f"LLM generation time: {(time.time() - llm_start) * 1000:.0f}ms")

        if not completion.choices:
            raise MalformedResponseError("OpenAI response has no choices")
        return _require_text(completion.choices[0].message.content, self.provider)


def _require_text(content, provider: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise MalformedResponseError(f"Empty or non-text response from {provider}")
    return content.strip()


def get_generation_client(use_local: Optional[bool] = None) -> GenerationClient:
    """Pick the provider; defaults to USE_LOCAL_LLM (true unless set otherwise)."""
    if use_local is None:
        use_local = os.getenv("USE_LOCAL_LLM", default="true").lower() == "true"
    return OllamaGenerationClient() if use_local else OpenAIGenerationClient()
