"""
Introduction generation for LitDraft.

Takes the saved articles and the weighted themes, builds one prompt, and
makes a single LLM call inside the "Draft Generation" stage of the
progress pipeline.
"""
from typing import Callable, List, Optional, Sequence
import logging
import os
import time

import tiktoken

from litdraft.errors import EmptyInputError, GenerationFailedError, PromptTooLargeError, StageFailedError
from litdraft.generation.llm_client import GenerationClient
from litdraft.generation.pipeline import PipelineStageSpec, ProgressCallback, ProgressPipeline, StageKind
from litdraft.models import Document, DocumentProjection, Theme

logger = logging.getLogger(__name__)

# Leaves room for the 2000-token answer inside a 128k context window
MAX_PROMPT_TOKENS = int(os.getenv("MAX_PROMPT_TOKENS", "120000"))
TOKEN_ENCODING = "cl100k_base"

GENERATION_STAGE = "Draft Generation"

SYSTEM_PROMPT = """
<Task Context>
This is the drafting step of LitDraft, a research assistant that helps researchers turn a set of saved PubMed articles into the introduction of a research paper.
The user has searched PubMed, saved the articles they consider relevant, and rated the themes they want the introduction to cover.
</Task Context>

<Role Context>
You are an expert academic writer in the biomedical sciences.
Your role is to synthesize the saved literature into a rigorous, well-structured introduction that is backed by verifiable citations.
</Role Context>

<Task Description>
Review every article in <Literature> and the themes in <Themes>.
Give more space to themes with higher importance (1 = minor, 10 = central).
Provide context for the research topic, show how the themes interrelate, identify gaps or controversies in the literature, state a focused research question, and briefly outline the structure of the paper.
</Task Description>

<Constraints>
Your answer must be based exclusively on the content provided in <Literature>.
Write approximately 750-1000 words of continuous prose. Do not add a references section.
CRITICAL: Cite sources inline using their EXACT [ID...] identifiers from <Literature>, e.g. [ID12345678].
CRITICAL: Do NOT use numbered citations like [1], [2], [3] or author-year citations.
</Constraints>
"""


def default_stages(generate: Callable) -> List[PipelineStageSpec]:
    """The displayed generation steps; only Draft Generation does real work."""
    return [
        PipelineStageSpec(
            name="Hybrid Retrieval-Generation Models",
            speed_factor=2.0,
            description="Retrieving relevant information from the saved articles and generating initial content."
        ),
        PipelineStageSpec(
            name="Knowledge-Enhanced Text Generation",
            speed_factor=1.5,
            description="Using extracted knowledge to generate factually accurate text with in-line citations."
        ),
        PipelineStageSpec(
            name="Memory-Augmented Neural Networks (MANNs)",
            speed_factor=1.0,
            description="Combining information from multiple articles."
        ),
        PipelineStageSpec(
            name="Attention Mechanisms",
            speed_factor=1.5,
            description="Identifying key points and deciding where citations belong."
        ),
        PipelineStageSpec(
            name="Content Extraction",
            kind=StageKind.FIXED_DURATION,
            description="Extracting key concepts, quotes, and summaries."
        ),
        PipelineStageSpec(
            name=GENERATION_STAGE,
            speed_factor=1.0,
            description="Generating the introduction draft using the extracted content.",
            work=generate
        ),
        PipelineStageSpec(
            name="Final Refinement",
            kind=StageKind.FIXED_DURATION,
            description="Refining the generated draft for coherence and clarity."
        ),
    ]


def project_document(document: Document) -> DocumentProjection:
    """Reduce a Document to what the prompt needs; title and content are concatenated untruncated."""
    content = "\n".join(part for part in (document.title, document.content) if part)
    return DocumentProjection(id=document.id, abstract=document.abstract or "", content=content)


def build_messages(projections: Sequence[DocumentProjection], themes: Sequence[Theme]) -> List[dict]:
    """Build the system + user messages. Same input always yields the same prompt."""
    user_message = (
        f"<Literature>\nBelow are {len(projections)} saved articles. "
        f"Each article starts with its unique [ID...] identifier.\n"
    )
    for projection in projections:
        user_message += (
            f"[ID{projection.id}]\n"
            f"Content: {projection.content}\n"
            f"Abstract: {projection.abstract}\n\n"
        )
    user_message += "</Literature>\n\n<Themes>\n"
    for theme in themes:
        user_message += f"Theme: {theme.text}, Importance: {theme.importance}\n"
    user_message += "</Themes>\n\nWrite the introduction."

    return [
        {'role': 'system', 'content': SYSTEM_PROMPT},
        {'role': 'user', 'content': user_message},
    ]


_encoder = None


def count_tokens(text: str) -> int:
    """Count tokens with the OpenAI tokenizer (loaded on first use)."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding(TOKEN_ENCODING)
    return len(_encoder.encode(text))


class ThemeExtractionOrchestrator:
    """
    Coordinates the progress pipeline with the one LLM call.

    The stage list is built per call so every run gets fresh stage state;
    pass stages_factory to replace the default display stages.
    """

    def __init__(
        self,
        client: GenerationClient,
        pipeline: Optional[ProgressPipeline] = None,
        stages_factory: Callable[[Callable], List[PipelineStageSpec]] = default_stages,
        max_prompt_tokens: int = MAX_PROMPT_TOKENS,
        token_counter: Optional[Callable[[str], int]] = None
    ):
        self.client = client
        self.pipeline = pipeline or ProgressPipeline()
        self.stages_factory = stages_factory
        self.max_prompt_tokens = max_prompt_tokens
        self.token_counter = token_counter or count_tokens

    def prepare_messages(self, documents: Sequence[Document], themes: Sequence[Theme]) -> List[dict]:
        """Validate input and build the prompt, enforcing the token budget."""
        if not documents:
            raise EmptyInputError()

        projections = [project_document(doc) for doc in documents]
        messages = build_messages(projections, themes)

        token_count = sum(self.token_counter(m['content']) for m in messages)
        logger.info(f"Prompt: {len(projections)} articles, {len(themes)} themes, {token_count:,} tokens")
        if token_count > self.max_prompt_tokens:
            raise PromptTooLargeError(token_count, self.max_prompt_tokens)

        return messages

    async def extract_and_generate(
        self,
        documents: Sequence[Document],
        themes: Sequence[Theme],
        on_progress: Optional[ProgressCallback] = None
    ) -> str:
        """
        Generate an introduction draft from saved articles and weighted themes.

        Returns:
            The generated text exactly as the LLM returned it, with [ID...] markers

        Raises:
            EmptyInputError: no documents
            PromptTooLargeError: prompt over max_prompt_tokens
            GenerationFailedError: the LLM call failed or returned unusable data
        """
        messages = self.prepare_messages(documents, themes)

        async def generate() -> str:
            return await self.client.complete(messages)

        stages = self.stages_factory(generate)
        generation_start = time.time()
        try:
            results = await self.pipeline.run(stages, on_progress)
        except StageFailedError as e:
            cause = e.__cause__
            logger.error(f"Error generating introduction in stage '{e.stage_name}': {cause}", exc_info=cause)
            raise GenerationFailedError(
                f"Error generating introduction: {cause}",
                stage_name=e.stage_name
            ) from cause

        generated = next((r for r in results.values() if r is not None), None)
        if not isinstance(generated, str):
            raise GenerationFailedError("Generation stage produced no text")

        logger.info(f"Generated introduction ({len(generated)} chars) in {(time.time() - generation_start) * 1000:.0f}ms")
        return generated
