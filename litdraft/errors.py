"""
Error taxonomy for LitDraft.

Pure helpers (combination engine, citation annotator) never raise for
well-formed input. The pipeline and the orchestrator surface these to the
caller, and the API layer turns them into HTTP errors.
"""
from typing import Optional


class LitDraftError(Exception):
    """Base class for all LitDraft errors."""


class InvalidArgument(LitDraftError, ValueError):
    """A caller passed a value outside the accepted range."""


class EmptyInputError(LitDraftError):
    """Generation was requested without any saved articles."""

    def __init__(self, message: str = "Please save at least one article before generating an introduction"):
        super().__init__(message)


class PromptTooLargeError(LitDraftError):
    """The assembled prompt exceeds the generation token budget."""

    def __init__(self, token_count: int, max_tokens: int):
        self.token_count = token_count
        self.max_tokens = max_tokens
        super().__init__(
            f"Prompt is {token_count:,} tokens, limit is {max_tokens:,}. "
            f"Remove some saved articles and try again."
        )


class MalformedResponseError(LitDraftError):
    """The LLM provider answered, but the body has no usable text."""


class StageFailedError(LitDraftError):
    """A pipeline stage's work raised; the cause is chained via __cause__."""

    def __init__(self, stage_name: str, message: Optional[str] = None):
        self.stage_name = stage_name
        super().__init__(message or f"Pipeline stage '{stage_name}' failed")


class GenerationFailedError(LitDraftError):
    """The external generation call failed or returned unusable data."""

    def __init__(self, message: str, stage_name: Optional[str] = None):
        self.stage_name = stage_name
        super().__init__(message)


class ProviderUnavailableError(LitDraftError):
    """The selected LLM provider cannot be used with the current configuration."""
