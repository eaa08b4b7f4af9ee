"""
Generation module: progress pipeline, introduction drafting and citation handling.
"""
from .citations import annotate, cited_documents
from .pipeline import PipelineStageSpec, ProgressPipeline, StageKind
from .theme_extraction import ThemeExtractionOrchestrator

__all__ = [
    'annotate', 'cited_documents',
    'PipelineStageSpec', 'ProgressPipeline', 'StageKind',
    'ThemeExtractionOrchestrator',
]
