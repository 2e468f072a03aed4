"""Planning document rendering and review card lifecycle."""

from .lifecycle import (
    ALLOWED_TRANSITIONS,
    COMPLETE_LANE,
    REVIEW_LANE,
    DocumentGenerationResult,
    DocumentLifecycle,
    GenerateAllResult,
)
from .templates import document_file_name, render_document

__all__ = [
    "ALLOWED_TRANSITIONS",
    "COMPLETE_LANE",
    "REVIEW_LANE",
    "DocumentGenerationResult",
    "DocumentLifecycle",
    "GenerateAllResult",
    "document_file_name",
    "render_document",
]
