"""
Bill detail extractors.

Provides:
- ExtractorEnsemble: Runs all strategies concurrently, keeps the best result
- PdfTextExtractor: Regex heuristics over the PDF text layer
- ClaudeExtractor: Anthropic Messages API with a strict-JSON prompt
- Base classes for custom extractors

Strategies are pluggable and testable.
"""

from .base import BaseExtractor, BillDetails, ScoredField, round_confidence
from .claude_extractor import ClaudeExtractor
from .ensemble import (
    ExtractorEnsemble,
    ExtractorOutcome,
    NoExtractorsRegisteredError,
    OutcomeStatus,
    create_default_ensemble,
)
from .heuristic_extractor import PdfTextExtractor
from .pdf_text import TextExtractionError, extract_pdf_text

__all__ = [
    "ExtractorEnsemble",
    "ExtractorOutcome",
    "OutcomeStatus",
    "NoExtractorsRegisteredError",
    "create_default_ensemble",
    "PdfTextExtractor",
    "ClaudeExtractor",
    "BaseExtractor",
    "BillDetails",
    "ScoredField",
    "round_confidence",
    "TextExtractionError",
    "extract_pdf_text",
]
