"""Content byte extraction over a chain of generative-text providers."""

from bytefeed.extraction.categorizer import SourceCategorizer
from bytefeed.extraction.errors import (
    ExtractionError,
    LlmApiError,
    LlmAuthError,
    LlmProcessingError,
)
from bytefeed.extraction.factory import build_provider_chain
from bytefeed.extraction.json_utils import parse_ai_response
from bytefeed.extraction.models import ExtractionResult, SourceCategorization, SourceInfo
from bytefeed.extraction.pipeline import ExtractionPipeline, estimate_read_time
from bytefeed.extraction.protocols import LlmClient
from bytefeed.extraction.validation import validate_bytes


__all__ = [
    "ExtractionError",
    "ExtractionPipeline",
    "ExtractionResult",
    "LlmApiError",
    "LlmAuthError",
    "LlmClient",
    "LlmProcessingError",
    "SourceCategorization",
    "SourceCategorizer",
    "SourceInfo",
    "build_provider_chain",
    "estimate_read_time",
    "parse_ai_response",
    "validate_bytes",
]
