"""Structured block extraction for assistant responses."""

from . import cleaner, decoder, extract, matcher, partial, stream
from .cleaner import clean_text
from .config import (
    DEFAULT_CONFIG,
    FIELD_LABELS,
    PARTIAL_LABELS,
    BlockSpec,
    ExtractorConfig,
    load_config,
)
from .extract import (
    MessageExtraction,
    extract_message,
    extract_metrics,
    extract_scores,
    extract_suggestions,
    extract_survey_questions,
    extract_tasks,
)
from .matcher import find_block, find_blocks
from .partial import block_state, detect_partial
from .stream import StreamAccumulator, replay

__all__ = [
    "BlockSpec",
    "DEFAULT_CONFIG",
    "ExtractorConfig",
    "FIELD_LABELS",
    "MessageExtraction",
    "PARTIAL_LABELS",
    "StreamAccumulator",
    "block_state",
    "clean_text",
    "detect_partial",
    "extract_message",
    "extract_metrics",
    "extract_scores",
    "extract_suggestions",
    "extract_survey_questions",
    "extract_tasks",
    "find_block",
    "find_blocks",
    "load_config",
    "replay",
    "cleaner",
    "decoder",
    "extract",
    "matcher",
    "partial",
    "stream",
]
