"""Core data contracts and utilities."""

from .tracing import TraceEvent, TraceWriter
from .types import (
    AdliScores,
    CoachSuggestion,
    MetricSuggestion,
    SuggestionTask,
    SurveyQuestionSuggestion,
    TextBlock,
)

__all__ = [
    "AdliScores",
    "CoachSuggestion",
    "MetricSuggestion",
    "SuggestionTask",
    "SurveyQuestionSuggestion",
    "TextBlock",
    "TraceEvent",
    "TraceWriter",
]
