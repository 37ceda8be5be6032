from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List

from coachblocks.blocks.cleaner import clean_text, partial_cut, remove_spans, strip_blocks
from coachblocks.blocks.config import DEFAULT_CONFIG, ExtractorConfig
from coachblocks.blocks.decoder import decode_payload, find_bare_suggestions
from coachblocks.blocks.matcher import find_all_blocks, find_blocks
from coachblocks.blocks.partial import detect_partial
from coachblocks.core.tracing import TraceWriter, emit
from coachblocks.core.types import (
    COMPLETE,
    METRICS,
    SCORES,
    SUGGESTIONS,
    SURVEY_QUESTIONS,
    TASKS,
    AdliScores,
    CoachSuggestion,
    MetricSuggestion,
    SuggestionTask,
    SurveyQuestionSuggestion,
    TextBlock,
)

logger = logging.getLogger(__name__)

SOURCE_FENCED = "fenced"
SOURCE_LEGACY = "legacy"
SOURCE_BARE = "bare"


@dataclass(slots=True)
class ScoreExtraction:
    scores: AdliScores | None
    cleaned_text: str


@dataclass(slots=True)
class SuggestionExtraction:
    suggestions: List[CoachSuggestion]
    cleaned_text: str
    source: str | None = None
    bare_spans: List[tuple[int, int]] = field(default_factory=list)


@dataclass(slots=True)
class TaskExtraction:
    tasks: List[SuggestionTask]
    cleaned_text: str


@dataclass(slots=True)
class MetricExtraction:
    metrics: List[MetricSuggestion]
    cleaned_text: str


@dataclass(slots=True)
class SurveyQuestionExtraction:
    questions: List[SurveyQuestionSuggestion]
    cleaned_text: str


@dataclass(slots=True)
class MessageExtraction:
    cleaned_text: str
    scores: AdliScores | None = None
    suggestions: List[CoachSuggestion] = field(default_factory=list)
    suggestion_source: str | None = None
    tasks: List[SuggestionTask] = field(default_factory=list)
    metrics: List[MetricSuggestion] = field(default_factory=list)
    questions: List[SurveyQuestionSuggestion] = field(default_factory=list)
    partial_kind: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cleaned_text": self.cleaned_text,
            "scores": self.scores.to_dict() if self.scores is not None else None,
            "suggestions": [item.to_dict() for item in self.suggestions],
            "suggestion_source": self.suggestion_source,
            "tasks": [item.to_dict() for item in self.tasks],
            "metrics": [item.to_dict() for item in self.metrics],
            "questions": [item.to_dict() for item in self.questions],
            "partial_kind": self.partial_kind,
        }


def _decode_block(
    block: TextBlock,
    config: ExtractorConfig,
    tracer: TraceWriter | None,
    *,
    legacy: bool = False,
) -> Any:
    warnings: list[str] = []
    decoded = decode_payload(
        block.kind,
        block.raw_payload or "",
        legacy=legacy,
        config=config,
        warnings=warnings,
    )
    emit(tracer, "block_matched", {"kind": block.kind, "tag": block.tag, "state": block.state})
    for reason in warnings:
        logger.debug("discarding %s block: %s", block.tag, reason)
        emit(tracer, "block_decode_warning", {"kind": block.kind, "tag": block.tag, "reason": reason})
    return decoded


def _first_complete(blocks: list[TextBlock], tags: set[str]) -> TextBlock | None:
    for block in blocks:
        if block.state == COMPLETE and block.tag in tags:
            return block
    return None


def _extract_list(
    text: str,
    kind: str,
    config: ExtractorConfig,
    tracer: TraceWriter | None,
) -> tuple[list[Any], str]:
    blocks = find_blocks(text, kind, config)
    block = _first_complete(blocks, {spec.tag for spec in config.specs_for(kind)})
    if block is None:
        return [], strip_blocks(text, blocks)
    decoded = _decode_block(block, config, tracer)
    return decoded or [], strip_blocks(text, blocks)


def extract_scores(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> ScoreExtraction:
    blocks = find_blocks(text, SCORES, config)
    block = _first_complete(blocks, {spec.tag for spec in config.specs_for(SCORES)})
    scores = _decode_block(block, config, tracer) if block is not None else None
    return ScoreExtraction(scores=scores, cleaned_text=strip_blocks(text, blocks))


def _bare_candidates(
    text: str, config: ExtractorConfig
) -> list[tuple[CoachSuggestion, int, int]]:
    blocks = find_all_blocks(text, config)
    cut = partial_cut(blocks)
    limit = len(text) if cut is None else cut
    occupied = [(block.start, block.end) for block in blocks]
    candidates: list[tuple[CoachSuggestion, int, int]] = []
    for suggestion, start, end in find_bare_suggestions(text, config):
        if end > limit:
            continue
        if any(start < block_end and end > block_start for block_start, block_end in occupied):
            continue
        candidates.append((suggestion, start, end))
    return candidates


def extract_suggestions(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> SuggestionExtraction:
    """Extract coach suggestions from fenced, legacy or bare payloads.

    The current list tag wins over the legacy single-object tag. Bare
    ``{"field", "content"}`` objects in the prose are only considered when
    neither fenced form produced a suggestion.
    """
    specs = config.specs_for(SUGGESTIONS)
    blocks = find_blocks(text, SUGGESTIONS, config)
    cleaned = strip_blocks(text, blocks)

    suggestions: list[CoachSuggestion] = []
    source: str | None = None
    block = _first_complete(blocks, {spec.tag for spec in specs if not spec.legacy})
    if block is not None:
        suggestions = _decode_block(block, config, tracer) or []
        source = SOURCE_FENCED if suggestions else None
    else:
        block = _first_complete(blocks, {spec.tag for spec in specs if spec.legacy})
        if block is not None:
            suggestions = _decode_block(block, config, tracer, legacy=True) or []
            source = SOURCE_LEGACY if suggestions else None

    if suggestions or not config.bare_fallback:
        return SuggestionExtraction(suggestions=suggestions, cleaned_text=cleaned, source=source)

    candidates = _bare_candidates(text, config)
    if not candidates:
        return SuggestionExtraction(suggestions=[], cleaned_text=cleaned)

    emit(tracer, "bare_fallback_used", {"count": len(candidates)})
    bare_spans = [(start, end) for _suggestion, start, end in candidates]
    spans = [(item.start, item.end) for item in blocks if item.state == COMPLETE]
    return SuggestionExtraction(
        suggestions=[suggestion for suggestion, _start, _end in candidates],
        cleaned_text=remove_spans(text, spans + bare_spans).strip(),
        source=SOURCE_BARE,
        bare_spans=bare_spans,
    )


def extract_tasks(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> TaskExtraction:
    tasks, cleaned = _extract_list(text, TASKS, config, tracer)
    return TaskExtraction(tasks=tasks, cleaned_text=cleaned)


def extract_metrics(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> MetricExtraction:
    metrics, cleaned = _extract_list(text, METRICS, config, tracer)
    return MetricExtraction(metrics=metrics, cleaned_text=cleaned)


def extract_survey_questions(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> SurveyQuestionExtraction:
    questions, cleaned = _extract_list(text, SURVEY_QUESTIONS, config, tracer)
    return SurveyQuestionExtraction(questions=questions, cleaned_text=cleaned)


def extract_message(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> MessageExtraction:
    """Run every extractor over one assistant message, complete or mid-stream."""
    scores = extract_scores(text, config, tracer=tracer)
    suggestions = extract_suggestions(text, config, tracer=tracer)
    tasks = extract_tasks(text, config, tracer=tracer)
    metrics = extract_metrics(text, config, tracer=tracer)
    questions = extract_survey_questions(text, config, tracer=tracer)
    result = MessageExtraction(
        cleaned_text=clean_text(text, config, extra_spans=suggestions.bare_spans),
        scores=scores.scores,
        suggestions=suggestions.suggestions,
        suggestion_source=suggestions.source,
        tasks=tasks.tasks,
        metrics=metrics.metrics,
        questions=questions.questions,
        partial_kind=detect_partial(text, config),
    )
    emit(
        tracer,
        "extraction_done",
        {
            "scores": result.scores is not None,
            "suggestions": len(result.suggestions),
            "suggestion_source": result.suggestion_source,
            "tasks": len(result.tasks),
            "metrics": len(result.metrics),
            "questions": len(result.questions),
            "partial_kind": result.partial_kind,
        },
    )
    return result
