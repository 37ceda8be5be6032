from __future__ import annotations

import json
import math
import re
from typing import Any, Callable

from coachblocks.blocks.config import DEFAULT_CONFIG, ExtractorConfig
from coachblocks.core.types import (
    ADLI_DIMENSIONS,
    METRIC_ACTIONS,
    METRICS,
    PDCA_SECTIONS,
    QUESTION_TYPES,
    SCORES,
    SUGGESTION_EFFORTS,
    SUGGESTION_PRIORITIES,
    SUGGESTIONS,
    SURVEY_QUESTIONS,
    TASK_PRIORITIES,
    TASKS,
    AdliScores,
    CoachSuggestion,
    MetricSuggestion,
    SuggestionTask,
    SurveyQuestionSuggestion,
)

LEGACY_ID = "legacy"
DEFAULT_PRIORITY = "important"
DEFAULT_EFFORT = "moderate"
DEFAULT_WHY_MATTERS = "AI-suggested improvement for this section."
DEFAULT_PREVIEW = "Apply the suggested content to this section."

_BARE_SUGGESTION_PATTERN = re.compile(
    r'\{\s*"field"\s*:\s*"(?P<field>[A-Za-z0-9_]+)"\s*,'
    r'\s*"content"\s*:\s*"(?:[^"\\]|\\.)*"\s*\}'
)

_MISSING = object()


class _Invalid(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _require_str(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if not isinstance(value, str):
        raise _Invalid(f"{key}_invalid")
    return value


def _optional_str(item: dict[str, Any], key: str, default: str) -> str:
    value = item.get(key, _MISSING)
    if value is _MISSING or value is None:
        return default
    if not isinstance(value, str):
        raise _Invalid(f"{key}_invalid")
    return value


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_number(item: dict[str, Any], key: str) -> float:
    value = item.get(key)
    if not _is_number(value):
        raise _Invalid(f"{key}_invalid")
    return value


def _require_choice(item: dict[str, Any], key: str, choices: tuple[str, ...]) -> str:
    value = item.get(key)
    if value not in choices:
        raise _Invalid(f"{key}_invalid")
    return value


def _optional_choice(
    item: dict[str, Any], key: str, choices: tuple[str, ...], default: str | None
) -> str | None:
    value = item.get(key)
    if value is None:
        return default
    if value not in choices:
        raise _Invalid(f"{key}_invalid")
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name}")


def _load_json(raw: str, warnings: list[str]) -> Any:
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except ValueError:
        warnings.append("payload_json_invalid")
        return _MISSING


def _coerce_list(
    data: Any,
    coerce_item: Callable[[dict[str, Any], int], Any],
    warnings: list[str],
) -> list[Any] | None:
    if not isinstance(data, list):
        warnings.append("payload_not_list")
        return None
    items: list[Any] = []
    for index, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            warnings.append("item_not_object")
            return None
        try:
            items.append(coerce_item(item, index))
        except _Invalid as exc:
            warnings.append(exc.reason)
            return None
    return items


def _coerce_scores(data: Any, warnings: list[str]) -> AdliScores | None:
    if not isinstance(data, dict):
        warnings.append("payload_not_object")
        return None
    try:
        values = {name: _require_number(data, name) for name in ADLI_DIMENSIONS}
    except _Invalid as exc:
        warnings.append(exc.reason)
        return None
    return AdliScores(**values)


def _coerce_task(item: dict[str, Any], _index: int = 0) -> SuggestionTask:
    return SuggestionTask(
        title=_require_str(item, "title"),
        description=_require_str(item, "description"),
        pdca_section=_require_choice(item, "pdcaSection", PDCA_SECTIONS),
        adli_dimension=_require_choice(item, "adliDimension", ADLI_DIMENSIONS),
        priority=_optional_choice(item, "priority", TASK_PRIORITIES, None),
    )


def _coerce_content(item: dict[str, Any]) -> str | dict[str, Any]:
    content = item.get("content")
    if isinstance(content, (str, dict)):
        return content
    raise _Invalid("content_invalid")


def _coerce_field(item: dict[str, Any], config: ExtractorConfig) -> str:
    field_name = item.get("field")
    if not isinstance(field_name, str) or field_name not in config.suggestion_fields:
        raise _Invalid("field_invalid")
    return field_name


def _default_title(field_name: str, config: ExtractorConfig) -> str:
    return f"Update {config.label_for(field_name)}"


def _coerce_suggestion(
    item: dict[str, Any], index: int, config: ExtractorConfig
) -> CoachSuggestion:
    field_name = _coerce_field(item, config)
    raw_id = item.get("id")
    if isinstance(raw_id, str) and raw_id:
        suggestion_id = raw_id
    elif _is_number(raw_id):
        suggestion_id = str(raw_id)
    elif raw_id is None:
        suggestion_id = f"suggestion-{index}"
    else:
        raise _Invalid("id_invalid")

    tasks_raw = item.get("tasks")
    tasks: list[SuggestionTask] = []
    if tasks_raw is not None:
        if not isinstance(tasks_raw, list) or not all(
            isinstance(task, dict) for task in tasks_raw
        ):
            raise _Invalid("tasks_invalid")
        tasks = [_coerce_task(task) for task in tasks_raw]

    return CoachSuggestion(
        id=suggestion_id,
        field=field_name,
        priority=_optional_choice(item, "priority", SUGGESTION_PRIORITIES, DEFAULT_PRIORITY),
        effort=_optional_choice(item, "effort", SUGGESTION_EFFORTS, DEFAULT_EFFORT),
        title=_optional_str(item, "title", _default_title(field_name, config)),
        why_matters=_optional_str(item, "whyMatters", DEFAULT_WHY_MATTERS),
        preview=_optional_str(item, "preview", DEFAULT_PREVIEW),
        content=_coerce_content(item),
        tasks=tasks,
    )


def _simple_suggestion(
    suggestion_id: str, field_name: str, content: Any, config: ExtractorConfig
) -> CoachSuggestion:
    return CoachSuggestion(
        id=suggestion_id,
        field=field_name,
        priority=DEFAULT_PRIORITY,
        effort=DEFAULT_EFFORT,
        title=_default_title(field_name, config),
        why_matters=DEFAULT_WHY_MATTERS,
        preview=DEFAULT_PREVIEW,
        content=content,
    )


def _coerce_metric(item: dict[str, Any], _index: int = 0) -> MetricSuggestion:
    metric_id = item.get("metricId")
    if metric_id is not None and (not isinstance(metric_id, int) or isinstance(metric_id, bool)):
        raise _Invalid("metricId_invalid")
    target_value = item.get("targetValue")
    if target_value is not None and not _is_number(target_value):
        raise _Invalid("targetValue_invalid")
    is_higher_better = item.get("isHigherBetter")
    if is_higher_better is not None and not isinstance(is_higher_better, bool):
        raise _Invalid("isHigherBetter_invalid")
    return MetricSuggestion(
        action=_require_choice(item, "action", METRIC_ACTIONS),
        name=_require_str(item, "name"),
        unit=_require_str(item, "unit"),
        cadence=_require_str(item, "cadence"),
        reason=_require_str(item, "reason"),
        metric_id=metric_id,
        target_value=target_value,
        is_higher_better=is_higher_better,
    )


def _coerce_question(item: dict[str, Any], _index: int = 0) -> SurveyQuestionSuggestion:
    return SurveyQuestionSuggestion(
        question_text=_require_str(item, "questionText"),
        question_type=_require_choice(item, "questionType", QUESTION_TYPES),
        rationale=_require_str(item, "rationale"),
    )


def decode_scores(raw: str, warnings: list[str] | None = None) -> AdliScores | None:
    warnings = warnings if warnings is not None else []
    data = _load_json(raw, warnings)
    if data is _MISSING:
        return None
    return _coerce_scores(data, warnings)


def decode_suggestions(
    raw: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    warnings: list[str] | None = None,
) -> list[CoachSuggestion] | None:
    warnings = warnings if warnings is not None else []
    data = _load_json(raw, warnings)
    if data is _MISSING:
        return None
    return _coerce_list(
        data,
        lambda item, index: _coerce_suggestion(item, index, config),
        warnings,
    )


def decode_legacy_suggestion(
    raw: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    warnings: list[str] | None = None,
) -> list[CoachSuggestion] | None:
    """Decode the old single-object ``{"field", "content"}`` suggestion payload."""
    warnings = warnings if warnings is not None else []
    data = _load_json(raw, warnings)
    if data is _MISSING:
        return None
    if not isinstance(data, dict):
        warnings.append("payload_not_object")
        return None
    try:
        field_name = _coerce_field(data, config)
        content = _coerce_content(data)
    except _Invalid as exc:
        warnings.append(exc.reason)
        return None
    return [_simple_suggestion(LEGACY_ID, field_name, content, config)]


def decode_tasks(raw: str, warnings: list[str] | None = None) -> list[SuggestionTask] | None:
    warnings = warnings if warnings is not None else []
    data = _load_json(raw, warnings)
    if data is _MISSING:
        return None
    return _coerce_list(data, _coerce_task, warnings)


def decode_metrics(raw: str, warnings: list[str] | None = None) -> list[MetricSuggestion] | None:
    warnings = warnings if warnings is not None else []
    data = _load_json(raw, warnings)
    if data is _MISSING:
        return None
    return _coerce_list(data, _coerce_metric, warnings)


def decode_survey_questions(
    raw: str, warnings: list[str] | None = None
) -> list[SurveyQuestionSuggestion] | None:
    warnings = warnings if warnings is not None else []
    data = _load_json(raw, warnings)
    if data is _MISSING:
        return None
    return _coerce_list(data, _coerce_question, warnings)


def decode_payload(
    kind: str,
    raw: str,
    *,
    legacy: bool = False,
    config: ExtractorConfig = DEFAULT_CONFIG,
    warnings: list[str] | None = None,
) -> Any:
    """Decode ``raw`` for ``kind``; None means the block counts as absent."""
    if kind == SCORES:
        return decode_scores(raw, warnings)
    if kind == SUGGESTIONS:
        if legacy:
            return decode_legacy_suggestion(raw, config, warnings)
        return decode_suggestions(raw, config, warnings)
    if kind == TASKS:
        return decode_tasks(raw, warnings)
    if kind == METRICS:
        return decode_metrics(raw, warnings)
    if kind == SURVEY_QUESTIONS:
        return decode_survey_questions(raw, warnings)
    raise ValueError(f"Unknown block kind '{kind}'")


def find_bare_suggestions(
    text: str, config: ExtractorConfig = DEFAULT_CONFIG
) -> list[tuple[CoachSuggestion, int, int]]:
    """Find unfenced ``{"field": ..., "content": ...}`` objects in prose.

    Returns each decoded suggestion with the span it occupied in ``text``.
    """
    found: list[tuple[CoachSuggestion, int, int]] = []
    fields = config.suggestion_fields
    for match in _BARE_SUGGESTION_PATTERN.finditer(text):
        if match.group("field") not in fields:
            continue
        try:
            data = json.loads(match.group(0), strict=False)
        except json.JSONDecodeError:
            continue
        content = data.get("content")
        if not isinstance(content, str):
            continue
        suggestion = _simple_suggestion(
            f"bare-{len(found) + 1}", match.group("field"), content, config
        )
        found.append((suggestion, match.start(), match.end()))
    return found
