from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

SCORES = "scores"
SUGGESTIONS = "suggestions"
TASKS = "tasks"
METRICS = "metrics"
SURVEY_QUESTIONS = "survey-questions"

BLOCK_KINDS = (SCORES, SUGGESTIONS, TASKS, METRICS, SURVEY_QUESTIONS)

ABSENT = "absent"
PARTIAL = "partial"
COMPLETE = "complete"

ADLI_DIMENSIONS = ("approach", "deployment", "learning", "integration")
PDCA_SECTIONS = ("plan", "execute", "evaluate", "improve")
TASK_PRIORITIES = ("high", "medium", "low")
SUGGESTION_PRIORITIES = ("quick-win", "important", "long-term")
SUGGESTION_EFFORTS = ("minimal", "moderate", "substantial")
METRIC_ACTIONS = ("link", "create")
QUESTION_TYPES = ("rating", "yes_no")


@dataclass(frozen=True, slots=True)
class TextBlock:
    kind: str
    tag: str
    state: str
    start: int
    end: int
    raw_payload: str | None = None


@dataclass(slots=True)
class AdliScores:
    approach: float
    deployment: float
    learning: float
    integration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "approach": self.approach,
            "deployment": self.deployment,
            "learning": self.learning,
            "integration": self.integration,
        }


@dataclass(slots=True)
class SuggestionTask:
    title: str
    description: str
    pdca_section: str
    adli_dimension: str
    priority: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "pdcaSection": self.pdca_section,
            "adliDimension": self.adli_dimension,
        }
        if self.priority is not None:
            payload["priority"] = self.priority
        return payload


@dataclass(slots=True)
class CoachSuggestion:
    id: str
    field: str
    priority: str
    effort: str
    title: str
    why_matters: str
    preview: str
    # str for section markdown, dict[str, str] for charter_cleanup,
    # a process map object for workflow
    content: str | dict[str, Any]
    tasks: List[SuggestionTask] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "field": self.field,
            "priority": self.priority,
            "effort": self.effort,
            "title": self.title,
            "whyMatters": self.why_matters,
            "preview": self.preview,
            "content": self.content,
        }
        if self.tasks:
            payload["tasks"] = [task.to_dict() for task in self.tasks]
        return payload


@dataclass(slots=True)
class MetricSuggestion:
    action: str
    name: str
    unit: str
    cadence: str
    reason: str
    metric_id: int | None = None
    target_value: float | None = None
    is_higher_better: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "action": self.action,
            "name": self.name,
            "unit": self.unit,
            "cadence": self.cadence,
            "reason": self.reason,
        }
        if self.metric_id is not None:
            payload["metricId"] = self.metric_id
        if self.target_value is not None:
            payload["targetValue"] = self.target_value
        if self.is_higher_better is not None:
            payload["isHigherBetter"] = self.is_higher_better
        return payload


@dataclass(slots=True)
class SurveyQuestionSuggestion:
    question_text: str
    question_type: str
    rationale: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionText": self.question_text,
            "questionType": self.question_type,
            "rationale": self.rationale,
        }
