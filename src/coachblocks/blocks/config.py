from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from coachblocks.core.types import (
    BLOCK_KINDS,
    METRICS,
    SCORES,
    SUGGESTIONS,
    SURVEY_QUESTIONS,
    TASKS,
)

SCORES_TAG = "adli-scores"
SUGGESTIONS_TAG = "coach-suggestions"
LEGACY_SUGGESTION_TAG = "adli-suggestion"
TASKS_TAG = "proposed-tasks"
METRICS_TAG = "metric-suggestions"
SURVEY_QUESTIONS_TAG = "survey-questions"

FIELD_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "charter": "Charter",
        "adli_approach": "ADLI: Approach",
        "adli_deployment": "ADLI: Deployment",
        "adli_learning": "ADLI: Learning",
        "adli_integration": "ADLI: Integration",
        "workflow": "Process Map",
    }
)

# charter_cleanup carries a multi-field mapping and has no display label
UNLABELLED_FIELDS = frozenset({"charter_cleanup"})

PARTIAL_LABELS: Mapping[str, str] = MappingProxyType(
    {
        SCORES: "Computing scores...",
        SUGGESTIONS: "Drafting suggestions...",
        TASKS: "Proposing tasks...",
        METRICS: "Finding metrics...",
        SURVEY_QUESTIONS: "Writing survey questions...",
    }
)

_ENV_BARE_FALLBACK = "COACHBLOCKS_BARE_FALLBACK"
_ENV_SETTINGS = "COACHBLOCKS_SETTINGS"


@dataclass(frozen=True, slots=True)
class BlockSpec:
    kind: str
    tag: str
    greedy: bool = False
    legacy: bool = False

    def __post_init__(self) -> None:
        if self.kind not in BLOCK_KINDS:
            raise ValueError(f"Unknown block kind '{self.kind}'")


DEFAULT_BLOCK_SPECS = (
    BlockSpec(SCORES, SCORES_TAG),
    BlockSpec(SUGGESTIONS, SUGGESTIONS_TAG, greedy=True),
    BlockSpec(SUGGESTIONS, LEGACY_SUGGESTION_TAG, greedy=True, legacy=True),
    BlockSpec(TASKS, TASKS_TAG),
    BlockSpec(METRICS, METRICS_TAG),
    BlockSpec(SURVEY_QUESTIONS, SURVEY_QUESTIONS_TAG),
)


@dataclass(frozen=True, slots=True)
class ExtractorConfig:
    block_specs: tuple[BlockSpec, ...] = DEFAULT_BLOCK_SPECS
    field_labels: Mapping[str, str] = field(default_factory=lambda: FIELD_LABELS)
    extra_fields: frozenset[str] = UNLABELLED_FIELDS
    bare_fallback: bool = True

    def specs_for(self, kind: str) -> tuple[BlockSpec, ...]:
        return tuple(spec for spec in self.block_specs if spec.kind == kind)

    @property
    def kinds(self) -> tuple[str, ...]:
        seen: list[str] = []
        for spec in self.block_specs:
            if spec.kind not in seen:
                seen.append(spec.kind)
        return tuple(seen)

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(spec.tag for spec in self.block_specs)

    @property
    def suggestion_fields(self) -> frozenset[str]:
        return frozenset(self.field_labels) | self.extra_fields

    def label_for(self, field_name: str) -> str:
        return self.field_labels.get(field_name, field_name)

    def with_field_labels(self, labels: Mapping[str, str]) -> "ExtractorConfig":
        merged = dict(self.field_labels)
        merged.update(labels)
        return replace(self, field_labels=MappingProxyType(merged))


DEFAULT_CONFIG = ExtractorConfig()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _load_settings_payload(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}
    if not isinstance(payload, dict):
        return {}
    return payload


def _coerce_labels(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("field_labels must be a JSON object")
    labels: dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError("field_labels must map field -> label")
        labels[key] = value
    return labels


def _coerce_fields(raw: Any) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ValueError("extra_fields must be a JSON list of strings")
    return frozenset(raw)


def load_config(settings_path: Path | None = None) -> ExtractorConfig:
    """Build an extractor config from the environment and an optional settings file.

    The settings file is JSON with optional ``field_labels`` (object),
    ``extra_fields`` (list of field ids) and ``bare_fallback`` (bool) keys.
    ``COACHBLOCKS_BARE_FALLBACK`` overrides the file's ``bare_fallback``.
    """
    if settings_path is None:
        env_path = os.getenv(_ENV_SETTINGS)
        settings_path = Path(env_path) if env_path else None
    payload = _load_settings_payload(settings_path) if settings_path else {}

    labels = _coerce_labels(payload.get("field_labels"))
    extra_fields = _coerce_fields(payload.get("extra_fields"))
    bare_default = payload.get("bare_fallback", True)
    if not isinstance(bare_default, bool):
        raise ValueError("bare_fallback must be a boolean")

    config = ExtractorConfig(
        extra_fields=UNLABELLED_FIELDS | extra_fields,
        bare_fallback=_env_bool(_ENV_BARE_FALLBACK, bare_default),
    )
    if labels:
        config = config.with_field_labels(labels)
    return config
