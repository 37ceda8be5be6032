import json
from pathlib import Path

from coachblocks.blocks import extract
from coachblocks.blocks.config import FIELD_LABELS
from coachblocks.core.tracing import TraceWriter


def _suggestion(**overrides) -> dict:
    payload = {
        "id": "s1",
        "field": "charter",
        "priority": "quick-win",
        "effort": "minimal",
        "title": "Improve charter",
        "whyMatters": "Clarity",
        "preview": "...",
        "content": "New charter text",
    }
    payload.update(overrides)
    return payload


def test_extract_scores_parses_and_strips_block() -> None:
    text = (
        "Here is the assessment:\n"
        "```adli-scores\n"
        '{"approach":70,"deployment":55,"learning":40,"integration":60}\n'
        "```\n"
        "Overall analysis follows."
    )

    result = extract.extract_scores(text)

    assert result.scores is not None
    assert result.scores.to_dict() == {
        "approach": 70,
        "deployment": 55,
        "learning": 40,
        "integration": 60,
    }
    assert result.cleaned_text == "Here is the assessment:\nOverall analysis follows."


def test_extract_scores_without_block_returns_input() -> None:
    text = "Just a regular message with no scores."

    result = extract.extract_scores(text)

    assert result.scores is None
    assert result.cleaned_text == text


def test_extract_scores_malformed_json_still_strips_markup() -> None:
    text = "Before\n```adli-scores\n{broken json}\n```\nAfter"

    result = extract.extract_scores(text)

    assert result.scores is None
    assert result.cleaned_text == "Before\nAfter"


def test_extract_scores_missing_dimension_is_discarded() -> None:
    text = '```adli-scores\n{"approach": 50}\n```'

    result = extract.extract_scores(text)

    assert result.scores is None
    assert result.cleaned_text == ""


def test_extract_suggestions_parses_fenced_list() -> None:
    text = f"Analysis:\n```coach-suggestions\n{json.dumps([_suggestion()])}\n```\nDone."

    result = extract.extract_suggestions(text)

    assert len(result.suggestions) == 1
    assert result.suggestions[0].id == "s1"
    assert result.suggestions[0].field == "charter"
    assert result.suggestions[0].why_matters == "Clarity"
    assert result.source == extract.SOURCE_FENCED
    assert result.cleaned_text == "Analysis:\nDone."


def test_extract_suggestions_keeps_nested_fence_in_content() -> None:
    content = "```mermaid\ngraph TD\nA-->B\n```"
    payload = [_suggestion(field="workflow", content=content)]
    text = f"```coach-suggestions\n{json.dumps(payload)}\n```"

    result = extract.extract_suggestions(text)

    assert len(result.suggestions) == 1
    assert result.suggestions[0].content == content
    assert "```mermaid" in result.suggestions[0].content


def test_extract_suggestions_nested_fence_with_raw_newlines() -> None:
    text = (
        "```coach-suggestions\n"
        '[{"id": "s1", "field": "workflow", "content": "see diagram"}]\n'
        "```\n"
        "```mermaid\ngraph TD\n```\n"
        "```"
    )

    result = extract.extract_suggestions(text)

    # greedy close runs to the final fence, so the payload is not valid JSON
    assert result.suggestions == []
    assert result.cleaned_text == ""


def test_extract_suggestions_legacy_single_object() -> None:
    legacy = json.dumps({"field": "charter", "content": "Updated charter"})
    text = f"```adli-suggestion\n{legacy}\n```"

    result = extract.extract_suggestions(text)

    assert len(result.suggestions) == 1
    suggestion = result.suggestions[0]
    assert suggestion.id == "legacy"
    assert suggestion.field == "charter"
    assert suggestion.title == f"Update {FIELD_LABELS['charter']}"
    assert suggestion.priority == "important"
    assert suggestion.effort == "moderate"
    assert result.source == extract.SOURCE_LEGACY
    assert result.cleaned_text == ""


def test_extract_suggestions_prefers_current_tag_over_legacy() -> None:
    legacy = json.dumps({"field": "adli_learning", "content": "old"})
    current = json.dumps([_suggestion(id="new")])
    text = (
        f"```adli-suggestion\n{legacy}\n```\n"
        f"```coach-suggestions\n{current}\n```"
    )

    result = extract.extract_suggestions(text)

    assert [item.id for item in result.suggestions] == ["new"]


def test_extract_suggestions_bare_object_fallback() -> None:
    text = 'Here is an update: {"field": "charter", "content": "Serve every student."} Thanks!'

    result = extract.extract_suggestions(text)

    assert len(result.suggestions) == 1
    assert result.suggestions[0].id == "bare-1"
    assert result.suggestions[0].content == "Serve every student."
    assert result.source == extract.SOURCE_BARE
    assert result.cleaned_text == "Here is an update: Thanks!"
    assert extract.extract_message(text).cleaned_text == "Here is an update: Thanks!"


def test_extract_suggestions_bare_fallback_skipped_when_fenced_found() -> None:
    text = (
        f"```coach-suggestions\n{json.dumps([_suggestion()])}\n```\n"
        'Also {"field": "adli_approach", "content": "x"}'
    )

    result = extract.extract_suggestions(text)

    assert [item.id for item in result.suggestions] == ["s1"]
    assert '"adli_approach"' in result.cleaned_text


def test_extract_suggestions_bare_fallback_ignores_unknown_field() -> None:
    text = '{"field": "budget", "content": "x"}'

    result = extract.extract_suggestions(text)

    assert result.suggestions == []
    assert result.cleaned_text == text


def test_extract_suggestions_bare_fallback_can_be_disabled() -> None:
    from coachblocks.blocks.config import ExtractorConfig

    text = '{"field": "charter", "content": "x"}'

    result = extract.extract_suggestions(text, ExtractorConfig(bare_fallback=False))

    assert result.suggestions == []
    assert result.cleaned_text == text


def test_extract_suggestions_invalid_item_discards_block() -> None:
    payload = [_suggestion(), _suggestion(id="s2", priority="urgent")]
    text = f"Intro\n```coach-suggestions\n{json.dumps(payload)}\n```"

    result = extract.extract_suggestions(text)

    assert result.suggestions == []
    assert result.source is None
    assert result.cleaned_text == "Intro"


def test_extract_tasks_parses_block() -> None:
    tasks = [
        {
            "title": "Create survey",
            "description": "Design quarterly survey",
            "pdcaSection": "plan",
            "adliDimension": "learning",
        }
    ]
    text = f"```proposed-tasks\n{json.dumps(tasks)}\n```"

    result = extract.extract_tasks(text)

    assert len(result.tasks) == 1
    assert result.tasks[0].title == "Create survey"
    assert result.tasks[0].pdca_section == "plan"
    assert result.tasks[0].priority is None


def test_extract_tasks_without_block() -> None:
    result = extract.extract_tasks("no tasks here")

    assert result.tasks == []
    assert result.cleaned_text == "no tasks here"


def test_extract_metrics_parses_block() -> None:
    metrics = [
        {
            "action": "link",
            "metricId": 42,
            "name": "Response Time",
            "unit": "hours",
            "cadence": "monthly",
            "reason": "Track speed",
        }
    ]
    text = f"```metric-suggestions\n{json.dumps(metrics)}\n```"

    result = extract.extract_metrics(text)

    assert len(result.metrics) == 1
    assert result.metrics[0].action == "link"
    assert result.metrics[0].metric_id == 42
    assert result.metrics[0].to_dict()["metricId"] == 42


def test_extract_survey_questions_parses_block() -> None:
    questions = [
        {"questionText": "Was onboarding clear?", "questionType": "yes_no", "rationale": "Deployment"}
    ]
    text = f"Try these:\n```survey-questions\n{json.dumps(questions)}\n```"

    result = extract.extract_survey_questions(text)

    assert len(result.questions) == 1
    assert result.questions[0].question_type == "yes_no"
    assert result.cleaned_text == "Try these:"


def test_extract_message_plain_prose_is_untouched() -> None:
    text = "  Just prose, nothing structured.\n"

    result = extract.extract_message(text)

    assert result.cleaned_text == text
    assert result.scores is None
    assert result.suggestions == []
    assert result.tasks == []
    assert result.metrics == []
    assert result.questions == []
    assert result.partial_kind is None


def test_extract_message_decodes_multiple_kinds() -> None:
    scores = {"approach": 60, "deployment": 50, "learning": 40, "integration": 30}
    tasks = [
        {
            "title": "Run review",
            "description": "Quarterly",
            "pdcaSection": "evaluate",
            "adliDimension": "learning",
            "priority": "high",
        }
    ]
    text = (
        "Scores first.\n"
        f"```adli-scores\n{json.dumps(scores)}\n```\n"
        "Now suggestions.\n"
        f"```coach-suggestions\n{json.dumps([_suggestion()])}\n```\n"
        f"```proposed-tasks\n{json.dumps(tasks)}\n```\n"
        "The end."
    )

    result = extract.extract_message(text)

    assert result.scores is not None
    assert result.scores.approach == 60
    assert [item.id for item in result.suggestions] == ["s1"]
    assert [item.title for item in result.tasks] == ["Run review"]
    assert result.partial_kind is None
    assert result.cleaned_text == "Scores first.\nNow suggestions.\nThe end."


def test_extract_message_truncates_partial_suggestions() -> None:
    text = 'Working on it.\n```coach-suggestions\n[{"id": "s1", "field": "char'

    result = extract.extract_message(text)

    assert result.partial_kind == "suggestions"
    assert result.suggestions == []
    assert result.cleaned_text == "Working on it."


def test_extract_message_removes_bare_object() -> None:
    text = 'Update: {"field": "adli_approach", "content": "Documented steps."}\n```adli-scores\n{'

    result = extract.extract_message(text)

    assert result.suggestion_source == "bare"
    assert result.suggestions[0].field == "adli_approach"
    assert result.partial_kind == "scores"
    assert result.cleaned_text == "Update:"


def test_extract_message_to_dict_uses_wire_names() -> None:
    text = f"```coach-suggestions\n{json.dumps([_suggestion()])}\n```"

    payload = extract.extract_message(text).to_dict()

    assert payload["suggestions"][0]["whyMatters"] == "Clarity"
    assert payload["scores"] is None
    assert payload["cleaned_text"] == ""


def test_extract_message_is_idempotent() -> None:
    text = f"Hi\n```coach-suggestions\n{json.dumps([_suggestion()])}\n```\n```proposed-tasks\n["

    first = extract.extract_message(text)
    second = extract.extract_message(text)

    assert first.to_dict() == second.to_dict()


def test_extract_message_emits_trace_events(tmp_path: Path) -> None:
    tracer = TraceWriter("message-1", base_dir=tmp_path)
    text = "```adli-scores\n{not json}\n```\nAfter"

    result = extract.extract_message(text, tracer=tracer)

    assert result.cleaned_text == "After"
    lines = tracer.path.read_text(encoding="utf-8").strip().splitlines()
    events = [json.loads(line) for line in lines]
    kinds = {event["kind"] for event in events}
    assert "block_decode_warning" in kinds
    assert "extraction_done" in kinds
    warning = next(event for event in events if event["kind"] == "block_decode_warning")
    assert warning["data"]["reason"] == "payload_json_invalid"
