import asyncio
import json

import pytest

from interview_coach.errors import InsufficientDataError, UpstreamUnavailableError
from interview_coach.report_generator import (
    FALLBACK_LISTS,
    ParseFailure,
    ParsedReportBody,
    ReportGenerator,
    build_evaluation_prompt,
    extract_json_object,
    fallback_report_body,
    parse_report_response,
    serialize_transcript,
)
from tests.conftest import VALID_REPORT, FakeCompletionClient, make_messages


def _report(**overrides):
    data = json.loads(VALID_REPORT)
    data.update(overrides)
    return json.dumps(data)


class TestParseReportResponse:
    def test_valid_json(self):
        result = parse_report_response(VALID_REPORT)
        assert isinstance(result, ParsedReportBody)
        assert result.body.overall_score == 82
        assert result.body.strengths == ["Clear examples", "Calm delivery", "Good structure"]

    def test_scores_are_clamped(self):
        body = parse_report_response(_report(overallScore=150, expression=-10, content=72.6)).body
        assert body.overall_score == 100
        assert body.expression == 0
        assert body.content == 73

    def test_non_numeric_scores_default(self):
        body = parse_report_response(_report(structure="great", language=None, content="64")).body
        assert body.structure == 75
        assert body.language == 75
        assert body.content == 64

    def test_zero_is_a_real_score(self):
        assert parse_report_response(_report(overallScore=0)).body.overall_score == 0

    def test_code_fence_and_prose_are_stripped(self):
        text = "Here is the evaluation:\n```json\n" + VALID_REPORT + "\n```\nGood luck!"
        assert isinstance(parse_report_response(text), ParsedReportBody)

    def test_short_lists_are_padded(self):
        body = parse_report_response(_report(strengths=["Only one"], improvements=["", 3])).body
        assert body.strengths[0] == "Only one"
        assert len(body.strengths) == 3
        assert body.improvements == FALLBACK_LISTS["improvements"]

    def test_non_list_field_uses_fallback(self):
        body = parse_report_response(_report(recommendations="practise more")).body
        assert body.recommendations == FALLBACK_LISTS["recommendations"]

    @pytest.mark.parametrize("text", [None, "", "no json here", "{not json}", "[1, 2, 3]"])
    def test_unusable_text_is_a_failure(self, text):
        assert isinstance(parse_report_response(text), ParseFailure)


def test_extract_json_ignores_braces_in_strings():
    text = 'noise {"a": "x } y", "b": {"c": 1}} trailing }'
    assert json.loads(extract_json_object(text)) == {"a": "x } y", "b": {"c": 1}}


def test_extract_json_skips_unbalanced_prefix():
    assert extract_json_object('{ broken {"ok": true}') == '{"ok": true}'


def test_prompt_contains_transcript_and_type():
    transcript = serialize_transcript(make_messages(1))
    assert transcript == "Interviewer: Question 1?\nCandidate: Answer 1."
    prompt = build_evaluation_prompt(transcript, "product manager")
    assert "INTERVIEW TYPE: product manager" in prompt
    assert transcript in prompt


class TestReportGenerator:
    def test_requires_five_questions(self):
        generator = ReportGenerator(FakeCompletionClient())
        with pytest.raises(InsufficientDataError):
            asyncio.run(generator.generate(make_messages(4), "technical"))

    def test_five_questions_is_enough(self):
        client = FakeCompletionClient()
        body = asyncio.run(ReportGenerator(client).generate(make_messages(5, answers=4), "technical"))
        assert body.overall_score == 82
        assert len(client.report_prompts) == 1

    def test_upstream_failure_returns_fallback(self):
        client = FakeCompletionClient(report=UpstreamUnavailableError("down"))
        body = asyncio.run(ReportGenerator(client).generate(make_messages(5), "technical"))
        assert body == fallback_report_body()

    def test_any_client_error_returns_fallback(self):
        client = FakeCompletionClient(report=RuntimeError("boom"))
        body = asyncio.run(ReportGenerator(client).generate(make_messages(6), "technical"))
        assert body.overall_score == 75

    def test_unparseable_response_returns_fallback(self):
        client = FakeCompletionClient(report="I think the candidate did well.")
        body = asyncio.run(ReportGenerator(client).generate(make_messages(5), "technical"))
        assert body == fallback_report_body()
        assert [body.expression, body.content, body.structure, body.language] == [75] * 4
