"""
AnalysisService and FeedbackReport parsing tests
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from lingua_coach.errors import MalformedResponseError
from lingua_coach.models import ConversationReply, FeedbackReport, normalize_score
from lingua_coach.prompts import CEFRLevel
from lingua_coach.services.analysis_service import AnalysisService


class TestAnalysisService:
    """Parsing of the language model's feedback JSON"""

    @pytest.fixture
    def llm_service(self):
        return Mock()

    @pytest.fixture
    def analysis_service(self, llm_service):
        return AnalysisService(llm_service)

    def test_parse_plain_json(self, analysis_service, feedback_payload):
        report = analysis_service.parse_analysis(json.dumps(feedback_payload), "I sink so")

        assert report.transcription == "I sink so"
        assert report.vocabulary.suggestions == ["excellent", "worthwhile"]
        assert report.practice_topics == ["TH sounds", "Past tense"]

    def test_parse_markdown_code_block(self, analysis_service, feedback_payload):
        raw = "Here is the analysis:\n```json\n" + json.dumps(feedback_payload) + "\n```"

        report = analysis_service.parse_analysis(raw, "hello")

        assert report.overall_score == 78

    def test_trailing_text_after_object(self, analysis_service, feedback_payload):
        raw = json.dumps(feedback_payload) + "\n\nLet me know if you need more."

        report = analysis_service.parse_analysis(raw, "hello")

        assert report.fluency.feedback == "Natural pace."

    def test_braces_inside_strings(self, analysis_service, feedback_payload):
        payload = dict(feedback_payload, encouragement="Great job :} keep going")
        payload["grammar"] = {
            "score": 70,
            "corrections": [
                {"original": "I go", "corrected": "I went", "explanation": "Use {verb} in the past: {went}"}
            ],
        }

        report = analysis_service.parse_analysis(json.dumps(payload), "hello")

        assert report.encouragement == "Great job :} keep going"
        assert report.grammar.corrections[0].explanation == "Use {verb} in the past: {went}"
        assert report.practice_topics == ["TH sounds", "Past tense"]

    def test_code_block_with_brace_in_string(self, analysis_service, feedback_payload):
        payload = dict(feedback_payload, encouragement="Nice {work}")
        raw = "```json\n" + json.dumps(payload) + "\n```"

        report = analysis_service.parse_analysis(raw, "hello")

        assert report.encouragement == "Nice {work}"

    def test_model_transcription_is_ignored(self, analysis_service, feedback_payload):
        payload = dict(feedback_payload, transcription="invented text")

        report = analysis_service.parse_analysis(json.dumps(payload), "what was said")

        assert report.transcription == "what was said"

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            "[1, 2, 3]",
            '{"overallScore": 80}',
            '{"pronunciation": {}, "grammar": {}, "vocabulary": {}, "fluency": {}}',
        ],
    )
    def test_malformed_analysis(self, analysis_service, raw):
        with pytest.raises(MalformedResponseError):
            analysis_service.parse_analysis(raw, "hello")

    def test_non_numeric_score(self, analysis_service, feedback_payload):
        payload = dict(feedback_payload, overallScore="excellent")

        with pytest.raises(MalformedResponseError):
            analysis_service.parse_analysis(json.dumps(payload), "hello")

    def test_corrections_must_be_objects(self, analysis_service, feedback_payload):
        payload = dict(feedback_payload)
        payload["grammar"] = {"score": 70, "corrections": ["I go -> I went"]}

        with pytest.raises(MalformedResponseError):
            analysis_service.parse_analysis(json.dumps(payload), "hello")

    @pytest.mark.asyncio
    async def test_analyze_builds_prompts_for_level(self, llm_service, analysis_service, feedback_payload):
        llm_service.generate_analysis = AsyncMock(return_value=json.dumps(feedback_payload))

        report = await analysis_service.analyze("I have 20 years", CEFRLevel.A2)

        system_prompt, user_prompt = llm_service.generate_analysis.await_args.args
        assert "A2" in system_prompt
        assert '"I have 20 years"' in user_prompt
        assert report.transcription == "I have 20 years"


class TestNormalizeScore:
    @pytest.mark.parametrize(
        "value,expected",
        [(85, 85), ("85", 85), (84.5, 84), (85.5, 86), (0, 1), (-20, 1), (101, 100), (1e6, 100)],
    )
    def test_scores_are_rounded_and_clamped(self, value, expected):
        assert normalize_score(value) == expected

    @pytest.mark.parametrize("value", [None, True, "high", [90]])
    def test_non_numeric_scores(self, value):
        with pytest.raises(MalformedResponseError):
            normalize_score(value)


class TestWireFormat:
    def test_report_to_dict_uses_camel_case(self, feedback_payload):
        data = FeedbackReport.from_dict(feedback_payload, transcription="hi").to_dict()

        assert data["overallScore"] == 78
        assert data["practiceTopics"] == ["TH sounds", "Past tense"]
        assert data["grammar"]["corrections"][0]["explanation"] == "Pronunciation: TH, not S."
        assert FeedbackReport.from_dict(data) == FeedbackReport.from_dict(feedback_payload, "hi")

    def test_reply_requires_string_fields(self):
        with pytest.raises(MalformedResponseError):
            ConversationReply.from_dict({"transcription": "a", "response": "b", "audioBase64": None})
        with pytest.raises(MalformedResponseError):
            ConversationReply.from_dict(["a", "b", "c"])

    def test_reply_to_dict(self):
        reply = ConversationReply("hi", "hello", "bXAz")

        assert reply.to_dict() == {"transcription": "hi", "response": "hello", "audioBase64": "bXAz"}
