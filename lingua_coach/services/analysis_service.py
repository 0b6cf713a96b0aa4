"""
Analysis Service for practice-mode feedback and scoring.

This service turns one transcription into a FeedbackReport:
- Overall score plus pronunciation, grammar, vocabulary and fluency scores
- Grammar corrections as (original, corrected, explanation)
- Vocabulary suggestions, encouragement and practice topics

Scores are normalized to integers in [1, 100]. Content that is not a JSON
object of the report shape raises MalformedResponseError.
"""

import json
import re

from loguru import logger

from lingua_coach.errors import MalformedResponseError
from lingua_coach.models import FeedbackReport
from lingua_coach.prompts import (
    CEFRLevel,
    get_analysis_system_prompt,
    get_analysis_user_prompt,
)
from lingua_coach.services.llm_service import LLMService


class AnalysisService:
    """
    Service for scoring a practice recording.

    It asks the LLM for a JSON report and validates the shape before anything
    reaches the learner.
    """

    def __init__(self, llm_service: LLMService):
        self._llm_service = llm_service

    async def analyze(self, transcription: str, level: CEFRLevel) -> FeedbackReport:
        """
        Analyze a transcription and return feedback.

        Args:
            transcription: What the learner said, as transcribed
            level: The learner's CEFR level

        Returns:
            FeedbackReport for the recording

        Raises:
            UpstreamFailureError: If the LLM call fails
            MalformedResponseError: If the LLM output is not a valid report
        """
        raw = await self._llm_service.generate_analysis(
            get_analysis_system_prompt(level),
            get_analysis_user_prompt(level, transcription),
        )
        report = self.parse_analysis(raw, transcription)
        logger.info(
            f"Feedback ready: level={level.value} overall={report.overall_score} "
            f"corrections={len(report.grammar.corrections)}"
        )
        return report

    def parse_analysis(self, analysis_json: str, transcription: str) -> FeedbackReport:
        """Parse the LLM's JSON response into a FeedbackReport."""
        try:
            data = json.loads(analysis_json)
        except json.JSONDecodeError:
            data = self._load_embedded_json(analysis_json)

        # The transcription is ours, never the model's
        if isinstance(data, dict):
            data.pop("transcription", None)

        try:
            return FeedbackReport.from_dict(data, transcription=transcription)
        except MalformedResponseError as e:
            logger.error(f"Analysis has unexpected shape: {e.detail}")
            raise

    def _load_embedded_json(self, analysis_json: str):
        """Parse a JSON object wrapped in prose or a markdown code block."""
        # The brace scan does not track braces inside string values, so it
        # only runs when the whole response is not valid JSON
        try:
            return json.loads(self._extract_json(analysis_json))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse analysis JSON: {e}")
            logger.debug(f"Raw response: {analysis_json}")
            raise MalformedResponseError(detail=f"Invalid JSON in analysis response: {e}") from e

    def _extract_json(self, text: str) -> str:
        """Extract JSON from text that might contain other content."""
        text = text.strip()

        if text.startswith("{"):
            # Find the matching closing brace
            brace_count = 0
            for i, char in enumerate(text):
                if char == "{":
                    brace_count += 1
                elif char == "}":
                    brace_count -= 1
                    if brace_count == 0:
                        return text[: i + 1]
            return text

        # Markdown code block
        code_block_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
        if code_block_match:
            return code_block_match.group(1)

        return text
