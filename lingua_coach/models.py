"""
Wire types shared by the backend and the client.

FeedbackReport and ConversationReply are plain dataclasses with to_dict and
from_dict; the JSON form uses the camelCase keys the browser client expects.
from_dict raises MalformedResponseError when the payload is not the expected
shape, whether it came from the language model or from the backend.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from lingua_coach.errors import MalformedResponseError

MIN_SCORE = 1
MAX_SCORE = 100


def normalize_score(value: Any) -> int:
    """Round a provider score and clamp it to [1, 100]."""
    if isinstance(value, bool):
        raise MalformedResponseError(detail=f"Score is not numeric: {value!r}")
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(detail=f"Score is not numeric: {value!r}") from e
    return max(MIN_SCORE, min(MAX_SCORE, score))


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = data.get(key)
    if not isinstance(section, dict):
        raise MalformedResponseError(detail=f"Missing or invalid '{key}' section")
    return section


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, list):
        raise MalformedResponseError(detail=f"Expected a list, got {type(value).__name__}")
    return [str(item) for item in value]


@dataclass(frozen=True)
class Correction:
    """One grammar or pronunciation correction."""

    original: str
    corrected: str
    explanation: str


@dataclass(frozen=True)
class ScoredFeedback:
    """A sub-dimension score with its comment."""

    score: int
    feedback: str = ""


@dataclass(frozen=True)
class GrammarFeedback:
    score: int
    corrections: List[Correction] = field(default_factory=list)


@dataclass(frozen=True)
class VocabularyFeedback:
    score: int
    feedback: str = ""
    suggestions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FeedbackReport:
    """Complete feedback for one practice recording."""

    transcription: str
    overall_score: int
    pronunciation: ScoredFeedback
    grammar: GrammarFeedback
    vocabulary: VocabularyFeedback
    fluency: ScoredFeedback
    encouragement: str = ""
    practice_topics: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, transcription: str = "") -> "FeedbackReport":
        """
        Build a report from its JSON form.

        Args:
            data: Decoded JSON object
            transcription: Used when the payload does not carry one itself

        Returns:
            A FeedbackReport with scores normalized to [1, 100]

        Raises:
            MalformedResponseError: If the payload does not have the report shape
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(detail="Feedback payload is not a JSON object")
        if "overallScore" not in data:
            raise MalformedResponseError(detail="Feedback payload has no overallScore")

        pronunciation = _section(data, "pronunciation")
        grammar = _section(data, "grammar")
        vocabulary = _section(data, "vocabulary")
        fluency = _section(data, "fluency")

        corrections = []
        raw_corrections = grammar.get("corrections") or []
        if not isinstance(raw_corrections, list):
            raise MalformedResponseError(detail="grammar.corrections is not a list")
        for item in raw_corrections:
            if not isinstance(item, dict):
                raise MalformedResponseError(detail="Correction entry is not an object")
            corrections.append(
                Correction(
                    original=str(item.get("original", "")),
                    corrected=str(item.get("corrected", "")),
                    explanation=str(item.get("explanation", "")),
                )
            )

        return cls(
            transcription=str(data.get("transcription") or transcription),
            overall_score=normalize_score(data["overallScore"]),
            pronunciation=ScoredFeedback(
                score=normalize_score(pronunciation.get("score")),
                feedback=str(pronunciation.get("feedback", "")),
            ),
            grammar=GrammarFeedback(
                score=normalize_score(grammar.get("score")),
                corrections=corrections,
            ),
            vocabulary=VocabularyFeedback(
                score=normalize_score(vocabulary.get("score")),
                feedback=str(vocabulary.get("feedback", "")),
                suggestions=_string_list(vocabulary.get("suggestions")),
            ),
            fluency=ScoredFeedback(
                score=normalize_score(fluency.get("score")),
                feedback=str(fluency.get("feedback", "")),
            ),
            encouragement=str(data.get("encouragement", "")),
            practice_topics=_string_list(data.get("practiceTopics")),
        )

    def to_dict(self) -> dict:
        """Convert the report to its JSON form."""
        return {
            "transcription": self.transcription,
            "overallScore": self.overall_score,
            "pronunciation": {
                "score": self.pronunciation.score,
                "feedback": self.pronunciation.feedback,
            },
            "grammar": {
                "score": self.grammar.score,
                "corrections": [
                    {
                        "original": c.original,
                        "corrected": c.corrected,
                        "explanation": c.explanation,
                    }
                    for c in self.grammar.corrections
                ],
            },
            "vocabulary": {
                "score": self.vocabulary.score,
                "feedback": self.vocabulary.feedback,
                "suggestions": list(self.vocabulary.suggestions),
            },
            "fluency": {
                "score": self.fluency.score,
                "feedback": self.fluency.feedback,
            },
            "encouragement": self.encouragement,
            "practiceTopics": list(self.practice_topics),
        }


@dataclass(frozen=True)
class ConversationReply:
    """Result of one conversation turn: what was heard and what to say back."""

    transcription: str
    response: str
    audio_base64: str

    @classmethod
    def from_dict(cls, data: Any) -> "ConversationReply":
        if not isinstance(data, dict):
            raise MalformedResponseError(detail="Reply payload is not a JSON object")
        try:
            transcription = data["transcription"]
            response = data["response"]
            audio_base64 = data["audioBase64"]
        except KeyError as e:
            raise MalformedResponseError(detail=f"Reply payload is missing {e}") from e
        if not all(isinstance(v, str) for v in (transcription, response, audio_base64)):
            raise MalformedResponseError(detail="Reply payload fields must be strings")
        return cls(transcription=transcription, response=response, audio_base64=audio_base64)

    def to_dict(self) -> dict:
        return {
            "transcription": self.transcription,
            "response": self.response,
            "audioBase64": self.audio_base64,
        }
