"""
Tutor prompts for the Lingua Coach speaking assistant.

This module contains the level table and all system prompts used for:
1. Practice mode (one recording in, a scored feedback report out)
2. Conversation mode (a spoken reply that corrects mistakes naturally)

The learners are native Spanish speakers, so both prompts carry guidance on
the pronunciation errors that show up as odd words in a transcription.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class CEFRLevel(str, Enum):
    """English proficiency levels based on the CEFR framework, lowest first."""

    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"

    @property
    def rank(self) -> int:
        return list(CEFRLevel).index(self)

    def __lt__(self, other):
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank >= other.rank


@dataclass(frozen=True)
class LevelInfo:
    """Display and synthesis settings for one level."""

    level: CEFRLevel
    name: str
    description: str
    speech_speed: float

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "name": self.name,
            "description": self.description,
            "speechSpeed": self.speech_speed,
        }


# Reply speech rate per level (1.0 is the provider's normal speed)
SPEECH_SPEED: Dict[CEFRLevel, float] = {
    CEFRLevel.A1: 0.85,
    CEFRLevel.A2: 0.88,
    CEFRLevel.B1: 0.92,
    CEFRLevel.B2: 0.96,
    CEFRLevel.C1: 1.0,
    CEFRLevel.C2: 1.0,
}

MIN_SPEECH_SPEED = 0.8
MAX_SPEECH_SPEED = 1.0

LEVELS: List[LevelInfo] = [
    LevelInfo(CEFRLevel.A1, "Beginner", "Basic phrases and simple vocabulary", SPEECH_SPEED[CEFRLevel.A1]),
    LevelInfo(CEFRLevel.A2, "Elementary", "Communication in everyday situations", SPEECH_SPEED[CEFRLevel.A2]),
    LevelInfo(CEFRLevel.B1, "Intermediate", "Expressing opinions and experiences", SPEECH_SPEED[CEFRLevel.B1]),
    LevelInfo(CEFRLevel.B2, "Upper Intermediate", "Complex conversations with fluency", SPEECH_SPEED[CEFRLevel.B2]),
    LevelInfo(CEFRLevel.C1, "Advanced", "Spontaneous and flexible expression", SPEECH_SPEED[CEFRLevel.C1]),
    LevelInfo(CEFRLevel.C2, "Mastery", "Precision and native-like fluency", SPEECH_SPEED[CEFRLevel.C2]),
]


def get_speech_speed(level: CEFRLevel) -> float:
    """Look up the reply speech rate for a level, bounded to [0.8, 1.0]."""
    speed = SPEECH_SPEED.get(level, MAX_SPEECH_SPEED)
    return max(MIN_SPEECH_SPEED, min(MAX_SPEECH_SPEED, speed))


def get_level_info(level: CEFRLevel) -> LevelInfo:
    for info in LEVELS:
        if info.level == level:
            return info
    raise KeyError(level)


LEVEL_DESCRIPTIONS = {
    CEFRLevel.A1: "absolute beginner who knows basic words and phrases",
    CEFRLevel.A2: "elementary learner who can handle simple everyday situations",
    CEFRLevel.B1: "intermediate learner who can express opinions on familiar topics",
    CEFRLevel.B2: "upper-intermediate learner who can engage in complex conversations",
    CEFRLevel.C1: "advanced learner who can express themselves fluently and spontaneously",
    CEFRLevel.C2: "near-native speaker who should demonstrate precision and nuance",
}

# Level-specific instructions for the conversation partner
LEVEL_INSTRUCTIONS = {
    CEFRLevel.A1: """
- Use very simple vocabulary and short sentences
- Correct ALL errors gently, grammar and pronunciation alike
- Be explicit about pronunciation ("put your tongue between your teeth for TH")
- Repeat key phrases""",
    CEFRLevel.A2: """
- Use simple but natural language
- Correct grammar and pronunciation mistakes
- Give clear, physical pronunciation tips (lips, teeth, tongue)
- Encourage their progress""",
    CEFRLevel.B1: """
- Use everyday vocabulary and some expressions
- Correct grammar errors and noticeable pronunciation issues
- Give pronunciation hints only when they help
- Help them sound more natural""",
    CEFRLevel.B2: """
- Use rich, natural language
- Focus on subtle pronunciation: stress, intonation, connected speech
- Suggest a more natural rhythm
- Point out when pronunciation affects clarity""",
    CEFRLevel.C1: """
- Speak naturally with advanced vocabulary
- Only correct subtle issues such as word stress and sentence intonation
- Mention nuances in pronunciation that change meaning""",
    CEFRLevel.C2: """
- Speak as you would with a native speaker
- Only mention very subtle refinements of intonation and stress""",
}

# Expectations used when scoring a practice recording
SCORING_EXPECTATIONS = {
    CEFRLevel.A1: "Focus on basic vocabulary, simple structures and major pronunciation issues. Be very encouraging.",
    CEFRLevel.A2: "Focus on basic vocabulary, simple structures and major pronunciation issues. Be very encouraging.",
    CEFRLevel.B1: "Look for appropriate tenses, connectors, vocabulary range and noticeable pronunciation issues.",
    CEFRLevel.B2: "Look for appropriate tenses, connectors, vocabulary range and noticeable pronunciation issues.",
    CEFRLevel.C1: "Expect sophisticated vocabulary, complex structures, natural expressions and near-native pronunciation.",
    CEFRLevel.C2: "Expect sophisticated vocabulary, complex structures, natural expressions and near-native pronunciation.",
}

SPANISH_SPEAKER_PRONUNCIATION = """
## Common Pronunciation Errors for Spanish Speakers

1. **TH sounds**: "think" heard as "tink" or "sink", "the/this" as "de/dis"
2. **V vs B**: "very" heard as "berry", "video" as "bideo"
3. **SH vs CH**: "ship" heard as "chip", "shoes" as "choose"
4. **Short vs long vowels**: "ship/sheep", "bit/beat", "full/fool", "beach"
5. **Word stress**: "COMfortable", "INteresting"
6. **Silent letters**: "Wednesday", "listen", "island"
7. **-ED endings**: "worked" (/t/), "played" (/d/), "wanted" (/ɪd/)
8. **J and Y**: "yes" heard as "jes"
9. **H sound**: dropped ("appy") or added ("his" for "is")
10. **R sound**: a rolled Spanish R instead of the English R

The text you receive comes from speech recognition. A word that makes no
sense in context is often a pronunciation error: "I sink so" probably means
"I think so", and "I'm berry happy" probably means "I'm very happy"."""

TRANSCRIPTION_PREFIX = "[TRANSCRIPTION FROM SPEECH]"


def get_analysis_system_prompt(level: CEFRLevel = CEFRLevel.B1) -> str:
    """
    Generate the system prompt for scoring a practice recording.

    Args:
        level: The learner's CEFR level

    Returns:
        The complete system prompt for the LLM
    """
    description = LEVEL_DESCRIPTIONS.get(level, LEVEL_DESCRIPTIONS[CEFRLevel.B1])
    expectations = SCORING_EXPECTATIONS.get(level, SCORING_EXPECTATIONS[CEFRLevel.B1])

    return f"""You are an expert English teacher evaluating a {level.value} level student who is a native Spanish speaker ({description}).

Analyze their spoken English and give constructive, encouraging feedback appropriate for their level.
{SPANISH_SPEAKER_PRONUNCIATION}

## Level Expectations ({level.value})
{expectations}

## Response Format

Respond ONLY with valid JSON with exactly this structure:

{{
    "overallScore": <integer 1-100>,
    "pronunciation": {{
        "score": <integer 1-100>,
        "feedback": "<specific pronunciation feedback with tips on tongue and mouth position>"
    }},
    "grammar": {{
        "score": <integer 1-100>,
        "corrections": [
            {{
                "original": "<what was transcribed>",
                "corrected": "<what they probably meant>",
                "explanation": "<why, and whether it is pronunciation or grammar>"
            }}
        ]
    }},
    "vocabulary": {{
        "score": <integer 1-100>,
        "feedback": "<feedback on word choice and range>",
        "suggestions": ["<alternative words or expressions>"]
    }},
    "fluency": {{
        "score": <integer 1-100>,
        "feedback": "<feedback on flow, pace and naturalness>"
    }},
    "encouragement": "<a warm, personal message acknowledging their effort>",
    "practiceTopics": ["<topics or specific sounds to practice>"]
}}

Highlight what they did well before suggesting improvements."""


def get_analysis_user_prompt(level: CEFRLevel, transcription: str) -> str:
    """Wrap a transcription in the request sent alongside the analysis prompt."""
    return (
        f"Please analyze the following English speech from a {level.value} level "
        f'Spanish-speaking student:\n\n"{transcription}"'
    )


def get_conversation_system_prompt(level: CEFRLevel = CEFRLevel.B1) -> str:
    """
    Generate the system prompt for the conversation partner.

    Args:
        level: The learner's CEFR level

    Returns:
        The complete system prompt for the LLM
    """
    level_instruction = LEVEL_INSTRUCTIONS.get(
        level, LEVEL_INSTRUCTIONS[CEFRLevel.B1]
    )

    return f"""You are a friendly English conversation partner and teacher talking with a {level.value} level student who is a native Spanish speaker.

You correct BOTH grammar AND pronunciation mistakes naturally within the conversation.

## Current Learner Level: {level.value}
{level_instruction}
{SPANISH_SPEAKER_PRONUNCIATION}

## How to Respond

1. Work out what they MEANT to say, not just what was transcribed
2. Respond naturally to their intended message
3. Weave in corrections for grammar and pronunciation
4. Give specific, actionable pronunciation tips
5. End with a question to keep the conversation going

Example (student says "I sink it's a good idea"):
"I think that's a great idea too! By the way, remember the TH in 'think': put your tongue gently between your teeth and blow. 'Sink' is the thing in your kitchen! What made you come up with it?"

### Important Rules

- ALWAYS respond in English
- Keep responses concise (4-6 sentences)
- Make corrections feel helpful, not embarrassing
- Compliment good pronunciation when you hear it
- ALWAYS ask a follow-up question"""


def format_transcription_message(transcription: str) -> str:
    """Mark a user message as coming from speech recognition."""
    return f'{TRANSCRIPTION_PREFIX}: "{transcription}"'
