"""
Prompts module for the Lingua Coach tutor.

Contains the CEFR level table and system prompts for:
- Practice mode (scored feedback)
- Conversation mode (spoken replies with corrections)
"""

from .tutor_prompts import (
    LEVELS,
    CEFRLevel,
    LevelInfo,
    format_transcription_message,
    get_analysis_system_prompt,
    get_analysis_user_prompt,
    get_conversation_system_prompt,
    get_level_info,
    get_speech_speed,
)

__all__ = [
    "CEFRLevel",
    "LevelInfo",
    "LEVELS",
    "get_level_info",
    "get_speech_speed",
    "get_analysis_system_prompt",
    "get_analysis_user_prompt",
    "get_conversation_system_prompt",
    "format_transcription_message",
]
