"""
Services module for Lingua Coach.

This module wraps the external AI provider:
- ASRService: Speech-to-Text
- LLMService: Feedback and reply generation
- TTSService: Text-to-Speech
- AnalysisService: Feedback report parsing and scoring
- SpeechPipeline: The staged analyze / converse request paths
"""

from .analysis_service import AnalysisService
from .asr_service import ASRService
from .llm_service import LLMService
from .pipeline import SpeechPipeline, create_openai_client
from .tts_service import TTSService

__all__ = [
    "ASRService",
    "LLMService",
    "TTSService",
    "AnalysisService",
    "SpeechPipeline",
    "create_openai_client",
]
