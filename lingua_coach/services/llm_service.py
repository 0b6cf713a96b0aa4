"""
LLM (Large Language Model) Service using the provider's chat completions.

This service handles both kinds of generation the tutor needs:
- JSON feedback for a practice recording
- A conversational reply that weaves in corrections
"""

from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger
from openai import AsyncOpenAI

from lingua_coach.config import Settings
from lingua_coach.errors import UpstreamFailureError
from lingua_coach.prompts import (
    CEFRLevel,
    format_transcription_message,
    get_conversation_system_prompt,
)


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "user" or "assistant"
    content: str


@dataclass
class ConversationContext:
    """Context for one conversation request."""

    messages: List[Message] = field(default_factory=list)
    user_level: CEFRLevel = CEFRLevel.B1
    system_prompt: str = ""

    def __post_init__(self):
        if not self.system_prompt:
            self.system_prompt = get_conversation_system_prompt(self.user_level)

    def add_user_message(self, content: str) -> None:
        """Add a user message to the conversation."""
        self.messages.append(Message(role="user", content=content))

    def add_assistant_message(self, content: str) -> None:
        """Add an assistant message to the conversation."""
        self.messages.append(Message(role="assistant", content=content))

    def add_transcription(self, transcription: str) -> None:
        """Add the learner's latest utterance, marked as speech recognition output."""
        self.add_user_message(format_transcription_message(transcription))

    def format_for_llm(self) -> List[dict]:
        """Format conversation for LLM input."""
        formatted = [{"role": "system", "content": self.system_prompt}]
        for msg in self.messages:
            formatted.append({"role": msg.role, "content": msg.content})
        return formatted


class LLMService:
    """Chat completion calls for feedback and conversation replies."""

    def __init__(self, client: AsyncOpenAI, settings: Settings):
        self._client = client
        self.analysis_model = settings.analysis_model
        self.analysis_temperature = settings.analysis_temperature
        self.conversation_model = settings.conversation_model
        self.conversation_temperature = settings.conversation_temperature
        self.conversation_max_tokens = settings.conversation_max_tokens

    def create_context(self, level: CEFRLevel, history: Optional[List[dict]] = None) -> ConversationContext:
        """
        Create a conversation context from client-supplied history.

        Args:
            level: The learner's CEFR level
            history: Prior turns as {role, content} dicts, oldest first

        Returns:
            A ConversationContext with the history loaded
        """
        context = ConversationContext(user_level=level)
        for entry in history or []:
            content = str(entry.get("content") or "")
            if entry.get("role") == "user":
                context.add_user_message(content)
            elif entry.get("role") == "assistant":
                context.add_assistant_message(content)
        return context

    async def generate_reply(self, context: ConversationContext) -> str:
        """
        Generate the tutor's reply for the conversation.

        Raises:
            UpstreamFailureError: If the provider call fails or returns no text
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.conversation_model,
                messages=context.format_for_llm(),
                temperature=self.conversation_temperature,
                max_tokens=self.conversation_max_tokens,
            )
        except Exception as e:
            logger.error(f"Reply generation failed: {e}")
            raise UpstreamFailureError(detail=f"reply generation: {e}") from e

        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise UpstreamFailureError(detail="reply generation returned no text")
        return text

    async def generate_analysis(self, system_prompt: str, user_prompt: str) -> str:
        """
        Generate the raw JSON feedback for a practice recording.

        Raises:
            UpstreamFailureError: If the provider call fails or returns no content
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.analysis_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self.analysis_temperature,
            )
        except Exception as e:
            logger.error(f"Analysis generation failed: {e}")
            raise UpstreamFailureError(detail=f"analysis: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise UpstreamFailureError(detail="analysis returned no content")
        return content
