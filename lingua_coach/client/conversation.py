"""
Conversation turn manager: the ordered log of one conversation and playback
of the tutor's spoken replies.
"""

import dataclasses
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from loguru import logger

HISTORY_WINDOW = 10


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    """One utterance in the conversation. Never mutated after creation."""

    id: str
    role: Role
    content: str
    timestamp: datetime
    audio: Optional[bytes] = None

    def __post_init__(self):
        if self.audio is not None and self.role is not Role.ASSISTANT:
            raise ValueError("Only assistant turns carry reply audio")

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)

    def to_request_dict(self) -> dict:
        """The form sent back to the backend: text only, never audio."""
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


class AudioPlayer(ABC):
    """Plays one reply at a time and reports natural completion."""

    @abstractmethod
    def play(self, data: bytes, on_ended: Callable[[], None]) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


class ConversationTurnManager:
    """
    Append-only conversation log with single-reply playback.

    At most one assistant turn is playing at any time. Starting another turn
    stops the current one first; playing the same turn again toggles it off.
    """

    def __init__(
        self,
        player: AudioPlayer,
        history_window: int = HISTORY_WINDOW,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._player = player
        self._history_window = history_window
        self._clock = clock
        self._turns: List[ConversationTurn] = []
        self._playing_id: Optional[str] = None
        self._playback_generation = 0

    @property
    def turns(self) -> Tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def playing_id(self) -> Optional[str]:
        return self._playing_id

    def __len__(self) -> int:
        return len(self._turns)

    def is_playing(self, turn_id: str) -> bool:
        return self._playing_id is not None and self._playing_id == turn_id

    def get_turn(self, turn_id: str) -> ConversationTurn:
        for turn in self._turns:
            if turn.id == turn_id:
                return turn
        raise KeyError(turn_id)

    def _next_timestamp(self, proposed: datetime) -> datetime:
        if self._turns and proposed <= self._turns[-1].timestamp:
            return self._turns[-1].timestamp + timedelta(microseconds=1)
        return proposed

    def append_turn(self, turn: ConversationTurn) -> ConversationTurn:
        """
        Append a turn to the end of the log.

        A turn whose timestamp is not later than the last one is stored with
        its timestamp moved just past it, keeping the log strictly ordered.

        Returns:
            The turn as stored
        """
        if any(existing.id == turn.id for existing in self._turns):
            raise ValueError(f"Duplicate turn id: {turn.id}")

        timestamp = self._next_timestamp(turn.timestamp)
        if timestamp != turn.timestamp:
            turn = dataclasses.replace(turn, timestamp=timestamp)
        self._turns.append(turn)
        return turn

    def new_turn(self, role: Role, content: str, audio: Optional[bytes] = None) -> ConversationTurn:
        """Create a turn stamped now and append it."""
        turn = ConversationTurn(
            id=uuid.uuid4().hex,
            role=role,
            content=content,
            timestamp=self._next_timestamp(self._clock()),
            audio=audio,
        )
        return self.append_turn(turn)

    def append_exchange(
        self, transcription: str, response: str, audio: bytes
    ) -> Tuple[ConversationTurn, ConversationTurn]:
        """Record one completed exchange: the learner's words, then the reply."""
        user_turn = self.new_turn(Role.USER, transcription)
        assistant_turn = self.new_turn(Role.ASSISTANT, response, audio=audio or None)
        return user_turn, assistant_turn

    def history_for_request(self) -> List[dict]:
        """The most recent turns, oldest first, stripped of audio."""
        if self._history_window <= 0:
            return []
        return [turn.to_request_dict() for turn in self._turns[-self._history_window:]]

    def play(self, turn_id: str) -> None:
        """
        Start playing a turn's reply audio, or stop it if it is already playing.

        Raises:
            KeyError: If no turn has this id
            ValueError: If the turn has no audio
        """
        turn = self.get_turn(turn_id)
        if not turn.has_audio:
            raise ValueError(f"Turn {turn_id} has no audio")

        if self.is_playing(turn_id):
            self.stop()
            return

        if self._playing_id is not None:
            self.stop()

        self._playback_generation += 1
        generation = self._playback_generation
        self._playing_id = turn_id
        try:
            self._player.play(turn.audio, lambda: self._on_playback_ended(generation))
        except Exception:
            self._playing_id = None
            raise
        logger.debug(f"Playing reply {turn_id}")

    def stop(self) -> None:
        """Stop playback. Safe to call when nothing is playing."""
        if self._playing_id is not None:
            logger.debug(f"Stopping reply {self._playing_id}")
            self._player.stop()
        self._playing_id = None
        self._playback_generation += 1

    def _on_playback_ended(self, generation: int) -> None:
        # Completion of a playback that was already stopped or replaced
        if generation != self._playback_generation:
            return
        self._playing_id = None

    def clear(self) -> None:
        """Stop any playback, then empty the log."""
        self.stop()
        self._turns.clear()
