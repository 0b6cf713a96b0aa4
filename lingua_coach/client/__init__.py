"""
Client core for Lingua Coach.

The pieces a view layer drives:
- RecordingStateMachine: microphone capture into one finalized AudioObject
- RequestOrchestrator: submits recordings to the backend
- ConversationTurnManager: conversation log and reply playback
- CoachSession: wires the three together with a single-submission guard

Device backends (sounddevice) live in ``lingua_coach.client.devices`` and
are imported only by the terminal client.
"""

from .conversation import AudioPlayer, ConversationTurn, ConversationTurnManager, Role
from .orchestrator import Mode, RequestOrchestrator
from .recorder import AudioInputDevice, AudioObject, RecordingStateMachine, RecordingStatus
from .session import CoachSession

__all__ = [
    "AudioInputDevice",
    "AudioObject",
    "RecordingStateMachine",
    "RecordingStatus",
    "RequestOrchestrator",
    "Mode",
    "ConversationTurn",
    "ConversationTurnManager",
    "AudioPlayer",
    "Role",
    "CoachSession",
]
