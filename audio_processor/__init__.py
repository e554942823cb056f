"""
Sequence Audio Processor Package
"""

from .config import settings
from .exceptions import AudioProcessorError, PersistenceError, StorageError, TranscriptionError
from .audio_framer import stereo_to_mono
from .call_session import (
    CallMetadata,
    CallSession,
    CallSessionManager,
    CallStatus,
    SpeakerRole,
    TranscriptChunk,
    session_manager,
)
from .speaker_attribution import FirstSpeakerHeuristic, RoleAttributor
from .ammo_extraction import AnthropicAmmoExtractor, Candidate, ExtractionResult
from .extraction_scheduler import AmmoItem, ExtractionScheduler, RepetitionTracker, calculate_score
from .nudges import Nudge, NudgeEngine, NudgeState, NudgeType
from .detection import AnthropicDetector, DetectionResult
from .persistence import ConvexClient
from .storage import RecordingBuffer, RecordingStorage
from .call_handler import CallHandler
from .session_finalizer import SessionFinalizer

__all__ = [
    "settings",
    "AudioProcessorError",
    "PersistenceError",
    "StorageError",
    "TranscriptionError",
    "stereo_to_mono",
    # Session
    "CallMetadata",
    "CallSession",
    "CallSessionManager",
    "CallStatus",
    "SpeakerRole",
    "TranscriptChunk",
    "session_manager",
    "FirstSpeakerHeuristic",
    "RoleAttributor",
    # Ammo
    "AnthropicAmmoExtractor",
    "Candidate",
    "ExtractionResult",
    "AmmoItem",
    "ExtractionScheduler",
    "RepetitionTracker",
    "calculate_score",
    # Nudges
    "Nudge",
    "NudgeEngine",
    "NudgeState",
    "NudgeType",
    # Post-call
    "AnthropicDetector",
    "DetectionResult",
    "ConvexClient",
    "RecordingBuffer",
    "RecordingStorage",
    "CallHandler",
    "SessionFinalizer",
]
