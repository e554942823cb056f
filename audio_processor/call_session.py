"""
Sequence Call Session
Per-call state record and the registry of live call handlers
"""

import asyncio
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from .storage import RecordingBuffer

if TYPE_CHECKING:
    from .call_handler import CallHandler

import logging
logger = logging.getLogger(__name__)


class CallStatus(Enum):
    WAITING = "waiting"
    ON_CALL = "on_call"
    COMPLETED = "completed"


class SpeakerRole(Enum):
    CLOSER = "closer"
    PROSPECT = "prospect"

    @property
    def label(self) -> str:
        return "[Closer]" if self is SpeakerRole.CLOSER else "[Prospect]"


class CallMetadata(BaseModel):
    """First message on the ingress socket"""
    model_config = ConfigDict(populate_by_name=True)

    call_id: str = Field(alias="callId")
    team_id: str = Field(alias="teamId")
    closer_id: str = Field(alias="closerId")
    prospect_name: Optional[str] = Field(default=None, alias="prospectName")
    sample_rate: Optional[int] = Field(default=None, alias="sampleRate")


@dataclass(frozen=True)
class TranscriptChunk:
    """One emission from the speech-to-text backend"""
    speaker_id: str
    text: str
    is_final: bool
    audio_timestamp: float  # seconds into the recording


@dataclass
class CallSession:
    """Mutable record of one in-progress call"""
    metadata: CallMetadata
    sample_rate: int
    recording: RecordingBuffer
    started_at: float = field(default_factory=time.time)
    convex_call_id: Optional[str] = None
    status: CallStatus = CallStatus.WAITING

    full_transcript: str = ""
    transcript_lines: int = 0
    extraction_buffer: str = ""
    last_extraction_time: float = 0.0
    last_audio_timestamp: int = 0

    closer_talk_seconds: float = 0.0
    prospect_talk_seconds: float = 0.0
    last_talk_time_update: float = 0.0

    first_speaker_id: Optional[str] = None
    speakers_detected: Set[str] = field(default_factory=set)
    ammo_count: int = 0
    nudges: List[dict] = field(default_factory=list)
    is_ended: bool = False

    def __post_init__(self):
        if not self.last_extraction_time:
            self.last_extraction_time = self.started_at
        if not self.last_talk_time_update:
            self.last_talk_time_update = self.started_at

    @property
    def call_id(self) -> str:
        return self.metadata.call_id

    @property
    def team_id(self) -> str:
        return self.metadata.team_id

    def advance_audio_timestamp(self, audio_timestamp: float) -> int:
        """Move the audio clock forward, never backward. Returns the new value."""
        whole_seconds = max(0, math.floor(audio_timestamp))
        if whole_seconds > self.last_audio_timestamp:
            self.last_audio_timestamp = whole_seconds
        return self.last_audio_timestamp

    def get_duration(self, now: Optional[float] = None) -> int:
        end = now if now is not None else time.time()
        return max(0, int(end - self.started_at))


class CallSessionManager:
    """Tracks live call handlers by call id"""

    def __init__(self):
        self._handlers: Dict[str, "CallHandler"] = {}
        self._lock = asyncio.Lock()

    async def register(self, handler: "CallHandler"):
        async with self._lock:
            self._handlers[handler.call_id] = handler
        logger.info(f"[Sessions] Registered call {handler.call_id} ({len(self._handlers)} active)")

    async def unregister(self, call_id: str) -> Optional["CallHandler"]:
        async with self._lock:
            handler = self._handlers.pop(call_id, None)
        if handler:
            logger.info(f"[Sessions] Unregistered call {call_id} ({len(self._handlers)} active)")
        return handler

    def get(self, call_id: str) -> Optional["CallHandler"]:
        return self._handlers.get(call_id)

    def __len__(self) -> int:
        return len(self._handlers)

    def get_active_calls(self) -> list:
        """Stats for every call that has not been finalized"""
        return [h.get_stats() for h in self._handlers.values() if not h.is_ended]

    async def end_all(self):
        """Finalize every live call (application shutdown)"""
        async with self._lock:
            handlers = list(self._handlers.values())
            self._handlers.clear()

        if handlers:
            logger.info(f"[Sessions] Ending {len(handlers)} active call(s)")
        for handler in handlers:
            await handler.end()
            # post-call detection may still be running after end()
            await handler.background.drain()


# Global session manager instance
session_manager = CallSessionManager()
