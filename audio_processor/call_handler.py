"""
Sequence Call Handler
Orchestrates one live call from first audio frame to completion

Audio in:  stereo PCM -> recording + mono downmix -> Deepgram
Chunks in: speaker attribution -> transcript -> talk time
           -> ammo extraction (gated) -> nudges
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

from .ammo_extraction import AnthropicAmmoExtractor
from .audio_framer import stereo_to_mono
from .background import BackgroundTasks
from .call_session import CallMetadata, CallSession, CallStatus, TranscriptChunk
from .config import settings
from .detection import AnthropicDetector
from .exceptions import PersistenceError, TranscriptionError
from .extraction_scheduler import AmmoItem, ExtractionScheduler
from .nudges import Nudge, NudgeEngine, NudgeState
from .persistence import ConvexClient
from .session_finalizer import SessionFinalizer
from .speaker_attribution import FirstSpeakerHeuristic, RoleAttributor
from .storage import RecordingBuffer, RecordingStorage
from .talk_time import TalkTimeTracker
from .team_config import AmmoConfig
from .transcription import DeepgramTranscriber
from .transcript_aggregator import TranscriptAggregator

import logging
logger = logging.getLogger(__name__)


EventCallback = Callable[[dict], Awaitable[None]]


class CallHandler:
    """
    Owns the CallSession and every per-call collaborator. handle_chunk and
    end are top-level entry points: nothing raised below them escapes.
    """

    def __init__(self, metadata: CallMetadata, convex: ConvexClient, storage: RecordingStorage,
                 extractor: Optional[AnthropicAmmoExtractor] = None,
                 detector: Optional[AnthropicDetector] = None,
                 attributor: Optional[RoleAttributor] = None,
                 nudge_engine: Optional[NudgeEngine] = None,
                 transcriber_factory=DeepgramTranscriber,
                 on_event: Optional[EventCallback] = None):
        sample_rate = metadata.sample_rate or settings.default_sample_rate
        if sample_rate != settings.default_sample_rate:
            logger.warning(f"[Call] {metadata.call_id} declared {sample_rate}Hz (expected {settings.default_sample_rate}Hz)")

        self.session = CallSession(metadata=metadata, sample_rate=sample_rate,
                                   recording=RecordingBuffer(sample_rate))
        self.convex = convex
        self.on_event = on_event
        self.background = BackgroundTasks(name=f"call {metadata.call_id}")

        self.attributor = attributor or FirstSpeakerHeuristic()
        self.aggregator = TranscriptAggregator(convex, self.background)
        self.talk_time = TalkTimeTracker(convex, self.background)
        self.scheduler = ExtractionScheduler(extractor or AnthropicAmmoExtractor(), convex, on_item=self._push_ammo)
        self.nudge_engine = nudge_engine or NudgeEngine()
        self.nudge_state = NudgeState()
        self.finalizer = SessionFinalizer(convex, storage, detector or AnthropicDetector())
        self.transcriber = transcriber_factory(metadata.call_id, sample_rate, self.handle_chunk, self.handle_error)

        self.extraction_tasks: Set[asyncio.Task] = set()
        self.ammo_config: Optional[AmmoConfig] = None
        self.custom_prompt: Optional[str] = None
        self._went_live = False

    @property
    def call_id(self) -> str:
        return self.session.call_id

    @property
    def is_ended(self) -> bool:
        return self.session.is_ended

    async def start(self) -> Optional[str]:
        """Create the Convex record, load team config and open transcription"""
        meta = self.session.metadata
        logger.info(f"[Call] Starting call {meta.call_id} team={meta.team_id} closer={meta.closer_id}")

        try:
            self.session.convex_call_id = await self.convex.create_call(
                meta.team_id, meta.closer_id, meta.prospect_name
            )
        except PersistenceError as e:
            logger.error(f"[Call] createCall failed for {meta.call_id}: {e}")

        try:
            self.ammo_config = await self.convex.get_ammo_config(meta.team_id)
        except PersistenceError as e:
            logger.error(f"[Call] Could not load ammo config for team {meta.team_id}: {e}")
        if self.ammo_config is None:
            logger.info(f"[Call] No ammo config for team {meta.team_id} - using defaults")

        try:
            self.custom_prompt = await self.convex.get_team_custom_prompt(meta.team_id)
        except PersistenceError as e:
            logger.error(f"[Call] Could not load custom prompt for team {meta.team_id}: {e}")

        try:
            await self.transcriber.start()
        except TranscriptionError as e:
            logger.error(f"[Call] {e} - continuing without live transcript")

        return self.session.convex_call_id

    async def process_audio(self, stereo_pcm: bytes):
        if self.session.is_ended or not stereo_pcm:
            return
        self.session.recording.append(stereo_pcm)
        await self.transcriber.send_audio(stereo_to_mono(stereo_pcm))

    async def handle_chunk(self, chunk: TranscriptChunk):
        if self.session.is_ended:
            return
        try:
            self._process_chunk(chunk)
        except Exception as e:
            logger.exception(f"[Call] Chunk handling failed for {self.call_id}: {e}")

    def _process_chunk(self, chunk: TranscriptChunk):
        session = self.session
        self.attributor.observe(session, chunk)

        if not self._went_live:
            self._went_live = True
            session.status = CallStatus.ON_CALL
            logger.info(f"[Call] {self.call_id} is live (first speaker {session.first_speaker_id})")
            if session.convex_call_id:
                self.background.submit(
                    self.convex.update_call_status(
                        session.convex_call_id, CallStatus.ON_CALL.value, len(session.speakers_detected)
                    ),
                    "status update",
                )

        if not chunk.is_final:
            return

        role = self.attributor.role_for(session, chunk.speaker_id)
        self.aggregator.add_final(session, chunk, role)
        self.talk_time.record(session, role, chunk.text)

        window = self.scheduler.take_window(session)
        if window:
            task = self.background.submit(
                self.scheduler.run_pass(session, window, self.ammo_config, self.custom_prompt),
                "ammo extraction",
            )
            self.extraction_tasks.add(task)
            task.add_done_callback(self.extraction_tasks.discard)

        nudge = self.nudge_engine.evaluate(
            self.nudge_state, session.full_transcript, session.get_duration(), self.ammo_config
        )
        if nudge is not None:
            self._deliver_nudge(nudge)

    def _deliver_nudge(self, nudge: Nudge):
        session = self.session
        session.nudges.append(nudge.to_dict())
        if session.convex_call_id:
            self.background.submit(
                self.convex.add_nudge(session.convex_call_id, session.team_id, nudge.to_convex()),
                "nudge save",
            )
        if self.on_event:
            self.background.submit(self.on_event({"type": "nudge", "data": nudge.to_dict()}), "nudge push")

    async def _push_ammo(self, item: AmmoItem):
        # finalize still delivers passes it waits on; the channel drops sends after close
        if self.on_event:
            await self.on_event({"type": "ammo", "data": item.to_dict()})

    async def handle_error(self, error: Exception):
        logger.error(f"[Call] Transcription error on {self.call_id}: {error}")

    async def end(self) -> dict:
        """Finalize the call (no-op if already ended) and return its stats"""
        try:
            await self.finalizer.finalize(self)
        except Exception as e:
            logger.exception(f"[Call] Finalization failed for {self.call_id}: {e}")
        return self.get_stats()

    def get_stats(self) -> dict:
        session = self.session
        return {
            "callId": session.call_id,
            "convexCallId": session.convex_call_id,
            "status": session.status.value,
            "duration": session.get_duration(),
            "speakerCount": len(session.speakers_detected),
            "transcriptLength": len(session.full_transcript),
            "transcriptLines": session.transcript_lines,
            "audioBytes": session.recording.size,
            "closerTalkTime": round(session.closer_talk_seconds),
            "prospectTalkTime": round(session.prospect_talk_seconds),
            "ammoCount": session.ammo_count,
            "nudgeCount": len(session.nudges),
        }
