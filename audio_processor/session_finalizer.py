"""
Sequence Session Finalizer
Closes out a call: drain, persist, upload, complete
"""

import asyncio
import time
from typing import TYPE_CHECKING, Optional

from .call_session import CallSession, CallStatus
from .config import settings
from .detection import AnthropicDetector
from .persistence import ConvexClient
from .storage import RecordingStorage
from .team_config import AmmoConfig

if TYPE_CHECKING:
    from .call_handler import CallHandler

import logging
logger = logging.getLogger(__name__)


class SessionFinalizer:
    """
    Runs once per call. Each step is isolated so a failure is logged and
    the next step still runs; the call is always marked complete if it
    has a Convex record. Detection is left running in the background and
    may finish after completion.
    """

    def __init__(self, convex: ConvexClient, storage: RecordingStorage, detector: AnthropicDetector,
                 detection_min_chars: Optional[int] = None, extraction_wait: Optional[float] = None):
        self.convex = convex
        self.storage = storage
        self.detector = detector
        self.detection_min_chars = (
            detection_min_chars if detection_min_chars is not None else settings.detection_min_transcript_chars
        )
        self.extraction_wait = (
            extraction_wait if extraction_wait is not None else settings.extraction_drain_timeout_seconds
        )

    async def finalize(self, handler: "CallHandler") -> bool:
        """Returns False when the call was already finalized"""
        session = handler.session
        if session.is_ended:
            return False
        session.is_ended = True

        logger.info(f"[Call] Ending call {session.call_id}")

        try:
            await handler.transcriber.close()
        except Exception as e:
            logger.error(f"[Call] Closing transcription for {session.call_id} failed: {e}")

        await self._wait_for_extractions(handler)

        try:
            window = handler.scheduler.take_window(session, force=True)
            if window:
                await handler.scheduler.run_pass(session, window, handler.ammo_config, handler.custom_prompt)
        except Exception as e:
            logger.error(f"[Call] Final extraction for {session.call_id} failed: {e}")

        try:
            await handler.talk_time.persist_final(session)
        except Exception as e:
            logger.error(f"[Call] Final talk time for {session.call_id} failed: {e}")

        duration = session.get_duration(time.time())

        if session.convex_call_id and len(session.full_transcript) >= self.detection_min_chars:
            handler.background.submit(
                self._run_detection(session, handler.ammo_config),
                "post-call detection",
            )

        recording_url = ""
        try:
            recording_url = await self.storage.upload(session.team_id, session.call_id, session.recording)
        except Exception as e:
            logger.error(f"[Call] Recording upload for {session.call_id} failed: {e}")
        finally:
            session.recording.close()

        session.status = CallStatus.COMPLETED
        if session.convex_call_id:
            try:
                await self.convex.complete_call(
                    session.convex_call_id, recording_url, session.full_transcript, duration
                )
            except Exception as e:
                logger.error(f"[Call] completeCall for {session.call_id} failed: {e}")
        else:
            logger.warning(f"[Call] No Convex record for {session.call_id} - nothing to complete")

        logger.info(
            f"[Call] Call {session.call_id} ended: {duration}s, {session.transcript_lines} lines, "
            f"{session.ammo_count} ammo, {len(session.nudges)} nudges, recording={'yes' if recording_url else 'no'}"
        )
        return True

    async def _wait_for_extractions(self, handler: "CallHandler"):
        """Passes already claimed mid-call must land before the call is completed"""
        pending = set(handler.extraction_tasks)
        if not pending:
            return
        logger.info(f"[Call] Waiting on {len(pending)} extraction pass(es) for {handler.call_id}")
        _, still_running = await asyncio.wait(pending, timeout=self.extraction_wait)
        if still_running:
            logger.warning(
                f"[Call] {len(still_running)} extraction pass(es) for {handler.call_id} "
                f"still running after {self.extraction_wait}s"
            )

    async def _run_detection(self, session: CallSession, ammo_config: Optional[AmmoConfig]):
        result = await self.detector.analyze(session.full_transcript, ammo_config)
        await self.convex.update_call_detection(session.convex_call_id, result.to_convex())
        logger.info(f"[Detection] Saved results for call {session.call_id}")
