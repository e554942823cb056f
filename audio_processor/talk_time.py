"""
Sequence Talk Time
Per-role speaking time estimated from transcript text length
"""

import time
from typing import Optional

from .background import BackgroundTasks
from .call_session import CallSession, SpeakerRole
from .config import settings
from .persistence import ConvexClient

import logging
logger = logging.getLogger(__name__)


class TalkTimeTracker:
    """
    Adds len(text) / chars_per_second to the speaker's role total.

    This is a reading-rate approximation, not voice activity. The totals
    are persisted on a wall-clock interval and once more at call end.
    """

    def __init__(self, convex: ConvexClient, background: BackgroundTasks,
                 chars_per_second: Optional[float] = None,
                 persist_interval: Optional[float] = None):
        self.convex = convex
        self.background = background
        self.chars_per_second = chars_per_second or settings.talk_time_chars_per_second
        self.persist_interval = (
            persist_interval if persist_interval is not None
            else settings.talk_time_persist_interval_seconds
        )

    def estimate_seconds(self, text: str) -> float:
        return len(text) / self.chars_per_second

    def record(self, session: CallSession, role: SpeakerRole, text: str, now: Optional[float] = None):
        seconds = self.estimate_seconds(text)
        if role is SpeakerRole.CLOSER:
            session.closer_talk_seconds += seconds
        else:
            session.prospect_talk_seconds += seconds

        now = now if now is not None else time.time()
        if session.convex_call_id and now - session.last_talk_time_update >= self.persist_interval:
            session.last_talk_time_update = now
            self.background.submit(self._persist(session), "talk time update")

    async def persist_final(self, session: CallSession):
        """Awaited at call end; raises on failure so the finalizer can log it"""
        if not session.convex_call_id:
            return
        session.last_talk_time_update = time.time()
        await self._persist(session)
        logger.info(
            f"[TalkTime] Final for call {session.call_id}: closer={round(session.closer_talk_seconds)}s "
            f"prospect={round(session.prospect_talk_seconds)}s"
        )

    async def _persist(self, session: CallSession):
        await self.convex.update_talk_time(
            session.convex_call_id,
            int(round(session.closer_talk_seconds)),
            int(round(session.prospect_talk_seconds)),
        )
