"""
Sequence Transcript Aggregator
Folds final chunks into the running transcript and the extraction buffer
"""

from typing import Optional

from .background import BackgroundTasks
from .call_session import CallSession, SpeakerRole, TranscriptChunk
from .config import settings
from .persistence import ConvexClient

import logging
logger = logging.getLogger(__name__)


class TranscriptAggregator:
    """
    Appends one role-labeled line per final chunk. Every Nth line the whole
    transcript is written back to Convex in the background; a failed flush
    is logged and picked up by the next one.
    """

    def __init__(self, convex: ConvexClient, background: BackgroundTasks,
                 flush_every_lines: Optional[int] = None):
        self.convex = convex
        self.background = background
        self.flush_every_lines = flush_every_lines or settings.transcript_flush_every_lines

    def add_final(self, session: CallSession, chunk: TranscriptChunk, role: SpeakerRole) -> str:
        """Record a final chunk. Returns the transcript line that was appended."""
        line = f"{role.label}: {chunk.text}"
        session.full_transcript += line + "\n"
        session.extraction_buffer += chunk.text + " "
        session.transcript_lines += 1
        session.advance_audio_timestamp(chunk.audio_timestamp)

        if session.convex_call_id:
            self.background.submit(
                self.convex.add_transcript_segment(
                    session.convex_call_id,
                    session.team_id,
                    role.label,
                    chunk.text,
                    session.last_audio_timestamp,
                ),
                "transcript segment",
            )

            if session.transcript_lines % self.flush_every_lines == 0:
                logger.debug(f"[Transcript] Flushing {session.transcript_lines} lines for call {session.call_id}")
                self.background.submit(
                    self.convex.add_transcript(session.convex_call_id, session.full_transcript),
                    "transcript flush",
                )

        return line
