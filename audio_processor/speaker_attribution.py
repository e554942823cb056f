"""
Sequence Speaker Attribution
Maps diarization speaker ids to call roles
"""

from typing import Protocol

from .call_session import CallSession, SpeakerRole, TranscriptChunk


class RoleAttributor(Protocol):
    def observe(self, session: CallSession, chunk: TranscriptChunk) -> None:
        ...

    def role_for(self, session: CallSession, speaker_id: str) -> SpeakerRole:
        ...


class FirstSpeakerHeuristic:
    """
    Whoever speaks first is the closer, everyone else is the prospect.

    Wrong whenever the prospect opens the call. Transcript labels and
    talk time depend on this being deterministic, so there is no later
    correction.
    """

    def observe(self, session: CallSession, chunk: TranscriptChunk) -> None:
        if session.first_speaker_id is None:
            session.first_speaker_id = chunk.speaker_id
        session.speakers_detected.add(chunk.speaker_id)

    def role_for(self, session: CallSession, speaker_id: str) -> SpeakerRole:
        if session.first_speaker_id is not None and speaker_id == session.first_speaker_id:
            return SpeakerRole.CLOSER
        return SpeakerRole.PROSPECT
