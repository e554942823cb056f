"""
Sequence Transcription
Deepgram live stream with diarization -> TranscriptChunk callbacks
"""

import asyncio
from collections import Counter
from typing import Awaitable, Callable, Optional

from deepgram import DeepgramClient, LiveOptions, LiveTranscriptionEvents

from .call_session import TranscriptChunk
from .config import settings
from .exceptions import TranscriptionError

import logging
logger = logging.getLogger(__name__)


ChunkCallback = Callable[[TranscriptChunk], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


def chunk_from_result(result) -> Optional[TranscriptChunk]:
    """
    Build a chunk from a Deepgram LiveResultResponse.

    The speaker is whoever owns the most words in the alternative. The
    timestamp is the first word's start, seconds into the stream.
    """
    channel = getattr(result, "channel", None)
    alternatives = getattr(channel, "alternatives", None) if channel else None
    if not alternatives:
        return None

    alternative = alternatives[0]
    text = (alternative.transcript or "").strip()
    if not text:
        return None

    words = getattr(alternative, "words", None) or []
    speaker_id = "0"
    audio_timestamp = 0.0
    if words:
        counts = Counter(
            getattr(word, "speaker", None) if getattr(word, "speaker", None) is not None else 0
            for word in words
        )
        speaker_id = str(counts.most_common(1)[0][0])
        start = getattr(words[0], "start", None)
        if start is not None:
            audio_timestamp = float(start)

    return TranscriptChunk(
        speaker_id=speaker_id,
        text=text,
        is_final=bool(getattr(result, "is_final", False)),
        audio_timestamp=audio_timestamp,
    )


class DeepgramTranscriber:
    """
    One diarized Deepgram stream per call.

    Audio is forwarded in the order received. Results arrive on Deepgram's
    schedule and are handed to `on_chunk`; channel errors go to `on_error`
    and never tear down the call.
    """

    def __init__(self, call_id: str, sample_rate: int, on_chunk: ChunkCallback,
                 on_error: Optional[ErrorCallback] = None, api_key: Optional[str] = None):
        self.call_id = call_id
        self.sample_rate = sample_rate
        self.on_chunk = on_chunk
        self.on_error = on_error
        self.api_key = api_key if api_key is not None else settings.deepgram_api_key
        self.connection = None
        self.is_running = False
        self.bytes_sent = 0

    async def start(self):
        if not self.api_key:
            logger.warning(f"[Deepgram] No API key - call {self.call_id} runs without transcription")
            return

        try:
            client = DeepgramClient(self.api_key)
            self.connection = client.listen.asynclive.v("1")

            self.connection.on(LiveTranscriptionEvents.Open, self._on_open)
            self.connection.on(LiveTranscriptionEvents.Transcript, self._on_transcript)
            self.connection.on(LiveTranscriptionEvents.Error, self._on_error)
            self.connection.on(LiveTranscriptionEvents.Close, self._on_close)

            options = LiveOptions(
                model=settings.deepgram_model,
                language="en",
                smart_format=True,
                punctuate=True,
                encoding="linear16",
                sample_rate=self.sample_rate,
                channels=1,  # mono mix, speakers separated by diarization
                diarize=True,
                interim_results=True,
                utterance_end_ms="1000",
                vad_events=True,
            )

            started = await self.connection.start(options)
        except Exception as e:
            raise TranscriptionError(f"Deepgram connect failed for call {self.call_id}: {e}") from e

        if started is False:
            raise TranscriptionError(f"Deepgram refused the stream for call {self.call_id}")

        self.is_running = True
        logger.info(f"[Deepgram] Connected for call {self.call_id} (linear16, {self.sample_rate}Hz, mono, diarize)")

    async def send_audio(self, mono_pcm: bytes):
        if not self.connection or not self.is_running or not mono_pcm:
            return
        try:
            await self.connection.send(mono_pcm)
            self.bytes_sent += len(mono_pcm)
        except Exception as e:
            logger.error(f"[Deepgram] Send failed for call {self.call_id}: {e}")

    async def close(self):
        self.is_running = False
        if self.connection:
            try:
                await asyncio.wait_for(self.connection.finish(), timeout=3.0)
            except Exception as e:
                logger.warning(f"[Deepgram] Close for call {self.call_id} did not finish cleanly: {e}")
            self.connection = None

    async def _on_open(self, *args, **kwargs):
        logger.info(f"[Deepgram] Stream open for call {self.call_id}")

    async def _on_transcript(self, *args, **kwargs):
        result = kwargs.get("result") or (args[1] if len(args) > 1 else None)
        if result is None:
            return
        try:
            chunk = chunk_from_result(result)
        except Exception as e:
            logger.error(f"[Deepgram] Could not read transcript for call {self.call_id}: {e}")
            return
        if chunk is not None:
            await self.on_chunk(chunk)

    async def _on_error(self, *args, **kwargs):
        error = kwargs.get("error") or (args[1] if len(args) > 1 else "Unknown")
        logger.error(f"[Deepgram] Error on call {self.call_id}: {error}")
        if self.on_error:
            await self.on_error(error if isinstance(error, Exception) else TranscriptionError(str(error)))

    async def _on_close(self, *args, **kwargs):
        logger.info(f"[Deepgram] Stream closed for call {self.call_id}")
