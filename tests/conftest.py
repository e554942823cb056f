"""
Shared fixtures
"""

import pytest
from unittest.mock import AsyncMock

from audio_processor.ammo_extraction import AnthropicAmmoExtractor, ExtractionResult
from audio_processor.call_handler import CallHandler
from audio_processor.call_session import CallMetadata, CallSession
from audio_processor.detection import AnthropicDetector, DetectionResult
from audio_processor.persistence import ConvexClient
from audio_processor.storage import RecordingBuffer, RecordingStorage


class FakeTranscriber:
    """Stands in for the Deepgram stream; records what it was sent"""

    def __init__(self, call_id, sample_rate, on_chunk, on_error=None):
        self.call_id = call_id
        self.sample_rate = sample_rate
        self.on_chunk = on_chunk
        self.on_error = on_error
        self.sent = []
        self.started = False
        self.close_calls = 0

    async def start(self):
        self.started = True

    async def send_audio(self, mono_pcm):
        self.sent.append(mono_pcm)

    async def close(self):
        self.close_calls += 1


@pytest.fixture
def metadata():
    return CallMetadata(callId="call-1", teamId="team-1", closerId="closer-1", prospectName="Dana")


@pytest.fixture
def convex():
    client = AsyncMock(spec=ConvexClient)
    client.create_call.return_value = "convex-1"
    client.get_ammo_config.return_value = None
    client.get_team_custom_prompt.return_value = None
    return client


@pytest.fixture
def storage():
    store = AsyncMock(spec=RecordingStorage)
    store.upload.return_value = "https://bucket.s3.us-east-1.amazonaws.com/recordings/team-1/call-1/recording.wav"
    return store


@pytest.fixture
def extractor():
    ext = AsyncMock(spec=AnthropicAmmoExtractor)
    ext.extract.return_value = ExtractionResult()
    return ext


@pytest.fixture
def detector():
    det = AsyncMock(spec=AnthropicDetector)
    det.analyze.return_value = DetectionResult()
    return det


@pytest.fixture
def session(metadata):
    sess = CallSession(
        metadata=metadata,
        sample_rate=48000,
        recording=RecordingBuffer(48000),
        started_at=1000.0,
    )
    sess.convex_call_id = "convex-1"
    yield sess
    sess.recording.close()


@pytest.fixture
def make_handler(metadata, convex, storage, extractor, detector):
    created = []

    def _make(on_event=None, convex_client=None, **overrides):
        kwargs = dict(
            extractor=extractor,
            detector=detector,
            transcriber_factory=FakeTranscriber,
            on_event=on_event,
        )
        kwargs.update(overrides)
        handler = CallHandler(metadata, convex_client or convex, storage, **kwargs)
        created.append(handler)
        return handler

    yield _make
    for handler in created:
        handler.session.recording.close()
