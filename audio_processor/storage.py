"""
Sequence Recording Storage
Disk-spilling call recording buffer + S3 upload
"""

import asyncio
import tempfile
import wave
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import settings
from .exceptions import StorageError

import logging
logger = logging.getLogger(__name__)


class RecordingBuffer:
    """
    Raw call audio kept for the post-call upload.

    Chunks are appended in arrival order into a spooled temp file that
    stays in memory up to `spool_bytes` and moves to disk after that.
    """

    def __init__(self, sample_rate: int, channels: int = 2, spool_bytes: Optional[int] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self._file = tempfile.SpooledTemporaryFile(
            max_size=spool_bytes if spool_bytes is not None else settings.recording_spool_bytes
        )
        self._size = 0
        self._chunks = 0
        self._closed = False

    def append(self, data: bytes):
        if self._closed or not data:
            return
        self._file.write(data)
        self._size += len(data)
        self._chunks += 1

    @property
    def size(self) -> int:
        return self._size

    @property
    def chunk_count(self) -> int:
        return self._chunks

    @property
    def spilled_to_disk(self) -> bool:
        return bool(getattr(self._file, "_rolled", False))

    def read_all(self) -> bytes:
        """Concatenation of every appended chunk"""
        self._file.seek(0)
        data = self._file.read()
        self._file.seek(0, 2)
        return data

    def write_wav(self, target):
        """Write the buffered PCM into `target` as a WAV container"""
        frame_bytes = 2 * self.channels
        usable = self._size - (self._size % frame_bytes)
        self._file.seek(0)
        with wave.open(target, "wb") as wav:
            wav.setnchannels(self.channels)
            wav.setsampwidth(2)
            wav.setframerate(self.sample_rate)
            remaining = usable
            while remaining > 0:
                block = self._file.read(min(remaining, 1024 * 1024))
                if not block:
                    break
                wav.writeframes(block)
                remaining -= len(block)
        self._file.seek(0, 2)

    def close(self):
        if not self._closed:
            self._closed = True
            self._file.close()


def is_s3_configured() -> bool:
    return bool(
        settings.aws_region
        and settings.aws_access_key_id
        and settings.aws_secret_access_key
        and settings.aws_s3_bucket
    )


class RecordingStorage:
    """Uploads finished recordings. Returns "" whenever there is no recording to reference."""

    def __init__(self, client=None, bucket: Optional[str] = None, region: Optional[str] = None,
                 min_bytes: Optional[int] = None):
        self.bucket = bucket if bucket is not None else settings.aws_s3_bucket
        self.region = region if region is not None else settings.aws_region
        self.min_bytes = min_bytes if min_bytes is not None else settings.min_recording_bytes
        self.client = client

        if self.client is None and is_s3_configured():
            self.client = boto3.client(
                "s3",
                region_name=settings.aws_region,
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
            )
            logger.info("[S3] Client initialized")
        elif self.client is None:
            logger.warning("[S3] Not configured - recordings will not be uploaded. "
                           "Set AWS_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and AWS_S3_BUCKET.")

    @staticmethod
    def recording_key(team_id: str, call_id: str) -> str:
        return f"recordings/{team_id}/{call_id}/recording.wav"

    def _upload_sync(self, key: str, recording: RecordingBuffer):
        with tempfile.TemporaryFile() as wav_file:
            recording.write_wav(wav_file)
            wav_file.seek(0)
            try:
                self.client.upload_fileobj(
                    wav_file,
                    self.bucket,
                    key,
                    ExtraArgs={"ContentType": "audio/wav"},
                )
            except (BotoCoreError, ClientError) as e:
                raise StorageError(f"S3 upload to {self.bucket}/{key} failed: {e}") from e

    async def upload(self, team_id: str, call_id: str, recording: RecordingBuffer) -> str:
        if self.client is None:
            logger.warning(f"[S3] Not configured - skipping upload for call {call_id}")
            return ""

        if recording.size < self.min_bytes:
            logger.warning(f"[S3] Recording too small ({recording.size} bytes) - skipping upload for call {call_id}")
            return ""

        key = self.recording_key(team_id, call_id)
        logger.info(f"[S3] Uploading bucket={self.bucket} key={key} size={recording.size} bytes "
                    f"(on disk: {recording.spilled_to_disk})")

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._upload_sync, key, recording)
        except (StorageError, OSError) as e:
            logger.error(f"[S3] Failed to upload recording for call {call_id}: {type(e).__name__} - {e}")
            return ""

        url = f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        logger.info(f"[S3] Recording uploaded: {url}")
        return url
