"""
Sequence Audio Framer
Interleaved 16-bit stereo PCM -> 16-bit mono PCM for diarized transcription

The desktop client sends the closer's mic on the left channel and system
audio (the prospect) on the right. Deepgram diarization wants a single
mixed channel, so each output sample is the rounded average of its pair.
"""

import numpy as np

import logging
logger = logging.getLogger(__name__)


BYTES_PER_SAMPLE = 2
STEREO_FRAME_BYTES = BYTES_PER_SAMPLE * 2
LOG_EVERY_N_CALLS = 50

_call_count = 0


def stereo_to_mono(pcm: bytes) -> bytes:
    """
    Downmix little-endian int16 stereo to mono at the same sample rate.

    Output length is always len(pcm) // 4 * 2 bytes. A trailing partial
    frame is dropped. Halves round away from zero.
    """
    global _call_count
    _call_count += 1

    usable = len(pcm) - (len(pcm) % STEREO_FRAME_BYTES)
    if usable == 0:
        return b""

    frames = np.frombuffer(pcm, dtype="<i2", count=usable // BYTES_PER_SAMPLE).reshape(-1, 2)
    total = frames[:, 0].astype(np.int32) + frames[:, 1].astype(np.int32)
    mono = np.sign(total) * ((np.abs(total) + 1) // 2)

    if _call_count % LOG_EVERY_N_CALLS == 1:
        dropped = len(pcm) - usable
        logger.debug(
            f"[Audio] stereo_to_mono call #{_call_count}: {len(pcm)} bytes in, "
            f"{mono.size * BYTES_PER_SAMPLE} bytes out, {dropped} trailing bytes dropped"
        )

    return mono.astype("<i2").tobytes()

