"""
Audio processor error types
"""


class AudioProcessorError(Exception):
    """Base error for the audio processing service"""


class PersistenceError(AudioProcessorError):
    """A Convex mutation or query failed"""


class TranscriptionError(AudioProcessorError):
    """The speech-to-text channel could not be opened"""


class StorageError(AudioProcessorError):
    """Recording upload to object storage failed"""
