"""
Sequence Audio Processor Configuration
Manages environment variables and pipeline tunables
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Keys
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    deepgram_api_key: str = Field(default="", alias="DEEPGRAM_API_KEY")

    # Convex (persistence HTTP API)
    convex_url: str = Field(default="", alias="CONVEX_URL")
    convex_timeout_seconds: float = 10.0

    # S3 recording storage - all four must be set to enable uploads
    aws_region: str = Field(default="", alias="AWS_REGION")
    aws_access_key_id: str = Field(default="", alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field(default="", alias="AWS_SECRET_ACCESS_KEY")
    aws_s3_bucket: str = Field(default="", alias="AWS_S3_BUCKET")

    # Application
    app_name: str = "Sequence Audio Processor"
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, alias="PORT")

    # Audio
    default_sample_rate: int = 48000
    recording_spool_bytes: int = 8 * 1024 * 1024  # spill recording to disk past this
    min_recording_bytes: int = 1000

    # AI Settings
    claude_model: str = "claude-sonnet-4-20250514"
    claude_max_tokens: int = 2048
    deepgram_model: str = "nova-2"

    # Ammo extraction
    extraction_interval_seconds: float = 30.0
    extraction_min_chars: int = 100
    extraction_drain_timeout_seconds: float = 30.0  # in-flight passes awaited at call end
    max_ammo_per_pass: int = 5
    heavy_hitter_threshold: int = 50

    # Transcript / talk time
    transcript_flush_every_lines: int = 5
    talk_time_chars_per_second: float = 15.0  # text-length estimate, not audio-derived
    talk_time_persist_interval_seconds: float = 30.0

    # Nudges
    nudge_cooldown_seconds: float = 20.0
    nudge_type_cooldown_seconds: float = 90.0
    script_reminder_interval_seconds: float = 180.0
    assumed_call_length_seconds: float = 1800.0
    missing_info_after_seconds: float = 300.0
    script_reminder_after_seconds: float = 60.0

    # Post-call detection
    detection_min_transcript_chars: int = 200

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True
        extra = "ignore"


# Global settings instance
settings = Settings()
