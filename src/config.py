from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

# Application version
VERSION = "0.1.0"


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Utilizes pydantic-settings for robust validation and type-casting.

    The ingest secret is deliberately NOT a setting: it is read from
    SECRETS_FILE by ingest_secrets.load_secrets() once per session.
    """

    LOG_LEVEL: str = "info"

    # Engine Configuration
    FFMPEG_PATH: str = "ffmpeg"
    # Kill the producer/engine if they ignore SIGTERM for this many seconds
    SHUTDOWN_GRACE: float = 5.0

    # Session defaults (can be overridden on the command line)
    SINK_MODE: str = "local"  # local, remote, both
    VIDEO_PROFILE: str = "copy"  # copy, keyframe
    PRODUCER_FORMAT: str = "flv"  # flv, h264
    # Shell-style command line of the producer. When unset the session reads
    # the producer stream from our own stdin (`./show | main.py stream`).
    PRODUCER_COMMAND: Optional[str] = None
    # Pass -re so the engine reads input at its native frame rate
    REALTIME_INPUT: bool = True

    # Local sink
    OUTPUT_DIR: str = "./stream"
    PLAYLIST_NAME: str = "stream.m3u8"
    SEGMENT_DURATION: int = 6

    # Remote sink
    SECRETS_FILE: str = "./SECRETS"

    # Re-encode profile
    KEYFRAME_INTERVAL: int = 60
    HW_ACCEL_TYPE: str = "cpu"  # cpu, nvidia, vaapi
    VAAPI_DEVICE: str = "/dev/dri/renderD128"

    # Producer -> engine byte channel
    PIPE_CHUNK_SIZE: int = 32768
    PIPE_QUEUE_SIZE: int = 64

    # Playback server
    HOST: str = "0.0.0.0"
    PORT: int = 8086
    API_TOKEN: Optional[str] = None

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


# Global settings instance
settings = Settings()
