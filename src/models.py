from pydantic import BaseModel, Field, SecretStr, field_validator
from typing import List, Optional, Union
from enum import Enum
import os

BANDWIDTH_TEST_PARAM = "bandwidthtest=true"


class ProducerFormat(str, Enum):
    FLV = "flv"
    H264 = "h264"


class SinkKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class SinkMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    BOTH = "both"


class SessionState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RESETTING = "resetting"
    STREAMING = "streaming"
    TERMINATED = "terminated"


class SecretsConfig(BaseModel):
    ingest_url: SecretStr


class AudioOverlay(BaseModel):
    path: str
    # -stream_loop -1: loop forever, for the whole session
    loop: int = -1

    def input_args(self) -> List[str]:
        """Engine arguments for the looping secondary input."""
        return ["-stream_loop", str(self.loop), "-i", self.path]


class LocalSinkConfig(BaseModel):
    kind: SinkKind = SinkKind.LOCAL
    output_dir: str
    playlist_name: str = "stream.m3u8"
    segment_duration: int = Field(default=6, ge=1)

    @property
    def playlist_path(self) -> str:
        return os.path.join(self.output_dir, self.playlist_name)


class RemoteSinkConfig(BaseModel):
    kind: SinkKind = SinkKind.REMOTE
    ingest_url: SecretStr
    bandwidth_test: bool = False

    def target_url(self) -> str:
        """The URL handed to the engine. Unchanged unless bandwidth testing."""
        url = self.ingest_url.get_secret_value()
        if not self.bandwidth_test:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{BANDWIDTH_TEST_PARAM}"


SinkConfig = Union[LocalSinkConfig, RemoteSinkConfig]


class StreamSession(BaseModel):
    producer_format: ProducerFormat = ProducerFormat.FLV
    audio: Optional[AudioOverlay] = None
    sinks: List[SinkConfig] = Field(min_length=1)
    profile: str = "copy"
    realtime: bool = True
    # None means the producer stream arrives on our own stdin
    producer_command: Optional[List[str]] = None

    @field_validator("producer_command")
    @classmethod
    def validate_producer_command(cls, v):
        if v is not None and not v:
            raise ValueError("producer_command cannot be empty")
        return v

    @property
    def local_sinks(self) -> List[LocalSinkConfig]:
        return [s for s in self.sinks if isinstance(s, LocalSinkConfig)]

    @property
    def remote_sinks(self) -> List[RemoteSinkConfig]:
        return [s for s in self.sinks if isinstance(s, RemoteSinkConfig)]
