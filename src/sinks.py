"""
Sink Selection and Video Profiles

This module maps a delivery mode to sink configurations and builds the
engine arguments for each sink: the video profile (pass-through or a
fixed-keyframe re-encode), the optional audio bed mapping and the muxer
options of the HLS or RTMP output.
"""

import logging
from typing import Dict, List, Optional
from dataclasses import dataclass

from config import settings
from errors import ConfigurationError
from hwaccel import HardwareAccelDetector, hw_accel
from models import (AudioOverlay, LocalSinkConfig, RemoteSinkConfig, SecretsConfig,
                    SinkConfig, SinkMode, StreamSession)

logger = logging.getLogger(__name__)

REDACTED = "<redacted>"
DEFAULT_VIDEO_BITRATE = "2500k"


@dataclass
class VideoProfile:
    """A video handling profile."""
    name: str
    description: str
    reencode: bool = False


class VideoProfileManager:
    """Manages the video profiles a session can select."""

    def __init__(self):
        self.profiles: Dict[str, VideoProfile] = {
            "copy": VideoProfile("copy", "Codec pass-through, no re-encode"),
            # Some ingest endpoints reject streams without periodic keyframes
            "keyframe": VideoProfile("keyframe", "Re-encode with a fixed keyframe interval",
                                     reencode=True),
        }

    def get_profile(self, name: str) -> Optional[VideoProfile]:
        """Get a profile by name."""
        return self.profiles.get(name)

    def require_profile(self, name: str) -> VideoProfile:
        profile = self.get_profile(name)
        if profile is None:
            raise ConfigurationError(
                f"Unknown video profile '{name}' "
                f"(available: {', '.join(self.profiles)})")
        return profile

    def list_profiles(self) -> Dict[str, str]:
        """List all available profiles with descriptions."""
        return {name: profile.description for name, profile in self.profiles.items()}

    def video_args(self, profile: VideoProfile,
                   accel: HardwareAccelDetector,
                   keyint: Optional[int] = None,
                   video_bitrate: Optional[str] = None) -> List[str]:
        """Output-side video arguments of a profile."""
        if not profile.reencode:
            return ["-c:v", "copy"]

        keyint = str(keyint or settings.KEYFRAME_INTERVAL)
        return accel.get_encoder_args() + [
            "-g", keyint, "-keyint_min", keyint, "-sc_threshold", "0",
            "-b:v", video_bitrate or DEFAULT_VIDEO_BITRATE,
        ]


# Global profile manager instance
profile_manager = VideoProfileManager()


def get_profile_manager() -> VideoProfileManager:
    """Get the global profile manager instance."""
    return profile_manager


def select_sinks(mode: SinkMode,
                 output_dir: Optional[str] = None,
                 playlist_name: str = "stream.m3u8",
                 segment_duration: int = 6,
                 secrets: Optional[SecretsConfig] = None,
                 bandwidth_test: bool = False) -> List[SinkConfig]:
    """
    Map a delivery mode to the sink configurations of a session.

    Raises:
        ConfigurationError: if a remote sink is requested without secrets or
            a local sink without an output directory
    """
    mode = SinkMode(mode)
    sinks: List[SinkConfig] = []

    if mode in (SinkMode.LOCAL, SinkMode.BOTH):
        if not output_dir:
            raise ConfigurationError("Local sink requires an output directory")
        sinks.append(LocalSinkConfig(
            output_dir=output_dir,
            playlist_name=playlist_name,
            segment_duration=segment_duration))

    if mode in (SinkMode.REMOTE, SinkMode.BOTH):
        if secrets is None:
            raise ConfigurationError("Remote sink requires an ingest URL")
        sinks.append(RemoteSinkConfig(
            ingest_url=secrets.ingest_url,
            bandwidth_test=bandwidth_test))

    return sinks


def bandwidth_test_url(url: str) -> str:
    """Append the bandwidth-test query parameter to an ingest URL."""
    return RemoteSinkConfig(ingest_url=url, bandwidth_test=True).target_url()


def sink_output_args(sink: SinkConfig) -> List[str]:
    """Muxer and destination arguments for one sink."""
    if isinstance(sink, LocalSinkConfig):
        return ["-f", "hls", "-hls_time", str(sink.segment_duration), sink.playlist_path]
    return ["-f", "flv", sink.target_url()]


def audio_output_args(audio: Optional[AudioOverlay]) -> List[str]:
    """Stream mapping for the looping audio bed; empty when there is none."""
    if audio is None:
        return []
    # The looped input never ends, so the producer stream bounds the output
    return ["-map", "0:v:0", "-map", "1:a:0", "-c:a", "aac", "-b:a", "128k", "-shortest"]


def build_engine_command(session: StreamSession,
                         ffmpeg_path: Optional[str] = None,
                         keyint: Optional[int] = None,
                         video_bitrate: Optional[str] = None,
                         accel: Optional[HardwareAccelDetector] = None) -> List[str]:
    """
    Compose the full engine invocation for a session.

    The primary input is always stdin; each sink gets its own output section
    so a single engine process feeds every sink.
    """
    manager = get_profile_manager()
    profile = manager.require_profile(session.profile)
    accel = accel or hw_accel

    cmd = [ffmpeg_path or settings.FFMPEG_PATH, "-hide_banner"]
    if profile.reencode:
        cmd.extend(accel.get_basic_args())
    if session.realtime:
        cmd.append("-re")
    cmd.extend(["-f", session.producer_format.value, "-i", "pipe:0"])

    if session.audio is not None:
        cmd.extend(session.audio.input_args())

    video_args = manager.video_args(profile, accel, keyint=keyint, video_bitrate=video_bitrate)
    for sink in session.sinks:
        cmd.extend(audio_output_args(session.audio))
        cmd.extend(video_args)
        cmd.extend(sink_output_args(sink))

    return cmd


def secret_values(session: StreamSession) -> List[str]:
    """Every string that must never reach the log for this session."""
    values = []
    for sink in session.remote_sinks:
        values.append(sink.ingest_url.get_secret_value())
        values.append(sink.target_url())
    # Longest first so a URL is replaced before its prefix
    return sorted(set(v for v in values if v), key=len, reverse=True)


def redact(text: str, secrets: List[str]) -> str:
    """Replace secret values in a log line."""
    for value in secrets:
        text = text.replace(value, REDACTED)
    return text


def redact_command(cmd: List[str], secrets: List[str]) -> str:
    """Printable form of an engine command with secrets removed."""
    return " ".join(redact(arg, secrets) for arg in cmd)
