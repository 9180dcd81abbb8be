"""
Hardware Acceleration Selection

Chooses the H.264 encoder arguments and the input-side FFmpeg arguments used
when a profile re-encodes video. Pass-through profiles never touch this.
"""

import logging
from typing import List
from dataclasses import dataclass

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class HardwareAccelConfig:
    """Configuration for hardware acceleration."""
    type: str  # 'nvidia', 'vaapi', 'cpu'
    h264_encoder: str
    # Global/input options placed before -i
    ffmpeg_args: List[str]
    # Output options selecting and feeding the encoder
    encoder_args: List[str]

    @property
    def available(self) -> bool:
        return self.type != "cpu"


class HardwareAccelDetector:
    """Resolves encoder settings for the configured acceleration type."""

    def __init__(self, accel_type: str = None, vaapi_device: str = None):
        self.config = self._load_config(
            (accel_type or settings.HW_ACCEL_TYPE).lower(),
            vaapi_device or settings.VAAPI_DEVICE)

    def _load_config(self, accel_type: str, vaapi_device: str) -> HardwareAccelConfig:
        if accel_type == "nvidia":
            # Decoded frames are downloaded to system memory, so pix_fmt applies
            config = HardwareAccelConfig(
                type="nvidia", h264_encoder="h264_nvenc",
                ffmpeg_args=["-hwaccel", "cuda"],
                encoder_args=["-c:v", "h264_nvenc", "-preset", "fast", "-pix_fmt", "yuv420p"])
        elif accel_type == "vaapi":
            # Software decode, then upload to the GPU for h264_vaapi
            config = HardwareAccelConfig(
                type="vaapi", h264_encoder="h264_vaapi",
                ffmpeg_args=["-vaapi_device", vaapi_device],
                encoder_args=["-vf", "format=nv12,hwupload", "-c:v", "h264_vaapi"])
        else:
            if accel_type != "cpu":
                logger.warning(
                    f"Unknown HW_ACCEL_TYPE '{accel_type}', using CPU encoding")
            config = HardwareAccelConfig(
                type="cpu", h264_encoder="libx264",
                ffmpeg_args=[],
                encoder_args=["-c:v", "libx264", "-preset", "veryfast", "-pix_fmt", "yuv420p"])

        logger.debug(f"Hardware acceleration config: {config}")
        return config

    def get_basic_args(self) -> List[str]:
        """Input-side acceleration arguments."""
        return self.config.ffmpeg_args.copy()

    def get_encoder_args(self) -> List[str]:
        """Output-side encoder arguments."""
        return self.config.encoder_args.copy()

    def is_available(self) -> bool:
        return self.config.available

    def get_type(self) -> str:
        return self.config.type

    def log_capabilities(self):
        if self.config.available:
            logger.info(
                f"🚀 Hardware encoding ENABLED: {self.config.type} ({self.config.h264_encoder})")
        else:
            logger.info("💻 Using CPU encoding for re-encode profiles")


# Global instance for easy access
hw_accel = HardwareAccelDetector()
