"""
Conform arbitrary media files to the show format.

Shows and audio beds are authored for 640x480 NTSC-rate H.264 with 44.1 kHz
stereo AAC. The video is scaled to fit and letterboxed/pillarboxed.
"""

import asyncio
import logging
from typing import List, Optional

from config import settings
from errors import ConfigurationError, EngineFailure

logger = logging.getLogger(__name__)

SHOW_WIDTH = 640
SHOW_HEIGHT = 480


def show_video_filter(width: int = SHOW_WIDTH, height: int = SHOW_HEIGHT) -> str:
    """Filter chain that fits the picture inside width x height, keeping aspect."""
    fit = f"min({width}/(iw*sar)\\,{height}/ih)"
    pad_fit = f"min({width}/iw\\,{height}/ih)"
    return (
        "format=yuv420p, "
        f"scale=(iw*sar)*{fit}:ih*{fit}, "
        f"pad={width}:{height}:({width}-iw*{pad_fit})/2:({height}-ih*{pad_fit})/2"
    )


def build_format_command(source: str, destination: str, ffmpeg_path: Optional[str] = None) -> List[str]:
    return [
        ffmpeg_path or settings.FFMPEG_PATH, "-hide_banner", "-y",
        "-i", source,
        "-vf", show_video_filter(),
        "-vcodec", "libx264",
        "-r", "ntsc",
        "-acodec", "aac",
        "-ar", "44100",
        "-ac", "2",
        destination,
    ]


async def format_media(source: str, destination: str, ffmpeg_path: Optional[str] = None) -> str:
    """
    Convert a media file to the show format.

    Raises:
        ConfigurationError: if the engine cannot be started
        EngineFailure: if the conversion fails
    """
    cmd = build_format_command(source, destination, ffmpeg_path)
    logger.info(f"FFmpeg command: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise ConfigurationError(f"Failed to start engine: {e}") from e

    _, stderr = await process.communicate()
    if process.returncode != 0:
        tail = stderr.decode('utf-8', errors='ignore').strip().splitlines()[-5:]
        for line in tail:
            logger.error(f"FFmpeg: {line}")
        raise EngineFailure(process.returncode)

    logger.info(f"✅ Formatted {source} -> {destination}")
    return destination
