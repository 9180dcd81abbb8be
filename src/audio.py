"""Looping audio bed resolution."""

import logging
from typing import Optional

from models import AudioOverlay

logger = logging.getLogger(__name__)


def resolve_audio_overlay(audio_arg: Optional[str]) -> Optional[AudioOverlay]:
    """
    Decide whether a looping secondary audio input is attached.

    The path is handed to the engine as a single argument, so file names
    containing spaces are passed through intact. The file itself is not
    checked; the engine reports unreadable inputs.
    """
    if not audio_arg:
        logger.debug("No audio overlay requested")
        return None

    overlay = AudioOverlay(path=audio_arg)
    logger.info(f"🎵 Looping audio overlay: {overlay.path}")
    return overlay
