"""
Local sink output directory lifecycle.

Segments left behind by a previous session break player continuity, so the
directory is emptied before the engine opens its first output file. Partial
files from an interrupted session are only removed here, at the start of the
next one.
"""

import os
import shutil
import logging
from typing import List

import m3u8

logger = logging.getLogger(__name__)


def reset_output_dir(path: str) -> int:
    """
    Remove every entry in the output directory, creating it if needed.

    An already-empty directory is not an error.

    Returns:
        Number of entries removed
    """
    os.makedirs(path, exist_ok=True)

    removed = 0
    for entry in os.scandir(path):
        if entry.is_dir(follow_symlinks=False):
            shutil.rmtree(entry.path)
        else:
            os.unlink(entry.path)
        removed += 1

    if removed:
        logger.info(f"🧹 Removed {removed} stale entries from {path}")
    else:
        logger.debug(f"Output directory {path} already empty")
    return removed


def read_playlist_segments(playlist_path: str) -> List[str]:
    """Return the segment URIs of an HLS playlist in playlist order."""
    with open(playlist_path, "r", encoding="utf-8") as fh:
        playlist = m3u8.loads(fh.read())
    return [segment.uri for segment in playlist.segments]
