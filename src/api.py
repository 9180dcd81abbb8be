from fastapi import FastAPI, HTTPException, Query, Depends, Header
from fastapi.responses import FileResponse
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from typing import Optional

from config import settings, VERSION
from output_dir import read_playlist_segments
from sinks import get_profile_manager
from hwaccel import hw_accel

logger = logging.getLogger(__name__)


def get_content_type(filename: str) -> str:
    """Determine content type based on file extension"""
    name = filename.lower()
    if name.endswith('.ts'):
        return 'video/mp2t'
    elif name.endswith('.m3u8'):
        return 'application/vnd.apple.mpegurl'
    elif name.endswith('.m4s') or name.endswith('.mp4'):
        return 'video/mp4'
    else:
        return 'application/octet-stream'


def get_output_dir() -> str:
    return os.path.abspath(settings.OUTPUT_DIR)


def resolve_output_file(filename: str) -> str:
    """Map a request filename to a path inside the output directory."""
    base = get_output_dir()
    path = os.path.abspath(os.path.join(base, filename))
    if os.path.dirname(path) != base:
        raise HTTPException(status_code=400, detail="Invalid file name")
    return path


async def verify_token(
    x_api_token: Optional[str] = Header(None, alias="X-API-Token"),
    api_token: Optional[str] = Query(
        None, description="API token (alternative to X-API-Token header)")
):
    """
    Verify API token if API_TOKEN is configured.
    Token can be provided via:
    - X-API-Token header (recommended)
    - api_token query parameter (for players that cannot set headers)

    If API_TOKEN is not set in environment, authentication is disabled.
    """
    if not settings.API_TOKEN:
        return True

    provided_token = x_api_token or api_token

    if not provided_token:
        raise HTTPException(
            status_code=401,
            detail="API token required. Provide token via X-API-Token header or api_token query parameter.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if provided_token != settings.API_TOKEN:
        raise HTTPException(
            status_code=403,
            detail="Invalid API token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return True


app = FastAPI(
    title="live-pipe",
    version=VERSION,
    description="HTTP playback of the local HLS sink",
)

# Players are commonly served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/health", dependencies=[Depends(verify_token)])
async def health_check():
    """Health check endpoint with playback status"""
    playlist_path = os.path.join(get_output_dir(), settings.PLAYLIST_NAME)
    return {
        "status": "healthy",
        "version": VERSION,
        "output_dir": get_output_dir(),
        "playlist": settings.PLAYLIST_NAME,
        "playlist_available": os.path.isfile(playlist_path),
        "profiles": get_profile_manager().list_profiles(),
        "hardware_acceleration": hw_accel.get_type(),
    }


@app.get("/stream/segments", dependencies=[Depends(verify_token)])
async def list_segments():
    """Segments currently referenced by the playlist, oldest first"""
    playlist_path = resolve_output_file(settings.PLAYLIST_NAME)
    if not os.path.isfile(playlist_path):
        raise HTTPException(status_code=404, detail="Playlist not available")
    try:
        segments = read_playlist_segments(playlist_path)
    except OSError as e:
        logger.error(f"Error reading playlist: {e}")
        raise HTTPException(status_code=503, detail="Playlist not readable")
    return {"playlist": settings.PLAYLIST_NAME, "segments": segments}


@app.get("/stream/{filename}", dependencies=[Depends(verify_token)])
async def get_stream_file(filename: str):
    """Serve the playlist or a segment from the local output directory"""
    path = resolve_output_file(filename)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Not found")

    headers = {}
    if filename.lower().endswith('.m3u8'):
        # The playlist is rewritten continuously
        headers["Cache-Control"] = "no-cache"
    return FileResponse(path, media_type=get_content_type(filename), headers=headers)
