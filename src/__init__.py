"""
live-pipe
Pipeline orchestration for live producer streams: HLS segmenting sink,
RTMP push sink and a looping audio bed, driven through FFmpeg.
"""

__version__ = "0.1.0"
__description__ = "Live producer stream routing to HLS and RTMP sinks"
