#!/usr/bin/env python3
"""
live-pipe - Main Entry Point
Routes a live producer stream through FFmpeg into an HLS directory and/or an
RTMP ingest endpoint.

    ./target/release/show | ./main.py stream                  # local HLS
    ./main.py stream --sink remote music/bed.mp3              # RTMP + audio bed
    ./main.py serve                                            # HTTP playback
"""

import argparse
import asyncio
import logging
import os
import sys

# Add the src directory to Python path so local modules in `src/` can be imported
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

# Import configs AFTER setting up the path
from config import settings, VERSION


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="live-pipe", description="Live stream pipeline launcher")
    subparsers = parser.add_subparsers(dest="command")

    stream = subparsers.add_parser("stream", help="Run one streaming session")
    stream.add_argument("audio", nargs="?", default=None,
                        help="Audio file to loop under the stream")
    stream.add_argument("--sink", choices=["local", "remote", "both"], default=None,
                        help=f"Delivery sink (default: {settings.SINK_MODE})")
    stream.add_argument("--profile", choices=["copy", "keyframe"], default=None,
                        help=f"Video profile (default: {settings.VIDEO_PROFILE})")
    stream.add_argument("--format", dest="producer_format", choices=["flv", "h264"], default=None,
                        help=f"Producer stream framing (default: {settings.PRODUCER_FORMAT})")
    stream.add_argument("--producer", dest="producer_command", default=None,
                        help="Producer command line; reads stdin when omitted")
    stream.add_argument("--bandwidth-test", action="store_true",
                        help="Mark the RTMP push as a bandwidth test")
    stream.add_argument("--output-dir", default=None,
                        help=f"Local sink directory (default: {settings.OUTPUT_DIR})")
    stream.add_argument("--secrets", dest="secrets_file", default=None,
                        help=f"Secrets file defining RTMP_INGEST (default: {settings.SECRETS_FILE})")
    stream.add_argument("--no-realtime", dest="realtime", action="store_false", default=None,
                        help="Do not throttle input to its native frame rate")

    subparsers.add_parser("serve", help="Serve the local sink over HTTP")

    fmt = subparsers.add_parser("format", help="Convert a media file to the show format")
    fmt.add_argument("source")
    fmt.add_argument("destination")

    return parser


def main(argv=None) -> int:
    """Main function to start live-pipe."""
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    # `main.py [audio]` keeps working as shorthand for `main.py stream [audio]`
    if not argv or argv[0] not in ("stream", "serve", "format", "-h", "--help"):
        argv = ["stream"] + list(argv)
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info(f"⚡️ live-pipe v{VERSION}: {args.command}")
    logger.info("=" * 60)
    logger.info(f"ℹ️  Log level set to: {settings.LOG_LEVEL}")

    if args.command == "serve":
        import uvicorn

        logger.info(f"✅ Serving {settings.OUTPUT_DIR} on {settings.HOST}:{settings.PORT}")
        uvicorn.run(
            "api:app",
            host=settings.HOST,
            port=settings.PORT,
            log_level=settings.LOG_LEVEL.lower(),
        )
        return 0

    if args.command == "format":
        from errors import PipelineError
        from media_format import format_media

        try:
            asyncio.run(format_media(args.source, args.destination))
        except PipelineError as e:
            logger.error(f"❌ {e}")
            return e.exit_code
        return 0

    from hwaccel import hw_accel
    from pipeline import run_session

    if (args.profile or settings.VIDEO_PROFILE) != "copy":
        hw_accel.log_capabilities()

    return run_session(
        audio=args.audio,
        sink_mode=args.sink,
        profile=args.profile,
        producer_format=args.producer_format,
        producer_command=args.producer_command,
        bandwidth_test=args.bandwidth_test,
        output_dir=args.output_dir,
        secrets_file=args.secrets_file,
        realtime=args.realtime,
    )


if __name__ == "__main__":
    sys.exit(main())
