"""
Pipeline launcher for a single streaming session.

Resolves secrets and the audio bed, resets the local output directory, then
starts the producer and the FFmpeg engine and connects them with two tasks
sharing a bounded queue:

    producer stdout --_pump_producer--> Queue --_feed_engine--> engine stdin

A full queue blocks the pump, which stops reading the producer, whose writes
then block on the OS pipe. SIGINT/SIGTERM set a shutdown event that
terminates both processes; no playlist finalisation is attempted.
"""

import asyncio
import logging
import os
import shlex
import shutil
import signal
import stat
import sys
from collections import deque
from typing import List, Optional

from audio import resolve_audio_overlay
from config import settings
from errors import ConfigurationError, EngineFailure, PipelineError
from ingest_secrets import load_secrets
from models import ProducerFormat, SessionState, SinkMode, StreamSession
from output_dir import reset_output_dir
from sinks import (build_engine_command, get_profile_manager, redact, redact_command,
                   secret_values, select_sinks)

logger = logging.getLogger(__name__)

# Conventional exit status after SIGINT
INTERRUPTED_EXIT_CODE = 130

# Engine stderr lines repeated at ERROR level when the engine fails
STDERR_TAIL_LINES = 10


class FileStdinReader:
    """Reads a regular file given as stdin; files cannot be attached to the event loop."""

    def __init__(self, stream):
        self.stream = stream

    async def read(self, n: int) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.stream.read, n)


class PipelineLauncher:
    """Composition root: builds one session and runs it to completion."""

    def __init__(self,
                 audio: Optional[str] = None,
                 sink_mode: Optional[str] = None,
                 profile: Optional[str] = None,
                 producer_format: Optional[str] = None,
                 producer_command: Optional[str] = None,
                 bandwidth_test: bool = False,
                 output_dir: Optional[str] = None,
                 playlist_name: Optional[str] = None,
                 segment_duration: Optional[int] = None,
                 secrets_file: Optional[str] = None,
                 ffmpeg_path: Optional[str] = None,
                 realtime: Optional[bool] = None):
        self.audio_arg = audio
        try:
            self.sink_mode = SinkMode(sink_mode or settings.SINK_MODE)
            self.producer_format = ProducerFormat(producer_format or settings.PRODUCER_FORMAT)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        self.profile = profile or settings.VIDEO_PROFILE
        get_profile_manager().require_profile(self.profile)
        self.producer_command = producer_command if producer_command is not None else settings.PRODUCER_COMMAND
        self.bandwidth_test = bandwidth_test
        self.output_dir = output_dir or settings.OUTPUT_DIR
        self.playlist_name = playlist_name or settings.PLAYLIST_NAME
        self.segment_duration = segment_duration or settings.SEGMENT_DURATION
        self.secrets_file = secrets_file or settings.SECRETS_FILE
        self.ffmpeg_path = ffmpeg_path or settings.FFMPEG_PATH
        self.realtime = settings.REALTIME_INPUT if realtime is None else realtime

        self.chunk_size = settings.PIPE_CHUNK_SIZE
        self.queue_size = settings.PIPE_QUEUE_SIZE
        self.shutdown_grace = settings.SHUTDOWN_GRACE

        self.state = SessionState.IDLE
        self.history: List[SessionState] = [SessionState.IDLE]
        self.session: Optional[StreamSession] = None
        self.engine_command: List[str] = []
        self.bytes_forwarded = 0

        self.producer: Optional[asyncio.subprocess.Process] = None
        self.engine: Optional[asyncio.subprocess.Process] = None
        self._shutdown = asyncio.Event()
        self._secrets: List[str] = []
        self._stdin_is_file = False
        self._stderr_tail: deque = deque(maxlen=STDERR_TAIL_LINES)

    def _set_state(self, state: SessionState):
        logger.info(f"Session state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def request_shutdown(self):
        """Signal both tasks to stop. Safe to call more than once."""
        if not self._shutdown.is_set():
            logger.warning("🛑 Interrupt received, stopping session")
            self._shutdown.set()

    def resolve(self) -> StreamSession:
        """Resolve secrets, engine binary and audio bed into a session."""
        self._set_state(SessionState.RESOLVING)

        secrets = None
        if self.sink_mode in (SinkMode.REMOTE, SinkMode.BOTH):
            secrets = load_secrets(self.secrets_file)

        engine_path = shutil.which(self.ffmpeg_path)
        if engine_path is None:
            raise ConfigurationError(f"Engine binary not found: {self.ffmpeg_path}")

        overlay = resolve_audio_overlay(self.audio_arg)

        producer_command = None
        if self.producer_command:
            producer_command = shlex.split(self.producer_command)
        else:
            self._check_stdin()

        sinks = select_sinks(
            self.sink_mode,
            output_dir=self.output_dir,
            playlist_name=self.playlist_name,
            segment_duration=self.segment_duration,
            secrets=secrets,
            bandwidth_test=self.bandwidth_test)

        session = StreamSession(
            producer_format=self.producer_format,
            audio=overlay,
            sinks=sinks,
            profile=self.profile,
            realtime=self.realtime,
            producer_command=producer_command)

        self.engine_command = build_engine_command(session, ffmpeg_path=engine_path)
        self._secrets = secret_values(session)
        self.session = session
        return session

    def _check_stdin(self):
        """Accept a pipe, socket, terminal or regular file as the producer stream."""
        try:
            mode = os.fstat(sys.stdin.fileno()).st_mode
        except (AttributeError, ValueError, OSError) as e:
            raise ConfigurationError(f"Cannot read producer stream from stdin: {e}") from e

        if stat.S_ISREG(mode):
            self._stdin_is_file = True
        elif not (stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stat.S_ISCHR(mode)):
            raise ConfigurationError(
                "Cannot read producer stream from stdin: not a pipe or regular file")

    def reset_outputs(self):
        """Reset phase: completes before the engine process exists."""
        if not self.session.local_sinks:
            return
        self._set_state(SessionState.RESETTING)
        for sink in self.session.local_sinks:
            reset_output_dir(sink.output_dir)

    async def run(self) -> int:
        """Run the session and return the process exit status."""
        try:
            self.resolve()
            self.reset_outputs()
            return await self._stream()
        finally:
            self._set_state(SessionState.TERMINATED)

    async def _open_producer(self):
        if self.session.producer_command is None:
            logger.info("Reading producer stream from stdin")
            if self._stdin_is_file:
                return FileStdinReader(sys.stdin.buffer)
            loop = asyncio.get_running_loop()
            reader = asyncio.StreamReader()
            protocol = asyncio.StreamReaderProtocol(reader)
            try:
                await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
            except ValueError as e:
                raise ConfigurationError(f"Cannot read producer stream from stdin: {e}") from e
            return reader

        try:
            self.producer = await asyncio.create_subprocess_exec(
                *self.session.producer_command,
                stdout=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ConfigurationError(f"Failed to start producer: {e}") from e
        logger.info(f"Producer started with PID: {self.producer.pid}")
        return self.producer.stdout

    async def _stream(self) -> int:
        reader = await self._open_producer()

        logger.info(f"FFmpeg command: {redact_command(self.engine_command, self._secrets)}")
        try:
            self.engine = await asyncio.create_subprocess_exec(
                *self.engine_command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            await self._terminate(self.producer, "producer")
            raise ConfigurationError(f"Failed to start engine: {e}") from e

        self._set_state(SessionState.STREAMING)
        logger.info(f"FFmpeg engine started with PID: {self.engine.pid}")

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        workers = [
            asyncio.create_task(self._pump_producer(reader, queue)),
            asyncio.create_task(self._feed_engine(queue)),
        ]
        stderr_task = asyncio.create_task(self._log_stderr())
        engine_done = asyncio.create_task(self.engine.wait())
        shutdown = asyncio.create_task(self._shutdown.wait())

        try:
            await asyncio.wait({engine_done, shutdown}, return_when=asyncio.FIRST_COMPLETED)
            interrupted = self._shutdown.is_set()
            if interrupted:
                await self._terminate(self.engine, "engine")
                await self._terminate(self.producer, "producer")
            else:
                await self._reap_producer()
            await self._drain_stderr(stderr_task)
        finally:
            shutdown.cancel()
            stderr_task.cancel()
            for task in workers:
                task.cancel()
            await asyncio.gather(engine_done, shutdown, stderr_task, *workers,
                                 return_exceptions=True)

        logger.info(f"Forwarded {self.bytes_forwarded} bytes to the engine")

        if interrupted:
            return INTERRUPTED_EXIT_CODE

        returncode = self.engine.returncode
        if returncode != 0:
            logger.error(f"❌ FFmpeg exited with code {returncode}")
            for line in self._stderr_tail:
                logger.error(f"FFmpeg: {line}")
            raise EngineFailure(returncode)
        if self.producer is not None and self.producer.returncode not in (0, None):
            logger.warning(f"Producer exited with code {self.producer.returncode}")
        logger.info("✅ Producer stream ended, session complete")
        return 0

    async def _pump_producer(self, reader: asyncio.StreamReader, queue: asyncio.Queue):
        """Move producer output into the bounded queue; None marks end of stream."""
        try:
            while True:
                chunk = await reader.read(self.chunk_size)
                if not chunk:
                    logger.info("Producer stream closed")
                    break
                await queue.put(chunk)
        except (ConnectionError, OSError) as e:
            logger.error(f"Error reading producer stream: {e}")
        await queue.put(None)

    async def _feed_engine(self, queue: asyncio.Queue):
        """Write queued chunks to the engine's stdin, closing it at end of stream."""
        stdin = self.engine.stdin
        try:
            while True:
                chunk = await queue.get()
                if chunk is None:
                    break
                stdin.write(chunk)
                await stdin.drain()
                self.bytes_forwarded += len(chunk)
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.error(f"Engine stopped accepting input: {e}")
        finally:
            if not stdin.is_closing():
                stdin.close()

    async def _log_stderr(self):
        """Log FFmpeg stderr output with secrets removed, keeping the last lines."""
        while True:
            try:
                line = await self.engine.stderr.readline()
            except ValueError:
                # Progress output rewritten with \r overran the line buffer; it was discarded
                continue
            if not line:
                break
            line_str = line.decode('utf-8', errors='ignore').strip()
            if line_str:
                line_str = redact(line_str, self._secrets)
                self._stderr_tail.append(line_str)
                logger.info(f"FFmpeg: {line_str}")

    async def _drain_stderr(self, task: asyncio.Task):
        """Wait for the engine's stderr to reach EOF so its last lines are logged."""
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning("FFmpeg stderr still open after exit, not waiting for it")

    async def _reap_producer(self):
        """After the engine exits, give the producer a moment before stopping it."""
        if self.producer is None or self.producer.returncode is not None:
            return
        try:
            await asyncio.wait_for(self.producer.wait(), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            # Engine is gone; the producer is blocked writing into a dead pipe
            await self._terminate(self.producer, "producer")

    async def _terminate(self, process: Optional[asyncio.subprocess.Process], name: str):
        if process is None or process.returncode is not None:
            return
        logger.info(f"Terminating {name} (PID {process.pid})")
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning(f"{name} didn't terminate cleanly, killing it")
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass


async def _run_with_signals(launcher: PipelineLauncher) -> int:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, launcher.request_shutdown)
    try:
        return await launcher.run()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def run_session(**kwargs) -> int:
    """
    Run one streaming session and return the exit status.

    0 on a producer-driven end of stream, 1 on configuration errors, the
    engine's status on engine failure, 130 on interrupt.
    """
    try:
        launcher = PipelineLauncher(**kwargs)
        return asyncio.run(_run_with_signals(launcher))
    except PipelineError as e:
        logger.error(f"❌ {e}")
        return e.exit_code
