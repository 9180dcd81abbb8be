"""
Error taxonomy for a streaming session.

Configuration problems abort before anything is streamed; engine problems
end the session with the engine's exit status. Nothing here is retried.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for session failures."""

    exit_code = 1


class ConfigurationError(PipelineError):
    """A precondition for streaming is missing (secrets, engine binary, ...)."""


class EngineFailure(PipelineError):
    """The transcode/mux engine exited abnormally."""

    def __init__(self, returncode: Optional[int], message: Optional[str] = None):
        self.returncode = returncode
        super().__init__(message or f"Engine exited with code {returncode}")

    @property
    def exit_code(self) -> int:
        if self.returncode is None or self.returncode == 0:
            return 1
        # Negative codes mean the engine died from a signal
        return self.returncode if self.returncode > 0 else 128 - self.returncode
