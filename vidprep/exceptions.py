"""
Pipeline Error Types
Typed failures for each processing stage plus the runner-level execution error
"""

from typing import List, Optional


class FFmpegExecutionError(Exception):
    """Raised by FFmpegRunner when an external tool does not finish cleanly"""

    def __init__(self, message: str, cmd: Optional[List[str]] = None, returncode: Optional[int] = None,
                 stderr: str = "", timed_out: bool = False, cancelled: bool = False):
        super().__init__(message)
        self.cmd = list(cmd or [])
        self.returncode = returncode
        self.stderr = stderr or ""
        self.timed_out = timed_out
        self.cancelled = cancelled

    def get_short_message(self) -> str:
        """Get concise error message for logging"""
        tool = self.cmd[0] if self.cmd else 'process'
        if self.cancelled:
            return f"{tool} was cancelled"
        if self.timed_out:
            return f"{tool} timed out"
        return f"{tool} exited with code {self.returncode}"


class PipelineError(Exception):
    """Base class for stage failures surfaced to the caller"""

    stage = "pipeline"

    def __init__(self, message: str, path: Optional[str] = None, diagnostic: str = ""):
        super().__init__(message)
        self.path = str(path) if path is not None else None
        self.diagnostic = diagnostic or ""

    @classmethod
    def from_execution_error(cls, message: str, path, exc: FFmpegExecutionError) -> 'PipelineError':
        """Wrap a runner failure, keeping the tool's diagnostic text"""
        detail = exc.get_short_message()
        return cls(f"{message}: {detail}", path=path, diagnostic=exc.stderr)

    def get_detailed_message(self) -> str:
        base = f"[{self.stage}] {self}"
        if self.path:
            base += f" (file: {self.path})"
        if self.diagnostic:
            base += f"\n{self.diagnostic.strip()}"
        return base


class AnalysisError(PipelineError):
    """Unreadable file, no video stream or invalid duration"""
    stage = "analysis"


class TranscodeError(PipelineError):
    """Encoder subprocess failure, timeout or cancellation"""
    stage = "transcode"


class ThumbnailError(PipelineError):
    """Frame capture failure"""
    stage = "thumbnail"


class SplitError(PipelineError):
    """Segment extraction failure"""
    stage = "split"


class CleanupWarning(UserWarning):
    """Best-effort deletion failure. Logged, never raised by the pipeline."""

    def __init__(self, path, reason: str):
        super().__init__(f"Failed to clean up {path}: {reason}")
        self.path = str(path)
        self.reason = reason
