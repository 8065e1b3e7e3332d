"""
FFmpeg Utilities Module
Command building for probe/transcode/thumbnail/segment invocations and a
time-bounded, cancellable runner for the external tools
"""

import math
import os
import re
import subprocess
import threading
import logging
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Callable, Set

from . import default_config
from .exceptions import AnalysisError, FFmpegExecutionError
from .models import ProcessingPreset

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Preset codec names mapped onto ffmpeg encoder names
VIDEO_ENCODERS = {
    'h264': 'libx264',
    'avc': 'libx264',
    'h265': 'libx265',
    'hevc': 'libx265',
    'vp9': 'libvpx-vp9',
    'av1': 'libaom-av1',
}

AUDIO_ENCODERS = {
    'aac': 'aac',
    'opus': 'libopus',
    'mp3': 'libmp3lame',
    'vorbis': 'libvorbis',
}

_TIME_PATTERN = re.compile(r'time=\s*(\d+):(\d+):(\d+(?:\.\d+)?)')
_STDERR_TAIL_LINES = 40


class FFmpegUtils:
    """Shared utilities for FFmpeg operations"""

    @staticmethod
    def parse_fps(rate_str: str) -> float:
        """Parse an ffprobe frame rate such as '30000/1001' or '25' into FPS.

        Both sides of a rational are parsed as integers and divided as floats.
        Raises AnalysisError on non-numeric input or a zero denominator.
        """
        text = str(rate_str or '').strip()
        if not text:
            raise AnalysisError("Missing frame rate")

        if '/' in text:
            numerator_str, _, denominator_str = text.partition('/')
            try:
                numerator = int(numerator_str.strip())
                denominator = int(denominator_str.strip())
            except ValueError:
                raise AnalysisError(f"Invalid frame rate: {rate_str!r}")
            if denominator == 0:
                raise AnalysisError(f"Invalid frame rate (zero denominator): {rate_str!r}")
            return float(numerator) / float(denominator)

        try:
            fps = float(text)
        except ValueError:
            raise AnalysisError(f"Invalid frame rate: {rate_str!r}")
        if not math.isfinite(fps):
            raise AnalysisError(f"Invalid frame rate: {rate_str!r}")
        return fps

    @staticmethod
    def _safe_file_path(file_path) -> str:
        """Normalize a path to an absolute string for tool invocation"""
        return os.path.abspath(os.fspath(file_path))

    @staticmethod
    def get_video_encoder(codec: str) -> str:
        return VIDEO_ENCODERS.get(str(codec).lower(), str(codec))

    @staticmethod
    def get_audio_encoder(codec: str) -> str:
        return AUDIO_ENCODERS.get(str(codec).lower(), str(codec))

    @staticmethod
    def format_seconds(seconds: float) -> str:
        """Render a timestamp for -ss/-t with millisecond precision"""
        return f"{max(0.0, float(seconds)):.3f}"

    @staticmethod
    def build_probe_command(input_path, ffprobe_path: str = default_config.FFPROBE_PATH) -> List[str]:
        return [
            ffprobe_path, '-v', 'error', '-print_format', 'json',
            '-show_format', '-show_streams', FFmpegUtils._safe_file_path(input_path)
        ]

    @staticmethod
    def build_transcode_command(input_path, output_path, preset: ProcessingPreset,
                                ffmpeg_path: str = default_config.FFMPEG_PATH) -> List[str]:
        """Build the web-optimized re-encode command for a preset"""
        cmd = [ffmpeg_path, '-y', '-hide_banner', '-i', FFmpegUtils._safe_file_path(input_path)]

        # Video
        cmd.extend(['-c:v', FFmpegUtils.get_video_encoder(preset.video_codec)])
        cmd.extend(['-s', preset.resolution])
        cmd.extend(['-b:v', f"{int(preset.bitrate_kbps)}k"])
        cmd.extend(['-r', str(preset.fps)])
        cmd.extend(['-preset', default_config.TRANSCODE_SPEED_PRESET])
        cmd.extend(['-crf', str(default_config.TRANSCODE_CRF)])

        # Audio
        cmd.extend(['-c:a', FFmpegUtils.get_audio_encoder(preset.audio_codec)])
        cmd.extend(['-ac', str(preset.audio_channels)])
        cmd.extend(['-ar', str(preset.audio_sample_rate)])

        # Fast start: moov atom in front so playback starts before download completes
        cmd.extend(['-movflags', '+faststart'])
        cmd.extend(['-pix_fmt', 'yuv420p'])
        cmd.append(FFmpegUtils._safe_file_path(output_path))
        return cmd

    @staticmethod
    def build_thumbnail_command(input_path, output_image_path, time_position_seconds: float,
                                size: str = default_config.THUMBNAIL_SIZE,
                                ffmpeg_path: str = default_config.FFMPEG_PATH) -> List[str]:
        """Build a single-frame JPEG capture at a fixed frame size"""
        return [
            ffmpeg_path, '-y', '-hide_banner', '-loglevel', 'error',
            '-ss', FFmpegUtils.format_seconds(time_position_seconds),
            '-i', FFmpegUtils._safe_file_path(input_path),
            '-frames:v', '1',
            '-s', size,
            '-q:v', '2',
            FFmpegUtils._safe_file_path(output_image_path)
        ]

    @staticmethod
    def build_segment_command(input_path, output_path, start_time: float,
                              duration: Optional[float] = None,
                              ffmpeg_path: str = default_config.FFMPEG_PATH) -> List[str]:
        """Build a stream-copy time-range cut.

        Without a duration the cut runs to the end of the stream.
        """
        cmd = [
            ffmpeg_path, '-y', '-hide_banner', '-loglevel', 'error',
            '-ss', FFmpegUtils.format_seconds(start_time),
            '-i', FFmpegUtils._safe_file_path(input_path),
        ]
        if duration is not None:
            cmd.extend(['-t', FFmpegUtils.format_seconds(duration)])
        cmd.extend(['-c', 'copy', '-avoid_negative_ts', 'make_zero'])
        cmd.append(FFmpegUtils._safe_file_path(output_path))
        return cmd

    @staticmethod
    def parse_progress_time(line: str) -> Optional[float]:
        """Extract the 'time=HH:MM:SS.ms' position from an ffmpeg status line"""
        match = _TIME_PATTERN.search(line or '')
        if not match:
            return None
        hours, minutes, seconds = match.groups()
        return int(hours) * 3600 + int(minutes) * 60 + float(seconds)

    @staticmethod
    def remove_partial_output(path) -> None:
        """Delete a partially written output file, logging instead of raising"""
        if path is None:
            return
        try:
            if os.path.exists(path):
                os.remove(path)
                logger.debug(f"Removed partial output: {path}")
        except OSError as e:
            logger.warning(f"Failed to remove partial output {path}: {e}")


@dataclass
class FFmpegResult:
    returncode: int
    stdout: str
    stderr: str


class FFmpegRunner:
    """Runs external tools with an explicit timeout and support for cancellation.

    Holds no per-job state: every active process is tracked in a
    lock-protected set so one runner can serve concurrent jobs.
    """

    def __init__(self, default_timeout: Optional[float] = None, terminate_grace_seconds: float = 5.0):
        self.default_timeout = default_timeout
        self.terminate_grace_seconds = terminate_grace_seconds
        self.shutdown_requested = False
        self._active: Set[subprocess.Popen] = set()
        self._cancelled: Set[int] = set()
        self._timed_out: Set[int] = set()
        self._lock = threading.Lock()

    def run(self, cmd: List[str], timeout: Optional[float] = None, duration: Optional[float] = None,
            on_progress: Optional[ProgressCallback] = None, capture_stdout: bool = False) -> FFmpegResult:
        """Run cmd to completion.

        Raises FFmpegExecutionError on a non-zero exit, timeout or cancellation.
        """
        if self.shutdown_requested:
            raise FFmpegExecutionError("Shutdown requested", cmd=cmd, cancelled=True)

        timeout = timeout if timeout is not None else self.default_timeout
        logger.debug(f"Running: {' '.join(str(part) for part in cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if capture_stdout else subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                encoding='utf-8',
                errors='replace'
            )
        except OSError as e:
            raise FFmpegExecutionError(f"Failed to start {cmd[0]}: {e}", cmd=cmd, stderr=str(e))

        with self._lock:
            self._active.add(process)
            # A shutdown that raced with Popen must still reach this process
            if self.shutdown_requested:
                self._cancelled.add(process.pid)

        watchdog = None
        if timeout is not None and timeout > 0:
            watchdog = threading.Timer(timeout, self._on_timeout, args=(process,))
            watchdog.daemon = True
            watchdog.start()

        try:
            if process.pid in self._cancelled:
                self._terminate_process(process)
            if capture_stdout:
                stdout, stderr = process.communicate()
                stderr_tail = '\n'.join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
            else:
                stdout = ''
                stderr_tail = self._consume_stderr(process, duration, on_progress)
                process.wait()
        finally:
            if watchdog is not None:
                watchdog.cancel()
            with self._lock:
                self._active.discard(process)
                cancelled = process.pid in self._cancelled
                timed_out = process.pid in self._timed_out
                self._cancelled.discard(process.pid)
                self._timed_out.discard(process.pid)

        if stderr_tail:
            logger.debug(f"{cmd[0]} stderr:\n{stderr_tail}")

        if cancelled:
            raise FFmpegExecutionError(f"{cmd[0]} cancelled", cmd=cmd, returncode=process.returncode,
                                       stderr=stderr_tail, cancelled=True)
        if timed_out:
            raise FFmpegExecutionError(f"{cmd[0]} timed out after {timeout}s", cmd=cmd,
                                       returncode=process.returncode, stderr=stderr_tail, timed_out=True)
        if process.returncode != 0:
            raise FFmpegExecutionError(f"{cmd[0]} exited with code {process.returncode}", cmd=cmd,
                                       returncode=process.returncode, stderr=stderr_tail)

        if on_progress is not None and duration:
            self._report_progress(on_progress, 100.0)
        return FFmpegResult(returncode=process.returncode, stdout=stdout or '', stderr=stderr_tail)

    def _consume_stderr(self, process: subprocess.Popen, duration: Optional[float],
                        on_progress: Optional[ProgressCallback]) -> str:
        """Read stderr to EOF, forwarding progress and keeping the diagnostic tail"""
        tail = deque(maxlen=_STDERR_TAIL_LINES)
        last_percent = 0.0
        track = on_progress is not None and duration is not None and duration > 0
        if track:
            self._report_progress(on_progress, 0.0)

        for line in process.stderr:
            line = line.rstrip()
            if not line:
                continue
            tail.append(line)
            if not track:
                continue
            position = FFmpegUtils.parse_progress_time(line)
            if position is None:
                continue
            percent = min(100.0, max(0.0, position / duration * 100.0))
            if percent > last_percent:
                last_percent = percent
                self._report_progress(on_progress, percent)

        return '\n'.join(tail)

    @staticmethod
    def _report_progress(on_progress: ProgressCallback, percent: float) -> None:
        try:
            on_progress(percent)
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")

    def _on_timeout(self, process: subprocess.Popen) -> None:
        with self._lock:
            if process not in self._active:
                return
            self._timed_out.add(process.pid)
        logger.warning(f"Process {process.pid} exceeded its time limit, terminating")
        self._terminate_process(process)

    def _terminate_process(self, process: subprocess.Popen) -> None:
        """Terminate a process gracefully, then force kill"""
        if process.poll() is not None:
            return
        try:
            process.terminate()
            try:
                process.wait(timeout=self.terminate_grace_seconds)
            except subprocess.TimeoutExpired:
                logger.warning(f"Process {process.pid} did not terminate gracefully, forcing kill...")
                process.kill()
        except OSError as e:
            logger.error(f"Error terminating process {process.pid}: {e}")

    def request_shutdown(self) -> None:
        """Cancel every running tool and refuse new runs until reset()"""
        logger.info("Shutdown requested for ffmpeg runner")
        with self._lock:
            self.shutdown_requested = True
            processes = list(self._active)
            for process in processes:
                self._cancelled.add(process.pid)
        for process in processes:
            self._terminate_process(process)

    def reset(self) -> None:
        with self._lock:
            self.shutdown_requested = False

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)
