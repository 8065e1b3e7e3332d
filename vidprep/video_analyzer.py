"""
Video Analysis Module
Probes media files with ffprobe and extracts structured metadata
"""

import json
import math
import os
import logging
from typing import Dict, Any, Optional

from .exceptions import AnalysisError, FFmpegExecutionError
from .ffmpeg_utils import FFmpegUtils, FFmpegRunner
from .models import PipelineSettings, VideoMetadata

logger = logging.getLogger(__name__)


class VideoAnalyzer:
    def __init__(self, settings: Optional[PipelineSettings] = None, runner: Optional[FFmpegRunner] = None):
        self.settings = settings or PipelineSettings()
        self.runner = runner or FFmpegRunner()

    def analyze(self, video_path) -> VideoMetadata:
        """
        Probe a local media file.

        Args:
            video_path: Path to a readable local video file

        Returns:
            VideoMetadata for the file

        Raises:
            AnalysisError: file unreadable, no video stream, or non-positive duration
        """
        path = os.fspath(video_path)
        if not os.path.isfile(path):
            raise AnalysisError("Video file not found", path=path)
        if not os.access(path, os.R_OK):
            raise AnalysisError("Video file not readable", path=path)

        cmd = FFmpegUtils.build_probe_command(path, ffprobe_path=self.settings.ffprobe_path)
        try:
            result = self.runner.run(cmd, timeout=self.settings.probe_timeout, capture_stdout=True)
        except FFmpegExecutionError as e:
            raise AnalysisError.from_execution_error("Failed to analyze video", path, e) from e

        try:
            data = json.loads(result.stdout) if result.stdout.strip() else {}
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Invalid ffprobe output: {e}", path=path, diagnostic=result.stdout[:500]) from e

        metadata = self._parse_probe_data(data, path)
        logger.info(f"Analyzed {os.path.basename(path)}: {metadata.resolution} @ {metadata.fps:.3f}fps, "
                    f"{metadata.duration_seconds:.2f}s, {metadata.size_mb:.2f}MB, codec {metadata.video_codec}")
        return metadata

    def _parse_probe_data(self, data: Dict[str, Any], path: str) -> VideoMetadata:
        streams = data.get('streams', []) or []
        format_info = data.get('format', {}) or {}

        # Cover art in audio files is reported as a one-frame video stream
        video_stream = next((s for s in streams
                             if s.get('codec_type') == 'video' and not self._is_attached_picture(s)), None)
        audio_stream = next((s for s in streams if s.get('codec_type') == 'audio'), None)

        if video_stream is None:
            raise AnalysisError("No video stream found", path=path)

        duration = self._parse_duration(format_info, video_stream)
        if duration is None or not math.isfinite(duration) or duration <= 0:
            raise AnalysisError(f"Invalid duration: {format_info.get('duration')!r}", path=path)

        try:
            fps = FFmpegUtils.parse_fps(video_stream.get('r_frame_rate') or video_stream.get('avg_frame_rate'))
        except AnalysisError as e:
            raise AnalysisError(str(e), path=path) from e

        size_bytes = self._to_int(format_info.get('size'))
        if size_bytes is None:
            size_bytes = os.path.getsize(path)

        return VideoMetadata(
            duration_seconds=duration,
            size_bytes=size_bytes,
            bitrate=self._to_int(format_info.get('bit_rate')) or 0,
            video_codec=video_stream.get('codec_name', 'unknown'),
            width=self._to_int(video_stream.get('width')) or 0,
            height=self._to_int(video_stream.get('height')) or 0,
            fps=fps,
            audio_codec=audio_stream.get('codec_name') if audio_stream else None,
            audio_channels=self._to_int(audio_stream.get('channels')) if audio_stream else None,
            audio_sample_rate=self._to_int(audio_stream.get('sample_rate')) if audio_stream else None,
            video_duration_seconds=self._parse_stream_duration(video_stream),
        )

    @staticmethod
    def _is_attached_picture(stream: Dict[str, Any]) -> bool:
        disposition = stream.get('disposition') or {}
        return str(disposition.get('attached_pic', 0)) == '1'

    @staticmethod
    def _parse_stream_duration(video_stream: Dict[str, Any]) -> Optional[float]:
        try:
            duration = float(video_stream.get('duration'))
        except (TypeError, ValueError):
            return None
        return duration if math.isfinite(duration) and duration > 0 else None

    @staticmethod
    def _parse_duration(format_info: Dict[str, Any], video_stream: Dict[str, Any]) -> Optional[float]:
        # Container duration first, stream duration as fallback
        for raw in (format_info.get('duration'), video_stream.get('duration')):
            if raw in (None, '', 'N/A'):
                continue
            try:
                return float(raw)
            except (TypeError, ValueError):
                continue
        return None

    @staticmethod
    def _to_int(value) -> Optional[int]:
        if value in (None, '', 'N/A'):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            try:
                return int(float(value))
            except (TypeError, ValueError):
                return None
