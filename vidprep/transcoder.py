"""
Transcoding Module
Re-encodes an input video against a ProcessingPreset into one web-optimized file
"""

import os
import logging
from pathlib import Path
from typing import Optional

from .exceptions import FFmpegExecutionError, TranscodeError
from .ffmpeg_utils import FFmpegUtils, FFmpegRunner, ProgressCallback
from .models import PipelineSettings, ProcessingPreset, VideoMetadata
from .utils.segments_naming import base_name_for, processed_filename
from .video_analyzer import VideoAnalyzer

logger = logging.getLogger(__name__)


class Transcoder:
    def __init__(self, settings: Optional[PipelineSettings] = None, runner: Optional[FFmpegRunner] = None,
                 analyzer: Optional[VideoAnalyzer] = None, on_progress: Optional[ProgressCallback] = None):
        self.settings = settings or PipelineSettings()
        self.runner = runner or FFmpegRunner()
        self.analyzer = analyzer or VideoAnalyzer(self.settings, self.runner)
        self.on_progress = on_progress

    def transcode(self, input_path, preset: ProcessingPreset, metadata: Optional[VideoMetadata] = None,
                  output_path=None, on_progress: Optional[ProgressCallback] = None) -> str:
        """
        Re-encode input_path with the preset's codecs, resolution, bitrate, frame rate
        and audio settings, CRF 23, the 'medium' speed preset and fast start.

        Args:
            input_path: Source video
            preset: Resolved processing preset
            metadata: Source metadata; probed when omitted
            output_path: Destination; defaults to '<temp_dir>/<base>_processed.mp4'
            on_progress: Optional percentage callback (0-100), observability only

        Returns:
            Path of the single output file. The caller owns its cleanup.

        Raises:
            TranscodeError: encoder failed, timed out or was cancelled
        """
        if metadata is None:
            metadata = self.analyzer.analyze(input_path)

        if output_path is None:
            os.makedirs(self.settings.temp_dir, exist_ok=True)
            output_path = Path(self.settings.temp_dir) / processed_filename(base_name_for(input_path))
        output_path = os.fspath(output_path)
        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

        if metadata.width and metadata.height and (metadata.width, metadata.height) != (preset.width, preset.height):
            logger.info(f"Scaling {metadata.resolution} -> {preset.resolution}")

        cmd = FFmpegUtils.build_transcode_command(input_path, output_path, preset,
                                                  ffmpeg_path=self.settings.ffmpeg_path)
        logger.info(f"Transcoding {os.path.basename(os.fspath(input_path))} "
                    f"({metadata.duration_seconds:.1f}s) -> {os.path.basename(output_path)}")

        try:
            self.runner.run(
                cmd,
                timeout=self.settings.transcode_timeout,
                duration=metadata.duration_seconds,
                on_progress=on_progress or self.on_progress
            )
        except FFmpegExecutionError as e:
            FFmpegUtils.remove_partial_output(output_path)
            logger.error(f"Transcode failed: {e.get_short_message()}")
            raise TranscodeError.from_execution_error("Failed to transcode video", input_path, e) from e

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            FFmpegUtils.remove_partial_output(output_path)
            raise TranscodeError("Encoder produced no output", path=os.fspath(input_path))

        size_mb = os.path.getsize(output_path) / (1024 * 1024)
        logger.info(f"Transcode completed: {os.path.basename(output_path)} ({size_mb:.2f}MB)")
        return output_path
