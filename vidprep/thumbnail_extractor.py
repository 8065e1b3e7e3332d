"""
Thumbnail Extraction Module
Captures one representative still frame at a clamped timestamp
"""

import math
import os
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from . import default_config
from .exceptions import FFmpegExecutionError, ThumbnailError
from .ffmpeg_utils import FFmpegUtils, FFmpegRunner
from .models import PipelineSettings
from .utils.segments_naming import base_name_for, thumbnail_filename

logger = logging.getLogger(__name__)


def clamp_capture_time(at_seconds: float, duration_seconds: float,
                       epsilon: float = default_config.THUMBNAIL_EPSILON_SECONDS) -> float:
    """Clamp a capture timestamp into [0, duration).

    Requests at or past end-of-stream are pulled back to duration - epsilon.
    """
    try:
        at = float(at_seconds)
    except (TypeError, ValueError):
        at = 0.0
    if not math.isfinite(at) or at < 0:
        at = 0.0
    if at >= duration_seconds:
        at = max(0.0, duration_seconds - epsilon)
    return at


class ThumbnailExtractor:
    def __init__(self, settings: Optional[PipelineSettings] = None, runner: Optional[FFmpegRunner] = None):
        self.settings = settings or PipelineSettings()
        self.runner = runner or FFmpegRunner()

    def capture(self, input_path, at_seconds: float, duration_seconds: float, output_path=None) -> str:
        """
        Capture exactly one JPEG frame at the configured frame size.

        Out-of-range timestamps are clamped, never rejected.

        Raises:
            ThumbnailError: the capture subprocess failed or produced no readable image
        """
        timestamp = clamp_capture_time(at_seconds, duration_seconds, self.settings.thumbnail_epsilon_seconds)
        if timestamp != at_seconds:
            logger.debug(f"Capture time {at_seconds}s clamped to {timestamp:.3f}s (duration {duration_seconds:.3f}s)")

        if output_path is None:
            output_path = Path(self.settings.temp_dir) / thumbnail_filename(base_name_for(input_path))
        output_path = os.fspath(output_path)
        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

        cmd = FFmpegUtils.build_thumbnail_command(
            input_path, output_path, timestamp,
            size=self.settings.thumbnail_size,
            ffmpeg_path=self.settings.ffmpeg_path
        )

        try:
            self.runner.run(cmd, timeout=self.settings.thumbnail_timeout)
        except FFmpegExecutionError as e:
            FFmpegUtils.remove_partial_output(output_path)
            raise ThumbnailError.from_execution_error("Failed to capture frame", input_path, e) from e

        self._verify_image(output_path, input_path)
        logger.info(f"Frame captured at {timestamp:.2f}s: {os.path.basename(output_path)}")
        return output_path

    @staticmethod
    def _verify_image(output_path: str, input_path) -> None:
        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            FFmpegUtils.remove_partial_output(output_path)
            raise ThumbnailError("Frame capture produced no image", path=os.fspath(input_path))
        try:
            with Image.open(output_path) as image:
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            FFmpegUtils.remove_partial_output(output_path)
            raise ThumbnailError(f"Captured image is unreadable: {e}", path=os.fspath(input_path)) from e
