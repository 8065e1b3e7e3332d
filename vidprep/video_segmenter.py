"""
Video Segmentation Module
Decides whether a transcoded video exceeds the part size ceiling and, if so,
splits it into equal-duration parts with stream copy (no re-encode)

Cut points snap to the nearest keyframe and the size ceiling is converted into a
duration ceiling assuming constant bitrate, so realized part sizes approximate
max_part_size_mb rather than guarantee it.
"""

import math
import os
import logging
from pathlib import Path
from typing import List, Optional

from .exceptions import FFmpegExecutionError, SplitError
from .ffmpeg_utils import FFmpegUtils, FFmpegRunner
from .models import Artifact, ArtifactKind, PipelineSettings, SegmentationPlan, VideoMetadata
from .temp_file_manager import remove_files
from .utils.segments_naming import part_filename, sanitize_base_name

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class VideoSegmenter:
    def __init__(self, settings: Optional[PipelineSettings] = None, runner: Optional[FFmpegRunner] = None):
        self.settings = settings or PipelineSettings()
        self.runner = runner or FFmpegRunner()

    @staticmethod
    def plan_segments(size_bytes: int, total_duration: float, max_part_size_mb: float) -> SegmentationPlan:
        """
        Compute how many parts are needed and how long each one is.

        partsNeeded = ceil(sizeMB / maxPartSizeMB) when sizeMB exceeds the ceiling, else 1;
        every part gets total_duration / partsNeeded seconds.
        """
        if max_part_size_mb <= 0:
            raise ValueError(f"max_part_size_mb must be positive, got {max_part_size_mb}")
        if total_duration <= 0:
            raise ValueError(f"total_duration must be positive, got {total_duration}")

        size_mb = size_bytes / BYTES_PER_MB
        parts_needed = 1 if size_mb <= max_part_size_mb else math.ceil(size_mb / max_part_size_mb)
        return SegmentationPlan(
            parts_needed=parts_needed,
            duration_per_part=total_duration / parts_needed,
            total_duration=total_duration,
            size_mb=size_mb,
            max_part_size_mb=max_part_size_mb
        )

    def plan_and_split(self, transcoded_path, metadata: VideoMetadata, max_part_size_mb: Optional[float] = None,
                       base_name: Optional[str] = None) -> List[Artifact]:
        """
        Return the ordered video artifacts for a transcoded file.

        Within the ceiling the transcoded file itself is returned unchanged.
        Otherwise parts '<base>_part<N>.<ext>' are extracted next to it and the
        pre-split file is deleted once every part exists.

        Raises:
            SplitError: a part failed; all parts written so far are deleted first
        """
        path = os.fspath(transcoded_path)
        if max_part_size_mb is None:
            max_part_size_mb = self.settings.max_part_size_mb

        try:
            size_bytes = os.path.getsize(path)
        except OSError as e:
            raise SplitError(f"Cannot read transcoded file: {e}", path=path) from e

        try:
            plan = self.plan_segments(size_bytes, metadata.duration_seconds, max_part_size_mb)
        except ValueError as e:
            raise SplitError(str(e), path=path) from e

        logger.info(f"Processed video size: {plan.size_mb:.2f}MB (limit {max_part_size_mb}MB)")

        if not plan.needs_split:
            return [Artifact(
                path=path,
                name=os.path.basename(path),
                kind=ArtifactKind.VIDEO,
                size_bytes=size_bytes
            )]

        logger.info(f"Video exceeds {max_part_size_mb}MB, splitting into {plan.parts_needed} parts "
                    f"of ~{plan.duration_per_part:.2f}s each (sizes approximate, keyframe-aligned)")
        parts = self._split_video_into_segments(path, plan, base_name)

        remove_files([path])
        logger.info(f"Removed pre-split file {os.path.basename(path)}")
        return parts

    def _split_video_into_segments(self, input_video: str, plan: SegmentationPlan,
                                   base_name: Optional[str]) -> List[Artifact]:
        source = Path(input_video)
        base = sanitize_base_name(base_name) if base_name else sanitize_base_name(source.stem)
        extension = source.suffix or '.mp4'

        parts: List[Artifact] = []
        written: List[str] = []

        try:
            for i, (segment_start, segment_end) in enumerate(plan.time_ranges()):
                index = i + 1
                segment_path = str(source.parent / part_filename(base, index, extension))
                # The last part runs to end-of-stream so nothing past the probed duration is dropped
                segment_duration = None if index == plan.parts_needed else segment_end - segment_start

                logger.info(f"Extracting part {index}/{plan.parts_needed}: "
                            f"{segment_start:.2f}s - {segment_end:.2f}s")

                cmd = FFmpegUtils.build_segment_command(
                    input_video, segment_path, segment_start, segment_duration,
                    ffmpeg_path=self.settings.ffmpeg_path
                )
                written.append(segment_path)
                try:
                    self.runner.run(cmd, timeout=self.settings.segment_timeout)
                except FFmpegExecutionError as e:
                    raise SplitError.from_execution_error(
                        f"Failed to extract part {index}/{plan.parts_needed}", input_video, e) from e
                if not os.path.exists(segment_path):
                    raise SplitError(f"Part {index} was not written", path=input_video)

                part_size = os.path.getsize(segment_path)
                if part_size > plan.max_part_size_mb * BYTES_PER_MB:
                    logger.warning(f"Part {index} is {part_size / BYTES_PER_MB:.2f}MB, above the "
                                   f"{plan.max_part_size_mb}MB target (variable bitrate or keyframe spacing)")

                parts.append(Artifact(
                    path=segment_path,
                    name=os.path.basename(segment_path),
                    kind=ArtifactKind.VIDEO,
                    size_bytes=part_size,
                    part_index=index,
                    total_parts=plan.parts_needed
                ))
        except BaseException:
            self._cleanup_temp_files(written)
            raise

        return parts

    def _cleanup_temp_files(self, temp_files: List[str]):
        """Delete parts written before a failure"""
        for warning in remove_files(temp_files):
            logger.debug(f"Partial segment left behind: {warning.path}")
