"""
Video Processing Pipeline
Runs one job end to end: Analyze -> Transcode -> Capture thumbnail -> Decide/Split,
and returns the ordered artifact list (video parts, then one thumbnail).

Every file the job writes lives in its own directory under temp_dir and is
deleted on any failure before the error reaches the caller. On success,
ownership of the returned files passes to the caller.
"""

import os
import time
import tempfile
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .exceptions import CleanupWarning, PipelineError
from .ffmpeg_utils import FFmpegRunner, ProgressCallback
from .models import Artifact, ArtifactKind, PipelineSettings, ProcessingPreset
from .preset_resolver import PresetResolver
from .temp_file_manager import TempFileManager, remove_files, remove_empty_dir
from .thumbnail_extractor import ThumbnailExtractor
from .transcoder import Transcoder
from .utils.segments_naming import base_name_for, processed_filename, thumbnail_filename
from .video_analyzer import VideoAnalyzer
from .video_segmenter import VideoSegmenter

logger = logging.getLogger(__name__)


class VideoPipeline:
    def __init__(self, settings: Optional[PipelineSettings] = None, preset: Optional[ProcessingPreset] = None,
                 runner: Optional[FFmpegRunner] = None, on_progress: Optional[ProgressCallback] = None,
                 analyzer: Optional[VideoAnalyzer] = None, transcoder: Optional[Transcoder] = None,
                 thumbnail_extractor: Optional[ThumbnailExtractor] = None,
                 segmenter: Optional[VideoSegmenter] = None):
        self.settings = settings or PipelineSettings()
        self.runner = runner or FFmpegRunner()
        self.preset = preset or PresetResolver().resolve(self.settings.preset_path)
        self.analyzer = analyzer or VideoAnalyzer(self.settings, self.runner)
        self.transcoder = transcoder or Transcoder(self.settings, self.runner, self.analyzer, on_progress)
        self.thumbnail_extractor = thumbnail_extractor or ThumbnailExtractor(self.settings, self.runner)
        self.segmenter = segmenter or VideoSegmenter(self.settings, self.runner)

    def process(self, input_path, original_name: Optional[str] = None) -> List[Artifact]:
        """
        Process one input video.

        Args:
            input_path: Local video file
            original_name: Name used for output files; defaults to the input file name

        Returns:
            Video artifacts in ascending part order followed by exactly one thumbnail

        Raises:
            PipelineError subclass identifying the failed stage
        """
        input_path = os.fspath(input_path)
        base_name = base_name_for(original_name or input_path)
        started = time.time()

        os.makedirs(self.settings.temp_dir, exist_ok=True)
        job_dir = Path(tempfile.mkdtemp(prefix=f"{base_name}_", dir=self.settings.temp_dir))
        job_files = TempFileManager(job_dir)
        processed_path = job_dir / processed_filename(base_name)
        thumbnail_path = job_dir / thumbnail_filename(base_name)

        logger.info(f"Processing video: {original_name or os.path.basename(input_path)}")

        try:
            metadata = self.analyzer.analyze(input_path)

            job_files.register(processed_path)
            transcoded = self.transcoder.transcode(input_path, self.preset, metadata=metadata,
                                                   output_path=processed_path)

            job_files.register(thumbnail_path)
            thumbnail = self.thumbnail_extractor.capture(input_path, self.settings.capture_time_seconds,
                                                         metadata.frame_duration_seconds,
                                                         output_path=thumbnail_path)

            # Split on the encoded stream's own duration
            transcoded_metadata = self.analyzer.analyze(transcoded)
            videos = self.segmenter.plan_and_split(transcoded, transcoded_metadata,
                                                   self.settings.max_part_size_mb, base_name=base_name)
            if all(Path(video.path) != processed_path for video in videos):
                job_files.unregister(processed_path)
            for video in videos:
                job_files.register(video.path)

            artifacts = videos + [Artifact(
                path=thumbnail,
                name=os.path.basename(thumbnail),
                kind=ArtifactKind.THUMBNAIL,
                size_bytes=os.path.getsize(thumbnail)
            )]
        except BaseException as e:
            if isinstance(e, PipelineError):
                logger.error(f"Video processing failed at {e.stage} stage: {e}")
                if e.diagnostic:
                    logger.debug(e.diagnostic)
            logger.info(f"Removing {job_files.get_temp_count()} intermediate file(s) of the aborted job")
            job_files.cleanup()
            raise

        job_files.release_all()
        logger.info(f"Video processing completed: {len(videos)} video part(s) + thumbnail "
                    f"in {time.time() - started:.2f}s")
        return artifacts

    @staticmethod
    def cleanup_artifacts(artifacts: Iterable[Artifact]) -> List[CleanupWarning]:
        """Delete handed-off artifacts and their job directories once empty"""
        artifacts = list(artifacts)
        warnings = remove_files(artifact.path for artifact in artifacts)
        for directory in sorted({os.path.dirname(os.path.abspath(a.path)) for a in artifacts}):
            warning = remove_empty_dir(directory)
            if warning is not None:
                warnings.append(warning)
        return warnings

    def request_shutdown(self):
        """Cancel the running tool of every in-flight job"""
        self.runner.request_shutdown()

    def reset(self):
        """Accept new jobs again after request_shutdown()"""
        self.runner.reset()
