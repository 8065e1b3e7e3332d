"""
vidprep - video preparation pipeline for web delivery
Transcodes an input video to a fixed preset, captures a thumbnail and splits
oversized output into size-bounded parts
"""

from .exceptions import (
    AnalysisError,
    CleanupWarning,
    FFmpegExecutionError,
    PipelineError,
    SplitError,
    ThumbnailError,
    TranscodeError,
)
from .models import Artifact, ArtifactKind, PipelineSettings, ProcessingPreset, VideoMetadata
from .pipeline import VideoPipeline

__version__ = "1.0.0"

__all__ = [
    'AnalysisError',
    'Artifact',
    'ArtifactKind',
    'CleanupWarning',
    'FFmpegExecutionError',
    'PipelineError',
    'PipelineSettings',
    'ProcessingPreset',
    'SplitError',
    'ThumbnailError',
    'TranscodeError',
    'VideoMetadata',
    'VideoPipeline',
]
