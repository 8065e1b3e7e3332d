"""
Data Models
Metadata, preset, artifact and settings records passed between pipeline stages
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, Optional, List, Tuple

from . import default_config


@dataclass(frozen=True)
class VideoMetadata:
    """Probe result for one media file"""
    duration_seconds: float
    size_bytes: int
    bitrate: int
    video_codec: str
    width: int
    height: int
    fps: float
    audio_codec: Optional[str] = None
    audio_channels: Optional[int] = None
    audio_sample_rate: Optional[int] = None
    video_duration_seconds: Optional[float] = None

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)

    @property
    def frame_duration_seconds(self) -> float:
        """Span that holds decodable video frames; the container may run longer on audio"""
        if self.video_duration_seconds and self.video_duration_seconds < self.duration_seconds:
            return self.video_duration_seconds
        return self.duration_seconds

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['resolution'] = self.resolution
        return data


@dataclass(frozen=True)
class ProcessingPreset:
    """Target encoding parameters for one transcode"""
    video_codec: str = default_config.DEFAULT_PRESET['video_codec']
    audio_codec: str = default_config.DEFAULT_PRESET['audio_codec']
    resolution: str = default_config.DEFAULT_PRESET['resolution']
    bitrate_kbps: int = default_config.DEFAULT_PRESET['bitrate_kbps']
    fps: float = default_config.DEFAULT_PRESET['fps']
    audio_channels: int = default_config.DEFAULT_PRESET['audio_channels']
    audio_sample_rate: int = default_config.DEFAULT_PRESET['audio_sample_rate']

    @property
    def width(self) -> int:
        return int(self.resolution.lower().split('x')[0])

    @property
    def height(self) -> int:
        return int(self.resolution.lower().split('x')[1])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_PRESET = ProcessingPreset()


class ArtifactKind(Enum):
    VIDEO = "video"
    THUMBNAIL = "thumbnail"


@dataclass
class Artifact:
    """A produced file handed to the caller together with its description"""
    path: str
    name: str
    kind: ArtifactKind
    size_bytes: int
    part_index: Optional[int] = None
    total_parts: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'path': self.path,
            'name': self.name,
            'type': self.kind.value,
            'size': self.size_bytes,
        }
        if self.part_index is not None:
            data['part'] = self.part_index
            data['total_parts'] = self.total_parts
        return data


@dataclass(frozen=True)
class SegmentationPlan:
    """How a transcoded file is divided to respect the size ceiling.

    Assumes a constant bitrate: the size ceiling is converted into an equal
    duration per part. Stream-copy cuts snap to keyframes, so realized part
    sizes approximate the ceiling and variable-bitrate content can exceed it.
    """
    parts_needed: int
    duration_per_part: float
    total_duration: float
    size_mb: float
    max_part_size_mb: float

    @property
    def needs_split(self) -> bool:
        return self.parts_needed > 1

    def time_ranges(self) -> List[Tuple[float, float]]:
        """Return (start, end) for each part; the last part ends at total_duration"""
        ranges = []
        for i in range(self.parts_needed):
            start = i * self.duration_per_part
            end = self.total_duration if i == self.parts_needed - 1 else (i + 1) * self.duration_per_part
            ranges.append((start, end))
        return ranges


@dataclass(frozen=True)
class PipelineSettings:
    """Immutable configuration handed to each component at construction"""
    max_part_size_mb: float = default_config.DEFAULT_MAX_PART_SIZE_MB
    capture_time_seconds: float = default_config.DEFAULT_CAPTURE_TIME_SECONDS
    preset_path: str = default_config.DEFAULT_PRESET_PATH
    temp_dir: str = default_config.DEFAULT_TEMP_DIR
    thumbnail_size: str = default_config.THUMBNAIL_SIZE
    thumbnail_epsilon_seconds: float = default_config.THUMBNAIL_EPSILON_SECONDS
    ffmpeg_path: str = default_config.FFMPEG_PATH
    ffprobe_path: str = default_config.FFPROBE_PATH
    probe_timeout: float = default_config.TIMEOUTS['probe']
    transcode_timeout: float = default_config.TIMEOUTS['transcode']
    thumbnail_timeout: float = default_config.TIMEOUTS['thumbnail']
    segment_timeout: float = default_config.TIMEOUTS['segment']
