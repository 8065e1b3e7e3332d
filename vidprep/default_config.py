# default_config.py
# Documented defaults used when configuration or preset files are missing.

DEFAULT_PRESET = {
    'video_codec': 'h264',
    'audio_codec': 'aac',
    'resolution': '1920x1080',
    'bitrate_kbps': 974,
    'fps': 29.97,
    'audio_channels': 2,
    'audio_sample_rate': 48000,
}

# Size ceiling per delivered video part
DEFAULT_MAX_PART_SIZE_MB = 98
# Thumbnail capture timestamp
DEFAULT_CAPTURE_TIME_SECONDS = 2.0
DEFAULT_PRESET_PATH = 'config/video_preset.yaml'
DEFAULT_TEMP_DIR = 'temp'

# Encoder quality/speed controls applied to every transcode
TRANSCODE_CRF = 23
TRANSCODE_SPEED_PRESET = 'medium'

THUMBNAIL_SIZE = '1280x720'
# Distance from end-of-stream a clamped capture time is pulled back to
THUMBNAIL_EPSILON_SECONDS = 0.1

# Subprocess time bounds, seconds
TIMEOUTS = {
    'probe': 30,
    'transcode': 3600,
    'thumbnail': 60,
    'segment': 300,
}

FFMPEG_PATH = 'ffmpeg'
FFPROBE_PATH = 'ffprobe'

# Environment variables honoured by ConfigManager.apply_env_overrides
ENV_OVERRIDES = {
    'MAX_VIDEO_SIZE_MB': ('pipeline.max_part_size_mb', float),
    'FRAME_CAPTURE_TIME': ('pipeline.capture_time_seconds', float),
    'VIDEO_PRESET_PATH': ('pipeline.preset_path', str),
    'TEMP_DIR': ('pipeline.temp_dir', str),
}
