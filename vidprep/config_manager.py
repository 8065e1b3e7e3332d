"""
Configuration Manager for the Video Pipeline
Handles loading configuration from YAML files, environment variables and CLI arguments
and freezes the result into PipelineSettings
"""

import os
import re
import copy
import yaml
import logging
from typing import Dict, Any, Optional, Mapping

from . import default_config
from .models import PipelineSettings

logger = logging.getLogger(__name__)

CONFIG_FILE = 'pipeline.yaml'
_SIZE_PATTERN = re.compile(r'^\d+x\d+$')


class ConfigManager:
    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self.config: Dict[str, Any] = self._default_config()
        self.loaded_path: Optional[str] = None
        self._load_config()

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        return {
            'pipeline': {
                'max_part_size_mb': default_config.DEFAULT_MAX_PART_SIZE_MB,
                'capture_time_seconds': default_config.DEFAULT_CAPTURE_TIME_SECONDS,
                'preset_path': default_config.DEFAULT_PRESET_PATH,
                'temp_dir': default_config.DEFAULT_TEMP_DIR,
                'thumbnail_size': default_config.THUMBNAIL_SIZE,
                'thumbnail_epsilon_seconds': default_config.THUMBNAIL_EPSILON_SECONDS,
                'ffmpeg_path': default_config.FFMPEG_PATH,
                'ffprobe_path': default_config.FFPROBE_PATH,
                'timeouts': copy.deepcopy(default_config.TIMEOUTS),
            }
        }

    def _load_config(self):
        """Load pipeline.yaml from the config directory, else the packaged default"""
        candidates = [
            os.path.join(self.config_dir, CONFIG_FILE),
            os.path.join(os.path.abspath(os.path.dirname(__file__)), 'config', CONFIG_FILE),
        ]
        for config_path in candidates:
            if not os.path.exists(config_path):
                continue
            with open(config_path, 'r', encoding='utf-8') as file:
                config_data = yaml.safe_load(file)
            if config_data:
                if not isinstance(config_data, dict):
                    raise ValueError(f"Configuration file {config_path} must contain a mapping")
                self._merge(self.config, config_data)
            self.loaded_path = config_path
            logger.debug(f"Loaded config from {config_path}")
            return

        logger.warning(f"Config file not found in '{self.config_dir}' or packaged defaults: {CONFIG_FILE}")

    @classmethod
    def _merge(cls, target: Dict[str, Any], source: Mapping[str, Any]):
        for key, value in source.items():
            if isinstance(value, Mapping) and isinstance(target.get(key), dict):
                cls._merge(target[key], value)
            else:
                target[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: get('pipeline.timeouts.transcode')
        """
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            logger.debug(f"Configuration key '{key_path}' not found, using default: {default}")
            return default

    def update_from_args(self, args_dict: Dict[str, Any]):
        """Update configuration with command line arguments"""
        overrides_applied = []
        for key, value in args_dict.items():
            if value is not None:
                old_value = self.get(key)
                self._set_nested_value(key, value)
                overrides_applied.append(key)
                logger.info(f"Configuration override applied: {key} = {value} (was: {old_value})")

        if overrides_applied:
            logger.info(f"Applied {len(overrides_applied)} CLI configuration overrides")
        else:
            logger.debug("No CLI configuration overrides to apply")

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None):
        """Apply MAX_VIDEO_SIZE_MB, FRAME_CAPTURE_TIME, VIDEO_PRESET_PATH and TEMP_DIR"""
        environ = os.environ if environ is None else environ
        for env_name, (key_path, cast) in default_config.ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw is None or str(raw).strip() == '':
                continue
            try:
                value = cast(raw)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring {env_name}={raw!r}: not a valid {cast.__name__}")
                continue
            self._set_nested_value(key_path, value)
            logger.debug(f"Environment override applied: {key_path} = {value} (from {env_name})")

    def _set_nested_value(self, key_path: str, value: Any):
        """Set nested configuration value using dot notation"""
        keys = key_path.split('.')
        config_section = self.config

        for key in keys[:-1]:
            if not isinstance(config_section.get(key), dict):
                config_section[key] = {}
            config_section = config_section[key]

        config_section[keys[-1]] = value

    def validate_config(self) -> bool:
        """Validate that pipeline values are present and in range"""
        positive_keys = [
            'pipeline.max_part_size_mb',
            'pipeline.thumbnail_epsilon_seconds',
            'pipeline.timeouts.probe',
            'pipeline.timeouts.transcode',
            'pipeline.timeouts.thumbnail',
            'pipeline.timeouts.segment',
        ]
        for key in positive_keys:
            if not self._is_positive_number(self.get(key)):
                logger.error(f"Invalid {key}: {self.get(key)!r} (must be positive number)")
                return False

        capture_time = self.get('pipeline.capture_time_seconds')
        if not self._is_number(capture_time) or capture_time < 0:
            logger.error(f"Invalid pipeline.capture_time_seconds: {capture_time!r} (must be >= 0)")
            return False

        thumbnail_size = str(self.get('pipeline.thumbnail_size', ''))
        if not _SIZE_PATTERN.match(thumbnail_size):
            logger.error(f"Invalid pipeline.thumbnail_size: {thumbnail_size!r} (must be WxH)")
            return False

        for key in ('pipeline.temp_dir', 'pipeline.ffmpeg_path', 'pipeline.ffprobe_path'):
            value = self.get(key)
            if not isinstance(value, str) or not value.strip():
                logger.error(f"Required configuration key missing: {key}")
                return False

        logger.debug("Configuration validation passed")
        return True

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    @classmethod
    def _is_positive_number(cls, value: Any) -> bool:
        return cls._is_number(value) and value > 0

    def build_settings(self) -> PipelineSettings:
        """Freeze the current configuration into PipelineSettings"""
        if not self.validate_config():
            raise ValueError("Invalid pipeline configuration")

        preset_path = self.get('pipeline.preset_path')
        return PipelineSettings(
            max_part_size_mb=float(self.get('pipeline.max_part_size_mb')),
            capture_time_seconds=float(self.get('pipeline.capture_time_seconds')),
            preset_path=str(preset_path) if preset_path else '',
            temp_dir=str(self.get('pipeline.temp_dir')),
            thumbnail_size=str(self.get('pipeline.thumbnail_size')),
            thumbnail_epsilon_seconds=float(self.get('pipeline.thumbnail_epsilon_seconds')),
            ffmpeg_path=str(self.get('pipeline.ffmpeg_path')),
            ffprobe_path=str(self.get('pipeline.ffprobe_path')),
            probe_timeout=float(self.get('pipeline.timeouts.probe')),
            transcode_timeout=float(self.get('pipeline.timeouts.transcode')),
            thumbnail_timeout=float(self.get('pipeline.timeouts.thumbnail')),
            segment_timeout=float(self.get('pipeline.timeouts.segment')),
        )
