"""
Preset Resolution Module
Loads the encoding preset from a YAML/JSON file, falling back to the documented defaults
"""

import math
import re
import logging
from typing import Dict, Any, Optional

import yaml

from .models import ProcessingPreset, DEFAULT_PRESET

logger = logging.getLogger(__name__)

RESOLUTION_PATTERN = re.compile(r'^\d+x\d+$')

# Keys accepted from preset files written for the original camelCase JSON format
KEY_ALIASES = {
    'videoCodec': 'video_codec',
    'audioCodec': 'audio_codec',
    'bitrate': 'bitrate_kbps',
    'audioChannels': 'audio_channels',
    'audioSampleRate': 'audio_sample_rate',
    'sample_rate': 'audio_sample_rate',
    'framesPerSecond': 'fps',
}


class PresetValidationError(ValueError):
    pass


class PresetResolver:
    """Resolves a ProcessingPreset; never blocks transcoding on a bad preset file"""

    def __init__(self, default_preset: ProcessingPreset = DEFAULT_PRESET):
        self.default_preset = default_preset

    def resolve(self, preset_path: Optional[str]) -> ProcessingPreset:
        """
        Read and validate the preset at preset_path.

        Returns the default preset, with a logged warning, when the file is
        missing, unreadable, malformed or holds invalid values.
        """
        if not preset_path:
            logger.warning("No preset path configured, using default preset")
            return self.default_preset

        try:
            with open(preset_path, 'r', encoding='utf-8') as file:
                raw = yaml.safe_load(file)
        except FileNotFoundError:
            logger.warning(f"Preset file not found at {preset_path}, using default preset")
            return self.default_preset
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read preset file {preset_path}: {e}, using default preset")
            return self.default_preset
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse preset file {preset_path}: {e}, using default preset")
            return self.default_preset

        try:
            preset = self.build_preset(raw)
        except PresetValidationError as e:
            logger.warning(f"Invalid preset in {preset_path}: {e}, using default preset")
            return self.default_preset

        logger.info(f"Loaded preset from {preset_path}: {preset.video_codec}/{preset.audio_codec} "
                    f"{preset.resolution} @ {preset.bitrate_kbps}kbps, {preset.fps}fps")
        return preset

    def build_preset(self, raw: Any) -> ProcessingPreset:
        """Validate a parsed mapping and build a preset, filling missing keys from the default"""
        if not isinstance(raw, dict):
            raise PresetValidationError(f"expected a mapping, got {type(raw).__name__}")

        # Accept a top-level 'preset:' section as well as a bare mapping
        if isinstance(raw.get('preset'), dict):
            raw = raw['preset']

        values = self.default_preset.to_dict()
        provided = self._normalize_keys(raw)
        missing = [key for key in values if key not in provided]
        if missing:
            logger.info(f"Preset keys not set, using defaults for: {', '.join(missing)}")
        values.update({key: value for key, value in provided.items() if key in values})

        return ProcessingPreset(
            video_codec=self._require_text(values, 'video_codec'),
            audio_codec=self._require_text(values, 'audio_codec'),
            resolution=self._require_resolution(values['resolution']),
            bitrate_kbps=self._require_positive_int(values, 'bitrate_kbps'),
            fps=float(self._require_positive(values, 'fps')),
            audio_channels=self._require_positive_int(values, 'audio_channels'),
            audio_sample_rate=self._require_positive_int(values, 'audio_sample_rate'),
        )

    @staticmethod
    def _normalize_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
        normalized = {}
        for key, value in raw.items():
            normalized[KEY_ALIASES.get(key, key)] = value
        return normalized

    @staticmethod
    def _require_text(values: Dict[str, Any], key: str) -> str:
        value = values.get(key)
        if not isinstance(value, str) or not value.strip():
            raise PresetValidationError(f"{key} must be a non-empty string")
        return value.strip()

    @staticmethod
    def _require_resolution(value: Any) -> str:
        text = str(value).strip().lower()
        if not RESOLUTION_PATTERN.match(text):
            raise PresetValidationError(f"resolution must match WxH, got {value!r}")
        width, height = (int(part) for part in text.split('x'))
        if width <= 0 or height <= 0:
            raise PresetValidationError(f"resolution dimensions must be positive, got {value!r}")
        return text

    @staticmethod
    def _require_positive(values: Dict[str, Any], key: str) -> float:
        value = values.get(key)
        # bool is an int subclass; 'true' is not a bitrate
        if isinstance(value, bool):
            raise PresetValidationError(f"{key} must be a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise PresetValidationError(f"{key} must be a number, got {value!r}")
        if not math.isfinite(number) or number <= 0:
            raise PresetValidationError(f"{key} must be finite and positive, got {value!r}")
        return number

    @classmethod
    def _require_positive_int(cls, values: Dict[str, Any], key: str) -> int:
        number = cls._require_positive(values, key)
        if not number.is_integer():
            raise PresetValidationError(f"{key} must be a whole number, got {values.get(key)!r}")
        return int(number)
