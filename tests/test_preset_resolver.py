import json

import pytest

from vidprep.models import DEFAULT_PRESET, ProcessingPreset
from vidprep.preset_resolver import PresetResolver, PresetValidationError


@pytest.fixture
def resolver():
    return PresetResolver()


def test_default_preset_values():
    assert DEFAULT_PRESET == ProcessingPreset(
        video_codec='h264', audio_codec='aac', resolution='1920x1080', bitrate_kbps=974,
        fps=29.97, audio_channels=2, audio_sample_rate=48000)


def test_missing_file_falls_back_to_default(resolver, tmp_path, caplog):
    preset = resolver.resolve(str(tmp_path / 'nope.yaml'))

    assert preset == DEFAULT_PRESET
    assert 'not found' in caplog.text


def test_empty_path_falls_back_to_default(resolver):
    assert resolver.resolve('') == DEFAULT_PRESET
    assert resolver.resolve(None) == DEFAULT_PRESET


def test_yaml_preset_is_loaded(resolver, tmp_path):
    path = tmp_path / 'preset.yaml'
    path.write_text(
        "video_codec: h265\naudio_codec: opus\nresolution: 1280x720\nbitrate_kbps: 1500\n"
        "fps: 25\naudio_channels: 1\naudio_sample_rate: 44100\n", encoding='utf-8')

    preset = resolver.resolve(str(path))

    assert preset == ProcessingPreset('h265', 'opus', '1280x720', 1500, 25.0, 1, 44100)


def test_camel_case_json_preset_is_loaded(resolver, tmp_path):
    path = tmp_path / 'video-preset.json'
    path.write_text(json.dumps({
        'videoCodec': 'h264', 'audioCodec': 'aac', 'resolution': '854x480', 'bitrate': 600,
        'fps': 30, 'audioChannels': 2, 'audioSampleRate': 44100,
    }), encoding='utf-8')

    preset = resolver.resolve(str(path))

    assert preset.resolution == '854x480'
    assert preset.bitrate_kbps == 600
    assert preset.audio_sample_rate == 44100


def test_missing_keys_are_filled_from_default(resolver, tmp_path):
    path = tmp_path / 'partial.yaml'
    path.write_text("preset:\n  bitrate_kbps: 2000\n", encoding='utf-8')

    preset = resolver.resolve(str(path))

    assert preset.bitrate_kbps == 2000
    assert preset.resolution == DEFAULT_PRESET.resolution
    assert preset.video_codec == DEFAULT_PRESET.video_codec


@pytest.mark.parametrize("content", [
    "resolution: 1920by1080\n",
    "bitrate_kbps: -5\n",
    "fps: 0\n",
    "bitrate_kbps: true\n",
    "audio_channels: two\n",
    "bitrate_kbps: 974.5\n",
    "audio_channels: 1.5\n",
    "audio_sample_rate: 44100.5\n",
    "video_codec: ''\n",
    "- just\n- a list\n",
    "resolution: [1920, 1080\n",
])
def test_invalid_preset_files_fall_back_to_default(resolver, tmp_path, content):
    path = tmp_path / 'bad.yaml'
    path.write_text(content, encoding='utf-8')

    assert resolver.resolve(str(path)) == DEFAULT_PRESET


def test_whole_number_floats_are_accepted_as_integers(resolver, tmp_path):
    path = tmp_path / 'preset.yaml'
    path.write_text("bitrate_kbps: 1500.0\naudio_sample_rate: 44100.0\n", encoding='utf-8')

    preset = resolver.resolve(str(path))

    assert preset.bitrate_kbps == 1500 and isinstance(preset.bitrate_kbps, int)
    assert preset.audio_sample_rate == 44100


def test_build_preset_rejects_non_mapping(resolver):
    with pytest.raises(PresetValidationError):
        resolver.build_preset(['h264'])


def test_build_preset_normalizes_resolution_case(resolver):
    assert resolver.build_preset({'resolution': '1280X720'}).resolution == '1280x720'
