"""
Unit tests for VideoAnalyzer
Probe output parsing, fallbacks and failure classification
"""

import json
import unittest
from unittest.mock import Mock
import tempfile
import os

import pytest

from vidprep.exceptions import AnalysisError, FFmpegExecutionError
from vidprep.ffmpeg_utils import FFmpegResult
from vidprep.models import PipelineSettings
from vidprep.video_analyzer import VideoAnalyzer

from conftest import probe_payload


class TestVideoAnalyzer(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.video_path = os.path.join(self.temp_dir, 'clip.mp4')
        with open(self.video_path, 'wb') as f:
            f.write(b'\0' * 4096)
        self.runner = Mock()
        self.analyzer = VideoAnalyzer(PipelineSettings(ffprobe_path='ffprobe', probe_timeout=12),
                                      runner=self.runner)

    def tearDown(self):
        import shutil
        shutil.rmtree(self.temp_dir)

    def _probe_returns(self, payload):
        stdout = payload if isinstance(payload, str) else json.dumps(payload)
        self.runner.run.return_value = FFmpegResult(returncode=0, stdout=stdout, stderr='')

    def test_parses_video_and_audio_streams(self):
        self._probe_returns(probe_payload(duration=61.5, size_bytes=123456789))

        metadata = self.analyzer.analyze(self.video_path)

        self.assertEqual(metadata.duration_seconds, 61.5)
        self.assertEqual(metadata.size_bytes, 123456789)
        self.assertEqual(metadata.bitrate, 4000000)
        self.assertEqual(metadata.video_codec, 'h264')
        self.assertEqual(metadata.resolution, '1920x1080')
        self.assertAlmostEqual(metadata.fps, 29.97, places=2)
        self.assertEqual(metadata.audio_codec, 'aac')
        self.assertEqual(metadata.audio_channels, 2)
        self.assertEqual(metadata.audio_sample_rate, 48000)

    def test_probe_runs_with_timeout_and_captured_stdout(self):
        self._probe_returns(probe_payload())

        self.analyzer.analyze(self.video_path)

        cmd = self.runner.run.call_args[0][0]
        self.assertEqual(cmd[0], 'ffprobe')
        self.assertIn('-show_streams', cmd)
        self.assertEqual(cmd[-1], os.path.abspath(self.video_path))
        self.assertEqual(self.runner.run.call_args[1]['timeout'], 12)
        self.assertTrue(self.runner.run.call_args[1]['capture_stdout'])

    def test_size_falls_back_to_file_size(self):
        self._probe_returns(probe_payload(size_bytes=None))
        self.assertEqual(self.analyzer.analyze(self.video_path).size_bytes, 4096)

    def test_audio_is_optional(self):
        self._probe_returns(probe_payload(with_audio=False))
        metadata = self.analyzer.analyze(self.video_path)
        self.assertIsNone(metadata.audio_codec)
        self.assertIsNone(metadata.audio_channels)

    def test_stream_duration_used_when_container_has_none(self):
        payload = probe_payload()
        payload['format']['duration'] = 'N/A'
        payload['streams'][0]['duration'] = '42.0'
        self._probe_returns(payload)

        self.assertEqual(self.analyzer.analyze(self.video_path).duration_seconds, 42.0)

    def test_no_video_stream_is_analysis_error(self):
        self._probe_returns(probe_payload(with_video=False))
        with self.assertRaises(AnalysisError) as ctx:
            self.analyzer.analyze(self.video_path)
        self.assertIn('No video stream', str(ctx.exception))

    def test_cover_art_is_not_a_video_stream(self):
        self._probe_returns(probe_payload(with_video=False, cover_art=True))
        with self.assertRaises(AnalysisError) as ctx:
            self.analyzer.analyze(self.video_path)
        self.assertIn('No video stream', str(ctx.exception))

    def test_cover_art_after_real_video_is_ignored(self):
        self._probe_returns(probe_payload(cover_art=True))
        self.assertEqual(self.analyzer.analyze(self.video_path).video_codec, 'h264')

    def test_video_stream_shorter_than_container(self):
        self._probe_returns(probe_payload(duration=10.0, video_duration=8.0))

        metadata = self.analyzer.analyze(self.video_path)

        self.assertEqual(metadata.duration_seconds, 10.0)
        self.assertEqual(metadata.video_duration_seconds, 8.0)
        self.assertEqual(metadata.frame_duration_seconds, 8.0)

    def test_frame_duration_defaults_to_container_duration(self):
        self._probe_returns(probe_payload(duration=10.0))

        metadata = self.analyzer.analyze(self.video_path)

        self.assertIsNone(metadata.video_duration_seconds)
        self.assertEqual(metadata.frame_duration_seconds, 10.0)

    def test_non_positive_duration_is_analysis_error(self):
        for duration in (0, -3):
            self._probe_returns(probe_payload(duration=duration))
            with self.assertRaises(AnalysisError):
                self.analyzer.analyze(self.video_path)

    def test_zero_denominator_frame_rate_is_analysis_error(self):
        self._probe_returns(probe_payload(r_frame_rate='30/0'))
        with self.assertRaises(AnalysisError):
            self.analyzer.analyze(self.video_path)

    def test_invalid_json_is_analysis_error(self):
        self._probe_returns('{not json')
        with self.assertRaises(AnalysisError):
            self.analyzer.analyze(self.video_path)

    def test_probe_failure_keeps_tool_diagnostic(self):
        self.runner.run.side_effect = FFmpegExecutionError(
            "ffprobe exited with code 1", cmd=['ffprobe'], returncode=1,
            stderr='moov atom not found')

        with self.assertRaises(AnalysisError) as ctx:
            self.analyzer.analyze(self.video_path)

        self.assertEqual(ctx.exception.stage, 'analysis')
        self.assertIn('moov atom not found', ctx.exception.diagnostic)
        self.assertEqual(ctx.exception.path, self.video_path)


def test_missing_file_fails_without_probing(tmp_path):
    runner = Mock()
    analyzer = VideoAnalyzer(runner=runner)

    with pytest.raises(AnalysisError):
        analyzer.analyze(tmp_path / 'missing.mp4')

    runner.run.assert_not_called()
