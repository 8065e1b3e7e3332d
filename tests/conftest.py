"""
Shared fixtures: a scripted stand-in for the ffmpeg/ffprobe runner
"""

import json
import os

import pytest
from PIL import Image

from vidprep.exceptions import FFmpegExecutionError
from vidprep.ffmpeg_utils import FFmpegResult
from vidprep.models import PipelineSettings

MB = 1024 * 1024


def write_sparse_file(path, size_bytes):
    with open(path, 'wb') as f:
        f.truncate(size_bytes)
    return path


def probe_payload(duration=120.0, size_bytes=None, r_frame_rate='30000/1001', with_audio=True,
                  with_video=True, video_duration=None, cover_art=False):
    streams = []
    if with_video:
        streams.append({
            'codec_type': 'video',
            'codec_name': 'h264',
            'width': 1920,
            'height': 1080,
            'r_frame_rate': r_frame_rate,
            'avg_frame_rate': r_frame_rate,
        })
        if video_duration is not None:
            streams[-1]['duration'] = str(video_duration)
    if with_audio:
        streams.append({
            'codec_type': 'audio',
            'codec_name': 'aac',
            'channels': 2,
            'sample_rate': '48000',
        })
    if cover_art:
        streams.append({
            'codec_type': 'video',
            'codec_name': 'mjpeg',
            'width': 600,
            'height': 600,
            'r_frame_rate': '90000/1',
            'avg_frame_rate': '0/0',
            'disposition': {'default': 0, 'attached_pic': 1},
        })
    fmt = {'duration': str(duration), 'bit_rate': '4000000'}
    if size_bytes is not None:
        fmt['size'] = str(size_bytes)
    return {'streams': streams, 'format': fmt}


class FakeRunner:
    """Records commands and produces the files a real ffmpeg run would leave behind.

    fail maps a stage name ('probe', 'transcode', 'thumbnail', 'segment') to the
    1-based call number that fails; the failing call still leaves a partial output.
    """

    def __init__(self, duration=120.0, transcode_size=10 * MB, segment_size=MB):
        self.duration = duration
        self.transcode_size = transcode_size
        self.segment_size = segment_size
        self.probe_overrides = {}
        self.fail = {}
        self.fail_with = None
        self.thumbnail_garbage = False
        self.progress_points = (50.0,)
        self.calls = []
        self.shutdown_requested = False

    @staticmethod
    def stage_of(cmd):
        if 'ffprobe' in os.path.basename(cmd[0]):
            return 'probe'
        if '-frames:v' in cmd:
            return 'thumbnail'
        if 'copy' in cmd:
            return 'segment'
        return 'transcode'

    def commands(self, stage):
        return [cmd for s, cmd, _ in self.calls if s == stage]

    def run(self, cmd, timeout=None, duration=None, on_progress=None, capture_stdout=False):
        if self.shutdown_requested:
            raise FFmpegExecutionError("Shutdown requested", cmd=cmd, cancelled=True)
        stage = self.stage_of(cmd)
        self.calls.append((stage, list(cmd), {'timeout': timeout, 'duration': duration}))
        count = len(self.commands(stage))
        output = cmd[-1]

        if self.fail.get(stage) == count:
            if stage != 'probe':
                write_sparse_file(output, 1024)
            if self.fail_with is not None:
                raise self.fail_with
            raise FFmpegExecutionError(f"{cmd[0]} exited with code 1", cmd=cmd, returncode=1,
                                       stderr="Conversion failed!")

        if stage == 'probe':
            if output in self.probe_overrides:
                payload = self.probe_overrides[output]
            else:
                payload = probe_payload(self.duration, size_bytes=os.path.getsize(output))
            return FFmpegResult(returncode=0, stdout=json.dumps(payload), stderr='')

        if stage == 'transcode':
            for percent in self.progress_points:
                if on_progress is not None:
                    on_progress(percent)
            write_sparse_file(output, self.transcode_size)
        elif stage == 'thumbnail':
            if self.thumbnail_garbage:
                with open(output, 'wb') as f:
                    f.write(b'not a jpeg at all')
            else:
                Image.new('RGB', (64, 36), color=(20, 120, 200)).save(output, 'JPEG')
        else:
            write_sparse_file(output, self.segment_size)

        return FFmpegResult(returncode=0, stdout='', stderr='')

    def request_shutdown(self):
        self.shutdown_requested = True

    def reset(self):
        self.shutdown_requested = False


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path):
    return PipelineSettings(temp_dir=str(tmp_path / 'work'), preset_path='')


@pytest.fixture
def input_video(tmp_path):
    path = tmp_path / 'input' / 'Holiday Clip.mov'
    path.parent.mkdir()
    write_sparse_file(path, 5 * MB)
    return path
