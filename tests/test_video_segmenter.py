"""
Tests for size-driven segmentation: the split decision, part naming and
cleanup of partial output
"""

import os

import pytest

from vidprep.exceptions import SplitError
from vidprep.models import ArtifactKind, VideoMetadata
from vidprep.video_segmenter import VideoSegmenter

from conftest import MB, write_sparse_file


def _metadata(duration, size_bytes):
    return VideoMetadata(duration_seconds=duration, size_bytes=size_bytes, bitrate=0, video_codec='h264',
                         width=1920, height=1080, fps=29.97)


@pytest.fixture
def processed(tmp_path):
    def make(size_bytes, name='trip_processed.mp4'):
        return str(write_sparse_file(tmp_path / name, size_bytes))
    return make


class TestPlanSegments:

    def test_oversized_file_needs_ceil_parts(self):
        plan = VideoSegmenter.plan_segments(250 * MB, 300.0, 98)

        assert plan.parts_needed == 3
        assert plan.duration_per_part == pytest.approx(100.0)
        assert plan.needs_split

    def test_file_exactly_at_ceiling_is_not_split(self):
        plan = VideoSegmenter.plan_segments(98 * MB, 300.0, 98)
        assert plan.parts_needed == 1
        assert not plan.needs_split

    def test_small_file_is_not_split(self):
        assert VideoSegmenter.plan_segments(50 * MB, 300.0, 98).parts_needed == 1

    def test_one_byte_over_ceiling_splits_in_two(self):
        assert VideoSegmenter.plan_segments(98 * MB + 1, 300.0, 98).parts_needed == 2

    def test_time_ranges_cover_whole_duration(self):
        plan = VideoSegmenter.plan_segments(250 * MB, 100.0, 98)
        ranges = plan.time_ranges()

        assert ranges[0][0] == 0
        assert ranges[-1][1] == 100.0
        assert sum(end - start for start, end in ranges) == pytest.approx(100.0)
        for (_, previous_end), (next_start, _) in zip(ranges, ranges[1:]):
            assert next_start == pytest.approx(previous_end)

    @pytest.mark.parametrize("size, duration, ceiling", [
        (10 * MB, 0.0, 98),
        (10 * MB, 60.0, 0),
        (10 * MB, -1.0, 98),
    ])
    def test_invalid_inputs_raise(self, size, duration, ceiling):
        with pytest.raises(ValueError):
            VideoSegmenter.plan_segments(size, duration, ceiling)


def test_file_within_ceiling_is_returned_unchanged(settings, fake_runner, processed):
    path = processed(50 * MB)

    artifacts = VideoSegmenter(settings, fake_runner).plan_and_split(path, _metadata(300.0, 50 * MB))

    assert len(artifacts) == 1
    assert artifacts[0].path == path
    assert artifacts[0].kind == ArtifactKind.VIDEO
    assert artifacts[0].part_index is None
    assert artifacts[0].size_bytes == 50 * MB
    assert os.path.exists(path)
    assert fake_runner.calls == []


def test_oversized_file_is_split_into_named_parts(settings, fake_runner, processed, tmp_path):
    path = processed(250 * MB)

    artifacts = VideoSegmenter(settings, fake_runner).plan_and_split(path, _metadata(300.0, 250 * MB), 98,
                                                                     base_name='trip')

    assert [a.name for a in artifacts] == ['trip_part1.mp4', 'trip_part2.mp4', 'trip_part3.mp4']
    assert [a.part_index for a in artifacts] == [1, 2, 3]
    assert all(a.total_parts == 3 for a in artifacts)
    assert all(os.path.dirname(a.path) == str(tmp_path) for a in artifacts)
    assert all(os.path.exists(a.path) for a in artifacts)
    assert not os.path.exists(path)


def test_segment_commands_cut_equal_ranges(settings, fake_runner, processed):
    path = processed(250 * MB)

    VideoSegmenter(settings, fake_runner).plan_and_split(path, _metadata(300.0, 250 * MB), 98, base_name='trip')

    commands = fake_runner.commands('segment')
    starts = [cmd[cmd.index('-ss') + 1] for cmd in commands]
    assert starts == ['0.000', '100.000', '200.000']
    assert commands[0][commands[0].index('-t') + 1] == '100.000'
    assert commands[1][commands[1].index('-t') + 1] == '100.000'
    assert '-t' not in commands[2]
    assert all(options['timeout'] == settings.segment_timeout
               for stage, _, options in fake_runner.calls)


def test_configured_ceiling_is_used_by_default(tmp_path, fake_runner, processed):
    from vidprep.models import PipelineSettings
    path = processed(30 * MB)

    artifacts = VideoSegmenter(PipelineSettings(max_part_size_mb=10), fake_runner).plan_and_split(
        path, _metadata(60.0, 30 * MB))

    assert len(artifacts) == 3


def test_failure_on_second_part_removes_written_parts(settings, fake_runner, processed, tmp_path):
    path = processed(250 * MB)
    fake_runner.fail['segment'] = 2

    with pytest.raises(SplitError) as excinfo:
        VideoSegmenter(settings, fake_runner).plan_and_split(path, _metadata(300.0, 250 * MB), 98,
                                                             base_name='trip')

    assert 'part 2/3' in str(excinfo.value)
    assert not list(tmp_path.glob('trip_part*'))
    # The pre-split file belongs to the caller until every part exists
    assert os.path.exists(path)


def test_interrupt_during_split_removes_written_parts(settings, fake_runner, processed, tmp_path):
    path = processed(250 * MB)
    fake_runner.fail['segment'] = 3
    fake_runner.fail_with = KeyboardInterrupt()

    with pytest.raises(KeyboardInterrupt):
        VideoSegmenter(settings, fake_runner).plan_and_split(path, _metadata(300.0, 250 * MB), 98,
                                                             base_name='trip')

    assert not list(tmp_path.glob('trip_part*'))
