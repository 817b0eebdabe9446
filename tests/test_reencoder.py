"""Tests for finalization: observed rate and re-encoding."""

import numpy as np
import pytest

from dualcam_recorder.errors import ReencodeError
from dualcam_recorder.reencoder import compute_observed_fps, reencode_video

from conftest import EMPTY_FRAME, make_frame


class TestObservedFps:

    def test_frames_over_elapsed(self):
        assert compute_observed_fps(50, 2.5, 24.0) == pytest.approx(20.0)

    def test_no_frames_falls_back(self):
        assert compute_observed_fps(0, 3.0, 24.0) == 24.0

    def test_no_elapsed_time_falls_back(self):
        assert compute_observed_fps(10, 0.0, 24.0) == 24.0


class TestReencode:

    def test_copies_frames_in_order_at_new_rate(self, fake_media, tmp_path):
        source = tmp_path / "session_temp.avi"
        target = tmp_path / "session.avi"
        frames = [make_frame(i, width=128) for i in range(12)]
        fake_media.add_file(source, frames, fps=24.0)

        stats = reencode_video(source, target, 17.5, "XVID")

        output = fake_media.files[str(target)]
        assert stats.frames_written == 12
        assert stats.frames_skipped == 0
        assert output.fps == pytest.approx(17.5)
        assert output.size == (128, 48)
        assert output.released is True
        assert all(np.array_equal(a, b) for a, b in zip(output.frames, frames))
        assert source.exists()

    def test_empty_frames_are_skipped(self, fake_media, tmp_path):
        source = tmp_path / "session_temp.avi"
        target = tmp_path / "session.avi"
        frames = [make_frame(1), EMPTY_FRAME, make_frame(2), EMPTY_FRAME, make_frame(3)]
        fake_media.add_file(source, frames)

        stats = reencode_video(source, target, 20.0, "XVID")

        output = fake_media.files[str(target)]
        assert stats.frames_written == 3
        assert stats.frames_skipped == 2
        assert [int(f[0, 0, 0]) for f in output.frames] == [1, 2, 3]

    def test_missing_input_fails(self, fake_media, tmp_path):
        with pytest.raises(ReencodeError) as excinfo:
            reencode_video(tmp_path / "missing.avi", tmp_path / "out.avi", 20.0, "XVID")

        assert excinfo.value.operation == "open temporary video"
        assert not (tmp_path / "out.avi").exists()

    def test_unopenable_output_fails(self, fake_media, tmp_path):
        source = tmp_path / "session_temp.avi"
        target = tmp_path / "session.avi"
        fake_media.add_file(source, [make_frame(1)])
        fake_media.fail_open_writer.add(str(target))

        with pytest.raises(ReencodeError) as excinfo:
            reencode_video(source, target, 20.0, "XVID")

        assert excinfo.value.operation == "open final video writer"
        assert excinfo.value.path == target

    def test_read_error_removes_partial_output(self, fake_media, tmp_path):
        source = tmp_path / "session_temp.avi"
        target = tmp_path / "session.avi"
        fake_media.add_file(source, [make_frame(i) for i in range(5)])
        fake_media.read_error_at = 3

        with pytest.raises(ReencodeError, match="corrupt stream"):
            reencode_video(source, target, 20.0, "XVID")

        assert not target.exists()
        assert source.exists()
        assert fake_media.files[str(target)].released is True
        assert fake_media.readers[-1].released is True
