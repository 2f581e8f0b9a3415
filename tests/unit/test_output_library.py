"""Tests for listing and pruning rendered outputs."""

import os
import time
from unittest.mock import MagicMock

from reelbatch.models.schemas import VideoInfo
from reelbatch.services.output_library import OutputLibrary


def make_output(settings, name, age_hours):
    settings.output_path.mkdir(parents=True, exist_ok=True)
    path = settings.output_path / name
    path.write_bytes(b"video")
    mtime = time.time() - age_hours * 3600
    os.utime(path, (mtime, mtime))
    return path


def test_list_videos_newest_first(settings, logger):
    make_output(settings, "old.mp4", 5)
    make_output(settings, "new.mov", 1)
    make_output(settings, "notes.txt", 0)
    probe = MagicMock(return_value=VideoInfo(duration=10.0, width=1920, height=1080, fps=30.0))

    videos = OutputLibrary(settings, logger, probe=probe).list_videos()

    assert [video.filename for video in videos] == ["new.mov", "old.mp4"]
    assert videos[0].url == "http://testserver/output/new.mov"
    assert videos[0].info.width == 1920
    assert videos[0].size_bytes == 5


def test_list_videos_tolerates_unreadable_files(settings, logger):
    make_output(settings, "broken.mp4", 1)
    probe = MagicMock(side_effect=OSError("invalid data"))

    videos = OutputLibrary(settings, logger, probe=probe).list_videos()

    assert videos[0].info is None


def test_list_videos_without_info_skips_probe(settings, logger):
    make_output(settings, "a.mp4", 1)
    probe = MagicMock()

    OutputLibrary(settings, logger, probe=probe).list_videos(include_info=False)

    probe.assert_not_called()


def test_list_videos_missing_directory(settings, logger):
    assert OutputLibrary(settings, logger).list_videos() == []


def test_cleanup_removes_only_old_videos(settings, logger):
    old = make_output(settings, "old.mp4", 30)
    fresh = make_output(settings, "fresh.mp4", 2)

    deleted = OutputLibrary(settings, logger).cleanup(older_than_hours=24)

    assert deleted == 1
    assert not old.exists()
    assert fresh.exists()
