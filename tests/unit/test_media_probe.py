"""Tests for video probing."""

from unittest.mock import MagicMock, patch

import pytest

from reelbatch.utils.media_probe import probe_video


@patch("reelbatch.utils.media_probe.VideoFileClip")
def test_probe_video_reads_clip_properties(mock_clip_class, tmp_path):
    clip = MagicMock()
    clip.size = (1920, 1080)
    clip.duration = 12.5
    clip.fps = 30
    mock_clip_class.return_value.__enter__.return_value = clip

    info = probe_video(tmp_path / "out.mp4")

    assert info.duration == 12.5
    assert (info.width, info.height) == (1920, 1080)
    assert info.fps == 30.0
    mock_clip_class.assert_called_once_with(str(tmp_path / "out.mp4"), audio=False)


@patch("reelbatch.utils.media_probe.VideoFileClip", side_effect=OSError("MoviePy error: failed to read"))
def test_probe_video_propagates_decode_errors(mock_clip_class, tmp_path):
    with pytest.raises(OSError):
        probe_video(tmp_path / "broken.mp4")
