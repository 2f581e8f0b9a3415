"""Video probing via moviepy."""

from pathlib import Path

from moviepy import VideoFileClip

from reelbatch.models.schemas import VideoInfo


def probe_video(path: Path) -> VideoInfo:
    """
    Read duration, frame size and frame rate of a video file.

    Args:
        path: Video file to open

    Returns:
        VideoInfo for the file

    Raises:
        OSError: If the file cannot be decoded as video
    """
    with VideoFileClip(str(path), audio=False) as clip:
        width, height = clip.size
        return VideoInfo(
            duration=float(clip.duration) if clip.duration is not None else None,
            width=int(width),
            height=int(height),
            fps=float(clip.fps) if clip.fps else None,
        )
