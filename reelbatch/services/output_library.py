"""Output Library - lists and prunes rendered videos in the output directory."""

import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from reelbatch.core.config import Settings
from reelbatch.models.schemas import OutputVideo, VideoInfo
from reelbatch.utils.io_utils import VIDEO_EXTENSIONS
from reelbatch.utils.media_probe import probe_video


class OutputLibrary:
    """Read-only view and age-based cleanup of rendered files."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        probe: Callable[[Path], VideoInfo] = probe_video,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.logger = logger
        self.output_dir = settings.output_path
        self.probe = probe
        self.clock = clock

    def _video_files(self) -> list[Path]:
        if not self.output_dir.exists():
            return []
        return [
            path
            for path in self.output_dir.iterdir()
            if path.is_file() and path.suffix.lower() in VIDEO_EXTENSIONS
        ]

    def list_videos(self, include_info: bool = True) -> list[OutputVideo]:
        """
        List rendered videos, newest first.

        Args:
            include_info: Probe each file for duration, size and frame rate

        Returns:
            List of OutputVideo
        """
        videos = []
        base_url = self.settings.public_base_url.rstrip("/")
        for path in self._video_files():
            stat = path.stat()
            info: Optional[VideoInfo] = None
            if include_info:
                try:
                    info = self.probe(path)
                except Exception as e:
                    self.logger.warning(f"Could not probe {path.name}: {e}")
            videos.append(
                OutputVideo(
                    filename=path.name,
                    size_bytes=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime),
                    url=f"{base_url}/output/{path.name}",
                    info=info,
                )
            )
        videos.sort(key=lambda video: video.modified_at, reverse=True)
        return videos

    def cleanup(self, older_than_hours: float = 24) -> int:
        """
        Delete rendered videos last modified more than ``older_than_hours`` ago.

        Returns:
            Number of files deleted
        """
        cutoff = self.clock() - older_than_hours * 3600
        deleted = 0
        for path in self._video_files():
            if path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
                self.logger.debug(f"Deleted old output: {path.name}")
        if deleted:
            self.logger.info(f"Removed {deleted} outputs older than {older_than_hours}h")
        return deleted
