"""Renderer - executes composition plans with ffmpeg."""

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import imageio_ffmpeg

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import RenderError, RenderTimeout
from reelbatch.models.schemas import CompositionPlan
from reelbatch.services.ffmpeg_command import build_ffmpeg_command
from reelbatch.utils.media_probe import probe_video

# Encoder diagnostics kept in error messages
DIAGNOSTIC_TAIL_CHARS = 2000


class Renderer(ABC):
    """Turns a CompositionPlan into a local video file."""

    @abstractmethod
    def render(self, plan: CompositionPlan) -> Path:
        """
        Render a plan.

        Returns:
            Path of the rendered file

        Raises:
            RenderError: If the engine fails
            RenderTimeout: If the engine exceeds its wall-clock limit
        """


class FFmpegRenderer(Renderer):
    """Runs ffmpeg in a subprocess under a hard timeout."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize renderer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.ffmpeg_binary = settings.ffmpeg_binary or imageio_ffmpeg.get_ffmpeg_exe()
        self.timeout_seconds = settings.render_timeout_seconds

    def render(self, plan: CompositionPlan) -> Path:
        output_path = Path(plan.output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        command = build_ffmpeg_command(plan, self.ffmpeg_binary)

        self.logger.info(f"Rendering {output_path.name} ({plan.strategy.value}, {plan.duration}s)")
        self.logger.debug(f"ffmpeg command: {' '.join(command)}")

        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            output_path.unlink(missing_ok=True)
            raise RenderTimeout(
                f"Rendering timed out after {self.timeout_seconds:.0f}s",
                diagnostics=_tail(e.stderr),
            ) from e
        except OSError as e:
            output_path.unlink(missing_ok=True)
            raise RenderError(f"Could not start ffmpeg ({self.ffmpeg_binary}): {e}") from e

        if completed.returncode != 0:
            output_path.unlink(missing_ok=True)
            diagnostics = _tail(completed.stderr)
            raise RenderError(
                f"ffmpeg exited with code {completed.returncode}: {diagnostics.splitlines()[-1] if diagnostics else 'no output'}",
                diagnostics=diagnostics,
            )

        self._verify_output(output_path)
        self.logger.info(f"Render complete: {output_path.name} ({output_path.stat().st_size} bytes)")
        return output_path

    def _verify_output(self, output_path: Path) -> None:
        if not output_path.exists() or output_path.stat().st_size == 0:
            output_path.unlink(missing_ok=True)
            raise RenderError(f"ffmpeg produced no output: {output_path.name}")

        if not self.settings.verify_render_output:
            return

        try:
            info = probe_video(output_path)
        except Exception as e:
            output_path.unlink(missing_ok=True)
            raise RenderError(f"Rendered file is not a readable video: {e}") from e
        self.logger.debug(
            f"Verified {output_path.name}: {info.width}x{info.height}, {info.duration}s @ {info.fps} fps"
        )


def _tail(output: Any) -> str:
    if not output:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output.strip()[-DIAGNOSTIC_TAIL_CHARS:]
