"""Composition Planner - picks a strategy and builds a declarative render plan."""

import re
from pathlib import Path
from typing import Any, Optional

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import InvalidCompositionParameter, UnsupportedCombination
from reelbatch.models.schemas import (
    ColorTint,
    CompositionInputs,
    CompositionPlan,
    InputRole,
    OverlayKind,
    OverlayPlacement,
    PlanInput,
    SourceKind,
    Strategy,
)
from reelbatch.utils.io_utils import IMAGE_EXTENSIONS, VIDEO_EXTENSIONS, ensure_video_extension

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

# (has_video, overlay_kind, has_audio) -> strategy. Missing keys are unsupported.
STRATEGY_TABLE: dict[tuple[bool, OverlayKind, bool], Strategy] = {
    (True, OverlayKind.IMAGE, True): Strategy.FULL_COMPOSITE_IMAGE,
    (True, OverlayKind.VIDEO, True): Strategy.FULL_COMPOSITE_VIDEO,
    (False, OverlayKind.NONE, True): Strategy.AUDIO_ONLY,
    (True, OverlayKind.NONE, True): Strategy.VIDEO_AUDIO,
    (True, OverlayKind.IMAGE, False): Strategy.VIDEO_OVERLAY,
    (True, OverlayKind.VIDEO, False): Strategy.VIDEO_OVERLAY,
    (True, OverlayKind.NONE, False): Strategy.VIDEO_ONLY,
}

OVERLAY_STRATEGIES = frozenset(
    {Strategy.FULL_COMPOSITE_IMAGE, Strategy.FULL_COMPOSITE_VIDEO, Strategy.VIDEO_OVERLAY}
)
# Audio is stream-copied where the composite recipes call for it, re-encoded elsewhere
AUDIO_CODECS: dict[Strategy, Optional[str]] = {
    Strategy.FULL_COMPOSITE_IMAGE: "copy",
    Strategy.FULL_COMPOSITE_VIDEO: "copy",
    Strategy.AUDIO_ONLY: "aac",
    Strategy.VIDEO_AUDIO: "aac",
    Strategy.VIDEO_OVERLAY: None,
    Strategy.VIDEO_ONLY: None,
}


def classify_overlay(path: Optional[Path]) -> OverlayKind:
    """Classify an overlay file by extension."""
    if path is None:
        return OverlayKind.NONE
    suffix = Path(path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return OverlayKind.IMAGE
    if suffix in VIDEO_EXTENSIONS:
        return OverlayKind.VIDEO
    return OverlayKind.UNKNOWN


def select_strategy(has_video: bool, overlay_kind: OverlayKind, has_audio: bool) -> Strategy:
    """
    Look up the strategy for a presence pattern.

    Raises:
        UnsupportedCombination: For every pattern outside the decision table
    """
    key = (has_video, overlay_kind, has_audio)
    strategy = STRATEGY_TABLE.get(key)
    if strategy is None:
        present = [
            name
            for name, flag in (
                ("video", has_video),
                (f"overlay({overlay_kind.value})", overlay_kind != OverlayKind.NONE),
                ("audio", has_audio),
            )
            if flag
        ]
        raise UnsupportedCombination(
            f"Unsupported input combination: {', '.join(present) if present else 'no inputs'}"
        )
    return strategy


def parse_hex_color(color: str) -> tuple[float, float, float]:
    """
    Parse ``#RRGGBB`` into channels normalized to [0, 1].

    Raises:
        InvalidCompositionParameter: If the string is not a hex colour
    """
    match = _HEX_COLOR.match((color or "").strip())
    if not match:
        raise InvalidCompositionParameter(f"Invalid filter colour '{color}', expected #RRGGBB")
    red, green, blue = (int(group, 16) / 255 for group in match.groups())
    return red, green, blue


def build_color_tint(color: str, opacity: float) -> Optional[ColorTint]:
    """
    Compute per-channel multipliers ``(1 - opacity) + channel * opacity``.

    Returns None for ``opacity <= 0`` so the frame is left untouched.
    """
    if opacity <= 0:
        return None
    red, green, blue = parse_hex_color(color)
    return ColorTint(
        color=color,
        opacity=opacity,
        red=(1 - opacity) + red * opacity,
        green=(1 - opacity) + green * opacity,
        blue=(1 - opacity) + blue * opacity,
    )


class CompositionPlanner:
    """Builds a CompositionPlan from the local inputs of one work item."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize composition planner.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def build_plan(self, inputs: CompositionInputs, output_dir: Path) -> CompositionPlan:
        """
        Select a strategy and describe the render.

        Scale and opacity must already be fractions. They are not clamped.

        Args:
            inputs: Local input paths and normalized parameters
            output_dir: Directory receiving the rendered file

        Returns:
            CompositionPlan

        Raises:
            UnsupportedCombination: If the inputs match no strategy
            InvalidCompositionParameter: If duration or colour is malformed
        """
        overlay_kind = classify_overlay(inputs.overlay_path)
        strategy = select_strategy(
            has_video=inputs.background_video_path is not None,
            overlay_kind=overlay_kind,
            has_audio=inputs.audio_path is not None,
        )

        if inputs.duration <= 0:
            raise InvalidCompositionParameter(f"Duration must be positive, got {inputs.duration}")

        duration = inputs.duration
        plan_inputs = [self._background_input(strategy, inputs)]
        overlay = None

        if strategy in OVERLAY_STRATEGIES:
            plan_inputs.append(
                PlanInput(
                    role=InputRole.OVERLAY,
                    kind=SourceKind.IMAGE if overlay_kind == OverlayKind.IMAGE else SourceKind.VIDEO,
                    path=inputs.overlay_path,
                    start_offset=0,
                    duration=duration,
                    loop=overlay_kind == OverlayKind.IMAGE,
                )
            )
            overlay = OverlayPlacement(
                scale=inputs.image_scale,
                max_width=self.settings.canvas_width,
                max_height=self.settings.canvas_height,
            )

        audio_codec = AUDIO_CODECS[strategy]
        if audio_codec is not None:
            plan_inputs.append(
                PlanInput(
                    role=InputRole.AUDIO,
                    kind=SourceKind.AUDIO,
                    path=inputs.audio_path,
                    start_offset=inputs.audio_start,
                    duration=duration,
                )
            )

        output_name = ensure_video_extension(inputs.output_name)
        plan = CompositionPlan(
            strategy=strategy,
            duration=duration,
            inputs=plan_inputs,
            overlay=overlay,
            tint=build_color_tint(inputs.filter_color, inputs.filter_opacity),
            video_codec=self.settings.video_codec,
            video_preset=self.settings.video_preset,
            video_crf=self.settings.video_crf,
            audio_codec=audio_codec,
            output_path=Path(output_dir) / output_name,
        )
        self.logger.info(
            f"Composition plan: strategy={strategy.value}, duration={duration}s, "
            f"inputs={[i.role.value for i in plan_inputs]}, tint={'yes' if plan.tint else 'no'}"
        )
        return plan

    def _background_input(self, strategy: Strategy, inputs: CompositionInputs) -> PlanInput:
        if strategy == Strategy.AUDIO_ONLY:
            return PlanInput(
                role=InputRole.BACKGROUND,
                kind=SourceKind.COLOR,
                duration=inputs.duration,
                color=self.settings.background_color,
                width=self.settings.canvas_width,
                height=self.settings.canvas_height,
                fps=self.settings.canvas_fps,
            )
        return PlanInput(
            role=InputRole.BACKGROUND,
            kind=SourceKind.VIDEO,
            path=inputs.background_video_path,
            start_offset=inputs.video_start,
            duration=inputs.duration,
        )
