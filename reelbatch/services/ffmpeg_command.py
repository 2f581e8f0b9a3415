"""Translates a CompositionPlan into an ffmpeg argument list."""

from reelbatch.models.schemas import CompositionPlan, InputRole, OverlayPlacement, PlanInput, SourceKind


def _number(value: float) -> str:
    """Short decimal form for filter expressions (0.800 -> 0.8, 2.0 -> 2)."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return text or "0"


def _input_args(plan_input: PlanInput) -> list[str]:
    duration = str(plan_input.duration)

    if plan_input.kind == SourceKind.COLOR:
        source = (
            f"color=c={plan_input.color or 'black'}"
            f":s={plan_input.width}x{plan_input.height}:r={plan_input.fps}"
        )
        return ["-f", "lavfi", "-t", duration, "-i", source]

    if plan_input.kind == SourceKind.IMAGE and plan_input.loop:
        return ["-loop", "1", "-t", duration, "-i", str(plan_input.path)]

    args = []
    if plan_input.start_offset > 0:
        args += ["-ss", str(plan_input.start_offset)]
    args += ["-t", duration, "-i", str(plan_input.path)]
    return args


def _overlay_filters(background: int, overlay: int, placement: OverlayPlacement) -> list[str]:
    scale = _number(placement.scale)
    # Commas inside expressions are escaped for the filtergraph parser
    return [
        f"[{overlay}:v]scale=w=min(iw*{scale}\\,{placement.max_width})"
        f":h=min(ih*{scale}\\,{placement.max_height})"
        f":force_original_aspect_ratio=decrease[ovl]",
        f"[{background}:v][ovl]overlay=x=(W-w)/2:y=(H-h)/2[base]",
    ]


def build_filter_graph(plan: CompositionPlan) -> tuple[list[str], str]:
    """
    Build the filter chain and the label of the final video stream.

    Returns:
        (filters, video_label). ``filters`` is empty when the background is
        mapped straight through; ``video_label`` is then ``"<index>:v"``.
    """
    background = plan.input_index(InputRole.BACKGROUND)
    overlay = plan.input_index(InputRole.OVERLAY)

    filters: list[str] = []
    label = f"{background}:v"

    if overlay is not None and plan.overlay is not None:
        filters += _overlay_filters(background, overlay, plan.overlay)
        label = "base"

    if plan.tint is not None:
        source = f"[{label}]"
        filters.append(
            f"{source}colorchannelmixer=rr={_number(plan.tint.red)}"
            f":gg={_number(plan.tint.green)}:bb={_number(plan.tint.blue)}[tinted]"
        )
        label = "tinted"

    return filters, label


def build_ffmpeg_command(plan: CompositionPlan, ffmpeg_binary: str) -> list[str]:
    """
    Build the complete ffmpeg invocation for a plan.

    Inputs are added in plan order (background, overlay, audio), so stream
    indices in the filter graph and maps follow that order.

    Args:
        plan: Composition plan
        ffmpeg_binary: Path to the ffmpeg executable

    Returns:
        Argument list suitable for subprocess.run
    """
    command = [ffmpeg_binary, "-hide_banner", "-loglevel", "error", "-y"]
    for plan_input in plan.inputs:
        command += _input_args(plan_input)

    filters, video_label = build_filter_graph(plan)
    if filters:
        command += ["-filter_complex", ";".join(filters), "-map", f"[{video_label}]"]
    else:
        command += ["-map", video_label]

    command += [
        "-c:v", plan.video_codec,
        "-preset", plan.video_preset,
        "-crf", str(plan.video_crf),
        "-pix_fmt", "yuv420p",
    ]

    audio = plan.input_index(InputRole.AUDIO)
    if plan.has_audio and audio is not None:
        command += ["-map", f"{audio}:a:0", "-c:a", plan.audio_codec]
    else:
        command += ["-an"]

    command += ["-t", str(plan.duration), "-movflags", "+faststart", str(plan.output_path)]
    return command
