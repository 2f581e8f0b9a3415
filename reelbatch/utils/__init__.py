"""Utility functions for the batch video pipeline."""

from reelbatch.utils.io_utils import ensure_video_extension, normalize_output_name, sanitize_file_name
from reelbatch.utils.time_utils import parse_int_prefix, parse_time_to_seconds

__all__ = [
    "ensure_video_extension",
    "normalize_output_name",
    "sanitize_file_name",
    "parse_int_prefix",
    "parse_time_to_seconds",
]
