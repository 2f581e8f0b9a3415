"""Pipeline entry points for Sheet Video Batch."""

from reelbatch.pipelines.run_batch import main

__all__ = ["main"]
