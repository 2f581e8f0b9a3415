#!/usr/bin/env python3
"""
Main CLI entrypoint for Sheet Video Batch.

Convenience wrapper around ``python -m reelbatch.pipelines.run_batch``.
"""

import sys
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent))

from reelbatch.pipelines.run_batch import main

if __name__ == "__main__":
    sys.exit(main())
