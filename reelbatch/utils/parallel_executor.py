"""Parallel Executor - bounded fan-out for independent I/O calls."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from reelbatch.core.config import Settings


class ParallelExecutor:
    """Runs independent tasks with controlled concurrency, preserving input order."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_workers = max(1, settings.max_parallel_downloads)

    def execute(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]] = None,
        context: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute tasks and collect (result, exception) pairs.

        A failing task never affects the others; its exception is returned in
        place of a result.

        Args:
            tasks: Callables taking no arguments
            task_names: Optional task names for logging
            context: Optional log prefix (e.g. "row 5")
            max_workers: Worker limit (defaults to max_parallel_downloads)

        Returns:
            List of (result, exception) tuples in the same order as tasks
        """
        if not tasks:
            return []

        max_workers = max_workers or self.max_workers
        log_prefix = f"[{context}] " if context else ""

        def name_of(index: int) -> str:
            if task_names and index < len(task_names):
                return task_names[index]
            return f"task_{index + 1}"

        # Sequential mode
        if max_workers == 1 or len(tasks) == 1:
            results = []
            for i, task in enumerate(tasks):
                try:
                    results.append((task(), None))
                except Exception as e:
                    self.logger.warning(f"{log_prefix}❌ {name_of(i)} failed: {e}")
                    results.append((None, e))
            return results

        self.logger.debug(f"{log_prefix}Parallel execution: {len(tasks)} tasks with max {max_workers} workers")
        start_time = time.time()
        results: list[tuple[Any, Optional[Exception]]] = [(None, None)] * len(tasks)
        completed_count = 0

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {executor.submit(task): i for i, task in enumerate(tasks)}

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                completed_count += 1
                elapsed = time.time() - start_time
                try:
                    results[index] = (future.result(), None)
                    self.logger.debug(
                        f"{log_prefix}✅ {name_of(index)} completed ({completed_count}/{len(tasks)}) in {elapsed:.2f}s"
                    )
                except Exception as e:
                    self.logger.warning(
                        f"{log_prefix}❌ {name_of(index)} failed ({completed_count}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )
                    results[index] = (None, e)

        successful = sum(1 for _, error in results if error is None)
        self.logger.debug(
            f"{log_prefix}Parallel batch complete: {successful}/{len(tasks)} successful in {time.time() - start_time:.2f}s"
        )
        return results
