"""
Execution engine for validated programs.

Single-threaded and synchronous. Each ``run`` owns a private fact store and
write tracker, so concurrent callers never share mutable state.
"""

from rulelang.engine.examples import assess_coverage, run_example, run_examples
from rulelang.engine.scheduler import ExecutionOptions, run

__all__ = ["ExecutionOptions", "assess_coverage", "run", "run_example", "run_examples"]
