"""
rulelang: a deterministic rule language engine.

Programs (entities, rules, constraints, examples) are decoded into a typed
AST, validated, and executed against fact payloads. Execution is a pure
function of (program, facts, options): the same inputs always produce the
same result, byte for byte.

Typical use:
    >>> program = load_program(document)
    >>> ensure_valid(program)
    >>> result = run(program, {"order": {"total": 120}})
"""

from rulelang.compiler import ensure_valid, validate_program
from rulelang.domain.program import Program, load_program
from rulelang.engine import ExecutionOptions, assess_coverage, run, run_examples

__version__ = "0.1.0"

__all__ = [
    "ExecutionOptions",
    "Program",
    "assess_coverage",
    "ensure_valid",
    "load_program",
    "run",
    "run_examples",
    "validate_program",
]
