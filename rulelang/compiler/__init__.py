"""
Static analysis for rule language programs.

Key Components:
- resolver: Resolves entity.field paths against declared entities
- type_checker: Operand type and unit agreement
- conflicts: Static and per-run write conflict detection
- validator: Whole-program semantic validation and lint
- canonicalizer: Deterministic JSON output

Everything here runs without fact data; execution lives in ``rulelang.engine``.
"""

from rulelang.compiler.canonicalizer import canonicalize_json
from rulelang.compiler.resolver import EntityCatalog
from rulelang.compiler.validator import ensure_valid, validate_program

__all__ = [
    "EntityCatalog",
    "canonicalize_json",
    "ensure_valid",
    "validate_program",
]
