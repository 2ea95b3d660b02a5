"""
Pytest configuration and shared fixtures for engine tests.

Provides:
- discount_program: single-rule program from the discount scenario
- catalog: EntityCatalog over the shared order/customer entities
- facts: a populated FactStore
- metrics_disabled: turns metric recording off for a test

Document builders live in ``tests.builders``.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# Add the project root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402 (import after path setup)

from rulelang.compiler.resolver import EntityCatalog  # noqa: E402
from rulelang.core.config import settings  # noqa: E402
from rulelang.domain.program import Program  # noqa: E402
from rulelang.engine.facts import FactStore  # noqa: E402
from tests.builders import DISCOUNT_RULE, make_program  # noqa: E402


@pytest.fixture
def discount_program() -> Program:
    return make_program(rules=[DISCOUNT_RULE])


@pytest.fixture
def catalog() -> EntityCatalog:
    return EntityCatalog.from_program(make_program())


@pytest.fixture
def facts() -> FactStore:
    return FactStore.from_payload(
        {
            "order": {
                "total": 120,
                "vip": False,
                "status": "new",
                "notes": "Rush delivery, fragile",
                "placedOn": "2024-03-01",
            },
            "customer": {"name": "Ada", "email": "ada@example.com", "tier": "gold"},
        }
    )


@pytest.fixture
def metrics_disabled(monkeypatch):
    monkeypatch.setattr(settings, "metrics_enabled", False)
