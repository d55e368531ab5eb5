"""Pytest configuration for test isolation.

The pipeline enables the AI classifier whenever ``OPENAI_API_KEY`` is set and
picks up model/concurrency overrides from the environment. A developer shell
with those variables exported must not change test behavior, so every test
starts from a scrubbed environment. Cached SQLAlchemy engines are disposed
after each test so per-test SQLite files can be removed.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from db.client import dispose_engines

_SCRUBBED_ENV = (
    "OPENAI_API_KEY",
    "DATABASE_URL",
    "STATEMENT_IMPORT_MODEL",
    "STATEMENT_IMPORT_AI_CONCURRENCY",
    "STATEMENT_IMPORT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _SCRUBBED_ENV:
        monkeypatch.delenv(name, raising=False)
    yield
    dispose_engines()
