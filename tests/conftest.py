"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from llmbench.domain.environment import EnvironmentSnapshot
from llmbench.results.store import ResultsStore
from tests.fakes import FakeRemoteAdapter, make_snapshot

_ENV_VARS = (
    "OLLAMA_API_URL",
    "LLMBENCH_TOOLBOX",
    "LLMBENCH_DB_PATH",
    "LLMBENCH_CSV_PATH",
    "LLMBENCH_VERBOSITY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never see the developer's llmbench environment variables."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "benchmark_data.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[ResultsStore]:
    """Initialised results store in a temporary directory."""
    s = ResultsStore(db_path)
    s.init()
    yield s
    s.close()


@pytest.fixture
def snapshot() -> EnvironmentSnapshot:
    return make_snapshot()


@pytest.fixture
def fake_remote() -> FakeRemoteAdapter:
    return FakeRemoteAdapter()
