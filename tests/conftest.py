from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from mnemosyne.config import CONFIG_ENV_OVERRIDES
from mnemosyne.store import MemoryStore


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MNEMOSYNE_CONFIG", str(tmp_path / "config" / "config.json"))
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "memory.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[MemoryStore]:
    memory = MemoryStore(db_path)
    try:
        yield memory
    finally:
        memory.close()
