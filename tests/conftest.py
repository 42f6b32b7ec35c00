import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from omnirelay.core.config import ConfigManager
from omnirelay.util.log import Log, LogFormat, LogLevel


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    for name in list(os.environ):
        if name.startswith("OMNIRELAY_"):
            monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("OMNIRELAY_TEST_HOME", str(home))
    yield home
    # Tests may patch Log.configure; restore it before resetting the sinks.
    monkeypatch.undo()
    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=False, file=False, dev=False)


@pytest.fixture(autouse=True)
def config_context() -> Iterator[None]:
    token = ConfigManager.provide(ConfigManager())
    try:
        yield
    finally:
        ConfigManager.restore(token)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
