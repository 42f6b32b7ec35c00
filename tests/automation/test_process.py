import asyncio
import sys
from pathlib import Path

import pytest

from omnirelay.automation.bridge import run_process


@pytest.mark.anyio
async def test_run_process_collects_output() -> None:
    result = await run_process(
        [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"],
        5.0,
    )

    assert result.exit_code == 3
    assert result.stdout.strip() == "out"
    assert result.stderr.strip() == "err"


@pytest.mark.anyio
async def test_run_process_kills_on_timeout() -> None:
    with pytest.raises(asyncio.TimeoutError):
        await run_process([sys.executable, "-c", "import time; time.sleep(30)"], 0.2)


@pytest.mark.anyio
async def test_run_process_missing_executable() -> None:
    with pytest.raises(OSError):
        await run_process(["/nonexistent/omnirelay-interpreter"], 1.0)


@pytest.mark.anyio
async def test_run_process_kills_child_when_cancelled(tmp_path: Path) -> None:
    marker = tmp_path / "finished"
    script = "import pathlib, sys, time; time.sleep(1.0); pathlib.Path(sys.argv[1]).write_text('x')"
    task = asyncio.create_task(run_process([sys.executable, "-c", script, str(marker)], 10.0))
    await asyncio.sleep(0.3)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(1.5)

    assert not marker.exists()
