"""Shared test helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from omnirelay.automation.bridge import ProcessResult, ScriptBridge, ScriptOutcome, ScriptRef
from omnirelay.automation.errors import ErrorInfo, ErrorKind, classify
from omnirelay.client.client import OmniFocusClient
from omnirelay.connection.monitor import ConnectionMonitor
from omnirelay.connection.retry import RetryExecutor
from omnirelay.core.bus import Bus
from omnirelay.core.config_schema import AutomationConfig, Config, MonitorConfig


class FakeRunner:
    """Process runner returning queued results and recording every command."""

    def __init__(self, *results: ProcessResult | BaseException) -> None:
        self.results = list(results)
        self.calls: list[tuple[list[str], float]] = []
        self.files: list[str] = []

    async def __call__(self, command: Sequence[str], timeout: float) -> ProcessResult:
        command = list(command)
        self.calls.append((command, timeout))
        if command[-1].endswith(".jxa"):
            with open(command[-1], encoding="utf-8") as handle:
                self.files.append(handle.read())
        result = self.results.pop(0) if self.results else ProcessResult(0, "", "")
        if isinstance(result, BaseException):
            raise result
        return result


def ok(stdout: str = "") -> ProcessResult:
    return ProcessResult(exit_code=0, stdout=stdout, stderr="")


def fail(stderr: str, stdout: str = "", exit_code: int = 1) -> ProcessResult:
    return ProcessResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


def make_bridge(runner: FakeRunner, **config: Any) -> ScriptBridge:
    bridge = ScriptBridge(AutomationConfig(**config), runner=runner)

    async def no_sleep(seconds: float) -> None:
        bridge.slept.append(seconds)

    bridge.slept = []  # type: ignore[attr-defined]
    bridge.sleep = no_sleep  # type: ignore[method-assign]
    return bridge


class FakeBridge:
    """Bridge double driven by per-script responses.

    ``responses`` maps a script name (or ``"<inline>"``) to a list of outcomes
    returned in order; the last one repeats.
    """

    app_name = "OmniFocus"

    def __init__(
        self,
        responses: dict[str, list[Any]] | None = None,
        *,
        running: bool | list[bool] = True,
        permissions: bool = True,
    ) -> None:
        self.responses = responses or {}
        self.running = running
        self.permissions = permissions
        self.invocations: list[tuple[str, dict[str, Any]]] = []
        self.permission_requests = 0

    async def app_running(self) -> bool:
        if isinstance(self.running, list):
            return self.running.pop(0) if len(self.running) > 1 else self.running[0]
        return self.running

    async def request_permissions(self) -> bool:
        self.permission_requests += 1
        return self.permissions

    async def invoke(self, ref: Any, params: Any = None) -> ScriptOutcome:
        ref = ref if isinstance(ref, ScriptRef) else ScriptRef.inline(ref)
        self.invocations.append((ref.label, dict(params or {})))
        queue = self.responses.get(ref.label, [ScriptOutcome.ok(None)])
        value = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(value, ScriptOutcome):
            return value
        if isinstance(value, str) and value.startswith("error:"):
            return ScriptOutcome.failed(classify(value[len("error:"):]))
        return ScriptOutcome.ok(value)

    def count(self, label: str) -> int:
        return sum(1 for name, _ in self.invocations if name == label)


def not_found(message: str) -> ScriptOutcome:
    return ScriptOutcome.failed(
        ErrorInfo(code="NOT_FOUND", kind=ErrorKind.SCRIPT_ERROR, message=message)
    )


DB_INFO = {"name": "OmniFocus", "path": "", "isDefault": True, "version": "4.0"}


def build_client(
    responses: dict[str, list[Any]],
    **bridge_kwargs: Any,
) -> tuple[OmniFocusClient, FakeBridge]:
    """Client over a ``FakeBridge`` with background probing off and no retry sleeps."""
    responses.setdefault("get-database-info", [DB_INFO])
    bridge = FakeBridge(responses, **bridge_kwargs)
    config = Config(monitor=MonitorConfig(enabled=False))
    bus = Bus()
    monitor = ConnectionMonitor(bridge, config.monitor, bus)  # type: ignore[arg-type]
    retry = RetryExecutor(monitor, config.retry)

    async def no_sleep(seconds: float) -> None:
        pass

    retry.sleep = no_sleep  # type: ignore[method-assign]
    client = OmniFocusClient(config, bridge=bridge, monitor=monitor, retry=retry, bus=bus)  # type: ignore[arg-type]
    return client, bridge
