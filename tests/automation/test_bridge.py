import asyncio
import json
from pathlib import Path

import pytest

from omnirelay.automation.bridge import (
    ScriptOutcome,
    ScriptRef,
    escape_script,
    inject_parameters,
    parse_response,
)
from omnirelay.automation.errors import (
    APP_UNAVAILABLE,
    NOT_FOUND,
    SCRIPT_ERROR,
    TIMEOUT,
    ErrorInfo,
    ErrorKind,
    ScriptExecutionError,
    UnknownAutomationError,
)
from tests.helpers import FakeRunner, fail, make_bridge, ok


def test_inject_parameters_serializes_values() -> None:
    script = "f({{name}}, {{count}}, {{tags}}, {{flag}}, {{nothing}})"

    result = inject_parameters(
        script,
        {"name": 'say "hi"', "count": 3, "tags": ["a", "b"], "flag": True, "nothing": None},
    )

    assert result == 'f("say \\"hi\\"", 3, ["a", "b"], true, null)'


def test_inject_parameters_leaves_unknown_placeholders_undefined() -> None:
    assert inject_parameters("g({{missing}})", {}) == "g(undefined)"


def test_escape_script_escapes_shell_specials() -> None:
    assert escape_script('a "b" $HOME `id` \\n') == 'a \\"b\\" \\$HOME \\`id\\` \\\\n'


def test_injection_happens_before_escaping() -> None:
    script = escape_script(inject_parameters("say({{msg}})", {"msg": 'he said "hi"'}))

    # One level of shell escaping over the JSON literal, not two.
    assert script == 'say(\\"he said \\\\\\"hi\\\\\\"\\")'


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", None),
        ("  \n", None),
        ('{"a": 1}\n', {"a": 1}),
        ("[1, 2]", [1, 2]),
        ("42", 42),
        ("hello world\n", "hello world"),
    ],
)
def test_parse_response(raw: str, expected: object) -> None:
    assert parse_response(raw) == expected


def test_outcome_envelope_and_unwrap() -> None:
    info = ErrorInfo(code=SCRIPT_ERROR, kind=ErrorKind.SCRIPT_ERROR, message="boom")
    failed = ScriptOutcome.failed(info)

    assert ScriptOutcome.ok([1]).to_envelope() == {"success": True, "data": [1]}
    assert failed.to_envelope() == {
        "success": False,
        "error": {"code": SCRIPT_ERROR, "type": "script_error", "originalMessage": "boom"},
    }
    with pytest.raises(ScriptExecutionError, match="boom"):
        failed.unwrap()


def test_unwrap_failure_without_details_raises() -> None:
    with pytest.raises(UnknownAutomationError, match="without error details"):
        ScriptOutcome(success=False).unwrap()


def test_script_ref_requires_exactly_one_source() -> None:
    with pytest.raises(ValueError):
        ScriptRef()
    with pytest.raises(ValueError):
        ScriptRef(text="x", name="y")


@pytest.mark.anyio
async def test_inline_script_runs_through_shell() -> None:
    runner = FakeRunner(ok('{"name": "OmniFocus"}'))
    bridge = make_bridge(runner)

    outcome = await bridge.invoke('Application("OmniFocus").name()')

    assert outcome.success is True
    assert outcome.data == {"name": "OmniFocus"}
    command, timeout = runner.calls[0]
    assert command == [
        "/bin/sh",
        "-c",
        'osascript -l JavaScript -e "Application(\\"OmniFocus\\").name()"',
    ]
    assert timeout == 10.0


@pytest.mark.anyio
async def test_empty_output_is_success_with_no_data() -> None:
    bridge = make_bridge(FakeRunner(ok("\n")))

    outcome = await bridge.invoke("void 0")

    assert outcome.success is True
    assert outcome.data is None


@pytest.mark.anyio
async def test_named_script_uses_temp_file(tmp_path: Path) -> None:
    (tmp_path / "hello.jxa").write_text("greet({{name}}, {{appName}})", encoding="utf-8")
    runner = FakeRunner(ok('"hi"'))
    bridge = make_bridge(runner, scriptsDir=str(tmp_path))

    outcome = await bridge.invoke(ScriptRef.named("hello"), {"name": "Ann"})

    assert outcome.data == "hi"
    command, _ = runner.calls[0]
    assert command[:3] == ["osascript", "-l", "JavaScript"]
    assert command[3].endswith(".jxa")
    assert runner.files == ['greet("Ann", "OmniFocus")']
    assert not Path(command[3]).exists()


@pytest.mark.anyio
async def test_temp_file_removed_when_runner_raises(tmp_path: Path) -> None:
    (tmp_path / "slow.jxa").write_text("delay(60)", encoding="utf-8")
    runner = FakeRunner(asyncio.TimeoutError())
    bridge = make_bridge(runner, scriptsDir=str(tmp_path))

    outcome = await bridge.invoke(ScriptRef.named("slow"))

    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.TIMEOUT
    assert not Path(runner.calls[0][0][3]).exists()


@pytest.mark.anyio
async def test_missing_named_script_is_script_error() -> None:
    runner = FakeRunner()
    bridge = make_bridge(runner)

    outcome = await bridge.invoke(ScriptRef.named("no-such-script"))

    assert outcome.success is False
    assert outcome.error is not None
    assert outcome.error.code == SCRIPT_ERROR
    assert runner.calls == []


@pytest.mark.anyio
async def test_app_unavailable_is_retried_once() -> None:
    runner = FakeRunner(fail("Error: Application is not running. (-600)"), ok("1"))
    bridge = make_bridge(runner)

    outcome = await bridge.invoke("1")

    assert outcome.success is True
    assert outcome.data == 1
    assert len(runner.calls) == 2
    assert bridge.slept == [1.0]


@pytest.mark.anyio
async def test_app_unavailable_retry_happens_only_once() -> None:
    message = "Error: Application is not running. (-600)"
    runner = FakeRunner(fail(message), fail(message), ok("1"))
    bridge = make_bridge(runner)

    outcome = await bridge.invoke("1")

    assert outcome.success is False
    assert outcome.error is not None
    assert outcome.error.code == APP_UNAVAILABLE
    assert outcome.error.message == message
    assert len(runner.calls) == 2


@pytest.mark.anyio
async def test_script_error_is_not_retried() -> None:
    message = "execution error: Error: ReferenceError: Can't find variable: x (-2700)"
    runner = FakeRunner(fail(message))
    bridge = make_bridge(runner)

    outcome = await bridge.invoke("x")

    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.SCRIPT_ERROR
    assert outcome.error.message == message
    assert len(runner.calls) == 1
    assert bridge.slept == []


@pytest.mark.anyio
async def test_timeout_is_reported_and_not_retried() -> None:
    runner = FakeRunner(asyncio.TimeoutError())
    bridge = make_bridge(runner, timeout=2.5)

    outcome = await bridge.invoke("delay(60)")

    assert outcome.error is not None
    assert outcome.error.code == TIMEOUT
    assert outcome.error.message == "osascript timed out after 2.5s"
    assert len(runner.calls) == 1


@pytest.mark.anyio
async def test_nonzero_exit_without_stderr() -> None:
    bridge = make_bridge(FakeRunner(fail("", exit_code=3)))

    outcome = await bridge.invoke("x")

    assert outcome.error is not None
    assert outcome.error.message == "osascript exited with status 3"
    assert outcome.error.kind == ErrorKind.UNKNOWN


@pytest.mark.anyio
async def test_spawn_failure_is_classified() -> None:
    bridge = make_bridge(FakeRunner(FileNotFoundError(2, "No such file or directory", "osascript")))

    outcome = await bridge.invoke("x")

    assert outcome.success is False
    assert outcome.error is not None
    assert "osascript" in outcome.error.message


@pytest.mark.anyio
async def test_script_reported_not_found() -> None:
    payload = {"success": False, "error": {"code": NOT_FOUND, "message": "Task not found: t1"}}
    runner = FakeRunner(ok(json.dumps(payload)))
    bridge = make_bridge(runner)

    outcome = await bridge.invoke("lookup()")

    assert outcome.error is not None
    assert outcome.error.code == NOT_FOUND
    assert outcome.error.kind == ErrorKind.SCRIPT_ERROR
    assert outcome.error.message == "Task not found: t1"
    assert len(runner.calls) == 1


@pytest.mark.anyio
async def test_app_running_probe() -> None:
    runner = FakeRunner(ok("true"), ok("false"), fail("boom"))
    bridge = make_bridge(runner, probeTimeout=4)

    assert await bridge.app_running() is True
    assert await bridge.app_running() is False
    assert await bridge.app_running() is False
    assert runner.calls[0][1] == 4
    assert 'Application(\\"OmniFocus\\").running()' in runner.calls[0][0][2]


@pytest.mark.anyio
async def test_request_permissions_checks_sentinel() -> None:
    runner = FakeRunner(ok("Permission test successful\n"), fail("Not authorized to send Apple events"))
    bridge = make_bridge(runner)

    assert await bridge.request_permissions() is True
    assert await bridge.request_permissions() is False
    assert "activate()" in runner.calls[0][0][2]
