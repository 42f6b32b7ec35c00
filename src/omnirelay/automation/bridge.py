"""Script bridge to the OmniFocus automation interface.

Every call spawns one ``osascript -l JavaScript`` process. A script is either
inline text, passed on the command line through ``/bin/sh``, or a named
script from the :class:`ScriptLoader`, written to a temporary file and passed
by path.

Parameters are substituted into ``{{name}}`` placeholders before the script
is escaped for the shell. Escaping first would escape the quotes of the
injected values a second time. ``{{appName}}`` defaults to the configured
application name.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import shlex
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict

from ..core.config_schema import AutomationConfig
from ..util.log import Log
from .errors import (
    SCRIPT_ERROR,
    TIMEOUT,
    ErrorInfo,
    ErrorKind,
    UnknownAutomationError,
    classify,
)
from .loader import ScriptLoader, ScriptLoadError

log = Log.create({"service": "automation.bridge"})

SCRIPT_LANGUAGE = "JavaScript"
PERMISSION_SENTINEL = "Permission test successful"

_PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}\}")
_SHELL_SPECIALS = re.compile(r'([\\"$`])')


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str
    stderr: str


ProcessRunner = Callable[[Sequence[str], float], Awaitable[ProcessResult]]


async def run_process(command: Sequence[str], timeout: float) -> ProcessResult:
    """Run ``command`` and collect its output.

    Raises ``asyncio.TimeoutError`` after killing the child when ``timeout``
    seconds pass, and ``OSError`` when the executable cannot be started.
    The child is also killed and reaped when the awaiting task is cancelled.
    """
    proc = await asyncio.create_subprocess_exec(
        *command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except BaseException:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise
    return ProcessResult(
        exit_code=int(proc.returncode or 0),
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


@dataclass(frozen=True)
class ScriptRef:
    """Inline script text or the name of a bundled/user script."""

    text: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.name is None):
            raise ValueError("ScriptRef needs exactly one of text or name")

    @classmethod
    def inline(cls, text: str) -> "ScriptRef":
        return cls(text=text)

    @classmethod
    def named(cls, name: str) -> "ScriptRef":
        return cls(name=name)

    @property
    def label(self) -> str:
        return self.name or "<inline>"


ScriptSource = Union[ScriptRef, str]


class ScriptOutcome(BaseModel):
    """Result of one script invocation."""

    success: bool
    data: Any = None
    error: Optional[ErrorInfo] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def ok(cls, data: Any = None) -> "ScriptOutcome":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: ErrorInfo) -> "ScriptOutcome":
        return cls(success=False, error=error)

    def unwrap(self) -> Any:
        """Return ``data`` or raise the exception matching ``error``."""
        if self.success:
            return self.data
        if self.error is None:
            raise UnknownAutomationError("script failed without error details")
        raise self.error.to_exception()

    def to_envelope(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            envelope["data"] = self.data
        if self.error is not None:
            envelope["error"] = self.error.to_envelope()
        return envelope


def serialize_parameter(value: Any) -> str:
    """Render a parameter as a JavaScript literal.

    Strings become quote-escaped string literals, everything else its JSON
    encoding; JSON string syntax is valid JavaScript for both.
    """
    return json.dumps(value, ensure_ascii=False)


def inject_parameters(script: str, params: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown placeholders become ``undefined``."""

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in params:
            return serialize_parameter(params[key])
        return "undefined"

    return _PLACEHOLDER.sub(replace, script)


def escape_script(script: str) -> str:
    """Escape script text for a double-quoted POSIX shell word."""
    return _SHELL_SPECIALS.sub(r"\\\1", script)


def parse_response(raw: str) -> Any:
    """Decode interpreter output: empty is ``None``, JSON if possible, else the text."""
    trimmed = raw.strip()
    if not trimmed:
        return None
    try:
        return json.loads(trimmed)
    except ValueError:
        return trimmed


def script_reported_error(data: Any) -> ErrorInfo | None:
    """Detect the ``{"success": false, "error": {...}}`` convention used by scripts."""
    if not isinstance(data, dict) or data.get("success") is not False:
        return None
    error = data.get("error")
    if not isinstance(error, dict):
        return None
    code = str(error.get("code") or SCRIPT_ERROR)
    message = error.get("message") or error.get("originalMessage") or code
    return ErrorInfo(code=code, kind=ErrorKind.SCRIPT_ERROR, message=str(message))


class ScriptBridge:
    """Runs automation scripts and classifies their failures.

    ``invoke`` never raises for script or process failures; they come back as
    a failed :class:`ScriptOutcome`. When the failure is classified as
    ``app_unavailable`` the call is repeated once after ``retry_delay``.
    """

    def __init__(
        self,
        config: Optional[AutomationConfig] = None,
        *,
        loader: Optional[ScriptLoader] = None,
        runner: ProcessRunner = run_process,
    ):
        self.config = config or AutomationConfig()
        self.loader = loader or ScriptLoader(
            [self.config.scripts_dir] if self.config.scripts_dir else None
        )
        self._runner = runner

    @property
    def app_name(self) -> str:
        return self.config.app_name

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))

    async def invoke(
        self,
        ref: ScriptSource,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ScriptOutcome:
        """Run a script once, plus one retry when the app is unavailable."""
        ref = ref if isinstance(ref, ScriptRef) else ScriptRef.inline(ref)
        outcome = await self._invoke_once(ref, params or {}, self.config.timeout)
        if outcome.error is not None and outcome.error.kind == ErrorKind.APP_UNAVAILABLE:
            log.warn("app unavailable, retrying once", {
                "script": ref.label,
                "delay": self.config.retry_delay,
                "error": outcome.error.message,
            })
            await self.sleep(self.config.retry_delay)
            outcome = await self._invoke_once(ref, params or {}, self.config.timeout)
        return outcome

    async def app_running(self) -> bool:
        """Check whether the application process is running without launching it."""
        script = f"Application({json.dumps(self.app_name)}).running()"
        outcome = await self._invoke_once(ScriptRef.inline(script), {}, self.config.probe_timeout)
        return outcome.success and outcome.data is True

    async def request_permissions(self) -> bool:
        """Activate the app, which triggers the automation consent prompt if needed."""
        script = (
            f"Application({json.dumps(self.app_name)}).activate(); "
            f"{json.dumps(PERMISSION_SENTINEL)}"
        )
        outcome = await self._invoke_once(ScriptRef.inline(script), {}, self.config.probe_timeout)
        return outcome.success and outcome.data == PERMISSION_SENTINEL

    def inline_command(self, script: str) -> list[str]:
        interpreter = shlex.quote(self.config.interpreter)
        return [
            self.config.shell,
            "-c",
            f'{interpreter} -l {SCRIPT_LANGUAGE} -e "{escape_script(script)}"',
        ]

    def file_command(self, path: str) -> list[str]:
        return [self.config.interpreter, "-l", SCRIPT_LANGUAGE, path]

    async def _invoke_once(
        self,
        ref: ScriptRef,
        params: Mapping[str, Any],
        timeout: float,
    ) -> ScriptOutcome:
        try:
            source = ref.text if ref.text is not None else self.loader.load(ref.name or "")
        except ScriptLoadError as e:
            log.error("script load failed", {"script": ref.label, "error": str(e)})
            return ScriptOutcome.failed(
                ErrorInfo(code=SCRIPT_ERROR, kind=ErrorKind.SCRIPT_ERROR, message=str(e))
            )

        script = inject_parameters(source, {"appName": self.app_name, **params})
        timer = log.time("script finished", {"script": ref.label})
        try:
            if ref.name is not None:
                result = await self._run_file(script, timeout)
            else:
                result = await self._runner(self.inline_command(script), timeout)
        except asyncio.TimeoutError:
            message = f"{self.config.interpreter} timed out after {timeout:g}s"
            log.warn("script timed out", {"script": ref.label, "timeout": timeout})
            return ScriptOutcome.failed(ErrorInfo(code=TIMEOUT, kind=ErrorKind.TIMEOUT, message=message))
        except OSError as e:
            log.error("script spawn failed", {"script": ref.label, "error": str(e)})
            return ScriptOutcome.failed(classify(str(e)))

        timer.stop(exit=result.exit_code)
        if result.exit_code != 0:
            message = result.stderr.strip() or (
                f"{self.config.interpreter} exited with status {result.exit_code}"
            )
            error = classify(message, result.stdout)
            log.warn("script failed", {
                "script": ref.label,
                "exit": result.exit_code,
                "code": error.code,
                "error": message,
            })
            return ScriptOutcome.failed(error)

        data = parse_response(result.stdout)
        reported = script_reported_error(data)
        if reported is not None:
            log.debug("script reported error", {"script": ref.label, "code": reported.code})
            return ScriptOutcome.failed(reported)
        return ScriptOutcome.ok(data)

    async def _run_file(self, script: str, timeout: float) -> ProcessResult:
        fd, path = tempfile.mkstemp(prefix="omnirelay-", suffix=".jxa")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(script)
            return await self._runner(self.file_command(path), timeout)
        finally:
            Path(path).unlink(missing_ok=True)
