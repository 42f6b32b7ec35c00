"""Failure classification for automation script invocations.

A failed ``osascript`` call only gives us free text: the exception or exit
message plus whatever the interpreter wrote to stderr. ``classify`` turns that
text into an :class:`ErrorInfo` by walking ``CLASSIFIER_RULES`` in order; the
first rule with a matching substring wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    """Broad failure families used for retry decisions."""

    PERMISSION = "permission"
    APP_UNAVAILABLE = "app_unavailable"
    SCRIPT_ERROR = "script_error"
    # Not retried by either layer: its message matches no retry pattern and
    # the bridge only repeats APP_UNAVAILABLE.
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


PERMISSION_DENIED = "PERMISSION_DENIED"
APP_UNAVAILABLE = "APP_UNAVAILABLE"
SCRIPT_ERROR = "SCRIPT_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
TIMEOUT = "TIMEOUT"
# Reported by scripts for missing entities, never by the classifier.
NOT_FOUND = "NOT_FOUND"


class ErrorInfo(BaseModel):
    """Classified failure of one script invocation."""

    code: str
    kind: ErrorKind
    message: str

    model_config = ConfigDict(frozen=True)

    def to_envelope(self) -> Dict[str, Any]:
        """Serialize in the wire shape ``{code, type, originalMessage}``."""
        return {"code": self.code, "type": self.kind.value, "originalMessage": self.message}

    def to_exception(self) -> "AutomationError":
        """Build the exception matching this failure's kind."""
        cls = _EXCEPTION_BY_KIND.get(self.kind, UnknownAutomationError)
        return cls(self)


@dataclass(frozen=True)
class ClassifierRule:
    """One ordered classification rule."""

    kind: ErrorKind
    code: str
    patterns: tuple[str, ...]

    def match(self, haystack: str) -> str | None:
        for pattern in self.patterns:
            if pattern in haystack:
                return pattern
        return None


CLASSIFIER_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(
        kind=ErrorKind.PERMISSION,
        code=PERMISSION_DENIED,
        patterns=("not authorized", "permission"),
    ),
    ClassifierRule(
        kind=ErrorKind.APP_UNAVAILABLE,
        code=APP_UNAVAILABLE,
        # "not found" also matches missing-entity messages; scripts report
        # those through the NOT_FOUND envelope instead of stderr.
        patterns=("application is not running", "not found"),
    ),
    ClassifierRule(
        kind=ErrorKind.SCRIPT_ERROR,
        code=SCRIPT_ERROR,
        patterns=("syntax error", "execution error"),
    ),
)


def classify(message: str, auxiliary: str = "") -> ErrorInfo:
    """Classify a raw failure. ``message`` is preserved verbatim."""
    haystack = f"{message}\n{auxiliary}".lower()
    for rule in CLASSIFIER_RULES:
        if rule.match(haystack) is not None:
            return ErrorInfo(code=rule.code, kind=rule.kind, message=message)
    return ErrorInfo(code=UNKNOWN_ERROR, kind=ErrorKind.UNKNOWN, message=message)


class AutomationError(Exception):
    """Failure surfaced to callers of the client.

    ``str(error)`` is always the original diagnostic message.
    """

    def __init__(self, info: ErrorInfo | str):
        if isinstance(info, str):
            info = classify(info)
        self.info = info
        super().__init__(info.message)

    @property
    def code(self) -> str:
        return self.info.code

    @property
    def kind(self) -> ErrorKind:
        return self.info.kind


class ConnectivityError(AutomationError):
    """The application is not running or automation is not permitted."""

    def __init__(self, info: ErrorInfo | str):
        if isinstance(info, str):
            info = ErrorInfo(code=APP_UNAVAILABLE, kind=ErrorKind.APP_UNAVAILABLE, message=info)
        super().__init__(info)


class ScriptExecutionError(AutomationError):
    """The script itself failed (syntax or runtime error, or a script-reported error)."""


class ScriptTimeoutError(AutomationError):
    """The interpreter did not finish within the configured timeout."""


class UnknownAutomationError(AutomationError):
    """Failure that matched no classification rule."""


_EXCEPTION_BY_KIND: Dict[ErrorKind, type[AutomationError]] = {
    ErrorKind.PERMISSION: ConnectivityError,
    ErrorKind.APP_UNAVAILABLE: ConnectivityError,
    ErrorKind.SCRIPT_ERROR: ScriptExecutionError,
    ErrorKind.TIMEOUT: ScriptTimeoutError,
    ErrorKind.UNKNOWN: UnknownAutomationError,
}
