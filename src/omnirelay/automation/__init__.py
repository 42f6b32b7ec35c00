"""Script execution against the OmniFocus automation interface."""

from .bridge import ScriptBridge, ScriptOutcome, ScriptRef
from .errors import (
    AutomationError,
    ConnectivityError,
    ErrorInfo,
    ErrorKind,
    ScriptExecutionError,
    ScriptTimeoutError,
    UnknownAutomationError,
    classify,
)
from .loader import ScriptLoadError, ScriptLoader

__all__ = [
    "AutomationError",
    "ConnectivityError",
    "ErrorInfo",
    "ErrorKind",
    "ScriptBridge",
    "ScriptExecutionError",
    "ScriptLoadError",
    "ScriptLoader",
    "ScriptOutcome",
    "ScriptRef",
    "ScriptTimeoutError",
    "UnknownAutomationError",
    "classify",
]
