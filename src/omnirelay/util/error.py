"""Error formatting utilities.

Turns the package's own exception types into short messages for the CLI;
anything else falls through to ``format_unknown_error``.
"""

import json
import traceback
from typing import Any

from ..automation.errors import AutomationError, ConnectivityError, ErrorKind
from ..automation.loader import ScriptLoadError
from ..core.config import ConfigError


def format_error(error: Any) -> str | None:
    """Format known application errors into user-friendly messages.

    Returns None if the error type is not recognized, allowing
    fallback to format_unknown_error.
    """
    if isinstance(error, ConnectivityError):
        if error.kind == ErrorKind.PERMISSION:
            return (
                f"Automation permission denied ({error.code}): {error}\n"
                "Allow this terminal to control the application in "
                "System Settings > Privacy & Security > Automation."
            )
        return f"Application unavailable ({error.code}): {error}"

    if isinstance(error, AutomationError):
        return f"Automation failed [{error.kind.value}/{error.code}]: {error}"

    if isinstance(error, ScriptLoadError):
        return str(error)

    if isinstance(error, ConfigError):
        return str(error)

    return None


def format_unknown_error(error: Any) -> str:
    """Format any error into a string representation.

    Handles Exception objects, serializable objects, and primitives.
    """
    if isinstance(error, Exception):
        if error.__traceback__:
            return ''.join(traceback.format_exception(type(error), error, error.__traceback__))
        return f"{error.__class__.__name__}: {str(error)}"

    if isinstance(error, (dict, list)):
        try:
            return json.dumps(error, indent=2)
        except (TypeError, ValueError):
            return "Unexpected error (unserializable)"

    return str(error)
