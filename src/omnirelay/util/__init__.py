"""Utility modules."""

from .log import Log

__all__ = ["Log"]

# format_error lives in .error, which depends on the automation package:
# from omnirelay.util.error import format_error
