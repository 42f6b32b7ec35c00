"""Core infrastructure modules."""

from .global_paths import GlobalPath

__all__ = ["GlobalPath"]

# Bus and config import the logger, which imports GlobalPath from here;
# import them from their modules to avoid circular imports:
# from omnirelay.core.bus import Bus
# from omnirelay.core.config import ConfigManager
