"""omnirelay - OmniFocus automation client.

Wraps the OmniFocus JavaScript automation interface in an async client with
connection monitoring, retries, error classification and response caching.
"""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import module components."""
    if name in ("OmniFocusClient", "SearchOptions", "ListPage"):
        from . import client
        return getattr(client, name)
    if name in ("ScriptBridge", "ScriptRef", "AutomationError", "ConnectivityError"):
        from . import automation
        return getattr(automation, name)
    if name in ("ConnectionMonitor", "ConnectionStatus", "RetryExecutor"):
        from . import connection
        return getattr(connection, name)
    if name == "CacheManager":
        from . import cache
        return cache.CacheManager
    if name == "Log":
        from .util.log import Log
        return Log
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    # Client
    "OmniFocusClient",
    "SearchOptions",
    "ListPage",
    # Automation
    "ScriptBridge",
    "ScriptRef",
    "AutomationError",
    "ConnectivityError",
    # Connection
    "ConnectionMonitor",
    "ConnectionStatus",
    "RetryExecutor",
    # Cache
    "CacheManager",
    # Logging
    "Log",
]
