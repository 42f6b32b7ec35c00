from .monitor import ConnectionMonitor
from .retry import RetryExecutor, retryable
from .status import ConnectionStatus, ConnectionStatusChanged, MonitorState

__all__ = [
    "ConnectionMonitor",
    "ConnectionStatus",
    "ConnectionStatusChanged",
    "MonitorState",
    "RetryExecutor",
    "retryable",
]
