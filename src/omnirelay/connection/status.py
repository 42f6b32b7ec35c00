"""Connection status snapshot and related events."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.bus import BusEvent


class MonitorState(str, Enum):
    """Lifecycle of the connection monitor.

    ``unknown`` until the first probe; ``probing`` while a probe or repair
    runs; then ``healthy`` or ``unhealthy``. There is no terminal state.
    """

    UNKNOWN = "unknown"
    PROBING = "probing"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionStatus(BaseModel):
    """Last known reachability of the application.

    Instances are immutable; the monitor swaps in a new one on every update.
    """

    connected: bool = False
    app_running: bool = Field(False, alias="appRunning")
    permissions_granted: bool = Field(False, alias="permissionsGranted")
    last_checked: datetime = Field(default_factory=_utcnow, alias="lastChecked")
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def unreachable(cls, error: str, last_checked: datetime) -> "ConnectionStatus":
        return cls(
            connected=False,
            app_running=False,
            permissions_granted=False,
            last_checked=last_checked,
            error=error,
        )


def next_check_time(previous: datetime) -> datetime:
    """Current time, bumped past ``previous`` so check times strictly increase."""
    now = _utcnow()
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class StatusChangedProps(BaseModel):
    connected: bool
    app_running: bool
    permissions_granted: bool
    error: Optional[str] = None


ConnectionStatusChanged = BusEvent.define("connection.status.changed", StatusChangedProps)
