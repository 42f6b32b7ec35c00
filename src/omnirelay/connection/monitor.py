"""Connection health monitoring for the automation target."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from ..automation.bridge import ScriptBridge, ScriptRef
from ..core.bus import Bus
from ..core.config_schema import MonitorConfig
from ..util.log import Log
from .status import (
    ConnectionStatus,
    ConnectionStatusChanged,
    MonitorState,
    StatusChangedProps,
    next_check_time,
)

log = Log.create({"service": "connection.monitor"})

DIAGNOSTIC_SCRIPT = "get-database-info"
PERMISSIONS_NOT_GRANTED = "Automation permissions not granted"


class ConnectionMonitor:
    """Tracks whether the application can currently be automated.

    The monitor holds exactly one :class:`ConnectionStatus`; every probe or
    repair step replaces it. ``probe`` never raises. A background task started
    with ``start()`` re-probes every ``interval`` seconds; probes triggered by
    callers may overlap with it and the last one to finish wins.
    """

    def __init__(
        self,
        bridge: ScriptBridge,
        config: Optional[MonitorConfig] = None,
        bus: Optional[Bus] = None,
    ):
        self.bridge = bridge
        self.config = config or MonitorConfig()
        self.bus = bus
        self._status = ConnectionStatus()
        self._state = MonitorState.UNKNOWN
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> ConnectionStatus:
        """Copy of the current snapshot."""
        return self._status.model_copy()

    def not_running_message(self) -> str:
        return f"{self.bridge.app_name} is not running"

    async def probe(self) -> ConnectionStatus:
        """Check reachability and record the result."""
        self._state = MonitorState.PROBING
        try:
            status = await self._probe()
        except Exception as e:
            log.error("probe failed unexpectedly", {"error": str(e)})
            status = ConnectionStatus.unreachable(str(e), self._next_time())
        await self._store(status)
        return status.model_copy()

    async def _probe(self) -> ConnectionStatus:
        if not await self.bridge.app_running():
            return ConnectionStatus.unreachable(self.not_running_message(), self._next_time())

        outcome = await self.bridge.invoke(ScriptRef.named(DIAGNOSTIC_SCRIPT))
        if not outcome.success:
            return ConnectionStatus(
                connected=False,
                app_running=True,
                permissions_granted=False,
                last_checked=self._next_time(),
                error=outcome.error.message if outcome.error else f"{DIAGNOSTIC_SCRIPT} failed",
            )
        return ConnectionStatus(
            connected=True,
            app_running=True,
            permissions_granted=True,
            last_checked=self._next_time(),
        )

    async def ensure_connected(self) -> bool:
        """Probe, and when unhealthy try to repair the connection once."""
        status = await self.probe()
        if status.connected:
            return True

        log.info("attempting to restore connection", {"error": status.error})
        self._state = MonitorState.PROBING
        if not await self.bridge.request_permissions():
            await self._store(self._status.model_copy(update={
                "connected": False,
                "permissions_granted": False,
                "last_checked": self._next_time(),
                "error": PERMISSIONS_NOT_GRANTED,
            }))
            return False

        if not await self.bridge.app_running():
            await self._store(ConnectionStatus.unreachable(
                self.not_running_message(), self._next_time()
            ))
            return False

        status = await self.probe()
        return status.connected

    async def mark_disconnected(self) -> None:
        """Flag the connection as broken so the next attempt re-runs repair.

        No check runs here, so ``last_checked`` keeps its value.
        """
        await self._store(self._status.model_copy(update={"connected": False}))

    def start(self) -> None:
        """Start the periodic probe task on the running loop."""
        if not self.config.enabled or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        log.info("monitor started", {"interval": self.config.interval})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("monitor stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval)
            await self.probe()

    def _next_time(self) -> datetime:
        return next_check_time(self._status.last_checked)

    async def _store(self, status: ConnectionStatus) -> None:
        previous = self._status
        self._status = status
        self._state = MonitorState.HEALTHY if status.connected else MonitorState.UNHEALTHY
        if previous.connected == status.connected:
            return
        log.info("connection status changed", {
            "connected": status.connected,
            "error": status.error,
        })
        if self.bus is not None:
            await self.bus.publish(ConnectionStatusChanged, StatusChangedProps(
                connected=status.connected,
                app_running=status.app_running,
                permissions_granted=status.permissions_granted,
                error=status.error,
            ))
