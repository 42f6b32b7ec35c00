"""OmniFocus client facade.

Composes the script bridge, connection monitor, retry executor and response
cache into one handle::

    async with OmniFocusClient() as client:
        tasks = await client.get_all_tasks()

Entering the context (or ``await client.start()``) starts the background
probe and cache cleanup tasks; leaving it (or ``await client.shutdown()``)
stops both and empties the cache.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..automation.bridge import ScriptBridge, ScriptRef, ScriptSource
from ..automation.errors import (
    NOT_FOUND,
    SCRIPT_ERROR,
    AutomationError,
    ErrorInfo,
    ErrorKind,
    ScriptExecutionError,
)
from ..cache.cache import CacheManager, CacheStats
from ..connection.monitor import ConnectionMonitor
from ..connection.retry import RetryExecutor
from ..connection.status import ConnectionStatus
from ..core.bus import Bus
from ..core.config_schema import Config
from ..util.log import Log
from .types import DatabaseInfo, JSONDict, ListPage, SearchOptions

log = Log.create({"service": "client"})

_MISS = object()


class OmniFocusClient:
    """Read access to OmniFocus through its automation interface."""

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        bridge: Optional[ScriptBridge] = None,
        monitor: Optional[ConnectionMonitor] = None,
        cache: Optional[CacheManager] = None,
        retry: Optional[RetryExecutor] = None,
        bus: Optional[Bus] = None,
    ):
        self.config = config or Config()
        if bus is None:
            bus = monitor.bus if monitor is not None and monitor.bus is not None else Bus()
        self.bus = bus
        self.bridge = bridge or ScriptBridge(self.config.automation)
        self.monitor = monitor or ConnectionMonitor(self.bridge, self.config.monitor, self.bus)
        if self.monitor.bus is None:
            self.monitor.bus = self.bus
        self.cache = cache or CacheManager(self.config.cache)
        self.retry = retry or RetryExecutor(self.monitor, self.config.retry)
        self._started = False

    # -- lifecycle --

    async def __aenter__(self) -> "OmniFocusClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def start(self) -> None:
        if self._started:
            return
        self.monitor.start()
        self.cache.start()
        self._started = True
        log.info("client started", {"app": self.bridge.app_name})

    async def shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        await self.monitor.stop()
        await self.cache.destroy()
        log.info("client stopped")

    async def initialize(self) -> bool:
        """Check the connection and try to repair it when needed."""
        try:
            return await self.monitor.ensure_connected()
        except Exception as e:
            log.error("initialization failed", {"error": str(e)})
            return False

    async def probe(self) -> ConnectionStatus:
        return await self.monitor.probe()

    def connection_status(self) -> ConnectionStatus:
        return self.monitor.status()

    # -- cache --

    def invalidate(self, category: Optional[str] = None) -> int:
        """Drop cached results for one category, or everything."""
        if category is None:
            count = self.cache.size()
            self.cache.clear()
            return count
        return self.cache.invalidate_by_category(category)

    def cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    # -- reads --

    async def get_all_tasks(self, *, fallback: bool = False) -> List[JSONDict]:
        return await self._list("get_all_tasks", "get-all-tasks", fallback=fallback)

    async def get_task_by_id(self, task_id: str) -> Optional[JSONDict]:
        return await self._lookup("get_task_by_id", "get-task-by-id", {"taskId": task_id})

    async def search_tasks(
        self,
        options: Optional[SearchOptions] = None,
        *,
        fallback: bool = False,
    ) -> ListPage:
        options = options or SearchOptions()
        params = options.to_params()
        offset = options.offset or 0

        async def fetch() -> ListPage:
            data = await self._invoke(ScriptRef.named("search-tasks"), params)
            try:
                return ListPage.from_data(data, offset=offset, limit=options.limit)
            except (ValueError, ValidationError) as e:
                raise ScriptExecutionError(ErrorInfo(
                    code=SCRIPT_ERROR, kind=ErrorKind.SCRIPT_ERROR, message=str(e)
                )) from e

        try:
            return await self._cached("search_tasks", params, fetch)
        except AutomationError as e:
            if not fallback:
                raise
            log.warn("search failed, returning empty page", {"error": str(e)})
            return ListPage.empty(offset, options.limit)

    async def get_all_projects(self, *, fallback: bool = False) -> List[JSONDict]:
        return await self._list("get_all_projects", "get-projects", fallback=fallback)

    async def get_project_by_id(self, project_id: str) -> Optional[JSONDict]:
        return await self._lookup(
            "get_project_by_id", "get-project-by-id", {"projectId": project_id}
        )

    async def get_all_tags(self, *, fallback: bool = False) -> List[JSONDict]:
        return await self._list("get_all_tags", "get-tags", fallback=fallback)

    async def get_all_folders(self, *, fallback: bool = False) -> List[JSONDict]:
        return await self._list("get_all_folders", "get-folders", fallback=fallback)

    async def get_perspectives(self, *, fallback: bool = False) -> List[JSONDict]:
        return await self._list("get_perspectives", "get-perspectives", fallback=fallback)

    async def get_database_info(self) -> DatabaseInfo:
        async def fetch() -> DatabaseInfo:
            data = await self._invoke(ScriptRef.named("get-database-info"), {})
            try:
                return DatabaseInfo.model_validate(data)
            except ValidationError as e:
                raise ScriptExecutionError(ErrorInfo(
                    code=SCRIPT_ERROR, kind=ErrorKind.SCRIPT_ERROR, message=str(e)
                )) from e

        return await self._cached("get_database_info", {}, fetch)

    async def run_script(
        self,
        script: ScriptSource,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Run an arbitrary script through the retry executor, uncached."""
        return await self.retry.run(lambda: self._invoke(script, params or {}))

    # -- internals --

    async def _invoke(self, script: ScriptSource, params: Mapping[str, Any]) -> Any:
        outcome = await self.bridge.invoke(script, params)
        return outcome.unwrap()

    async def _cached(
        self,
        operation: str,
        params: Dict[str, Any],
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        key = self.cache.generate_key(operation, params)
        cached = self.cache.get(key, _MISS)
        if cached is not _MISS:
            log.debug("cache hit", {"operation": operation})
            return cached

        value = await self.retry.run(fetch)
        self.cache.set(key, value)
        return value

    async def _list(self, operation: str, script: str, *, fallback: bool) -> List[JSONDict]:
        async def fetch() -> List[JSONDict]:
            data = await self._invoke(ScriptRef.named(script), {})
            if data is None:
                return []
            if not isinstance(data, list):
                raise ScriptExecutionError(ErrorInfo(
                    code=SCRIPT_ERROR,
                    kind=ErrorKind.SCRIPT_ERROR,
                    message=f"{script} returned {type(data).__name__}, expected a list",
                ))
            return data

        try:
            return await self._cached(operation, {}, fetch)
        except AutomationError as e:
            if not fallback:
                raise
            log.warn("read failed, returning empty list", {
                "operation": operation,
                "error": str(e),
            })
            return []

    async def _lookup(
        self,
        operation: str,
        script: str,
        params: Dict[str, Any],
    ) -> Optional[JSONDict]:
        async def fetch() -> Optional[JSONDict]:
            try:
                return await self._invoke(ScriptRef.named(script), params)
            except AutomationError as e:
                if e.code == NOT_FOUND:
                    return None
                raise

        return await self._cached(operation, params, fetch)
