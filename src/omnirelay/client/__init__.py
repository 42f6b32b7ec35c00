from .client import OmniFocusClient
from .types import DatabaseInfo, ListPage, Pagination, SearchOptions

__all__ = ["DatabaseInfo", "ListPage", "OmniFocusClient", "Pagination", "SearchOptions"]
