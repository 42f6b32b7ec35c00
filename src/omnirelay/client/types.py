"""Payload shapes exchanged with the bundled read scripts.

Entities (tasks, projects, tags, ...) are passed through as the plain dicts
the scripts return; only request options and envelopes are modelled.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

JSONDict = Dict[str, Any]


class SearchOptions(BaseModel):
    """Task search filters. Unset filters are omitted from the script parameters."""

    query: Optional[str] = None
    project_id: Optional[str] = Field(None, alias="projectId")
    folder_id: Optional[str] = Field(None, alias="folderId")
    tag_ids: Optional[List[str]] = Field(None, alias="tagIds")
    completed: Optional[bool] = None
    flagged: Optional[bool] = None
    due_before: Optional[datetime] = Field(None, alias="dueBefore")
    due_after: Optional[datetime] = Field(None, alias="dueAfter")
    created_before: Optional[datetime] = Field(None, alias="createdBefore")
    created_after: Optional[datetime] = Field(None, alias="createdAfter")
    limit: Optional[int] = Field(None, ge=1)
    offset: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    def to_params(self) -> JSONDict:
        return self.model_dump(mode="json", exclude_none=True, by_alias=True)


class Pagination(BaseModel):
    total: int = 0
    offset: int = 0
    limit: Optional[int] = None
    returned: int = 0
    has_more: bool = Field(False, alias="hasMore")

    model_config = ConfigDict(populate_by_name=True)


class ListPage(BaseModel):
    """``{items, pagination}`` list envelope."""

    items: List[Any] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def empty(cls, offset: int = 0, limit: Optional[int] = None) -> "ListPage":
        return cls(pagination=Pagination(offset=offset, limit=limit))

    @classmethod
    def from_data(cls, data: Any, offset: int = 0, limit: Optional[int] = None) -> "ListPage":
        """Accept a bare list or an ``{items, pagination}`` object."""
        if data is None:
            return cls.empty(offset, limit)
        if isinstance(data, list):
            return cls(items=data, pagination=Pagination(
                total=offset + len(data),
                offset=offset,
                limit=limit,
                returned=len(data),
                has_more=False,
            ))
        if isinstance(data, dict) and isinstance(data.get("items"), list):
            items = data["items"]
            raw = data.get("pagination") or {}
            pagination = Pagination.model_validate({
                "total": len(items) + offset,
                "offset": offset,
                "limit": limit,
                "returned": len(items),
                **raw,
            })
            return cls(items=items, pagination=pagination)
        raise ValueError(f"Unexpected list payload: {type(data).__name__}")


class DatabaseInfo(BaseModel):
    name: str
    path: str = ""
    is_default: bool = Field(True, alias="isDefault")

    model_config = ConfigDict(populate_by_name=True, extra="allow")
