"""
Tool argument models for Context Memory MCP Server
Copyright 2025 Jurden Bruce
"""

from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, StringConstraints

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Content = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

MAX_TAGS = 25

Importance = Annotated[int, Field(ge=0, le=10)]
TagList = Annotated[List[Tag], Field(max_length=MAX_TAGS)]
Limit = Annotated[int, Field(ge=1, le=200)]
Offset = Annotated[int, Field(ge=0)]


class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateMemoryArgs(_ToolArgs):
    title: Optional[Title] = Field(default=None, description="Short title (1-200 characters)")
    content: Content = Field(..., description="Memory content to store")
    importance: Optional[Importance] = Field(default=None, description="Importance score 0-10")
    tags: Optional[TagList] = Field(
        default=None,
        description="Tags, case-insensitive and deduplicated (at most 25)",
    )
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Arbitrary JSON metadata")


class UpdateMemoryArgs(_ToolArgs):
    id: UUID = Field(..., description="Memory ID to update")
    title: Optional[Title] = Field(default=None, description="New title, or null to clear")
    content: Content = Field(default=None, description="New content (null is rejected)")
    importance: Optional[Importance] = Field(default=None, description="New importance, or null to clear")
    tags: Optional[TagList] = Field(
        default=None,
        description="Replacement tags, or null to remove all tags",
    )
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Replacement metadata, or null to clear")

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent, explicit nulls included"""
        return {
            name: getattr(self, name)
            for name in ("title", "content", "importance", "tags", "metadata")
            if name in self.model_fields_set
        }


class GetMemoryArgs(_ToolArgs):
    id: UUID = Field(..., description="Memory ID")


class DeleteMemoryArgs(_ToolArgs):
    id: UUID = Field(..., description="Memory ID to delete")


class ListMemoryArgs(_ToolArgs):
    search: Optional[Content] = Field(default=None, description="Substring to find in title or content")
    tags: Optional[List[Tag]] = Field(default=None, description="Only memories carrying all of these tags")
    min_importance: Optional[Importance] = Field(default=None, alias="minImportance")
    max_importance: Optional[Importance] = Field(default=None, alias="maxImportance")
    limit: Optional[Limit] = Field(default=None, description="Page size (default 50)")
    offset: Optional[Offset] = Field(default=None, description="Results to skip")
    before: Optional[AwareDatetime] = Field(default=None, description="Updated at or before (ISO-8601)")
    after: Optional[AwareDatetime] = Field(default=None, description="Updated at or after (ISO-8601)")
