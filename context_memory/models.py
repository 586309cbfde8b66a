"""
Data models for Context Memory MCP Server
Copyright 2025 Jurden Bruce
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class _Unset:
    """Marker for update fields the caller did not provide"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class MemoryRecord:
    id: str
    content: str
    created_at: str
    updated_at: str
    title: Optional[str] = None
    importance: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Structured form with the wire field names"""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "importance": self.importance,
            "tags": list(self.tags),
            "metadata": self.metadata,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @property
    def display_name(self) -> str:
        return self.title or self.id


@dataclass
class MemoryListResult:
    """One page of list results plus the unpaginated match count"""
    items: List[MemoryRecord]
    total: int
    limit: int
    offset: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }
