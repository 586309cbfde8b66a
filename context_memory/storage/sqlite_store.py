"""
SQLite persistence store for Context Memory MCP Server
Copyright 2025 Jurden Bruce
"""

import sqlite3
import json
import logging
import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional, Union
from pathlib import Path

from ..models import UNSET, MemoryListResult, MemoryRecord
from ..utils import (
    clamp_importance,
    ensure_parent_dir,
    normalize_tags,
    parse_json,
    serialize_json,
    tag_key,
    utc_now_iso,
)

logger = logging.getLogger("context-memory.sqlite")

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS memories (
        id TEXT PRIMARY KEY,
        title TEXT,
        content TEXT NOT NULL,
        importance INTEGER,
        tags TEXT NOT NULL DEFAULT '[]',
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_memories_updated_at ON memories(updated_at DESC);
    CREATE INDEX IF NOT EXISTS idx_memories_importance ON memories(importance);

    -- Lower-cased tag keys, one row per tag, for membership filters
    CREATE TABLE IF NOT EXISTS memory_tags (
        memory_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
        tag TEXT NOT NULL,
        PRIMARY KEY (memory_id, tag)
    );

    CREATE INDEX IF NOT EXISTS idx_memory_tags_tag ON memory_tags(tag);

    -- Rows whose tags JSON changed since memory_tags was last written for them.
    -- Filled by the triggers below on every connection, drained before each list.
    CREATE TABLE IF NOT EXISTS memory_tags_pending (
        memory_id TEXT PRIMARY KEY
    );

    CREATE TRIGGER IF NOT EXISTS memories_tags_inserted AFTER INSERT ON memories
    BEGIN
        INSERT OR IGNORE INTO memory_tags_pending (memory_id) VALUES (NEW.id);
    END;

    CREATE TRIGGER IF NOT EXISTS memories_tags_updated AFTER UPDATE OF tags ON memories
    BEGIN
        INSERT OR IGNORE INTO memory_tags_pending (memory_id) VALUES (NEW.id);
    END;
"""


def _casefold(value: Any) -> Optional[str]:
    return value.casefold() if isinstance(value, str) else None


class MemoryStore:
    """Durable storage and filtered retrieval of memory records"""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self.conn: Optional[sqlite3.Connection] = None
        self.initialize()

    def initialize(self):
        """Create the database directory, open the connection and ensure the schema"""
        ensure_parent_dir(self.db_path)
        try:
            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=30.0,
            )
            self.conn.row_factory = sqlite3.Row
            # Filters apply the same normalization as reads
            self.conn.create_function("casefold", 1, _casefold, deterministic=True)
            self.conn.create_function("clamp_importance", 1, clamp_importance, deterministic=True)

            with self._lock:
                self.conn.execute("PRAGMA journal_mode = WAL")
                self.conn.execute("PRAGMA foreign_keys = ON")
                self.conn.executescript(_SCHEMA)
                self.conn.commit()
                self._backfill_tag_index()
        except sqlite3.Error as e:
            logger.error(f"SQLite initialization failed for {self.db_path}: {e}")
            self.close()
            raise

        logger.info(f"SQLite initialized at {self.db_path}")

    def _backfill_tag_index(self):
        """Queue rows written before memory_tags existed for indexing"""
        with self.conn:
            self.conn.execute("""
                INSERT OR IGNORE INTO memory_tags_pending (memory_id)
                SELECT id FROM memories
                WHERE tags != '[]'
                  AND NOT EXISTS (SELECT 1 FROM memory_tags t WHERE t.memory_id = memories.id)
            """)
            count = self._reindex_pending()
        if count:
            logger.info(f"Backfilled tag index for {count} memories")

    def _reindex_pending(self) -> int:
        """Rebuild memory_tags for rows queued by the tag triggers"""
        rows = self.conn.execute("""
            SELECT p.memory_id, m.tags FROM memory_tags_pending p
            LEFT JOIN memories m ON m.id = p.memory_id
        """).fetchall()
        for row in rows:
            # tags is NOT NULL, so None means the memory is gone
            tags = [] if row["tags"] is None else normalize_tags(parse_json(row["tags"], [], list))
            self._write_tag_index(row["memory_id"], tags)
        return len(rows)

    def _write_tag_index(self, memory_id: str, tags: List[str]):
        self.conn.execute("DELETE FROM memory_tags WHERE memory_id = ?", (memory_id,))
        self.conn.executemany(
            "INSERT OR IGNORE INTO memory_tags (memory_id, tag) VALUES (?, ?)",
            [(memory_id, tag_key(tag)) for tag in tags],
        )
        self.conn.execute("DELETE FROM memory_tags_pending WHERE memory_id = ?", (memory_id,))

    def add_memory(
        self,
        content: str,
        title: Optional[str] = None,
        importance: Optional[Any] = None,
        tags: Optional[Iterable[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryRecord:
        """Persist a new memory and return it as written"""
        now = utc_now_iso()
        memory = MemoryRecord(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            importance=clamp_importance(importance),
            tags=normalize_tags(tags),
            metadata=dict(metadata) if metadata is not None else {},
            created_at=now,
            updated_at=now,
        )

        with self._lock, self.conn:
            self.conn.execute("""
                INSERT INTO memories (id, title, content, importance, tags, metadata, created_at, updated_at)
                VALUES (:id, :title, :content, :importance, :tags, :metadata, :created_at, :updated_at)
            """, {
                "id": memory.id,
                "title": memory.title,
                "content": memory.content,
                "importance": memory.importance,
                "tags": json.dumps(memory.tags),
                "metadata": serialize_json(memory.metadata, {}),
                "created_at": memory.created_at,
                "updated_at": memory.updated_at,
            })
            self._write_tag_index(memory.id, memory.tags)

        logger.debug(f"Stored memory {memory.id}")
        return memory

    def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        """Retrieve memory by ID"""
        with self._lock:
            cursor = self.conn.execute("SELECT * FROM memories WHERE id = ?", (memory_id,))
            row = cursor.fetchone()
        if row:
            return self._row_to_memory(row)
        return None

    def list_memories(
        self,
        search: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        min_importance: Optional[int] = None,
        max_importance: Optional[int] = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> MemoryListResult:
        """List memories matching every supplied filter, newest update first"""
        conditions = []
        params: Dict[str, Any] = {}

        if search and search.strip():
            conditions.append("(instr(casefold(title), :search) > 0 OR instr(casefold(content), :search) > 0)")
            params["search"] = search.strip().casefold()

        for index, tag in enumerate(normalize_tags(tags)):
            name = f"tag{index}"
            conditions.append(
                f"EXISTS (SELECT 1 FROM memory_tags t WHERE t.memory_id = memories.id AND t.tag = :{name})"
            )
            params[name] = tag_key(tag)

        if min_importance is not None:
            conditions.append("clamp_importance(importance) >= :min_importance")
            params["min_importance"] = min_importance
        if max_importance is not None:
            conditions.append("clamp_importance(importance) <= :max_importance")
            params["max_importance"] = max_importance

        if before:
            conditions.append("updated_at <= :before")
            params["before"] = before
        if after:
            conditions.append("updated_at >= :after")
            params["after"] = after

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        limit_safe = min(max(int(limit if limit is not None else DEFAULT_LIST_LIMIT), 1), MAX_LIST_LIMIT)
        offset_safe = max(int(offset or 0), 0)

        with self._lock:
            with self.conn:
                self._reindex_pending()

            rows = self.conn.execute(f"""
                SELECT * FROM memories
                {where_clause}
                ORDER BY updated_at DESC, rowid DESC
                LIMIT :limit OFFSET :offset
            """, {**params, "limit": limit_safe, "offset": offset_safe}).fetchall()

            total = self.conn.execute(
                f"SELECT COUNT(*) FROM memories {where_clause}", params
            ).fetchone()[0]

        return MemoryListResult(
            items=[self._row_to_memory(row) for row in rows],
            total=total or 0,
            limit=limit_safe,
            offset=offset_safe,
        )

    def update_memory(
        self,
        memory_id: str,
        title: Any = UNSET,
        content: Any = UNSET,
        importance: Any = UNSET,
        tags: Any = UNSET,
        metadata: Any = UNSET,
    ) -> Optional[MemoryRecord]:
        """Apply a partial update

        Omitted fields keep their value. None clears title and importance,
        empties tags and metadata, and leaves content alone.
        """
        existing = self.get_memory(memory_id)
        if not existing:
            return None

        updated = MemoryRecord(
            id=existing.id,
            title=existing.title if title is UNSET else title,
            content=existing.content if content is UNSET or content is None else content,
            importance=existing.importance if importance is UNSET else clamp_importance(importance),
            tags=normalize_tags(tags) if tags is not UNSET else existing.tags,
            metadata=existing.metadata if metadata is UNSET else dict(metadata or {}),
            created_at=existing.created_at,
            updated_at=max(utc_now_iso(), existing.created_at),
        )

        with self._lock, self.conn:
            cursor = self.conn.execute("""
                UPDATE memories
                SET title = :title, content = :content, importance = :importance,
                    tags = :tags, metadata = :metadata, updated_at = :updated_at
                WHERE id = :id
            """, {
                "id": updated.id,
                "title": updated.title,
                "content": updated.content,
                "importance": updated.importance,
                "tags": json.dumps(updated.tags),
                "metadata": serialize_json(updated.metadata, {}),
                "updated_at": updated.updated_at,
            })
            if cursor.rowcount == 0:
                logger.info(f"Memory {memory_id} disappeared before update")
                return None
            self._write_tag_index(updated.id, updated.tags)

        logger.debug(f"Updated memory {memory_id}")
        return updated

    def delete_memory(self, memory_id: str) -> bool:
        """Hard-delete a memory, returning whether a row was removed"""
        with self._lock, self.conn:
            cursor = self.conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug(f"Deleted memory {memory_id}")
        return deleted

    def _row_to_memory(self, row: sqlite3.Row) -> MemoryRecord:
        """Convert SQLite row to MemoryRecord, re-normalizing stored values"""
        return MemoryRecord(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            importance=clamp_importance(row["importance"]),
            tags=normalize_tags(parse_json(row["tags"], [], list)),
            metadata=parse_json(row["metadata"], {}, dict),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def close(self):
        """Close database connection"""
        if self.conn:
            with self._lock:
                self.conn.close()
            self.conn = None
            logger.info("SQLite connection closed")
