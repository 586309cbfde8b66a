"""
MCP Tool Definitions and Handlers for Context Memory MCP Server
Copyright 2025 Jurden Bruce

Every tool returns text content. Records are rendered as a fenced JSON block
so both people and models can read them.
"""

import json
import logging
import traceback
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from mcp.types import Tool, TextContent
from pydantic import BaseModel, ValidationError

from .models import MemoryRecord
from .schemas import (
    CreateMemoryArgs,
    DeleteMemoryArgs,
    GetMemoryArgs,
    ListMemoryArgs,
    UpdateMemoryArgs,
)
from .utils import to_utc_iso

logger = logging.getLogger("context-memory.tools")

Notifier = Callable[[str], Awaitable[None]]
ArgsT = TypeVar("ArgsT", bound=BaseModel)


class ToolError(Exception):
    """Caller-visible tool failure (bad arguments, unknown id)"""


def get_tool_definitions() -> List[Tool]:
    """Return list of available MCP tools"""
    return [
        Tool(
            name="memory.add",
            title="Capture a new memory entry",
            description="Persist contextual information for later recall.",
            inputSchema=CreateMemoryArgs.model_json_schema(),
        ),
        Tool(
            name="memory.list",
            title="List stored memories",
            description="Browse or filter the memory vault.",
            inputSchema=ListMemoryArgs.model_json_schema(),
        ),
        Tool(
            name="memory.get",
            title="Fetch a memory by id",
            description="Retrieve the full payload of a stored memory entry.",
            inputSchema=GetMemoryArgs.model_json_schema(),
        ),
        Tool(
            name="memory.update",
            title="Edit an existing memory",
            description="Modify content, tags, metadata, title, or importance for a memory.",
            inputSchema=UpdateMemoryArgs.model_json_schema(),
        ),
        Tool(
            name="memory.delete",
            title="Delete a memory entry",
            description="Remove a memory from the vault.",
            inputSchema=DeleteMemoryArgs.model_json_schema(),
        ),
    ]


def to_json_content(payload: Any, message: Optional[str] = None) -> str:
    """Render payload as a fenced JSON block, optionally headed by a message"""
    lines = []
    if message:
        lines.append(message.strip())
    lines.append("```json")
    lines.append(json.dumps(payload, indent=2, ensure_ascii=False))
    lines.append("```")
    return "\n".join(lines)


def summarize_memory(memory: MemoryRecord) -> str:
    lines = [
        f"• {memory.display_name}",
        f"  id: {memory.id}",
        f"  updated: {memory.updated_at}",
        f"  tags: {', '.join(memory.tags) or '(none)'}",
    ]
    if memory.importance is not None:
        lines.append(f"  importance: {memory.importance}")
    return "\n".join(lines)


def _parse_args(model: Type[ArgsT], name: str, arguments: Optional[Dict[str, Any]]) -> ArgsT:
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'arguments'}: {error['msg']}"
            for error in e.errors()
        )
        raise ToolError(f"Invalid arguments for {name}: {problems}") from e


def _not_found(memory_id: str) -> ToolError:
    return ToolError(f"No memory found for id {memory_id}")


def _text(text: str) -> TextContent:
    return TextContent(type="text", text=text)


async def handle_tool_call(
    name: str,
    arguments: Optional[Dict[str, Any]],
    memory_store,
    notify: Optional[Notifier] = None,
) -> List[TextContent]:
    """
    Handle MCP tool calls

    Args:
        name: Tool name
        arguments: Raw tool arguments
        memory_store: MemoryStore instance
        notify: Optional coroutine function that receives a one-line notice
            after each successful write

    Returns:
        List of TextContent

    Raises:
        ToolError: for invalid arguments or a missing memory
    """
    try:
        if name == "memory.add":
            args = _parse_args(CreateMemoryArgs, name, arguments)
            record = memory_store.add_memory(
                content=args.content,
                title=args.title,
                importance=args.importance,
                tags=args.tags,
                metadata=args.metadata,
            )
            logger.info(f"Added memory {record.id}")
            if notify:
                await notify(f"Added memory {record.id}")
            return [_text(to_json_content({"memory": record.to_dict()}, "Memory stored"))]

        elif name == "memory.list":
            args = _parse_args(ListMemoryArgs, name, arguments)
            if (
                args.min_importance is not None
                and args.max_importance is not None
                and args.min_importance > args.max_importance
            ):
                raise ToolError("minImportance cannot be greater than maxImportance")

            options = {}
            if args.limit is not None:
                options["limit"] = args.limit
            if args.offset is not None:
                options["offset"] = args.offset
            result = memory_store.list_memories(
                search=args.search,
                tags=args.tags,
                min_importance=args.min_importance,
                max_importance=args.max_importance,
                before=to_utc_iso(args.before) if args.before else None,
                after=to_utc_iso(args.after) if args.after else None,
                **options,
            )

            summary = "\n".join(summarize_memory(item) for item in result.items)
            if summary:
                text = f"{summary}\n\nTotal: {result.total} (showing {len(result.items)})"
            else:
                text = "No memories matched the supplied filters."
            return [
                _text(text),
                _text(to_json_content(result.to_dict(), "Structured results")),
            ]

        elif name == "memory.get":
            args = _parse_args(GetMemoryArgs, name, arguments)
            record = memory_store.get_memory(str(args.id))
            if not record:
                raise _not_found(str(args.id))
            return [_text(to_json_content(record.to_dict(), "Memory"))]

        elif name == "memory.update":
            args = _parse_args(UpdateMemoryArgs, name, arguments)
            memory_id = str(args.id)
            updated = memory_store.update_memory(memory_id, **args.changes())
            if not updated:
                raise _not_found(memory_id)
            logger.info(f"Updated memory {memory_id}")
            if notify:
                await notify(f"Updated memory {memory_id}")
            return [_text(to_json_content(updated.to_dict(), "Memory updated"))]

        elif name == "memory.delete":
            args = _parse_args(DeleteMemoryArgs, name, arguments)
            memory_id = str(args.id)
            if not memory_store.delete_memory(memory_id):
                raise _not_found(memory_id)
            logger.info(f"Deleted memory {memory_id}")
            if notify:
                await notify(f"Deleted memory {memory_id}")
            return [_text(f"Memory {memory_id} deleted.")]

        else:
            raise ToolError(f"Unknown tool: {name}")

    except ToolError:
        raise
    except Exception as e:
        logger.error(f"Error executing {name}: {e}")
        logger.error(traceback.format_exc())
        raise
