#!/usr/bin/env python3
"""
MCP Server for Context Memory
Copyright 2025 Jurden Bruce

Serves the memory.* tools over stdio. Configuration comes from the environment:

    MCP_CONTEXT_MEMORY_HOME       data directory (default ./data)
    MCP_CONTEXT_MEMORY_DB         database file (default <home>/context-memory-wallet.db)
    MCP_CONTEXT_MEMORY_LOG_LEVEL  log level (default INFO)
"""

import sys
import os
import asyncio
import logging
import signal
import traceback
from pathlib import Path
from typing import Optional, Tuple, Union

from mcp.server.models import InitializationOptions
from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from . import __version__
from .mcp_tools import get_tool_definitions, handle_tool_call
from .storage import MemoryStore

SERVER_NAME = "context-memory-mcp-server"
DEFAULT_DB_NAME = "context-memory-wallet.db"

INSTRUCTIONS = """This server exposes a personal context memory vault.

Available tools:
- memory.add: Persist a new memory entry with optional title, tags, metadata, and importance (0-10).
- memory.list: List and filter stored memories by search terms, tags, importance, or time window.
- memory.get: Retrieve a single memory by id.
- memory.update: Update any field on an existing memory by id.
- memory.delete: Remove a memory permanently by id.

Memories are stored durably on disk using SQLite. Tags are case-insensitive and deduplicated.
Use memory.list before updating or deleting to get the correct id."""

logger = logging.getLogger("context-memory")


def setup_logging(level: Optional[str] = None):
    """Log to stderr; stdout carries the MCP protocol"""
    level_name = (level or os.getenv("MCP_CONTEXT_MEMORY_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
    )


def resolve_storage_paths(
    data_dir: Optional[Union[str, Path]] = None,
    db_path: Optional[Union[str, Path]] = None,
) -> Tuple[Path, Path]:
    """Work out the data directory and database file

    Explicit arguments win over the environment. A db_path on its own puts the
    data directory next to it.
    """
    if data_dir is not None:
        resolved_dir = Path(data_dir)
    elif db_path is not None:
        resolved_dir = Path(db_path).parent
    else:
        resolved_dir = Path(os.getenv("MCP_CONTEXT_MEMORY_HOME") or Path.cwd() / "data")

    if db_path is not None:
        resolved_db = Path(db_path)
    else:
        env_db = os.getenv("MCP_CONTEXT_MEMORY_DB")
        resolved_db = Path(env_db) if env_db else resolved_dir / DEFAULT_DB_NAME

    return resolved_dir, resolved_db


def create_server(memory_store: MemoryStore) -> Server:
    """Build the MCP server with the memory tools bound to memory_store"""
    app = Server(SERVER_NAME, version=__version__)

    @app.list_tools()
    async def handle_list_tools() -> list[Tool]:
        """List available memory tools"""
        return get_tool_definitions()

    @app.call_tool()
    async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
        """Dispatch a tool call; raised errors become isError results"""

        async def notify(message: str):
            await app.request_context.session.send_log_message(
                level="info", data=message, logger="context-memory"
            )

        return await handle_tool_call(name, arguments, memory_store, notify=notify)

    return app


async def serve(memory_store: MemoryStore):
    """Run the MCP server over stdio until the client disconnects"""
    app = create_server(memory_store)
    async with stdio_server() as (read_stream, write_stream):
        await app.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=SERVER_NAME,
                server_version=__version__,
                instructions=INSTRUCTIONS,
                capabilities=app.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )


def _install_signal_handlers(task: "asyncio.Task"):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler; Ctrl+C still raises KeyboardInterrupt
            pass


async def main():
    """Main entry point"""
    memory_store = None

    try:
        data_dir, db_path = resolve_storage_paths()
        logger.info(f"Initializing MemoryStore in {data_dir} (database: {db_path})")
        memory_store = MemoryStore(db_path)

        logger.info("Starting MCP server...")
        task = asyncio.ensure_future(serve(memory_store))
        _install_signal_handlers(task)
        await task
    except asyncio.CancelledError:
        logger.info(f"Received shutdown signal, stopping {SERVER_NAME}")
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        logger.error(traceback.format_exc())
        sys.exit(1)
    finally:
        if memory_store:
            memory_store.close()


def run():
    """Console script entry point"""
    setup_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
