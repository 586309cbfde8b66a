"""
Storage backends for Context Memory MCP Server
Copyright 2025 Jurden Bruce
"""

from .sqlite_store import MemoryStore

__all__ = ['MemoryStore']
